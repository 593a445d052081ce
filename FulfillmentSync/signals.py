"""Application-wide Qt signals for FulfillmentSync.

Components that have no direct reference to each other (settings, status
exceptions, the log handler and whatever front-end hosts the edit session)
communicate through the single :data:`signals` instance defined here.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for configuration, data and commit events."""
    configSectionChanged = QtCore.Signal(str)

    dataAboutToBeLoaded = QtCore.Signal()
    dataLoaded = QtCore.Signal(int)

    showLogs = QtCore.Signal()

    error = QtCore.Signal(str)


signals = Signals()
