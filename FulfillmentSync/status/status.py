"""Status definitions and exceptions for FulfillmentSync.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - FailureKind: per-cell failure classification reported by a commit
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., SyncConfigNotFoundException) for error handling in services
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    SyncConfigNotFound = enum.auto()
    SyncConfigInvalid = enum.auto()

    # Authentication status
    CredsNotFound = enum.auto()
    CredsInvalid = enum.auto()

    # Spreadsheet access status
    SpreadsheetIdNotConfigured = enum.auto()
    SpreadsheetWorksheetNotConfigured = enum.auto()
    WorksheetNotFound = enum.auto()
    SpreadsheetEmpty = enum.auto()

    # Service status
    ServiceUnavailable = enum.auto()

    # Commit status
    CommitTargetInvalid = enum.auto()
    CommitInProgress = enum.auto()
    ReloadBlocked = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the settings.',
    Status.Okay: 'Everything is okay.',

    Status.SyncConfigNotFound: 'Could not find the sync config.',
    Status.SyncConfigInvalid: 'The sync config seems to be incomplete, or contains invalid values.',

    Status.CredsNotFound: 'Could not find the service account key. Have you set a valid key path in the settings?',
    Status.CredsInvalid: 'Could not load the service account key. Is the key file valid?',

    Status.SpreadsheetIdNotConfigured: 'Could not find a valid spreadsheet id. Have you set up a valid spreadsheet id in the settings?',
    Status.SpreadsheetWorksheetNotConfigured: 'Worksheet name could not be found. Have you set the worksheet name in the settings?',
    Status.WorksheetNotFound: 'Could not find the worksheet. Have you set up a valid worksheet name in the settings?',
    Status.SpreadsheetEmpty: 'The worksheet is empty. No order rows found.',

    Status.ServiceUnavailable: 'Google Sheets service is unavailable. Please check your connection.',

    Status.CommitTargetInvalid: 'No target worksheet selected for saving. Load a worksheet before saving.',
    Status.CommitInProgress: 'A save is already in progress. Wait for it to finish.',
    Status.ReloadBlocked: 'Cannot reload while a save is in progress.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class FailureKind(enum.StrEnum):
    """Why a single dirty cell did not reach a confirmed state during a commit."""
    UnsupportedField = enum.auto()
    RowNotFound = enum.auto()
    TransportError = enum.auto()
    Rejected = enum.auto()
    VerificationMismatch = enum.auto()

    @property
    def sent(self) -> bool:
        """Whether a cell with this failure was part of a transport request."""
        return self not in (FailureKind.UnsupportedField, FailureKind.RowNotFound)


class BaseStatusException(Exception):
    """Base exception for status-based errors in FulfillmentSync.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..signals import signals
        signals.error.emit(message or self.status_message)


class SyncConfigNotFoundException(BaseStatusException):
    """Exception raised when the sync configuration file cannot be found."""
    status = Status.SyncConfigNotFound


class SyncConfigInvalidException(BaseStatusException):
    """Exception raised when the sync configuration is invalid or malformed."""
    status = Status.SyncConfigInvalid


class CredsNotFoundException(BaseStatusException):
    """Exception raised when the service account key file cannot be found."""
    status = Status.CredsNotFound


class CredsInvalidException(BaseStatusException):
    """Exception raised when the service account key cannot be loaded."""
    status = Status.CredsInvalid


class SpreadsheetIdNotConfiguredException(BaseStatusException):
    """Exception raised when the spreadsheet ID is not configured in settings."""
    status = Status.SpreadsheetIdNotConfigured


class SpreadsheetWorksheetNotConfiguredException(BaseStatusException):
    """Exception raised when the worksheet name is not configured in settings."""
    status = Status.SpreadsheetWorksheetNotConfigured


class WorksheetNotFoundException(BaseStatusException):
    """Exception raised when the specified worksheet cannot be accessed."""
    status = Status.WorksheetNotFound


class SpreadsheetEmptyException(BaseStatusException):
    """Exception raised when the worksheet contains no order rows."""
    status = Status.SpreadsheetEmpty


class ServiceUnavailableException(BaseStatusException):
    """Exception raised when a Google Sheets call fails at the transport level."""
    status = Status.ServiceUnavailable


class CommitTargetInvalidException(BaseStatusException):
    """Exception raised when a commit is missing its addressing context."""
    status = Status.CommitTargetInvalid


class CommitInProgressException(BaseStatusException):
    """Exception raised when a commit is requested while another one is running."""
    status = Status.CommitInProgress


class ReloadBlockedException(BaseStatusException):
    """Exception raised when the baseline is reloaded while a commit is running."""
    status = Status.ReloadBlocked
