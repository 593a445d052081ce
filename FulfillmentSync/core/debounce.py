"""Coalesces rapid operator input before it reaches the diff tracker.

Keystroke-level edits of the same cell are collapsed to the last value and
applied together once the input has been idle for ``editor.debounce_ms``.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from PySide6 import QtCore

from ..settings import lib


class EditCoalescer(QtCore.QObject):
    """Buffers edits per ``(natural key, field)`` and applies them to a session.

    Signals:
        editRejected (str, str, str): natural key, field and reason of an edit
            the session refused.
    """
    editRejected = QtCore.Signal(str, str, str)

    def __init__(self, session: Any, interval: Optional[int] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self._pending: Dict[Tuple[str, str], Any] = {}

        if interval is None:
            interval = lib.settings.get_section('editor').get('debounce_ms', 300)

        self.timer = QtCore.QTimer(self)
        self.timer.setSingleShot(True)
        self.timer.setInterval(interval)
        self.timer.timeout.connect(self.flush)

    def submit(self, natural_key: str, field: str, value: Any) -> None:
        """Buffer an edit and restart the idle timer."""
        slot = (natural_key, field)
        # Keep submission order of the first edit, value of the last
        self._pending[slot] = value
        self.timer.start()

    @QtCore.Slot()
    def flush(self) -> int:
        """Apply every buffered edit now.

        Returns:
            int: Number of edits handed to the session.
        """
        self.timer.stop()
        pending, self._pending = self._pending, {}

        for (natural_key, field), value in pending.items():
            try:
                self.session.record_edit(natural_key, field, value)
            except (KeyError, ValueError) as ex:
                reason = str(ex.args[0]) if ex.args else str(ex)
                logging.warning(f'Edit of {natural_key}.{field} rejected: {reason}')
                self.editRejected.emit(natural_key, field, reason)

        if pending:
            logging.debug(f'Flushed {len(pending)} coalesced edit(s).')
        return len(pending)

    def discard(self) -> None:
        """Drop buffered edits without applying them."""
        self.timer.stop()
        if self._pending:
            logging.debug(f'Discarding {len(self._pending)} buffered edit(s).')
        self._pending.clear()

    def pending_count(self) -> int:
        return len(self._pending)
