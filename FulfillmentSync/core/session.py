"""Edit session: one baseline, its pending edits and the commit flow.

:class:`SyncSession` owns the baseline snapshot, the diff tracker and the
ready-set aggregator of one loaded worksheet. Edits are applied
synchronously. A commit runs dispatch, verification and reconciliation
strictly one after the other, at most one at a time, either inline with
:meth:`SyncSession.commit` or on a :class:`CommitWorker` thread with
:meth:`SyncSession.commit_async`.

Example:

    .. code-block:: python

        transport = SheetsTransport()
        records, target = loader.load_target(transport)

        session = SyncSession(transport)
        session.load(records)
        session.record_edit('A-1001|8801234567890', 'import_qty', 5)
        result = session.commit(target)

"""
import dataclasses
import logging
import threading
from typing import Any, Iterable, List, Optional, Tuple

from PySide6 import QtCore

from .dispatch import BatchWriteDispatcher, ColumnMapping, DispatchResult, SheetTarget, Transport
from .ready import ReadyItem, ReadySetAggregator
from .reconcile import Reconciler, ReconcileSummary
from .records import BaselineSnapshot, Record
from .tracker import DiffTracker, DirtyCell
from .verify import VerificationPass, VerificationResult
from ..log import log
from ..settings import lib
from ..status import status


@dataclasses.dataclass(frozen=True)
class CommitResult:
    """Everything a commit did.

    Attributes:
        summary: Per-cell outcome after reconciliation.
        dispatch: The batch write outcome.
        verification: The read-back outcome.
        ready_snapshot: The ready items as they were when the commit started,
            including any delta overrides.
        error: Set when the commit was refused before anything was sent.
        report: Warnings and errors logged while the commit ran.
    """
    summary: ReconcileSummary = dataclasses.field(default_factory=ReconcileSummary)
    dispatch: DispatchResult = dataclasses.field(default_factory=DispatchResult)
    verification: VerificationResult = dataclasses.field(default_factory=VerificationResult)
    ready_snapshot: Tuple[ReadyItem, ...] = ()
    error: Optional[status.BaseStatusException] = None
    report: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None and self.summary.ok


class CommitWorker(QtCore.QThread):
    """
    Runs one commit of a session off the GUI thread.

    Signals:
        resultReady (object): Emitted with the :class:`CommitResult`.
        errorOccurred (object): Emitted with the exception if the commit raised.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, session: 'SyncSession', target: Optional[SheetTarget], timeout: Optional[float] = None) -> None:
        super().__init__()
        self.session = session
        self.target = target
        self.timeout = timeout

    def run(self) -> None:
        result: Optional[CommitResult] = None
        error: Optional[Exception] = None
        try:
            result = self.session._run_commit(self.target, self.timeout)
        except Exception as ex:
            logging.exception('Commit worker failed.')
            error = ex
        finally:
            self.session._end_commit()

        # The session is released before anyone hears about the outcome
        if error is not None:
            self.errorOccurred.emit(error)
            return
        self.session.commitFinished.emit(result)
        self.resultReady.emit(result)


class SyncSession(QtCore.QObject):
    """Owns the editable state of one loaded worksheet.

    Signals:
        dirtyCellsChanged (int): Number of dirty cells after a change.
        readyItemsChanged (list): The rebuilt ready set.
        commitStarted (): A commit acquired the session.
        commitFinished (object): The :class:`CommitResult` of a commit.
        baselineLoaded (int): Number of records of a new baseline.
    """
    dirtyCellsChanged = QtCore.Signal(int)
    readyItemsChanged = QtCore.Signal(list)
    commitStarted = QtCore.Signal()
    commitFinished = QtCore.Signal(object)
    baselineLoaded = QtCore.Signal(int)

    def __init__(self, transport: Transport, mapping: Optional[ColumnMapping] = None,
                 parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self.transport = transport
        self.mapping = mapping if mapping is not None else ColumnMapping.from_settings()

        self._baseline = BaselineSnapshot([])
        self._tracker = DiffTracker(self._baseline)
        self._aggregator = ReadySetAggregator()

        self._lock = threading.RLock()
        self._committing = False
        self._worker: Optional[CommitWorker] = None

    @property
    def baseline(self) -> BaselineSnapshot:
        return self._baseline

    @property
    def tracker(self) -> DiffTracker:
        return self._tracker

    @property
    def is_committing(self) -> bool:
        return self._committing

    def load(self, records: Iterable[Record]) -> None:
        """Replace the baseline and drop every pending edit and override.

        Raises:
            status.ReloadBlockedException: If a commit is in flight.
            ValueError: If two records share a natural key.
        """
        with self._lock:
            if self._committing:
                raise status.ReloadBlockedException

            baseline = BaselineSnapshot(records)
            self._baseline = baseline
            self._tracker = DiffTracker(baseline)
            self._aggregator.clear()

        logging.info(f'Baseline loaded with {len(baseline)} record(s).')
        self.baselineLoaded.emit(len(baseline))
        self.dirtyCellsChanged.emit(0)
        self.readyItemsChanged.emit([])

    def _rebuild(self) -> List[ReadyItem]:
        return self._aggregator.rebuild(self._baseline, self._tracker)

    def record_edit(self, natural_key: str, field: str, new_value: Any) -> bool:
        """Apply one operator edit and refresh the ready set.

        Returns:
            bool: True if the cell is dirty after the edit.

        Raises:
            KeyError: If the record is not part of the baseline.
            ValueError: If the field is not editable or the value cannot be parsed.
        """
        with self._lock:
            revision = self._tracker.revision
            dirty = self._tracker.record_edit(natural_key, field, new_value)
            if revision == self._tracker.revision:
                return dirty
            items = self._rebuild()
            count = len(self._tracker)

        self.dirtyCellsChanged.emit(count)
        self.readyItemsChanged.emit(items)
        return dirty

    def dirty_cells(self) -> Tuple[DirtyCell, ...]:
        with self._lock:
            return self._tracker.get_dirty_cells()

    def ready_items(self) -> List[ReadyItem]:
        with self._lock:
            return self._aggregator.items()

    def set_delta_override(self, natural_key: str, qty: int) -> ReadyItem:
        """Hand-adjust the delta quantity of a ready item.

        Raises:
            KeyError: If there is no ready item for the key.
            ValueError: If qty is not a non-negative integer.
        """
        with self._lock:
            item = self._aggregator.set_delta_override(natural_key, qty)
            items = self._aggregator.items()
        self.readyItemsChanged.emit(items)
        return item

    def consume_override(self, natural_key: str) -> Optional[int]:
        """Hand over and forget the delta override of a record."""
        with self._lock:
            qty = self._aggregator.consume_override(natural_key)
            items = self._aggregator.items()
        if qty is not None:
            self.readyItemsChanged.emit(items)
        return qty

    def _begin_commit(self) -> None:
        with self._lock:
            if self._committing:
                raise status.CommitInProgressException
            self._committing = True

    def _end_commit(self) -> None:
        with self._lock:
            self._committing = False

    def commit(self, target: Optional[SheetTarget], timeout: Optional[float] = None) -> CommitResult:
        """Write every dirty cell, verify the writes and reconcile the tracker.

        :attr:`commitFinished` is emitted once the session accepts new commits
        and reloads again.

        Args:
            target: Spreadsheet, worksheet and row index to write to.
            timeout: Transport timeout in seconds. Defaults to the 'transport' setting.

        Returns:
            CommitResult: The outcome. A missing or invalid target is reported in
                ``error`` and nothing is sent.

        Raises:
            status.CommitInProgressException: If another commit is running.
        """
        self._begin_commit()
        try:
            result = self._run_commit(target, timeout)
        finally:
            self._end_commit()
        self.commitFinished.emit(result)
        return result

    def commit_async(self, target: Optional[SheetTarget], timeout: Optional[float] = None) -> CommitWorker:
        """Run :meth:`commit` on a worker thread.

        The result is delivered through :attr:`commitFinished`.

        Raises:
            status.CommitInProgressException: If another commit is running.
        """
        self._begin_commit()
        worker = CommitWorker(self, target, timeout)
        worker.finished.connect(self._release_worker)
        worker.finished.connect(worker.deleteLater)
        self._worker = worker
        logging.debug('Starting asynchronous commit')
        worker.start()
        return worker

    @QtCore.Slot()
    def _release_worker(self) -> None:
        worker = self.sender()
        if worker is not None and worker is self._worker:
            self._worker = None

    def _with_report(self, result: CommitResult, mark: int) -> CommitResult:
        tank = log.get_tank()
        if tank is not None:
            result = dataclasses.replace(result, report=tuple(tank.get_logs(logging.WARNING, since=mark)))
        return result

    def _run_commit(self, target: Optional[SheetTarget], timeout: Optional[float]) -> CommitResult:
        tank = log.get_tank()
        mark = tank.mark() if tank is not None else 0
        self.commitStarted.emit()

        if timeout is None:
            timeout = lib.settings.get_section('transport').get('timeout')

        try:
            if target is None:
                raise status.CommitTargetInvalidException('No target worksheet selected.')
            target.validate()
        except status.CommitTargetInvalidException as ex:
            return self._with_report(CommitResult(error=ex), mark)

        with self._lock:
            cells = self._tracker.get_dirty_cells()
            ready = tuple(self._aggregator.items())

        if not cells:
            logging.info('Commit requested, but there are no dirty cells. Nothing to do.')
            return self._with_report(CommitResult(ready_snapshot=ready), mark)

        logging.info(f'Committing {len(cells)} dirty cell(s).')
        dispatched = BatchWriteDispatcher(self.transport, self.mapping).dispatch(cells, target, timeout=timeout)
        verified = VerificationPass(self.transport).verify(
            target.spreadsheet_id, dispatched.succeeded, timeout=timeout
        )

        with self._lock:
            summary = Reconciler(self._tracker).reconcile(dispatched, verified)
            for key in dict.fromkeys(a.cell.natural_key for a in summary.confirmed):
                if not self._tracker.is_dirty(key):
                    self._aggregator.discard_override(key)
            items = self._rebuild()
            count = len(self._tracker)

        self.dirtyCellsChanged.emit(count)
        self.readyItemsChanged.emit(items)
        return self._with_report(CommitResult(
            summary=summary,
            dispatch=dispatched,
            verification=verified,
            ready_snapshot=ready,
        ), mark)
