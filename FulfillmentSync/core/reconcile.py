"""Folds dispatch and verification outcomes back into the diff tracker."""
import dataclasses
import logging
from typing import List, Tuple

from . import normalize
from .dispatch import AcceptedCell, CellFailure, DispatchResult
from .tracker import DiffTracker, DirtyCell
from .verify import Mismatch, VerificationResult


@dataclasses.dataclass(frozen=True)
class ReconcileSummary:
    """What happened to every cell of a commit.

    Attributes:
        confirmed: Cells written and verified; no longer dirty.
        failed_details: Cells not sent, not accepted or not verifiable; still dirty.
        mismatch_details: Cells whose read-back differed; dirty with the intended value.
        superseded: Cells edited again while the commit was running; left as edited.
    """
    confirmed: Tuple[AcceptedCell, ...] = ()
    failed_details: Tuple[CellFailure, ...] = ()
    mismatch_details: Tuple[Mismatch, ...] = ()
    superseded: Tuple[DirtyCell, ...] = ()

    @property
    def confirmed_count(self) -> int:
        return len(self.confirmed)

    @property
    def failed_count(self) -> int:
        return len(self.failed_details)

    @property
    def mismatch_count(self) -> int:
        return len(self.mismatch_details)

    @property
    def superseded_count(self) -> int:
        return len(self.superseded)

    @property
    def ok(self) -> bool:
        return not self.failed_details and not self.mismatch_details


class Reconciler:
    """Applies commit outcomes to a tracker.

    Only slots still holding the committed value are touched; a slot edited
    again during the commit keeps the newer edit.
    """

    def __init__(self, tracker: DiffTracker) -> None:
        self.tracker = tracker

    def _unchanged(self, cell: DirtyCell) -> bool:
        if not self.tracker.is_dirty(cell.natural_key, cell.field):
            return False
        current = self.tracker.pending(cell.natural_key, cell.field)
        return normalize.values_equal(cell.field, current, cell.value)

    def reconcile(self, dispatched: DispatchResult, verified: VerificationResult) -> ReconcileSummary:
        """Clear confirmed cells, keep everything else dirty and summarize.

        Args:
            dispatched: Output of the batch write.
            verified: Output of the read-back of ``dispatched.succeeded``.

        Returns:
            ReconcileSummary: One entry per committed cell.
        """
        confirmed: List[AcceptedCell] = []
        superseded: List[DirtyCell] = []

        for item in verified.matches:
            if self._unchanged(item.cell):
                self.tracker.clear(item.cell.natural_key, item.cell.field)
                confirmed.append(item)
            else:
                superseded.append(item.cell)

        mismatches: List[Mismatch] = []
        for mismatch in verified.mismatches:
            cell = mismatch.cell
            if not self._unchanged(cell):
                superseded.append(cell)
                continue
            # Put back the intended value so a retry resends the same intent
            self.tracker.restore(cell.natural_key, cell.field, mismatch.expected)
            mismatches.append(mismatch)

        failed = list(dispatched.failed) + list(verified.failed)

        summary = ReconcileSummary(
            confirmed=tuple(confirmed),
            failed_details=tuple(failed),
            mismatch_details=tuple(mismatches),
            superseded=tuple(superseded),
        )
        logging.info(
            f'Commit reconciled: {summary.confirmed_count} confirmed, {summary.failed_count} failed, '
            f'{summary.mismatch_count} mismatched, {summary.superseded_count} superseded.'
        )
        return summary
