# tests/test_reconcile.py
"""
Unit tests for FulfillmentSync.core.reconcile.Reconciler.

Run:
    python -m unittest tests.test_reconcile
"""
import unittest

from FulfillmentSync.core.dispatch import AcceptedCell, CellFailure, DispatchResult
from FulfillmentSync.core.reconcile import Reconciler
from FulfillmentSync.core.records import BaselineSnapshot
from FulfillmentSync.core.tracker import DiffTracker
from FulfillmentSync.core.verify import Mismatch, VerificationResult
from FulfillmentSync.status.status import FailureKind
from tests.base import KEY_1, KEY_2, make_records


class ReconcilerTests(unittest.TestCase):

    def setUp(self) -> None:
        self.tracker = DiffTracker(BaselineSnapshot(make_records()))
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.tracker.record_edit(KEY_1, 'note', 'late')
        self.tracker.record_edit(KEY_2, 'export_qty', 1)
        self.cells = {c.slot: c for c in self.tracker.get_dirty_cells()}
        self.reconciler = Reconciler(self.tracker)

    def cell(self, key, field):
        return self.cells[(key, field)]

    def test_matches_are_cleared(self):
        imp = AcceptedCell(self.cell(KEY_1, 'import_qty'), 'Orders!N2')
        note = AcceptedCell(self.cell(KEY_1, 'note'), 'Orders!R2')
        unsupported = CellFailure(self.cell(KEY_2, 'export_qty'), FailureKind.UnsupportedField, 'no column')

        summary = self.reconciler.reconcile(
            DispatchResult((imp, note), (unsupported,)),
            VerificationResult(matches=(imp, note)),
        )

        self.assertEqual(summary.confirmed_count, 2)
        self.assertEqual(summary.failed_count, 1)
        self.assertFalse(summary.ok)
        self.assertFalse(self.tracker.is_dirty(KEY_1))
        self.assertTrue(self.tracker.is_dirty(KEY_2, 'export_qty'))

    def test_mismatch_stays_dirty_with_intended_value(self):
        imp = AcceptedCell(self.cell(KEY_1, 'import_qty'), 'Orders!N2')
        mismatch = Mismatch(imp.cell, imp.address, 5, 2)

        summary = self.reconciler.reconcile(
            DispatchResult((imp,)),
            VerificationResult(mismatches=(mismatch,)),
        )

        self.assertEqual(summary.mismatch_details, (mismatch,))
        self.assertEqual(self.tracker.pending(KEY_1, 'import_qty'), 5)

    def test_verification_failures_stay_dirty(self):
        imp = AcceptedCell(self.cell(KEY_1, 'import_qty'), 'Orders!N2')
        failure = CellFailure(imp.cell, FailureKind.TransportError, 'read failed')

        summary = self.reconciler.reconcile(DispatchResult((imp,)), VerificationResult(failed=(failure,)))

        self.assertEqual(summary.failed_details, (failure,))
        self.assertTrue(self.tracker.is_dirty(KEY_1, 'import_qty'))

    def test_edit_during_commit_is_not_clobbered(self):
        imp = AcceptedCell(self.cell(KEY_1, 'import_qty'), 'Orders!N2')
        note = AcceptedCell(self.cell(KEY_1, 'note'), 'Orders!R2')

        # Operator keeps typing while the write is in flight
        self.tracker.record_edit(KEY_1, 'import_qty', 8)

        summary = self.reconciler.reconcile(
            DispatchResult((imp, note)),
            VerificationResult(matches=(note,), mismatches=(Mismatch(imp.cell, imp.address, 5, 2),)),
        )

        self.assertEqual(summary.superseded, (imp.cell,))
        self.assertEqual(summary.mismatch_count, 0)
        self.assertEqual(self.tracker.pending(KEY_1, 'import_qty'), 8)
        self.assertFalse(self.tracker.is_dirty(KEY_1, 'note'))

    def test_match_of_reverted_cell_is_superseded(self):
        note = AcceptedCell(self.cell(KEY_1, 'note'), 'Orders!R2')
        self.tracker.record_edit(KEY_1, 'note', None)

        summary = self.reconciler.reconcile(DispatchResult((note,)), VerificationResult(matches=(note,)))
        self.assertEqual(summary.confirmed_count, 0)
        self.assertEqual(summary.superseded_count, 1)


if __name__ == '__main__':
    unittest.main()
