# tests/test_ready.py
"""
Unit tests for FulfillmentSync.core.ready (delta quantities and the ready set).

Run:
    python -m unittest tests.test_ready
"""
import unittest

from FulfillmentSync.core.ready import ReadySetAggregator, compute_delta_qty
from FulfillmentSync.core.records import BaselineSnapshot
from FulfillmentSync.core.tracker import DiffTracker
from tests.base import KEY_1, KEY_2, KEY_3, make_records


class DeltaQtyTests(unittest.TestCase):

    def test_increase(self):
        self.assertEqual(compute_delta_qty(2, 5), 3)

    def test_missing_counts_as_zero(self):
        self.assertEqual(compute_delta_qty(None, 4), 4)
        self.assertEqual(compute_delta_qty(3, None), 0)

    def test_never_negative(self):
        self.assertEqual(compute_delta_qty(7, 1), 0)
        self.assertEqual(compute_delta_qty(7, 7), 0)


class ReadySetAggregatorTests(unittest.TestCase):

    def setUp(self) -> None:
        self.baseline = BaselineSnapshot(make_records())
        self.tracker = DiffTracker(self.baseline)
        self.aggregator = ReadySetAggregator()

    def rebuild(self):
        return self.aggregator.rebuild(self.baseline, self.tracker)

    def test_one_item_per_dirty_record(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.tracker.record_edit(KEY_1, 'note', 'short one box')
        self.tracker.record_edit(KEY_3, 'cancel_qty', 2)

        items = self.rebuild()
        self.assertEqual([i.natural_key for i in items], [KEY_1, KEY_3])

        first = items[0]
        self.assertEqual(first.modified_fields, {'import_qty': 5, 'note': 'short one box'})
        self.assertEqual(first.delta_qty, 3)
        self.assertEqual(first.original_import_qty, 2)
        self.assertEqual(first.display_value('import_qty'), 5)
        self.assertEqual(first.display_value('product_name'), 'Stoneware mug')

    def test_delta_zero_without_import_edit(self):
        self.tracker.record_edit(KEY_3, 'cancel_qty', 2)
        item = self.rebuild()[0]
        self.assertEqual(item.delta_qty, 0)

    def test_delta_from_missing_baseline(self):
        self.tracker.record_edit(KEY_2, 'import_qty', 4)
        self.assertEqual(self.rebuild()[0].delta_qty, 4)

    def test_delta_decrease_is_zero(self):
        self.tracker.record_edit(KEY_3, 'import_qty', 1)
        self.assertEqual(self.rebuild()[0].delta_qty, 0)

    def test_item_disappears_on_revert(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        self.assertIn(KEY_1, self.aggregator)

        self.tracker.record_edit(KEY_1, 'import_qty', 2)
        self.assertEqual(self.rebuild(), [])
        self.assertNotIn(KEY_1, self.aggregator)

    def test_override(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()

        item = self.aggregator.set_delta_override(KEY_1, 1)
        self.assertEqual(item.delta_qty, 3)
        self.assertEqual(item.effective_delta_qty, 1)

        # Survives a rebuild
        self.tracker.record_edit(KEY_1, 'import_qty', 6)
        item = self.rebuild()[0]
        self.assertEqual(item.delta_qty, 4)
        self.assertEqual(item.effective_delta_qty, 1)

    def test_override_is_not_a_dirty_cell(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        self.aggregator.set_delta_override(KEY_1, 0)
        self.assertEqual(len(self.tracker), 1)

    def test_override_keeps_item_after_revert(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        self.aggregator.set_delta_override(KEY_1, 2)

        self.tracker.record_edit(KEY_1, 'import_qty', 2)
        items = self.rebuild()
        self.assertEqual(len(items), 1)
        self.assertTrue(items[0].override_only)
        self.assertEqual(items[0].effective_delta_qty, 2)

        self.assertEqual(self.aggregator.consume_override(KEY_1), 2)
        self.assertEqual(self.aggregator.items(), [])
        self.assertEqual(self.rebuild(), [])

    def test_consume_override_keeps_dirty_item(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        self.aggregator.set_delta_override(KEY_1, 2)

        self.assertEqual(self.aggregator.consume_override(KEY_1), 2)
        item = self.aggregator.get(KEY_1)
        self.assertIsNone(item.delta_override)
        self.assertEqual(item.effective_delta_qty, 3)
        self.assertIsNone(self.aggregator.consume_override(KEY_1))

    def test_invalid_override(self):
        with self.assertRaises(KeyError):
            self.aggregator.set_delta_override(KEY_1, 1)

        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        for qty in (-1, 1.5, True, '2'):
            with self.subTest(qty=qty):
                with self.assertRaises(ValueError):
                    self.aggregator.set_delta_override(KEY_1, qty)  # type: ignore

    def test_clear(self):
        self.tracker.record_edit(KEY_1, 'import_qty', 5)
        self.rebuild()
        self.aggregator.set_delta_override(KEY_1, 1)
        self.aggregator.clear()
        self.assertEqual(len(self.aggregator), 0)
        self.assertIsNone(self.aggregator.override(KEY_1))


if __name__ == '__main__':
    unittest.main()
