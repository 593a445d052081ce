# tests/test_normalize.py
"""
Unit tests for FulfillmentSync.core.normalize.

Run:
    python -m unittest tests.test_normalize
"""
import time
import unittest

from FulfillmentSync.core import normalize


class NormalizeTests(unittest.TestCase):

    def test_text_blank_is_none(self):
        self.assertIsNone(normalize.normalize_field('note', None))
        self.assertIsNone(normalize.normalize_field('note', ''))
        self.assertEqual(normalize.normalize_field('note', ' x '), ' x ')

    def test_numeric_blank_is_none(self):
        self.assertIsNone(normalize.normalize_field('import_qty', None))
        self.assertIsNone(normalize.normalize_field('import_qty', ''))
        self.assertIsNone(normalize.normalize_field('import_qty', '   '))

    def test_zero_is_not_none(self):
        self.assertEqual(normalize.normalize_field('import_qty', 0), 0)
        self.assertEqual(normalize.normalize_field('import_qty', '0'), 0)
        self.assertFalse(normalize.values_equal('import_qty', 0, None))
        self.assertFalse(normalize.values_equal('import_qty', '0', ''))

    def test_numeric_strings_compare_by_value(self):
        self.assertTrue(normalize.values_equal('import_qty', '5', 5))
        self.assertTrue(normalize.values_equal('import_qty', '5.0', 5))
        self.assertTrue(normalize.values_equal('import_qty', 5.0, 5))
        self.assertTrue(normalize.values_equal('import_qty', '1,200', 1200))
        self.assertFalse(normalize.values_equal('import_qty', '5', 6))

    def test_fractional_numbers_survive(self):
        self.assertEqual(normalize.normalize_field('cancel_qty', '2.5'), 2.5)

    def test_strict_rejects_garbage(self):
        with self.assertRaises(ValueError):
            normalize.normalize_field('import_qty', 'five')
        with self.assertRaises(ValueError):
            normalize.normalize_field('import_qty', True)
        with self.assertRaises(ValueError):
            normalize.normalize_field('import_qty', float('nan'))

    def test_non_strict_keeps_garbage_comparable(self):
        self.assertEqual(normalize.normalize_field('import_qty', 'five', strict=False), 'five')
        self.assertFalse(normalize.values_equal('import_qty', 'five', 5))

    def test_huge_exponent_is_rejected_quickly(self):
        t0 = time.perf_counter()
        for text in ('1e1000000', '-1e50000000', '9' * 20):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    normalize.normalize_field('import_qty', text)
                self.assertEqual(normalize.normalize_field('import_qty', text, strict=False), text)
        self.assertLess(time.perf_counter() - t0, 1.0)

        self.assertFalse(normalize.values_equal('import_qty', '1e1000000', 5))
        self.assertEqual(normalize.normalize_field('import_qty', '1e3'), 1000)

    def test_text_integral_float(self):
        self.assertEqual(normalize.normalize_field('note', 12.0), '12')
        self.assertTrue(normalize.values_equal('note', 12.0, '12'))

    def test_unknown_field(self):
        with self.assertRaises(ValueError):
            normalize.field_kind('product_name')
        with self.assertRaises(ValueError):
            normalize.normalize('date', 'x')


if __name__ == '__main__':
    unittest.main()
