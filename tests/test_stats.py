"""Tests for benchkeeper.stats — descriptive statistics and measurements."""

from __future__ import annotations

import math
import unittest

from benchkeeper.stats import SampleStats, ScalarMeasurement, describe


class TestDescribe(unittest.TestCase):
    def test_describe_basic(self) -> None:
        """Known-value test with a small sample."""
        stats = describe([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
        self.assertEqual(stats.n, 8)
        self.assertAlmostEqual(stats.mean, 5.0)
        self.assertAlmostEqual(stats.median, 4.5)
        self.assertAlmostEqual(stats.stdev, 2.138089935, places=6)
        self.assertEqual(stats.min, 2.0)
        self.assertEqual(stats.max, 9.0)

    def test_describe_single_value(self) -> None:
        stats = describe([42.0])
        self.assertEqual(stats.n, 1)
        self.assertEqual(stats.stdev, 0.0)

    def test_describe_empty(self) -> None:
        stats = describe([])
        self.assertEqual(stats.n, 0)
        self.assertTrue(math.isnan(stats.mean))

    def test_to_dict_rounds(self) -> None:
        data = describe([1.0, 2.0]).to_dict()
        self.assertEqual(data["n"], 2)
        self.assertEqual(data["mean"], 1.5)
        self.assertEqual(data["stdev"], round(math.sqrt(0.5), 6))


class TestSampleStats(unittest.TestCase):
    def test_empty_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SampleStats([])

    def test_error_is_two_sigma(self) -> None:
        s = SampleStats([9.0, 11.0])
        self.assertAlmostEqual(s.central_tendency, 10.0)
        self.assertAlmostEqual(s.error, 2 * math.sqrt(2.0))
        self.assertAlmostEqual(s.low, 10.0 - 2 * math.sqrt(2.0))
        self.assertAlmostEqual(s.high, 10.0 + 2 * math.sqrt(2.0))

    def test_overlapping_error_bars(self) -> None:
        a = SampleStats([95.0, 105.0])
        b = SampleStats([100.0, 110.0])
        self.assertTrue(a.overlaps(b))
        self.assertTrue(b.overlaps(a))

    def test_disjoint_error_bars(self) -> None:
        a = SampleStats([1000.0, 1000.0])
        b = SampleStats([2000.0, 2000.0])
        self.assertFalse(a.overlaps(b))
        self.assertFalse(b.overlaps(a))

    def test_identical_constant_samples_overlap(self) -> None:
        self.assertTrue(SampleStats([5.0]).overlaps(SampleStats([5.0])))

    def test_speedup_and_slowdown(self) -> None:
        fast = SampleStats([2000.0])
        slow = SampleStats([1000.0])
        self.assertEqual(fast.speedup(slow), 2.0)
        self.assertEqual(slow.slowdown(fast), 2.0)
        self.assertEqual(fast.slowdown(slow), 0.5)

    def test_ratio_with_zero(self) -> None:
        zero = SampleStats([0.0])
        self.assertEqual(zero.speedup(zero), 1.0)
        self.assertEqual(SampleStats([3.0]).speedup(zero), math.inf)

    def test_samples_converted_to_float(self) -> None:
        self.assertEqual(SampleStats([1, 2]).samples, [1.0, 2.0])

    def test_repr(self) -> None:
        self.assertIn("n=2", repr(SampleStats([1.0, 2.0])))


class TestScalarMeasurement(unittest.TestCase):
    def test_overlap_means_equality(self) -> None:
        self.assertTrue(ScalarMeasurement(100).overlaps(ScalarMeasurement(100)))
        self.assertFalse(ScalarMeasurement(100).overlaps(ScalarMeasurement(101)))

    def test_ratios(self) -> None:
        self.assertEqual(ScalarMeasurement(200).speedup(ScalarMeasurement(100)), 2.0)
        self.assertEqual(ScalarMeasurement(100).slowdown(ScalarMeasurement(200)), 2.0)

    def test_zero_baseline(self) -> None:
        self.assertEqual(ScalarMeasurement(5).speedup(ScalarMeasurement(0)), math.inf)


if __name__ == "__main__":
    unittest.main()
