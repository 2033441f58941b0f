"""Sample statistics used when comparing throughput measurements.

Only descriptive statistics are computed here.  An iterations-per-second
measurement is a list of per-cycle rates; its central tendency is the
mean and its error bar is two standard deviations, which is what the
overlap test between a candidate and the baseline uses.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Sequence


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


@dataclass
class DescriptiveStats:
    """Summary statistics for a sample."""

    n: int
    mean: float
    median: float
    stdev: float
    min: float
    max: float

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict with rounded values."""
        return {
            "n": self.n,
            "mean": round(self.mean, 6),
            "median": round(self.median, 6),
            "stdev": round(self.stdev, 6),
            "min": round(self.min, 6),
            "max": round(self.max, 6),
        }


def describe(values: Sequence[float]) -> DescriptiveStats:
    """Compute descriptive statistics for a sample.

    Returns NaN for every field of an empty sample, and a standard
    deviation of 0.0 when there is a single value.
    """
    if not values:
        nan = float("nan")
        return DescriptiveStats(n=0, mean=nan, median=nan, stdev=nan, min=nan, max=nan)

    sorted_v = sorted(values)
    n = len(sorted_v)
    return DescriptiveStats(
        n=n,
        mean=statistics.mean(sorted_v),
        median=statistics.median(sorted_v),
        stdev=statistics.stdev(sorted_v) if n >= 2 else 0.0,
        min=sorted_v[0],
        max=sorted_v[-1],
    )


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


class SampleStats:
    """A sampled measurement: mean with a two-sigma error bar."""

    def __init__(self, samples: Sequence[float]) -> None:
        if not samples:
            raise ValueError("SampleStats needs at least one sample")
        self.samples = [float(s) for s in samples]
        self.stats = describe(self.samples)
        self.error = 2 * self.stats.stdev

    @property
    def central_tendency(self) -> float:
        return self.stats.mean

    @property
    def low(self) -> float:
        return self.central_tendency - self.error

    @property
    def high(self) -> float:
        return self.central_tendency + self.error

    def overlaps(self, other: SampleStats) -> bool:
        """True if the two error bars intersect."""
        return self.high >= other.low and self.low <= other.high

    def speedup(self, baseline: SampleStats) -> float:
        """How many times higher this measurement is than *baseline*."""
        return _ratio(self.central_tendency, baseline.central_tendency)

    def slowdown(self, baseline: SampleStats) -> float:
        """How many times lower this measurement is than *baseline*."""
        return _ratio(baseline.central_tendency, self.central_tendency)

    def __repr__(self) -> str:
        mean = self.central_tendency
        return f"SampleStats(mean={mean:.6g}, error={self.error:.3g}, n={self.stats.n})"


class ScalarMeasurement:
    """A single exact value, e.g. bytes allocated.  Overlap means equality."""

    def __init__(self, value: float) -> None:
        self.value = float(value)

    @property
    def central_tendency(self) -> float:
        return self.value

    def overlaps(self, other: ScalarMeasurement) -> bool:
        return self.value == other.central_tendency

    def speedup(self, baseline: ScalarMeasurement) -> float:
        return _ratio(self.value, baseline.central_tendency)

    def slowdown(self, baseline: ScalarMeasurement) -> float:
        return _ratio(baseline.central_tendency, self.value)

    def __repr__(self) -> str:
        return f"ScalarMeasurement({self.value:g})"


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 1.0 if numerator == 0 else math.inf
    return numerator / denominator
