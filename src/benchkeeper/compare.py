"""Comparison of a bucket of results against its baseline.

Every result in a (group, report) bucket is turned into a
:class:`ResultDiff` against the chosen baseline.  The sign and meaning
of ``diff`` depend on the metric:

* throughput (higher is better): ``diff > 0`` is how many times faster
  the result is, ``diff < 0`` how many times slower (``-2.0`` means the
  baseline is twice as fast);
* memory (lower is better): ``diff`` is the plain ratio
  ``result / baseline``, so ``2.0`` means twice the allocations.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Protocol

from benchkeeper.results import Result
from benchkeeper.stats import SampleStats, ScalarMeasurement

log = logging.getLogger("benchkeeper")


# ---------------------------------------------------------------------------
# Metrics and measurements
# ---------------------------------------------------------------------------


class Metric(enum.Enum):
    THROUGHPUT = "throughput"
    MEMORY = "memory"

    @property
    def higher_is_better(self) -> bool:
        return self is Metric.THROUGHPUT


_TYPE_METRICS = {
    "ips": Metric.THROUGHPUT,
    "memory": Metric.MEMORY,
}


def metric_for_type(result_type: str) -> Metric:
    """Return the metric results of *result_type* are compared on.

    Raises:
        ValueError: If the type has no comparison metric.
    """
    try:
        return _TYPE_METRICS[result_type]
    except KeyError:
        valid = ", ".join(sorted(_TYPE_METRICS))
        raise ValueError(
            f"No comparison metric for result type '{result_type}' (expected one of: {valid})"
        ) from None


class Measurement(Protocol):
    """What the comparison needs from a measurement."""

    @property
    def central_tendency(self) -> float: ...

    def overlaps(self, other: Measurement) -> bool: ...

    def speedup(self, baseline: Measurement) -> float: ...

    def slowdown(self, baseline: Measurement) -> float: ...


def measurement_from_result(result: Result) -> Measurement:
    """Build the measurement stored in *result*'s payload.

    Raises:
        ValueError: If the payload has no usable measurement.
    """
    data = result.result_data
    if "samples" in data:
        samples = data["samples"]
        if not isinstance(samples, list) or not samples:
            raise ValueError(f"{result.label}: 'samples' must be a non-empty list")
        return SampleStats(samples)
    if "allocated" in data:
        return ScalarMeasurement(data["allocated"])
    raise ValueError(f"{result.label}: no 'samples' or 'allocated' in result data")


# ---------------------------------------------------------------------------
# Diffs
# ---------------------------------------------------------------------------


@dataclass
class ResultDiff:
    """One result compared to the bucket's baseline.

    Memory results that record what stayed alive after the call also
    carry ``retained`` and its ratio to the baseline's, ``retained_diff``.
    """

    result: Result
    is_baseline: bool
    overlaps: bool
    diff: float | None  # None when the result has no usable measurement
    value: float | None = None  # central tendency of the result
    retained: float | None = None
    retained_diff: float | None = None


def _is_same_result(a: Result, b: Result) -> bool:
    if a is b:
        return True
    return a.result_id is not None and a.result_id == b.result_id


def _throughput_diff(base: Measurement, cand: Measurement) -> float:
    if cand.central_tendency < base.central_tendency:
        return -cand.slowdown(base)
    return cand.speedup(base)


def _memory_diff(base: Measurement, cand: Measurement) -> float:
    return cand.speedup(base)


def _retained(result: Result) -> ScalarMeasurement | None:
    value = result.result_data.get("retained")
    if value is None:
        return None
    return ScalarMeasurement(value)


def compare_to_baseline(baseline: Result, candidate: Result, metric: Metric) -> ResultDiff:
    """Compare *candidate* to *baseline* on *metric*."""
    try:
        cand = measurement_from_result(candidate)
    except ValueError as exc:
        log.warning("Cannot compare %s: %s", candidate.label, exc)
        return ResultDiff(candidate, _is_same_result(candidate, baseline), False, None)

    cand_retained = _retained(candidate) if metric is Metric.MEMORY else None
    retained = cand_retained.central_tendency if cand_retained is not None else None

    if _is_same_result(candidate, baseline):
        return ResultDiff(
            candidate,
            True,
            True,
            1.0,
            cand.central_tendency,
            retained,
            1.0 if retained is not None else None,
        )

    try:
        base = measurement_from_result(baseline)
    except ValueError as exc:
        log.warning("Cannot compare against baseline %s: %s", baseline.label, exc)
        return ResultDiff(candidate, False, False, None, cand.central_tendency, retained)

    retained_diff = None
    if metric is Metric.THROUGHPUT:
        diff = _throughput_diff(base, cand)
    else:
        diff = _memory_diff(base, cand)
        base_retained = _retained(baseline)
        if cand_retained is not None and base_retained is not None:
            retained_diff = _memory_diff(base_retained, cand_retained)
    overlaps = cand.overlaps(base)
    return ResultDiff(
        candidate, False, overlaps, diff, cand.central_tendency, retained, retained_diff
    )


def _format_ratio(
    diff: float, metric: Metric, precision: int, infinity: str, overlaps: bool = False
) -> str:
    if overlaps or diff == 1.0:
        return "same"
    if metric is Metric.THROUGHPUT:
        if diff > 0:
            times = infinity if math.isinf(diff) else round(diff, precision)
            return f"{times}x faster"
        times = infinity if math.isinf(diff) else round(-diff, precision)
        return f"{times}x slower"
    if diff > 1.0:
        times = infinity if math.isinf(diff) else round(diff, precision)
        return f"{times}x worse"
    times = infinity if diff == 0 else round(1.0 / diff, precision)
    return f"{times}x better"


def format_diff(
    d: ResultDiff,
    metric: Metric,
    precision: int = 2,
    *,
    ascii_only: bool = False,
) -> str:
    """Render a diff as ``"2.0x faster"``, ``"same"``, ``"baseline"`` etc.

    An infinite ratio keeps its direction: a zero-byte result against a
    non-zero baseline is ``"∞x better"``, the reverse ``"∞x worse"``.
    """
    if d.is_baseline:
        return "baseline"
    if d.diff is None:
        return "N/A"
    infinity = "inf" if ascii_only else "∞"
    return _format_ratio(d.diff, metric, precision, infinity, d.overlaps)


def format_retained_diff(d: ResultDiff, precision: int = 2, *, ascii_only: bool = False) -> str:
    """Render ``retained_diff`` the way :func:`format_diff` renders memory diffs."""
    if d.is_baseline:
        return "baseline"
    if d.retained_diff is None:
        return "N/A"
    infinity = "inf" if ascii_only else "∞"
    return _format_ratio(d.retained_diff, Metric.MEMORY, precision, infinity)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class SortOrder(enum.Enum):
    ASC = "asc"
    DESC = "desc"
    LEADER = "leader"  # best first for the metric

    @classmethod
    def parse(cls, value: str | SortOrder) -> SortOrder:
        if isinstance(value, SortOrder):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(o.value for o in cls)
            raise ValueError(f"Unknown sort order '{value}' (expected one of: {valid})") from None

    def describe(self, metric: Metric) -> str:
        if self is SortOrder.LEADER:
            return "Leaderboard (best first)"
        if self is SortOrder.DESC:
            return "Descending by difference"
        return "Ascending by difference"


def sort_diffs(diffs: Iterable[ResultDiff], order: SortOrder, metric: Metric) -> list[ResultDiff]:
    """Order diffs by their value; ties go to the newest result.

    Diffs without a value always come last.  The baseline is ranked like
    any other result.
    """
    ranked = sorted(diffs, key=lambda d: d.result.timestamp, reverse=True)
    with_value = [d for d in ranked if d.diff is not None]
    without_value = [d for d in ranked if d.diff is None]
    if order is SortOrder.LEADER:
        descending = metric.higher_is_better
    else:
        descending = order is SortOrder.DESC
    # sort() is stable, so the timestamp order survives between equal diffs.
    with_value.sort(key=lambda d: d.diff if d.diff is not None else 0.0, reverse=descending)
    return with_value + without_value


def compare_bucket(
    results: Iterable[Result],
    baseline: Result,
    metric: Metric,
    order: SortOrder = SortOrder.LEADER,
) -> list[ResultDiff]:
    """Compare every result to *baseline* and sort the diffs."""
    return sort_diffs((compare_to_baseline(baseline, r, metric) for r in results), order, metric)
