"""Reporting pass: stored results grouped into compared buckets.

A bucket is every stored result of one type for one (group, report)
pair.  Each bucket is compared against its own baseline; a bucket
without one is reported as an error and skipped, the others are still
shown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from benchkeeper.baseline import choose_baseline
from benchkeeper.compare import (
    Metric,
    ResultDiff,
    SortOrder,
    compare_bucket,
    format_diff,
    format_retained_diff,
    metric_for_type,
)
from benchkeeper.errors import NoBaselineError
from benchkeeper.formatting import format_section_header, format_table, humanize_scale
from benchkeeper.logging import get_logger
from benchkeeper.results import Result, Runtime
from benchkeeper.stores.base import ResultStore

log = get_logger("report")

_VALUE_HEADERS = {
    Metric.THROUGHPUT: "IPS",
    Metric.MEMORY: "Allocated",
}


@dataclass
class Bucket:
    """The compared results of one (group, report) pair."""

    type: str
    group: str
    report: str
    baseline: Result
    diffs: list[ResultDiff]
    order: SortOrder = SortOrder.LEADER

    @property
    def metric(self) -> Metric:
        return metric_for_type(self.type)


@dataclass
class BucketReport:
    buckets: list[Bucket] = field(default_factory=list)
    errors: list[NoBaselineError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _group_by_bucket(results: list[Result]) -> dict[tuple[str, str], list[Result]]:
    grouped: dict[tuple[str, str], list[Result]] = {}
    for result in results:
        grouped.setdefault((result.group_name, result.report_name), []).append(result)
    return dict(sorted(grouped.items()))


def iter_buckets(
    store: ResultStore,
    type: str,
    *,
    jit_only: bool = False,
    order: SortOrder = SortOrder.LEADER,
    group: str | None = None,
    report: str | None = None,
    baseline_branch: str | None = None,
    control_commit: str | None = None,
    errors: list[NoBaselineError] | None = None,
) -> Iterator[Bucket]:
    """Yield one compared bucket per (group, report) with stored results.

    When *jit_only* is set only JIT results are considered.  Every
    bucket holds the results of all branches and commits; its baseline
    comes from *baseline_branch* and *control_commit* when they are
    given.  Buckets with no baseline are logged, appended to *errors*
    (if given) and skipped.
    """
    metric = metric_for_type(type)
    results = store.query_results(
        type=type,
        group=group,
        report=report,
        runtime=Runtime.JIT if jit_only else None,
    )
    for (group_name, report_name), members in _group_by_bucket(results).items():
        try:
            baseline = choose_baseline(
                group_name,
                report_name,
                members,
                jit_only=jit_only,
                branch=baseline_branch,
                commit=control_commit,
            )
        except NoBaselineError as exc:
            log.error("%s", exc)
            if errors is not None:
                errors.append(exc)
            continue
        yield Bucket(
            type=type,
            group=group_name,
            report=report_name,
            baseline=baseline,
            diffs=compare_bucket(members, baseline, metric, order),
            order=order,
        )


def build_report(
    store: ResultStore,
    type: str,
    *,
    jit_only: bool = False,
    order: SortOrder = SortOrder.LEADER,
    group: str | None = None,
    report: str | None = None,
    baseline_branch: str | None = None,
    control_commit: str | None = None,
) -> BucketReport:
    """Collect every bucket of *type* along with the buckets that failed."""
    summary = BucketReport()
    summary.buckets = list(
        iter_buckets(
            store,
            type,
            jit_only=jit_only,
            order=order,
            group=group,
            report=report,
            baseline_branch=baseline_branch,
            control_commit=control_commit,
            errors=summary.errors,
        )
    )
    return summary


def format_bucket(
    bucket: Bucket,
    *,
    precision: int = 2,
    ascii_only: bool = False,
) -> str:
    """Render one bucket as a titled text table.

    Memory buckets whose results record retained bytes get a second pair
    of value and comparison columns for them.
    """
    metric = bucket.metric
    headers = ["Branch", "Commit", "Runtime", "Test", _VALUE_HEADERS[metric], "Vs baseline"]
    with_retained = metric is Metric.MEMORY and any(d.retained is not None for d in bucket.diffs)
    if with_retained:
        headers += ["Retained", "Vs baseline (retained)"]
    rows: list[list[str]] = []
    for d in bucket.diffs:
        r = d.result
        test_name = f"(baseline) {r.test_name}" if d.is_baseline else r.test_name
        if r.control:
            test_name += " [control]"
        row = [
            r.branch or "-",
            (r.commit_hash or "-")[:8],
            r.runtime.value,
            test_name,
            humanize_scale(d.value),
            format_diff(d, metric, precision, ascii_only=ascii_only),
        ]
        if with_retained:
            row += [
                humanize_scale(d.retained),
                format_retained_diff(d, precision, ascii_only=ascii_only),
            ]
        rows.append(row)
    lines = [
        format_section_header(f"Run: {bucket.group}/{bucket.report}", ascii_only=ascii_only),
        f"  {bucket.order.describe(metric)}",
        "",
        format_table(headers, rows, alignments=["l"] * 4 + ["r"] * (len(headers) - 4)),
    ]
    return "\n".join(lines)


def format_report(summary: BucketReport, *, precision: int = 2, ascii_only: bool = False) -> str:
    parts = [format_bucket(b, precision=precision, ascii_only=ascii_only) for b in summary.buckets]
    return "\n\n".join(parts)
