"""Abstract result store and the filter semantics shared by every backend."""

from __future__ import annotations

import logging
from typing import Iterable

from benchkeeper.results import Result, Runtime
from benchkeeper.retention import KeepAll, RetentionPolicy

log = logging.getLogger("benchkeeper")


def _normalize_runtime(runtime: Runtime | str | None) -> Runtime | None:
    if runtime is None:
        return None
    return Runtime.parse(runtime)


def apply_filters(
    results: Iterable[Result],
    *,
    type: str | None = None,
    group: str | None = None,
    report: str | None = None,
    runtime: Runtime | str | None = None,
    commit: str | None = None,
    branch: str | None = None,
) -> list[Result]:
    """Return the results matching every given filter.

    Omitted (``None``) filters match everything.
    """
    wanted_runtime = _normalize_runtime(runtime)
    matched: list[Result] = []
    for r in results:
        if type is not None and r.type != type:
            continue
        if group is not None and r.group_name != group:
            continue
        if report is not None and r.report_name != report:
            continue
        if wanted_runtime is not None and r.runtime is not wanted_runtime:
            continue
        if commit is not None and r.commit_hash != commit:
            continue
        if branch is not None and r.branch != branch:
            continue
        matched.append(r)
    return matched


def newest_first(results: Iterable[Result]) -> list[Result]:
    return sorted(results, key=lambda r: r.timestamp, reverse=True)


class ResultStore:
    """Persistence boundary for benchmark results.

    Subclasses implement the storage; the store is the sole writer of
    its backing representation.
    """

    backend = ""

    def __init__(
        self,
        storage_name: str = "benchmark_history",
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        self.storage_name = storage_name
        self.retention_policy = retention_policy or KeepAll()

    def save_result(self, result: Result) -> str:
        """Persist *result* and return its id (assigned if missing)."""
        raise NotImplementedError

    def query_results(
        self,
        *,
        type: str | None = None,
        group: str | None = None,
        report: str | None = None,
        runtime: Runtime | str | None = None,
        commit: str | None = None,
        branch: str | None = None,
    ) -> list[Result]:
        """Return all matching results, newest first."""
        raise NotImplementedError

    def load_result(self, result_id: str) -> Result | None:
        raise NotImplementedError

    def clean_results(self, temp_only: bool = False) -> int:
        """Delete every result the retention policy does not retain.

        *temp_only* is accepted for compatibility with older callers; no
        backend keeps temporary results, so it changes nothing.

        Returns:
            Number of results removed.
        """
        raise NotImplementedError

    def clear(self) -> None:
        """Remove every stored result regardless of retention policy."""
        raise NotImplementedError

    def retained(self, result: Result, now: float | None = None) -> bool:
        return self.retention_policy.retain(result, now)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(storage_name={self.storage_name!r}, "
            f"retention_policy={self.retention_policy!r})"
        )
