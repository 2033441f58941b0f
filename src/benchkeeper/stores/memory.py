"""In-memory result store, used for tests and throwaway runs."""

from __future__ import annotations

import threading
import time

from benchkeeper.errors import DuplicateResultError
from benchkeeper.results import Result, Runtime, new_result_id
from benchkeeper.retention import RetentionPolicy
from benchkeeper.stores.base import ResultStore, apply_filters, log, newest_first


class MemoryResultStore(ResultStore):
    """Results held in a dict keyed by result id.

    Every access goes through one lock, so id issuance and insertion are
    serialized across threads and no concurrent save is lost.
    """

    backend = "memory"

    def __init__(
        self,
        storage_name: str = "benchmark_history",
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        super().__init__(storage_name, retention_policy)
        self._lock = threading.Lock()
        self._results: dict[str, Result] = {}

    def save_result(self, result: Result) -> str:
        with self._lock:
            result_id = result.result_id
            if result_id is None:
                result_id = new_result_id()
                while result_id in self._results:
                    result_id = new_result_id()
                result = result.with_id(result_id)
            elif result_id in self._results:
                raise DuplicateResultError(result_id)
            self._results[result_id] = result
        log.debug("Saved result %s (%s)", result_id, result.label)
        return result_id

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
        with self._lock:
            snapshot = list(self._results.values())
        return newest_first(
            apply_filters(
                snapshot,
                type=type,
                group=group,
                report=report,
                runtime=runtime,
                commit=commit,
                branch=branch,
            )
        )

    def load_result(self, result_id: str) -> Result | None:
        with self._lock:
            return self._results.get(result_id)

    def clean_results(self, temp_only: bool = False) -> int:
        now = time.time()
        with self._lock:
            kept = {rid: r for rid, r in self._results.items() if self.retained(r, now)}
            removed = len(self._results) - len(kept)
            self._results = kept
        return removed

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
