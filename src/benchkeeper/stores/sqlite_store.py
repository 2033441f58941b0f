"""SQLite result store: one row per result in ``<results_dir>/<storage_name>.db``."""

from __future__ import annotations

import json
import sqlite3
import time
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Iterator

from benchkeeper.errors import DuplicateResultError
from benchkeeper.results import Result, Runtime, new_result_id
from benchkeeper.retention import RetentionPolicy
from benchkeeper.stores.base import ResultStore, log

_SCHEMA = """
CREATE TABLE IF NOT EXISTS results (
    id INTEGER PRIMARY KEY,
    result_id TEXT UNIQUE NOT NULL,
    type TEXT NOT NULL,
    group_name TEXT NOT NULL,
    report_name TEXT NOT NULL,
    test_name TEXT NOT NULL,
    runtime TEXT NOT NULL,
    timestamp REAL NOT NULL,
    branch TEXT,
    commit_hash TEXT,
    commit_message TEXT,
    control INTEGER NOT NULL DEFAULT 0,
    baseline INTEGER NOT NULL DEFAULT 0,
    python_version TEXT,
    result_data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_results_type ON results (type);
CREATE INDEX IF NOT EXISTS idx_results_group ON results (group_name);
CREATE INDEX IF NOT EXISTS idx_results_report ON results (report_name);
CREATE INDEX IF NOT EXISTS idx_results_commit ON results (commit_hash);
"""

_COLUMNS = (
    "result_id",
    "type",
    "group_name",
    "report_name",
    "test_name",
    "runtime",
    "timestamp",
    "branch",
    "commit_hash",
    "commit_message",
    "control",
    "baseline",
    "python_version",
    "result_data",
)

_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM results"

# Seconds a connection waits on a locked database before failing.
BUSY_TIMEOUT = 5.0


class SqliteResultStore(ResultStore):
    """Results stored in a single SQLite table."""

    backend = "sqlite"

    def __init__(
        self,
        results_dir: Path,
        storage_name: str = "benchmark_history",
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        super().__init__(storage_name, retention_policy)
        results_dir = Path(results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = results_dir / f"{storage_name}.db"
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; commit on success, roll back on error."""
        with closing(sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)) as conn:
            with conn:
                yield conn

    @staticmethod
    def _row_values(result: Result) -> tuple[Any, ...]:
        return (
            result.result_id,
            result.type,
            result.group_name,
            result.report_name,
            result.test_name,
            result.runtime.value,
            result.timestamp,
            result.branch,
            result.commit_hash,
            result.commit_message,
            int(result.control),
            int(result.baseline),
            result.python_version,
            json.dumps(result.result_data, separators=(",", ":")),
        )

    @staticmethod
    def _from_row(row: tuple[Any, ...]) -> Result:
        data = dict(zip(_COLUMNS, row))
        data["result_data"] = json.loads(data["result_data"])
        return Result.from_dict(data)

    def _rows_to_results(self, rows: list[tuple[Any, ...]]) -> list[Result]:
        results: list[Result] = []
        for row in rows:
            try:
                results.append(self._from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping unreadable row %s in %s: %s", row[0], self.db_path, exc)
        return results

    # -- ResultStore API -----------------------------------------------------

    def save_result(self, result: Result) -> str:
        result_id = result.result_id or new_result_id()
        if result.result_id is None:
            result = result.with_id(result_id)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO results ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    self._row_values(result),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateResultError(result_id) from exc
        log.debug("Saved result %s to %s", result_id, self.db_path.name)
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
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("type", type),
            ("group_name", group),
            ("report_name", report),
            ("runtime", Runtime.parse(runtime).value if runtime is not None else None),
            ("commit_hash", commit),
            ("branch", branch),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        sql = _SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY timestamp DESC, id DESC"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return self._rows_to_results(rows)

    def load_result(self, result_id: str) -> Result | None:
        with self._connect() as conn:
            rows = conn.execute(f"{_SELECT} WHERE result_id = ?", (result_id,)).fetchall()
        results = self._rows_to_results(rows)
        return results[0] if results else None

    def clean_results(self, temp_only: bool = False) -> int:
        now = time.time()
        with self._connect() as conn:
            rows = conn.execute(_SELECT).fetchall()
            doomed = [
                (result.result_id,)
                for result in self._rows_to_results(rows)
                if not self.retained(result, now)
            ]
            conn.executemany("DELETE FROM results WHERE result_id = ?", doomed)
        return len(doomed)

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM results")
