"""JSON file result store.

One file per (type, group, report) bucket, each holding a JSON array of
serialized results::

    <results_dir>/<storage_name>/<storage_name>-<type>-<group>-<report>.json

Saving rewrites the whole bucket file through a temporary file and
``os.replace``, so readers never see a half-written file.  Saves from
threads of one process are serialized by a lock; two processes saving
into the same bucket at once are last-writer-wins.
"""

from __future__ import annotations

import glob
import json
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any
from urllib.parse import quote

from benchkeeper.errors import DuplicateResultError, StoreError
from benchkeeper.results import Result, Runtime, new_result_id
from benchkeeper.retention import RetentionPolicy
from benchkeeper.stores.base import ResultStore, apply_filters, log, newest_first


def encode_component(value: str) -> str:
    """Percent-encode a name so it is safe inside a file name.

    ``-`` is encoded too since it separates the components.
    """
    return quote(value, safe="").replace("-", "%2D").replace(".", "%2E")


class JsonResultStore(ResultStore):
    """Results stored as JSON arrays, one file per bucket."""

    backend = "json"

    def __init__(
        self,
        results_dir: Path,
        storage_name: str = "benchmark_history",
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        super().__init__(storage_name, retention_policy)
        self.storage_dir = Path(results_dir) / storage_name
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    # -- paths ---------------------------------------------------------------

    def bucket_path(self, type: str, group: str, report: str) -> Path:
        name = "-".join(
            [
                encode_component(self.storage_name),
                encode_component(type),
                encode_component(group),
                encode_component(report),
            ]
        )
        return self.storage_dir / f"{name}.json"

    def _glob_pattern(self, type: str | None, group: str | None, report: str | None) -> str:
        # Narrow on the leading known components; the rest is filtered in memory.
        prefix = glob.escape(str(self.storage_dir))
        parts = [glob.escape(encode_component(self.storage_name))]
        for value in (type, group, report):
            if value is None:
                break
            parts.append(glob.escape(encode_component(value)))
        else:
            return os.path.join(prefix, "-".join(parts) + ".json")
        return os.path.join(prefix, "-".join(parts) + "-*.json")

    def _bucket_files(self) -> list[Path]:
        return sorted(p for p in self.storage_dir.glob("*.json") if not p.name.startswith("."))

    # -- file I/O ------------------------------------------------------------

    def _read_file(self, path: Path) -> list[dict[str, Any]]:
        """Read a bucket file, returning [] for missing files.

        Raises:
            ValueError: If the file is not a JSON array.
        """
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        return data

    def _write_file(self, path: Path, entries: list[dict[str, Any]]) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=self.storage_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entries, f, separators=(",", ":"))
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _load_entries(self, path: Path) -> list[Result]:
        """Load the results in *path*, skipping unreadable files and records."""
        try:
            raw = self._read_file(path)
        except (OSError, ValueError) as exc:
            log.warning("Skipping unreadable results file %s: %s", path, exc)
            return []
        entries: list[Result] = []
        for index, item in enumerate(raw):
            try:
                entries.append(Result.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.warning("Skipping corrupt record %d in %s: %s", index, path, exc)
        return entries

    # -- ResultStore API -----------------------------------------------------

    def save_result(self, result: Result) -> str:
        given = result.result_id is not None
        result_id = result.result_id or new_result_id()
        if not given:
            result = result.with_id(result_id)
        path = self.bucket_path(*result.bucket_key)
        with self._lock:
            if given and self.load_result(result_id) is not None:
                raise DuplicateResultError(result_id)
            try:
                existing = self._read_file(path)
            except ValueError as exc:
                raise StoreError(f"Cannot append to corrupt results file {path}: {exc}") from exc
            existing.append(result.to_dict())
            self._write_file(path, existing)
        log.debug("Saved result %s to %s", result_id, path.name)
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
        found: list[Result] = []
        for name in sorted(glob.glob(self._glob_pattern(type, group, report))):
            found.extend(self._load_entries(Path(name)))
        return newest_first(
            apply_filters(
                found,
                type=type,
                group=group,
                report=report,
                runtime=runtime,
                commit=commit,
                branch=branch,
            )
        )

    def load_result(self, result_id: str) -> Result | None:
        for path in self._bucket_files():
            for result in self._load_entries(path):
                if result.result_id == result_id:
                    return result
        return None

    def _clean_file(self, path: Path, now: float) -> int:
        try:
            raw = self._read_file(path)
        except (OSError, ValueError) as exc:
            log.warning("Skipping unreadable results file %s: %s", path, exc)
            return 0
        kept: list[dict[str, Any]] = []
        for item in raw:
            try:
                result = Result.from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.warning("Keeping unparseable record in %s: %s", path, exc)
                kept.append(item)
                continue
            if self.retained(result, now):
                kept.append(item)
        if not kept:
            path.unlink()
        elif len(kept) != len(raw):
            self._write_file(path, kept)
        return len(raw) - len(kept)

    def clean_results(self, temp_only: bool = False) -> int:
        now = time.time()
        with self._lock:
            return sum(self._clean_file(path, now) for path in self._bucket_files())

    def clear(self) -> None:
        with self._lock:
            for path in self._bucket_files():
                path.unlink()
