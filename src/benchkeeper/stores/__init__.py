"""Result store backends.

``create_store`` builds one backend per run; the resulting handle is
owned by the :class:`~benchkeeper.session.Session` and passed to every
component that needs it.
"""

from __future__ import annotations

from pathlib import Path

from benchkeeper.errors import ConfigError
from benchkeeper.retention import RetentionPolicy
from benchkeeper.stores.base import ResultStore, apply_filters
from benchkeeper.stores.json_store import JsonResultStore
from benchkeeper.stores.memory import MemoryResultStore
from benchkeeper.stores.sqlite_store import SqliteResultStore

BACKENDS = ("json", "sqlite", "memory")
DEFAULT_BACKEND = "json"

__all__ = [
    "BACKENDS",
    "DEFAULT_BACKEND",
    "JsonResultStore",
    "MemoryResultStore",
    "ResultStore",
    "SqliteResultStore",
    "apply_filters",
    "create_store",
]


def create_store(
    backend: str = DEFAULT_BACKEND,
    *,
    storage_name: str = "benchmark_history",
    results_dir: Path = Path(".benchkeeper"),
    retention_policy: RetentionPolicy | None = None,
) -> ResultStore:
    """Build a result store for *backend* (``json``, ``sqlite`` or ``memory``).

    Raises:
        ConfigError: If the backend is unknown.
    """
    if backend == "json":
        return JsonResultStore(results_dir, storage_name, retention_policy)
    if backend == "sqlite":
        return SqliteResultStore(results_dir, storage_name, retention_policy)
    if backend == "memory":
        return MemoryResultStore(storage_name, retention_policy)
    raise ConfigError(
        f"Unsupported storage backend '{backend}' (expected one of: {', '.join(BACKENDS)})"
    )
