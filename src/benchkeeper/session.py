"""The per-run session: configuration plus the collaborators built from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from benchkeeper.config import BenchConfig
from benchkeeper.git import GitClient
from benchkeeper.stores import ResultStore, create_store
from benchkeeper.suite import Suite, load_suite


@dataclass
class Provenance:
    """Branch/commit a run was launched for, as passed down by a parent runner."""

    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None

    @property
    def is_set(self) -> bool:
        return any((self.branch, self.commit_hash, self.commit_message))


@dataclass
class Session:
    """Everything a runner needs: config, the one store handle, git."""

    config: BenchConfig
    store: ResultStore
    git: GitClient
    provenance: Provenance = field(default_factory=Provenance)

    @classmethod
    def from_config(
        cls,
        config: BenchConfig,
        *,
        repo_dir: Path | str = ".",
        provenance: Provenance | None = None,
    ) -> Session:
        """Build the store and git client described by *config*.

        Raises:
            ConfigError: For an unknown backend or retention policy.
        """
        store = create_store(
            config.storage_backend,
            storage_name=config.storage_name,
            results_dir=config.results_dir,
            retention_policy=config.build_retention_policy(),
        )
        return cls(
            config=config,
            store=store,
            git=GitClient(repo_dir),
            provenance=provenance or Provenance(),
        )

    @property
    def suite_path(self) -> Path:
        return self.config.tests_path

    def load_suite(self) -> Suite:
        return load_suite(self.suite_path)
