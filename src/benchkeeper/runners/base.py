"""Runner base class, jobs and the run outcome.

A runner decides *where* a group's job executes (in-process, in a
thread, in a child process, on another branch or commit); the job
decides *what* executes.  Jobs come from a job factory called once per
group and execution context.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Protocol

from benchkeeper.config import BenchConfig
from benchkeeper.errors import GitCommandError
from benchkeeper.git import GitClient
from benchkeeper.results import Result, ResultSet, Runtime, detect_runtime
from benchkeeper.stores import ResultStore
from benchkeeper.suite import Group, Suite

if TYPE_CHECKING:
    from benchkeeper.session import Session

log = logging.getLogger("benchkeeper")


class RunnerKind(enum.Enum):
    IMMEDIATE = "immediate"
    SPAWN = "spawn"
    THREAD = "thread"
    FORKED = "forked"
    BRANCH_COMPARISON = "branch_comparison"
    COMMIT_RANGE = "commit_range"

    @classmethod
    def parse(cls, value: str | RunnerKind) -> RunnerKind:
        if isinstance(value, RunnerKind):
            return value
        try:
            return cls(value.strip().lower().replace("-", "_"))
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown runner '{value}' (expected one of: {valid})") from None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobContext:
    """Where and when one job executes."""

    runtime: Runtime
    start_time: float
    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None


class Job:
    """A group's unit of work that runs at most once.

    Calling a job that has already run returns the results of the first
    call.
    """

    def __init__(self, name: str, fn: Callable[[], list[Result]]) -> None:
        self.name = name
        self._fn = fn
        self.has_run = False
        self.results: list[Result] = []

    def __call__(self) -> list[Result]:
        if self.has_run:
            log.debug("Job %s already ran; reusing its %d result(s)", self.name, len(self.results))
            return self.results
        self.results = list(self._fn())
        self.has_run = True
        return self.results

    def __repr__(self) -> str:
        return f"Job({self.name!r}, has_run={self.has_run})"


class JobFactory(Protocol):
    """Builds the job for one group; also describes the job for child processes."""

    type: str
    report_name: str | None
    test_name: str | None

    def __call__(self, group: Group, context: JobContext) -> Job: ...


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


@dataclass
class RunOutcome:
    """What a run produced."""

    results: ResultSet = field(default_factory=ResultSet)
    executed: list[str] = field(default_factory=list)  # group, branch or commit labels
    skipped: list[str] = field(default_factory=list)  # reused cached results
    baseline_branch: str | None = None  # branch the comparison is anchored on
    control_commit: str | None = None  # commit a commit sweep is anchored on


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class Runner:
    """Base class for every execution strategy."""

    kind: RunnerKind

    def __init__(self, session: Session, suite: Suite) -> None:
        self.session = session
        self.suite = suite
        self.start_time = 0.0

    @property
    def config(self) -> BenchConfig:
        return self.session.config

    @property
    def store(self) -> ResultStore:
        return self.session.store

    @property
    def git(self) -> GitClient:
        return self.session.git

    def run(self, group_name: str | None = None, *, job_factory: JobFactory) -> RunOutcome:
        """Run *group_name* (or every group) through this runner's strategy.

        Raises:
            GroupNotFoundError: If *group_name* is not in the suite.
        """
        groups = self.select_groups(group_name)
        self.start_time = time.time()
        if not self.config.skip_retention:
            self.apply_retention()
        log.debug("%s runner: %d group(s)", self.kind.value, len(groups))
        return self._run(groups, job_factory)

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        raise NotImplementedError

    def select_groups(self, group_name: str | None) -> list[Group]:
        if group_name is not None:
            return [self.suite.find_group(group_name)]
        return list(self.suite.groups.values())

    def apply_retention(self) -> None:
        policy = self.store.retention_policy
        log.info("Applying retention policy: %s", policy.name)
        removed = self.store.clean_results()
        if removed:
            log.info("Removed %d result(s) outside the retention window", removed)

    # -- helpers shared by the in-process runners -----------------------------

    def local_context(self) -> JobContext:
        """Context for a job executing in this process.

        Provenance passed down by a parent runner wins; otherwise the
        current branch and commit are recorded when the working
        directory is a git repository.
        """
        start_time = self.start_time or time.time()
        provenance = self.session.provenance
        if provenance.is_set:
            return JobContext(
                runtime=detect_runtime(),
                start_time=start_time,
                branch=provenance.branch,
                commit_hash=provenance.commit_hash,
                commit_message=provenance.commit_message,
            )
        branch = commit = message = None
        try:
            branch = self.git.current_branch()
            commit = self.git.head_commit()
            message = self.git.commit_message(commit)
        except (GitCommandError, OSError) as exc:
            log.debug("No git provenance for this run: %s", exc)
        return JobContext(
            runtime=detect_runtime(),
            start_time=start_time,
            branch=branch,
            commit_hash=commit,
            commit_message=message,
        )

    def collect_results(
        self,
        job_type: str,
        since: float,
        *,
        groups: list[Group] | None = None,
        branch: str | None = None,
        commit: str | None = None,
    ) -> list[Result]:
        """Results saved by child processes at or after *since*."""
        names = {g.name for g in groups} if groups is not None else None
        found = self.store.query_results(type=job_type, branch=branch, commit=commit)
        return [
            r for r in found if r.timestamp >= since and (names is None or r.group_name in names)
        ]
