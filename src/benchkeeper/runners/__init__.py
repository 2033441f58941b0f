"""Runner family.

``create_runner`` picks the runner for a session: a commit range wins
over a branch comparison, which wins over the configured runner kind.
"""

from __future__ import annotations

import logging
from typing import Callable

from benchkeeper.errors import ConfigError
from benchkeeper.runners.base import Job, JobContext, JobFactory, Runner, RunnerKind, RunOutcome
from benchkeeper.runners.branch import BranchComparisonRunner
from benchkeeper.runners.commit_range import (
    CommitRangeRunner,
    parse_commit_range,
    parse_ignore_commits,
    resolve_commit_range,
)
from benchkeeper.runners.isolation import (
    CommandLine,
    ExecutionOutcome,
    ForkIsolation,
    IsolationStrategy,
    SubprocessIsolation,
    build_command,
)
from benchkeeper.runners.local import ImmediateRunner, ThreadRunner
from benchkeeper.runners.process import ForkedRunner, SpawnRunner
from benchkeeper.session import Session
from benchkeeper.suite import Suite

log = logging.getLogger("benchkeeper")

__all__ = [
    "BranchComparisonRunner",
    "CommandLine",
    "CommitRangeRunner",
    "ExecutionOutcome",
    "ForkIsolation",
    "ForkedRunner",
    "ImmediateRunner",
    "IsolationStrategy",
    "Job",
    "JobContext",
    "JobFactory",
    "RUNNERS",
    "RunOutcome",
    "Runner",
    "RunnerKind",
    "SpawnRunner",
    "SubprocessIsolation",
    "ThreadRunner",
    "build_command",
    "create_runner",
    "parse_commit_range",
    "parse_ignore_commits",
    "resolve_commit_range",
]

RUNNERS: dict[RunnerKind, Callable[[Session, Suite], Runner]] = {
    RunnerKind.IMMEDIATE: ImmediateRunner,
    RunnerKind.SPAWN: SpawnRunner,
    RunnerKind.THREAD: ThreadRunner,
    RunnerKind.FORKED: ForkedRunner,
    RunnerKind.BRANCH_COMPARISON: BranchComparisonRunner,
    RunnerKind.COMMIT_RANGE: CommitRangeRunner,
}

_missing = set(RunnerKind) - set(RUNNERS)
if _missing:
    raise ImportError(f"No runner registered for: {', '.join(sorted(k.value for k in _missing))}")

# Runners whose revisions run in separate processes and report back through the store.
_GIT_RUNNERS = (RunnerKind.BRANCH_COMPARISON, RunnerKind.COMMIT_RANGE)


def select_kind(session: Session) -> RunnerKind:
    config = session.config
    if config.commit_range:
        return RunnerKind.COMMIT_RANGE
    if config.compare_with_branch:
        return RunnerKind.BRANCH_COMPARISON
    try:
        return RunnerKind.parse(config.runner)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def create_runner(session: Session, suite: Suite, kind: RunnerKind | None = None) -> Runner:
    """Build the runner for *session*.

    Raises:
        ConfigError: For an unknown runner, or a git runner paired with the
            memory backend (the child processes' results would be lost).
    """
    kind = kind or select_kind(session)
    if kind in _GIT_RUNNERS and session.store.backend == "memory":
        raise ConfigError(
            f"The {kind.value} runner needs a persistent store; "
            f"use --storage-backend json or sqlite"
        )
    if kind in (RunnerKind.SPAWN, RunnerKind.FORKED) and session.store.backend == "memory":
        log.warning(
            "The %s runner saves results in child processes; the memory backend will not see them",
            kind.value,
        )
    return RUNNERS[kind](session, suite)
