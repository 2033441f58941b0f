"""Branch comparison: the same groups run on the current branch and another one."""

from __future__ import annotations

import time

from benchkeeper.errors import ConfigError
from benchkeeper.git import safe_checkout
from benchkeeper.results import ResultSet
from benchkeeper.runners.base import JobFactory, Runner, RunnerKind, RunOutcome, log
from benchkeeper.runners.isolation import IsolationStrategy, SubprocessIsolation, build_command
from benchkeeper.runners.process import execute_checked
from benchkeeper.session import Session
from benchkeeper.suite import Group, Suite


class BranchComparisonRunner(Runner):
    """Runs the groups on each branch in turn, current branch first.

    Every branch is checked out with
    :func:`~benchkeeper.git.safe_checkout` and benchmarked in fresh
    processes, strictly one branch after the other.  The results saved
    while a branch was checked out are tagged with that branch and
    combined into the outcome.
    """

    kind = RunnerKind.BRANCH_COMPARISON

    def __init__(
        self,
        session: Session,
        suite: Suite,
        branches: list[str] | None = None,
        isolation: IsolationStrategy | None = None,
    ) -> None:
        super().__init__(session, suite)
        self.branches = branches
        self.isolation = isolation or SubprocessIsolation()

    def resolve_branches(self) -> list[str]:
        """Raises ConfigError when there is nothing to compare against."""
        if self.branches:
            return list(self.branches)
        other = self.config.compare_with_branch
        if not other:
            raise ConfigError("Branch comparison needs a branch to compare with (--compare-with)")
        current = self.git.current_branch()
        if current is None:
            raise ConfigError("Branch comparison needs a checked-out branch, but HEAD is detached")
        if current == other:
            log.warning("Comparing branch '%s' with itself", current)
        return [current, other]

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        branches = self.resolve_branches()
        log.info("Comparing branches: %s", ", ".join(branches))
        outcome = RunOutcome(baseline_branch=branches[0])
        combined = ResultSet()
        for branch in branches:
            branch_start = time.time()
            with safe_checkout(self.git, branch):
                for group in groups:
                    for runtime in self.config.runtime_selection.runtimes:
                        command = build_command(
                            self.config,
                            job_factory.type,
                            group.name,
                            job_factory.report_name,
                            job_factory.test_name,
                            runtime,
                            branch=branch,
                        )
                        label = f"{group.name} [{runtime}] on branch '{branch}'"
                        log.info("Running %s", label)
                        execute_checked(self.isolation, command, label)
            saved = self.collect_results(
                job_factory.type, branch_start, groups=groups, branch=branch
            )
            combined = combined.combine(ResultSet(r.tagged(branch=branch) for r in saved))
            outcome.executed.append(branch)
        outcome.results = combined
        return outcome
