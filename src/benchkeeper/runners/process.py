"""Runners that execute each group in a child process."""

from __future__ import annotations

import click

from benchkeeper.errors import ExecutionFailedError
from benchkeeper.results import Runtime, detect_runtime
from benchkeeper.runners.base import JobFactory, Runner, RunnerKind, RunOutcome, log
from benchkeeper.runners.isolation import (
    CommandLine,
    ExecutionOutcome,
    ForkIsolation,
    IsolationStrategy,
    SubprocessIsolation,
    build_command,
)
from benchkeeper.session import Session
from benchkeeper.suite import Group, Suite


def execute_checked(
    isolation: IsolationStrategy,
    command: CommandLine,
    label: str,
) -> ExecutionOutcome:
    """Execute *command*, echoing its output to stderr.

    The child formats its own log lines, so they are echoed verbatim
    rather than logged again.

    Raises:
        ExecutionFailedError: If the child exits non-zero.  Its captured
            output is logged first.
    """
    outcome = isolation.execute(command)
    if not outcome.ok:
        log.error("Benchmark failed in %s (exit code: %d)", label, outcome.exit_code)
        if outcome.output.strip():
            log.error("Output:\n%s", outcome.output.rstrip())
        raise ExecutionFailedError(label, outcome.exit_code, outcome.output)
    if outcome.output.strip():
        click.echo(outcome.output.rstrip(), err=True)
    return outcome


class SpawnRunner(Runner):
    """Runs each group, once per selected runtime, in a fresh interpreter."""

    kind = RunnerKind.SPAWN

    def __init__(
        self,
        session: Session,
        suite: Suite,
        isolation: IsolationStrategy | None = None,
    ) -> None:
        super().__init__(session, suite)
        self.isolation = isolation or SubprocessIsolation()

    def runtimes(self) -> list[Runtime]:
        return self.config.runtime_selection.runtimes

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        outcome = RunOutcome()
        provenance = self.session.provenance
        for group in groups:
            for runtime in self.runtimes():
                command = build_command(
                    self.config,
                    job_factory.type,
                    group.name,
                    job_factory.report_name,
                    job_factory.test_name,
                    runtime,
                    branch=provenance.branch,
                    commit_hash=provenance.commit_hash,
                    commit_message=provenance.commit_message,
                )
                label = f"{group.name} [{runtime}]"
                log.info("Running %s in a %s child", label, self.isolation.name)
                execute_checked(self.isolation, command, label)
                outcome.executed.append(label)
        outcome.results.extend(
            self.collect_results(job_factory.type, self.start_time, groups=groups)
        )
        return outcome


class ForkedRunner(SpawnRunner):
    """Runs each group in a forked copy of this process.

    A fork cannot switch the runtime variant, so the group runs once
    under the parent's runtime.
    """

    kind = RunnerKind.FORKED

    def __init__(
        self,
        session: Session,
        suite: Suite,
        isolation: IsolationStrategy | None = None,
    ) -> None:
        super().__init__(session, suite, isolation or ForkIsolation())

    def runtimes(self) -> list[Runtime]:
        return [detect_runtime()]
