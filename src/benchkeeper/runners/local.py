"""In-process runners: immediate and one-thread-per-group."""

from __future__ import annotations

import threading

from benchkeeper.errors import AggregateRunError
from benchkeeper.results import Result, ResultSet
from benchkeeper.runners.base import JobFactory, Runner, RunnerKind, RunOutcome, log
from benchkeeper.suite import Group


class ImmediateRunner(Runner):
    """Runs each group's job synchronously, one after the other."""

    kind = RunnerKind.IMMEDIATE

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        outcome = RunOutcome()
        context = self.local_context()
        for group in groups:
            log.info("Running %s [%s]", group.name, context.runtime)
            job = job_factory(group, context)
            outcome.results.extend(job())
            outcome.executed.append(group.name)
        return outcome


class ThreadRunner(Runner):
    """Runs every group's job in its own thread.

    All threads are started before any is joined.  A failing group does
    not stop the others; once every thread has finished, the failures
    are logged and raised together as
    :class:`~benchkeeper.errors.AggregateRunError`.
    """

    kind = RunnerKind.THREAD

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        context = self.local_context()
        lock = threading.Lock()
        errors: dict[str, BaseException] = {}
        per_group: dict[str, list[Result]] = {}

        def _worker(group: Group) -> None:
            try:
                results = job_factory(group, context)()
            except Exception as exc:
                with lock:
                    errors[group.name] = exc
                return
            with lock:
                per_group[group.name] = results

        threads = [
            threading.Thread(target=_worker, args=(g,), name=f"benchkeeper-{g.name}")
            for g in groups
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        if errors:
            for name, exc in errors.items():
                log.error("Group %s failed: %s", name, exc, exc_info=exc)
            raise AggregateRunError(errors)

        outcome = RunOutcome(results=ResultSet())
        # Keep suite order regardless of completion order.
        for group in groups:
            outcome.results.extend(per_group.get(group.name, []))
            outcome.executed.append(group.name)
        return outcome
