"""Benchmark jobs: run a group's tests through a measurement producer and save them."""

from __future__ import annotations

from typing import Any, Callable

from benchkeeper.config import BenchConfig
from benchkeeper.errors import ConfigError
from benchkeeper.logging import get_logger
from benchkeeper.measure import measure_ips, measure_memory
from benchkeeper.results import Result
from benchkeeper.runners.base import Job, JobContext
from benchkeeper.stores.base import ResultStore
from benchkeeper.suite import BenchFn, Group

log = get_logger("benchmark")

Producer = Callable[[BenchFn, BenchConfig], dict[str, Any]]


def _ips(fn: BenchFn, config: BenchConfig) -> dict[str, Any]:
    return measure_ips(fn, time_s=config.test_time, warmup_s=config.test_warm_up)


def _memory(fn: BenchFn, config: BenchConfig) -> dict[str, Any]:
    return measure_memory(fn)


PRODUCERS: dict[str, Producer] = {
    "ips": _ips,
    "memory": _memory,
}
JOB_TYPES = tuple(PRODUCERS)


class Benchmarker:
    """Measures the selected tests of one group and saves a result per test."""

    def __init__(
        self,
        job_type: str,
        config: BenchConfig,
        store: ResultStore,
        *,
        report_name: str | None = None,
        test_name: str | None = None,
        producer: Producer | None = None,
    ) -> None:
        if producer is None:
            try:
                producer = PRODUCERS[job_type]
            except KeyError:
                valid = ", ".join(JOB_TYPES)
                raise ConfigError(
                    f"Unknown job type '{job_type}' (expected one of: {valid})"
                ) from None
        self.job_type = job_type
        self.config = config
        self.store = store
        self.report_name = report_name
        self.test_name = test_name
        self.producer = producer

    def run_group(self, group: Group, context: JobContext) -> list[Result]:
        """Measure and save every selected test of *group*.

        Raises:
            GroupEmptyError, ReportNotFoundError, TestNotFoundError: For a
                selection that does not exist in the suite.
        """
        saved: list[Result] = []
        for report in group.select_reports(self.report_name):
            baseline_test = report.baseline_test
            for test in report.select_tests(group.name, self.test_name):
                log.info("[%s] %s/%s/%s", context.runtime, group.name, report.name, test.name)
                data = self.producer(test.fn, self.config)
                result = Result(
                    type=self.job_type,
                    group_name=group.name,
                    report_name=report.name,
                    test_name=test.name,
                    runtime=context.runtime,
                    timestamp=context.start_time,
                    branch=context.branch,
                    commit_hash=context.commit_hash,
                    commit_message=context.commit_message,
                    control=test.control,
                    baseline=test is baseline_test,
                    result_data=data,
                )
                result_id = self.store.save_result(result)
                saved.append(result.with_id(result_id))
        return saved


class BenchmarkJobFactory:
    """Job factory handed to runners: one :class:`Job` per group and context."""

    def __init__(self, benchmarker: Benchmarker) -> None:
        self.benchmarker = benchmarker

    @property
    def type(self) -> str:
        return self.benchmarker.job_type

    @property
    def report_name(self) -> str | None:
        return self.benchmarker.report_name

    @property
    def test_name(self) -> str | None:
        return self.benchmarker.test_name

    def __call__(self, group: Group, context: JobContext) -> Job:
        name = f"{self.type}:{group.name}[{context.runtime}]"
        return Job(name, lambda: self.benchmarker.run_group(group, context))


def make_job_factory(
    job_type: str,
    config: BenchConfig,
    store: ResultStore,
    *,
    report_name: str | None = None,
    test_name: str | None = None,
) -> BenchmarkJobFactory:
    """Build the job factory for a ``run`` command.

    Raises:
        ConfigError: If *job_type* has no measurement producer.
    """
    benchmarker = Benchmarker(
        job_type,
        config,
        store,
        report_name=report_name,
        test_name=test_name,
    )
    return BenchmarkJobFactory(benchmarker)
