"""Tests for benchkeeper.benchmark — measurement jobs."""

from __future__ import annotations

import unittest
from typing import Any

from benchkeeper.benchmark import PRODUCERS, Benchmarker, make_job_factory
from benchkeeper.config import BenchConfig
from benchkeeper.errors import ConfigError, ReportNotFoundError, TestNotFoundError
from benchkeeper.results import Runtime
from benchkeeper.runners.base import JobContext
from benchkeeper.stores import MemoryResultStore
from benchkeeper.suite import BenchFn

from bench_test_helpers import make_suite


def _fake_producer(fn: BenchFn, config: BenchConfig) -> dict[str, Any]:
    fn()
    return {"samples": [100.0, 100.0]}


CONTEXT = JobContext(
    runtime=Runtime.JIT,
    start_time=1234.0,
    branch="feature",
    commit_hash="abc123",
    commit_message="speed things up",
)


class TestBenchmarker(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryResultStore()
        self.group = make_suite("strings").find_group("strings")

    def _benchmarker(self, **kwargs: Any) -> Benchmarker:
        return Benchmarker("ips", BenchConfig(), self.store, producer=_fake_producer, **kwargs)

    def test_saves_one_result_per_test(self) -> None:
        saved = self._benchmarker().run_group(self.group, CONTEXT)
        self.assertEqual([r.test_name for r in saved], ["plus", "join"])
        self.assertEqual(len(self.store.query_results()), 2)
        self.assertTrue(all(r.result_id for r in saved))

    def test_result_fields(self) -> None:
        plus, join = self._benchmarker().run_group(self.group, CONTEXT)
        self.assertEqual(plus.type, "ips")
        self.assertIs(plus.runtime, Runtime.JIT)
        self.assertEqual(plus.timestamp, 1234.0)
        self.assertEqual(plus.branch, "feature")
        self.assertEqual(plus.commit_hash, "abc123")
        self.assertEqual(plus.commit_message, "speed things up")
        self.assertTrue(plus.control)
        self.assertTrue(plus.baseline)
        self.assertFalse(join.control)
        self.assertFalse(join.baseline)
        self.assertEqual(join.result_data, {"samples": [100.0, 100.0]})

    def test_control_is_baseline_fallback(self) -> None:
        report = self.group.report("fallback")
        report.test("t")(lambda: None)
        report.control("c")(lambda: None)
        saved = self._benchmarker(report_name="fallback").run_group(self.group, CONTEXT)
        self.assertEqual({r.test_name: r.baseline for r in saved}, {"t": False, "c": True})

    def test_single_test(self) -> None:
        saved = self._benchmarker(report_name="concat", test_name="join").run_group(
            self.group, CONTEXT
        )
        self.assertEqual([r.test_name for r in saved], ["join"])

    def test_unknown_report(self) -> None:
        with self.assertRaises(ReportNotFoundError):
            self._benchmarker(report_name="split").run_group(self.group, CONTEXT)

    def test_unknown_test(self) -> None:
        with self.assertRaises(TestNotFoundError):
            self._benchmarker(report_name="concat", test_name="zip").run_group(
                self.group, CONTEXT
            )

    def test_unknown_job_type(self) -> None:
        with self.assertRaises(ConfigError):
            Benchmarker("latency", BenchConfig(), self.store)

    def test_builtin_producers(self) -> None:
        self.assertEqual(set(PRODUCERS), {"ips", "memory"})

    def test_memory_producer_end_to_end(self) -> None:
        factory = make_job_factory("memory", BenchConfig(), self.store)
        saved = factory(self.group, CONTEXT)()
        self.assertTrue(all("allocated" in r.result_data for r in saved))


class TestJobFactory(unittest.TestCase):
    def test_describes_job(self) -> None:
        factory = make_job_factory(
            "ips", BenchConfig(), MemoryResultStore(), report_name="r", test_name="t"
        )
        self.assertEqual(factory.type, "ips")
        self.assertEqual(factory.report_name, "r")
        self.assertEqual(factory.test_name, "t")

    def test_job_runs_once(self) -> None:
        store = MemoryResultStore()
        factory = make_job_factory("ips", BenchConfig(), store)
        factory.benchmarker.producer = _fake_producer
        group = make_suite("strings").find_group("strings")
        job = factory(group, CONTEXT)
        first = job()
        second = job()
        self.assertIs(first, second)
        self.assertTrue(job.has_run)
        self.assertEqual(len(store.query_results()), 2)


if __name__ == "__main__":
    unittest.main()
