"""Benchmark suite definitions.

Benchmark files register their tests against the active suite::

    from benchkeeper import suite

    strings = suite.group("strings").report("concat")

    @strings.control("plus", baseline=True)
    def _plus():
        return "a" + "b"

    @strings.test("join")
    def _join():
        return "".join(("a", "b"))

:func:`load_suite` runs every ``*.py`` file in the tests directory
against a fresh :class:`Suite` and returns it.
"""

from __future__ import annotations

import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from benchkeeper.errors import (
    GroupEmptyError,
    GroupNotFoundError,
    ReportNotFoundError,
    SuiteError,
    TestNotFoundError,
)
from benchkeeper.logging import get_logger

log = get_logger("suite")

BenchFn = Callable[[], Any]


@dataclass
class BenchTest:
    """One benchmarked callable."""

    __test__ = False  # not a pytest test class

    name: str
    fn: BenchFn
    control: bool = False
    baseline: bool = False


@dataclass
class Report:
    """A set of tests compared against each other."""

    name: str
    tests: list[BenchTest] = field(default_factory=list)

    def _register(self, name: str, control: bool, baseline: bool) -> Callable[[BenchFn], BenchFn]:
        def decorator(fn: BenchFn) -> BenchFn:
            if any(t.name == name for t in self.tests):
                raise SuiteError(f"Test '{name}' is already defined in report '{self.name}'")
            self.tests.append(BenchTest(name=name, fn=fn, control=control, baseline=baseline))
            return fn

        return decorator

    def test(self, name: str, *, baseline: bool = False) -> Callable[[BenchFn], BenchFn]:
        return self._register(name, False, baseline)

    def control(self, name: str, *, baseline: bool = False) -> Callable[[BenchFn], BenchFn]:
        """Register a reference measurement the other tests are judged against."""
        return self._register(name, True, baseline)

    @property
    def baseline_test(self) -> BenchTest | None:
        """The test flagged ``baseline``, else the first control test."""
        for t in self.tests:
            if t.baseline:
                return t
        for t in self.tests:
            if t.control:
                return t
        return None

    def is_baseline(self, test: BenchTest) -> bool:
        return self.baseline_test is test

    def select_tests(self, group_name: str, test_name: str | None = None) -> list[BenchTest]:
        if test_name is None:
            return list(self.tests)
        for t in self.tests:
            if t.name == test_name:
                return [t]
        raise TestNotFoundError(group_name, self.name, test_name)


@dataclass
class Group:
    name: str
    reports: list[Report] = field(default_factory=list)

    def report(self, name: str) -> Report:
        """Return the report called *name*, creating it if needed."""
        for r in self.reports:
            if r.name == name:
                return r
        new = Report(name=name)
        self.reports.append(new)
        return new

    def select_reports(self, report_name: str | None = None) -> list[Report]:
        """Reports to run: all of them, or the one called *report_name*.

        Raises:
            GroupEmptyError: If the group has no reports.
            ReportNotFoundError: If *report_name* is not in the group.
        """
        if not self.reports:
            raise GroupEmptyError(self.name)
        if report_name is None:
            return list(self.reports)
        for r in self.reports:
            if r.name == report_name:
                return [r]
        raise ReportNotFoundError(self.name, report_name)


class Suite:
    """Groups of reports of tests, in definition order."""

    def __init__(self) -> None:
        self.groups: dict[str, Group] = {}

    def group(self, name: str) -> Group:
        """Return the group called *name*, creating it if needed."""
        if name not in self.groups:
            self.groups[name] = Group(name=name)
        return self.groups[name]

    def find_group(self, name: str) -> Group:
        try:
            return self.groups[name]
        except KeyError:
            raise GroupNotFoundError(name) from None

    def has_tests(self) -> bool:
        return any(r.tests for g in self.groups.values() for r in g.reports)

    def __repr__(self) -> str:
        return f"Suite(groups={list(self.groups)!r})"


# ---------------------------------------------------------------------------
# Registration against the active suite
# ---------------------------------------------------------------------------

_active = Suite()


def active_suite() -> Suite:
    return _active


def group(name: str) -> Group:
    """Return (creating if needed) a group of the suite being loaded."""
    return _active.group(name)


def load_suite(tests_path: Path) -> Suite:
    """Run every ``*.py`` file in *tests_path* and return the suite they define.

    Files run in name order, each in its own namespace.

    Raises:
        SuiteError: If *tests_path* is not a directory.
    """
    global _active

    if not tests_path.is_dir():
        raise SuiteError(f"Benchmark directory not found: {tests_path}")

    previous = _active
    _active = Suite()
    try:
        for path in sorted(tests_path.glob("*.py")):
            log.debug("Loading benchmarks from %s", path)
            runpy.run_path(str(path), run_name=f"benchkeeper_suite.{path.stem}")
        return _active
    finally:
        _active = previous
