"""Benchmark result data structures.

A :class:`Result` describes one measured execution of one test: where it
ran (runtime variant, branch, commit), what it is (group/report/test,
control or baseline) and the producer's opaque payload.  Results are
frozen; tagging or assigning an id returns a new instance.

:class:`ResultSet` collects results by group name and is how runners
combine the output of several branches or commits.
"""

from __future__ import annotations

import dataclasses
import enum
import platform
import sys
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

SECONDS_PER_DAY = 24 * 60 * 60


# ---------------------------------------------------------------------------
# Runtime variants
# ---------------------------------------------------------------------------


class Runtime(enum.Enum):
    """Interpreter execution mode a test ran under."""

    INTERP = "interp"  # reference interpreter, JIT disabled
    JIT = "jit"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | Runtime) -> Runtime:
        """Parse a runtime name (case-insensitive)."""
        if isinstance(value, Runtime):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown runtime '{value}' (expected one of: {valid})") from None

    @property
    def env_value(self) -> str:
        """Value of ``PYTHON_JIT`` that selects this runtime."""
        return "1" if self is Runtime.JIT else "0"


class RuntimeSelection(enum.Enum):
    """Which runtimes a benchmark run targets."""

    BOTH = "both"
    INTERP = "interp"
    JIT = "jit"

    @classmethod
    def parse(cls, value: str | RuntimeSelection) -> RuntimeSelection:
        if isinstance(value, RuntimeSelection):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown runtime '{value}' (expected one of: {valid})") from None

    @property
    def runtimes(self) -> list[Runtime]:
        if self is RuntimeSelection.BOTH:
            return [Runtime.INTERP, Runtime.JIT]
        return [Runtime(self.value)]

    @property
    def jit_only(self) -> bool:
        return self is RuntimeSelection.JIT


def detect_runtime() -> Runtime:
    """Return the runtime variant of the running interpreter."""
    jit = getattr(sys, "_jit", None)
    if jit is not None:
        try:
            if jit.is_enabled():
                return Runtime.JIT
        except AttributeError:
            pass
    return Runtime.INTERP


def new_result_id() -> str:
    """Generate a globally unique result id."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Result:
    """One persisted measurement."""

    type: str  # "ips", "memory", ...
    group_name: str
    report_name: str
    test_name: str
    runtime: Runtime = Runtime.INTERP
    timestamp: float = field(default_factory=time.time)
    branch: str | None = None
    commit_hash: str | None = None
    commit_message: str | None = None
    control: bool = False
    baseline: bool = False
    python_version: str | None = field(default_factory=platform.python_version)
    result_id: str | None = None
    result_data: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``[jit] strings/concat/join``."""
        return f"[{self.runtime}] {self.group_name}/{self.report_name}/{self.test_name}"

    @property
    def bucket_key(self) -> tuple[str, str, str]:
        """Key of the file-backend bucket this result belongs to."""
        return (self.type, self.group_name, self.report_name)

    def age_days(self, now: float | None = None) -> float:
        """Age of the result in (fractional) days."""
        current = time.time() if now is None else now
        return (current - self.timestamp) / SECONDS_PER_DAY

    def with_id(self, result_id: str) -> Result:
        return dataclasses.replace(self, result_id=result_id)

    def tagged(
        self,
        *,
        branch: str | None = None,
        commit_hash: str | None = None,
        commit_message: str | None = None,
    ) -> Result:
        """Return a copy carrying the given provenance (existing values kept otherwise)."""
        return dataclasses.replace(
            self,
            branch=branch if branch is not None else self.branch,
            commit_hash=commit_hash if commit_hash is not None else self.commit_hash,
            commit_message=commit_message if commit_message is not None else self.commit_message,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a flat JSON-compatible dict."""
        return {
            "type": self.type,
            "group_name": self.group_name,
            "report_name": self.report_name,
            "test_name": self.test_name,
            "runtime": self.runtime.value,
            "timestamp": self.timestamp,
            "branch": self.branch,
            "commit_hash": self.commit_hash,
            "commit_message": self.commit_message,
            "control": self.control,
            "baseline": self.baseline,
            "python_version": self.python_version,
            "result_id": self.result_id,
            "result_data": self.result_data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result:
        """Deserialize from a dict, ignoring unknown fields.

        Raises:
            KeyError: If an identity field is missing.
            ValueError: If the runtime is not a known variant.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        filtered = {k: v for k, v in data.items() if k in known}
        filtered["runtime"] = Runtime.parse(filtered.get("runtime", Runtime.INTERP.value))
        filtered["timestamp"] = float(filtered["timestamp"])
        filtered["control"] = bool(filtered.get("control", False))
        filtered["baseline"] = bool(filtered.get("baseline", False))
        filtered["result_data"] = dict(filtered.get("result_data") or {})
        for key in ("type", "group_name", "report_name", "test_name"):
            if key not in filtered:
                raise KeyError(key)
        return cls(**filtered)


# ---------------------------------------------------------------------------
# ResultSet
# ---------------------------------------------------------------------------


class ResultSet:
    """Results keyed by group name, in insertion order."""

    def __init__(self, results: Iterable[Result] = ()) -> None:
        self._by_group: dict[str, list[Result]] = {}
        self.extend(results)

    def add(self, result: Result) -> None:
        self._by_group.setdefault(result.group_name, []).append(result)

    def extend(self, results: Iterable[Result]) -> None:
        for result in results:
            self.add(result)

    def combine(self, other: ResultSet) -> ResultSet:
        """Return a new set with *other*'s results appended per group."""
        combined = ResultSet(self.all())
        combined.extend(other.all())
        return combined

    def groups(self) -> list[str]:
        return list(self._by_group)

    def for_group(self, group_name: str) -> list[Result]:
        return list(self._by_group.get(group_name, []))

    def all(self) -> list[Result]:
        return [r for results in self._by_group.values() for r in results]

    def as_dict(self) -> dict[str, list[Result]]:
        return {name: list(results) for name, results in self._by_group.items()}

    def __len__(self) -> int:
        return sum(len(results) for results in self._by_group.values())

    def __iter__(self) -> Iterator[Result]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"ResultSet(groups={self.groups()!r}, results={len(self)})"
