"""Tests for benchkeeper.results — Result, ResultSet and runtime variants."""

from __future__ import annotations

import dataclasses
import sys
import unittest
from unittest.mock import patch

from benchkeeper.results import (
    SECONDS_PER_DAY,
    Result,
    ResultSet,
    Runtime,
    RuntimeSelection,
    detect_runtime,
    new_result_id,
)

from bench_test_helpers import make_result


class TestRuntime(unittest.TestCase):
    def test_parse_case_insensitive(self) -> None:
        self.assertIs(Runtime.parse("JIT"), Runtime.JIT)
        self.assertIs(Runtime.parse(" interp "), Runtime.INTERP)

    def test_parse_passthrough(self) -> None:
        self.assertIs(Runtime.parse(Runtime.JIT), Runtime.JIT)

    def test_parse_unknown(self) -> None:
        with self.assertRaises(ValueError) as ctx:
            Runtime.parse("pypy")
        self.assertIn("interp, jit", str(ctx.exception))

    def test_env_value(self) -> None:
        self.assertEqual(Runtime.JIT.env_value, "1")
        self.assertEqual(Runtime.INTERP.env_value, "0")

    def test_str(self) -> None:
        self.assertEqual(str(Runtime.JIT), "jit")


class TestRuntimeSelection(unittest.TestCase):
    def test_both_lists_interp_first(self) -> None:
        self.assertEqual(RuntimeSelection.BOTH.runtimes, [Runtime.INTERP, Runtime.JIT])

    def test_single_runtime(self) -> None:
        self.assertEqual(RuntimeSelection.parse("jit").runtimes, [Runtime.JIT])
        self.assertEqual(RuntimeSelection.parse("interp").runtimes, [Runtime.INTERP])

    def test_jit_only(self) -> None:
        self.assertTrue(RuntimeSelection.JIT.jit_only)
        self.assertFalse(RuntimeSelection.BOTH.jit_only)

    def test_unknown(self) -> None:
        with self.assertRaises(ValueError):
            RuntimeSelection.parse("all")


class TestDetectRuntime(unittest.TestCase):
    def test_no_jit_module(self) -> None:
        with patch.object(sys, "_jit", None, create=True):
            self.assertIs(detect_runtime(), Runtime.INTERP)

    def test_jit_enabled(self) -> None:
        class _Jit:
            @staticmethod
            def is_enabled() -> bool:
                return True

        with patch.object(sys, "_jit", _Jit, create=True):
            self.assertIs(detect_runtime(), Runtime.JIT)

    def test_jit_disabled(self) -> None:
        class _Jit:
            @staticmethod
            def is_enabled() -> bool:
                return False

        with patch.object(sys, "_jit", _Jit, create=True):
            self.assertIs(detect_runtime(), Runtime.INTERP)


class TestResult(unittest.TestCase):
    def test_frozen(self) -> None:
        r = make_result()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            r.branch = "main"  # type: ignore[misc]

    def test_label(self) -> None:
        r = make_result(runtime=Runtime.JIT)
        self.assertEqual(r.label, "[jit] strings/concat/join")

    def test_bucket_key(self) -> None:
        self.assertEqual(make_result(type="memory").bucket_key, ("memory", "strings", "concat"))

    def test_age_days(self) -> None:
        r = make_result(timestamp=1000.0)
        self.assertAlmostEqual(r.age_days(1000.0 + 2 * SECONDS_PER_DAY), 2.0)

    def test_with_id_returns_copy(self) -> None:
        r = make_result()
        copy = r.with_id("abc")
        self.assertIsNone(r.result_id)
        self.assertEqual(copy.result_id, "abc")

    def test_tagged_keeps_existing_values(self) -> None:
        r = make_result(branch="main", commit_hash="aaa")
        tagged = r.tagged(commit_hash="bbb", commit_message="fix")
        self.assertEqual(tagged.branch, "main")
        self.assertEqual(tagged.commit_hash, "bbb")
        self.assertEqual(tagged.commit_message, "fix")
        self.assertEqual(r.commit_hash, "aaa")

    def test_dict_roundtrip(self) -> None:
        r = make_result(runtime=Runtime.JIT, baseline=True, control=True, result_id="x1")
        self.assertEqual(Result.from_dict(r.to_dict()), r)

    def test_from_dict_ignores_unknown_keys(self) -> None:
        data = make_result().to_dict()
        data["future_field"] = 42
        self.assertEqual(Result.from_dict(data).test_name, "join")

    def test_from_dict_missing_identity_field(self) -> None:
        data = make_result().to_dict()
        del data["group_name"]
        with self.assertRaises(KeyError):
            Result.from_dict(data)

    def test_from_dict_bad_runtime(self) -> None:
        data = make_result().to_dict()
        data["runtime"] = "turbo"
        with self.assertRaises(ValueError):
            Result.from_dict(data)

    def test_from_dict_defaults(self) -> None:
        r = Result.from_dict(
            {
                "type": "ips",
                "group_name": "g",
                "report_name": "r",
                "test_name": "t",
                "timestamp": "12.5",
            }
        )
        self.assertIs(r.runtime, Runtime.INTERP)
        self.assertEqual(r.timestamp, 12.5)
        self.assertFalse(r.baseline)
        self.assertEqual(r.result_data, {})

    def test_new_result_id_unique(self) -> None:
        self.assertEqual(len({new_result_id() for _ in range(100)}), 100)


class TestResultSet(unittest.TestCase):
    def test_groups_in_insertion_order(self) -> None:
        rs = ResultSet([make_result(group="b"), make_result(group="a"), make_result(group="b")])
        self.assertEqual(rs.groups(), ["b", "a"])
        self.assertEqual(len(rs.for_group("b")), 2)
        self.assertEqual(len(rs), 3)

    def test_for_missing_group(self) -> None:
        self.assertEqual(ResultSet().for_group("nope"), [])

    def test_combine_does_not_mutate(self) -> None:
        left = ResultSet([make_result(group="a")])
        right = ResultSet([make_result(group="a", test="other"), make_result(group="b")])
        combined = left.combine(right)
        self.assertEqual(len(left), 1)
        self.assertEqual(len(right), 2)
        self.assertEqual([r.test_name for r in combined.for_group("a")], ["join", "other"])
        self.assertEqual(combined.groups(), ["a", "b"])

    def test_iteration_and_as_dict(self) -> None:
        rs = ResultSet([make_result(group="a"), make_result(group="b")])
        self.assertEqual([r.group_name for r in rs], ["a", "b"])
        self.assertEqual(set(rs.as_dict()), {"a", "b"})


if __name__ == "__main__":
    unittest.main()
