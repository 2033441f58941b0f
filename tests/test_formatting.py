"""Tests for benchkeeper.formatting — text helpers."""

from __future__ import annotations

import math
import unittest

from benchkeeper.formatting import format_section_header, format_table, humanize_scale, truncate


class TestHumanizeScale(unittest.TestCase):
    def test_suffixes(self) -> None:
        self.assertEqual(humanize_scale(950), "950")
        self.assertEqual(humanize_scale(1500), "1.5k")
        self.assertEqual(humanize_scale(2_340_000), "2.34M")
        self.assertEqual(humanize_scale(7e9), "7B")
        self.assertEqual(humanize_scale(1.2e12), "1.2T")

    def test_negative(self) -> None:
        self.assertEqual(humanize_scale(-2000), "-2k")

    def test_missing(self) -> None:
        self.assertEqual(humanize_scale(None), "N/A")
        self.assertEqual(humanize_scale(math.nan), "N/A")
        self.assertEqual(humanize_scale(math.inf), "inf")


class TestTruncate(unittest.TestCase):
    def test_short_text_unchanged(self) -> None:
        self.assertEqual(truncate("abc", 5), "abc")

    def test_long_text(self) -> None:
        self.assertEqual(truncate("abcdefgh", 6), "abc...")

    def test_tiny_limit(self) -> None:
        self.assertEqual(truncate("abcdefgh", 2), "..")


class TestFormatSectionHeader(unittest.TestCase):
    def test_width(self) -> None:
        header = format_section_header("Run: a/b", width=40)
        self.assertEqual(len(header), 40)
        self.assertTrue(header.startswith("─── Run: a/b "))

    def test_ascii(self) -> None:
        self.assertTrue(format_section_header("T", ascii_only=True).startswith("--- T "))


class TestFormatTable(unittest.TestCase):
    def test_alignment_and_separator(self) -> None:
        text = format_table(
            ["Name", "IPS"],
            [["join", "2k"], ["plus", "1.5k"]],
            alignments=["l", "r"],
        )
        lines = text.splitlines()
        self.assertEqual(lines[0], "  Name   IPS")
        self.assertEqual(lines[1], "  ----  ----")
        self.assertEqual(lines[2], "  join    2k")
        self.assertEqual(lines[3], "  plus  1.5k")

    def test_short_rows_padded(self) -> None:
        text = format_table(["a", "b"], [["x"]], indent=0)
        self.assertEqual(text.splitlines()[-1], "x")

    def test_max_col_width(self) -> None:
        text = format_table(["name"], [["a-very-long-name"]], max_col_width=8)
        self.assertIn("a-ver...", text)

    def test_no_headers(self) -> None:
        self.assertEqual(format_table([], []), "")


if __name__ == "__main__":
    unittest.main()
