"""Plain-text formatting helpers for summaries and listings."""

from __future__ import annotations

import math

_SCALE_SUFFIXES = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "k"))


def humanize_scale(value: float | None, precision: int = 3) -> str:
    """Format a number with a magnitude suffix: ``'1.23M'``, ``'950'``.

    Returns ``'N/A'`` for ``None`` or NaN.
    """
    if value is None or math.isnan(value):
        return "N/A"
    if math.isinf(value):
        return "inf"
    magnitude = abs(value)
    for factor, suffix in _SCALE_SUFFIXES:
        if magnitude >= factor:
            return f"{value / factor:.{precision}g}{suffix}"
    return f"{value:.{precision}g}"


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to *max_len*, adding *suffix* if truncated."""
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix


def format_section_header(title: str, width: int = 80, *, ascii_only: bool = False) -> str:
    """Format a section header: ``'─── Title ─────'``."""
    rule = "-" if ascii_only else "─"
    prefix = rule * 3 + " "
    return prefix + title + " " + rule * max(0, width - len(prefix) - len(title) - 1)


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    max_col_width: int | None = None,
    indent: int = 2,
) -> str:
    """Format rows as an aligned text table.

    Column widths follow the content.  Columns marked ``'r'`` in
    *alignments* are right-aligned, everything else left-aligned.  Cells
    longer than *max_col_width* are truncated.
    """
    if not headers:
        return ""
    ncols = len(headers)
    aligns = list(alignments or []) + ["l"] * ncols

    def _cell(text: str) -> str:
        return truncate(text, max_col_width) if max_col_width else text

    table = [[_cell(h) for h in headers]]
    for row in rows:
        padded = (list(row) + [""] * ncols)[:ncols]
        table.append([_cell(c) for c in padded])

    widths = [max(len(r[i]) for r in table) for i in range(ncols)]
    prefix = " " * indent
    lines: list[str] = []
    for index, row in enumerate(table):
        cells = [
            row[i].rjust(widths[i]) if aligns[i] == "r" else row[i].ljust(widths[i])
            for i in range(ncols)
        ]
        lines.append(prefix + "  ".join(cells).rstrip())
        if index == 0:
            lines.append(prefix + "  ".join("-" * w for w in widths))
    return "\n".join(lines)
