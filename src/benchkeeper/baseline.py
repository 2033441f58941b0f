"""Baseline selection for one (group, report) bucket."""

from __future__ import annotations

from typing import Iterable

from benchkeeper.errors import NoBaselineError
from benchkeeper.logging import get_logger
from benchkeeper.results import Result, Runtime

log = get_logger("baseline")


def _anchor(branch: str | None, commit: str | None) -> str | None:
    parts = []
    if branch is not None:
        parts.append(f"branch '{branch}'")
    if commit is not None:
        parts.append(f"commit {commit[:8]}")
    return " at ".join(parts) or None


def choose_baseline(
    group: str,
    report: str,
    candidates: Iterable[Result],
    *,
    jit_only: bool = False,
    branch: str | None = None,
    commit: str | None = None,
) -> Result:
    """Pick the result every other result in the bucket is compared to.

    Only results from the canonical runtime are eligible: the JIT when
    the run targeted the JIT alone, the plain interpreter otherwise.
    A branch comparison passes its reference *branch* and a commit sweep
    its control *commit* (a full or abbreviated hash); only results
    stored there are eligible then.  Among the eligible results flagged
    ``baseline``, the newest wins; equal timestamps keep the first one
    seen.  More than one flagged result is allowed but logged, since it
    usually means several branches or commits each stored their own
    baseline.

    Raises:
        NoBaselineError: If no eligible result is flagged.
    """
    runtime = Runtime.JIT if jit_only else Runtime.INTERP
    flagged = [r for r in candidates if r.runtime is runtime and r.baseline]
    if branch is not None:
        flagged = [r for r in flagged if r.branch == branch]
    if commit is not None:
        flagged = [r for r in flagged if r.commit_hash and r.commit_hash.startswith(commit)]
    if not flagged:
        raise NoBaselineError(group, report, anchor=_anchor(branch, commit))

    chosen = flagged[0]
    for result in flagged[1:]:
        if result.timestamp > chosen.timestamp:
            chosen = result

    if len(flagged) > 1:
        log.warning(
            "%d results are flagged as baseline in %s/%s (%s); using the newest, %s",
            len(flagged),
            group,
            report,
            runtime,
            chosen.result_id or chosen.test_name,
        )
    return chosen
