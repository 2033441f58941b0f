"""Exception hierarchy for benchkeeper.

Everything raised on purpose by benchkeeper derives from
:class:`BenchkeeperError` so the CLI can turn it into a clean non-zero
exit.  Storage and git failures keep the underlying details (command,
exit status, stderr) on the exception for logging.
"""

from __future__ import annotations


class BenchkeeperError(Exception):
    """Base class for benchkeeper errors."""


# ---------------------------------------------------------------------------
# Configuration / usage
# ---------------------------------------------------------------------------


class ConfigError(BenchkeeperError):
    """Invalid configuration or command-line usage."""


class CommitRangeError(ConfigError):
    """A commit range or ignore list could not be parsed or resolved."""


class SuiteError(ConfigError):
    """A requested group, report or test does not exist."""


class GroupNotFoundError(SuiteError):
    def __init__(self, group: str) -> None:
        super().__init__(f"Group '{group}' not found")
        self.group = group


class ReportNotFoundError(SuiteError):
    def __init__(self, group: str, report: str) -> None:
        super().__init__(f"Report '{report}' not found in group '{group}'")
        self.group = group
        self.report = report


class TestNotFoundError(SuiteError):
    __test__ = False  # not a pytest test class

    def __init__(self, group: str, report: str, test: str) -> None:
        super().__init__(f"Test '{test}' not found in {group}/{report}")
        self.group = group
        self.report = report
        self.test = test


class GroupEmptyError(SuiteError):
    def __init__(self, group: str) -> None:
        super().__init__(f"Group '{group}' has no reports")
        self.group = group


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


class NoBaselineError(BenchkeeperError):
    """A bucket has no result flagged as its baseline."""

    def __init__(self, group: str, report: str, anchor: str | None = None) -> None:
        where = f" on {anchor}" if anchor else ""
        super().__init__(
            f"Could not determine the baseline test in {group}/{report}{where}. "
            f"Mark one test in the report with baseline=True."
        )
        self.group = group
        self.report = report
        self.anchor = anchor


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------


class GitCommandError(BenchkeeperError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        detail = stderr.strip()
        message = f"git command failed (exit {returncode}): {' '.join(command)}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class GitRestoreError(GitCommandError):
    """Restoring the pre-run git state failed.

    This is the most severe failure class: the working tree may be left
    on the wrong revision or with changes still stashed.
    """


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class ExecutionFailedError(BenchkeeperError):
    """An isolated execution (spawned or forked) exited with a non-zero status."""

    def __init__(self, label: str, exit_code: int, output: str = "") -> None:
        super().__init__(f"Benchmark failed in {label} (exit code: {exit_code})")
        self.label = label
        self.exit_code = exit_code
        self.output = output


class AggregateRunError(BenchkeeperError):
    """One or more groups failed during a parallel run."""

    def __init__(self, errors: dict[str, BaseException]) -> None:
        names = ", ".join(sorted(errors))
        super().__init__(f"Benchmark failed in {len(errors)} group(s): {names}")
        self.errors = dict(errors)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StoreError(BenchkeeperError):
    """A result could not be persisted."""


class DuplicateResultError(StoreError):
    """A result with the same id is already stored.  Stored results are never replaced."""

    def __init__(self, result_id: str) -> None:
        super().__init__(f"A result with id '{result_id}' is already stored")
        self.result_id = result_id
