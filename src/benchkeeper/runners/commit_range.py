"""Commit range: the same groups run on every commit of a range, oldest first.

Range syntax:

* ``A..B`` and ``A...B`` -- every commit from ``A`` to ``B`` inclusive;
* ``A`` -- from ``A`` to ``HEAD``;
* an empty side means ``HEAD``.

Commits can be skipped with an ignore list of single commits and
sub-ranges, e.g. ``abc123,def456..0123abc``.
"""

from __future__ import annotations

import time

from benchkeeper.errors import CommitRangeError, GitCommandError
from benchkeeper.git import GitClient, safe_checkout
from benchkeeper.results import ResultSet
from benchkeeper.runners.base import JobFactory, Runner, RunnerKind, RunOutcome, log
from benchkeeper.runners.isolation import IsolationStrategy, SubprocessIsolation, build_command
from benchkeeper.runners.process import execute_checked
from benchkeeper.session import Session
from benchkeeper.suite import Group, Suite


# ---------------------------------------------------------------------------
# Range parsing and resolution
# ---------------------------------------------------------------------------


def parse_commit_range(spec: str) -> tuple[str, str]:
    """Split a range into its (start, end) refs.

    Raises:
        CommitRangeError: If the range is empty or has more than two parts.
    """
    text = spec.strip()
    if not text:
        raise CommitRangeError("Empty commit range")
    separator = "..." if "..." in text else ".."
    parts = text.split(separator)
    if len(parts) > 2:
        raise CommitRangeError(
            f"Invalid commit range '{spec}'. Expected 'start..end' (e.g. HEAD~5..HEAD)"
        )
    if len(parts) == 1:
        return parts[0].strip(), "HEAD"
    start, end = (p.strip() or "HEAD" for p in parts)
    return start, end


def _rev_parse(git: GitClient, ref: str, role: str) -> str:
    try:
        return git.rev_parse(ref)
    except GitCommandError as exc:
        raise CommitRangeError(f"Invalid {role} commit '{ref}': {exc}") from exc


def resolve_commit_range(git: GitClient, spec: str) -> list[str]:
    """Full hashes of every commit in *spec*, oldest first.

    The start commit is always included, even when it is not an ancestor
    of the end commit.

    Raises:
        CommitRangeError: If a ref cannot be resolved or the range is empty.
    """
    start_ref, end_ref = parse_commit_range(spec)
    start = _rev_parse(git, start_ref, "start")
    end = _rev_parse(git, end_ref, "end")

    try:
        if git.is_root_commit(start):
            commits = [start, *git.rev_list("--reverse", f"{start}..{end}")]
        else:
            commits = git.rev_list("--reverse", f"{start}^..{end}")
    except GitCommandError as exc:
        raise CommitRangeError(f"Could not list commits in '{spec}': {exc}") from exc

    if not commits:
        raise CommitRangeError(
            f"No commits found in range '{spec}'. Check that the start is older than the end."
        )
    if start not in commits:
        commits.insert(0, start)
    return commits


def parse_ignore_commits(git: GitClient, value: str | None) -> set[str]:
    """Resolve a comma-separated ignore list to full hashes.

    Each entry is a single commit or a sub-range.

    Raises:
        CommitRangeError: If any entry cannot be resolved.
    """
    ignored: set[str] = set()
    if not value:
        return ignored
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ".." in entry:
            ignored.update(resolve_commit_range(git, entry))
        else:
            ignored.add(_rev_parse(git, entry, "ignored"))
    return ignored


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class CommitRangeRunner(Runner):
    """Benchmarks every commit of ``config.commit_range`` in turn.

    Each commit is checked out with :func:`~benchkeeper.git.safe_checkout`
    and benchmarked in fresh processes.  With ``use_cached`` a commit that
    already has stored results of the job type is not run again; with
    ``results_only`` nothing is run and only stored results are loaded.
    """

    kind = RunnerKind.COMMIT_RANGE

    def __init__(
        self,
        session: Session,
        suite: Suite,
        commit_range: str | None = None,
        isolation: IsolationStrategy | None = None,
    ) -> None:
        super().__init__(session, suite)
        self.commit_range = commit_range or session.config.commit_range
        self.isolation = isolation or SubprocessIsolation()

    def resolve_commits(self) -> list[str]:
        if not self.commit_range:
            raise CommitRangeError("No commit range specified")
        commits = resolve_commit_range(self.git, self.commit_range)
        ignored = parse_ignore_commits(self.git, self.config.ignore_commits)
        kept = [c for c in commits if c not in ignored]
        if len(kept) != len(commits):
            log.info("Ignoring %d commit(s)", len(commits) - len(kept))
        if not kept:
            raise CommitRangeError(f"Every commit in '{self.commit_range}' is ignored")
        return kept

    def _run(self, groups: list[Group], job_factory: JobFactory) -> RunOutcome:
        commits = self.resolve_commits()
        outcome = RunOutcome()
        if self.config.control_commit:
            outcome.control_commit = _rev_parse(self.git, self.config.control_commit, "control")
        else:
            outcome.control_commit = commits[0]
        log.info("Found %d commit(s) to benchmark", len(commits))

        combined = ResultSet()
        for index, commit in enumerate(commits, 1):
            short = commit[:8]
            message = self.git.commit_message(commit)
            log.info("[%d/%d] %s: %s", index, len(commits), short, message)

            if self.config.results_only:
                saved = self.store.query_results(type=job_factory.type, commit=commit)
                outcome.skipped.append(commit)
            elif self.config.use_cached and self.store.query_results(
                type=job_factory.type, commit=commit
            ):
                log.info("Using cached results for %s", short)
                saved = self.store.query_results(type=job_factory.type, commit=commit)
                outcome.skipped.append(commit)
            else:
                commit_start = time.time()
                with safe_checkout(self.git, commit):
                    self._run_commit(groups, job_factory, commit, message)
                saved = self.collect_results(
                    job_factory.type, commit_start, groups=groups, commit=commit
                )
                outcome.executed.append(commit)

            names = {g.name for g in groups}
            tagged = ResultSet(
                r.tagged(commit_hash=commit, commit_message=message)
                for r in saved
                if r.group_name in names
            )
            combined = combined.combine(tagged)

        outcome.results = combined
        return outcome

    def _run_commit(
        self,
        groups: list[Group],
        job_factory: JobFactory,
        commit: str,
        message: str,
    ) -> None:
        for group in groups:
            for runtime in self.config.runtime_selection.runtimes:
                command = build_command(
                    self.config,
                    job_factory.type,
                    group.name,
                    job_factory.report_name,
                    job_factory.test_name,
                    runtime,
                    commit_hash=commit,
                    commit_message=message,
                )
                label = f"{group.name} [{runtime}] at {commit[:8]}"
                log.info("Running %s", label)
                execute_checked(self.isolation, command, label)
