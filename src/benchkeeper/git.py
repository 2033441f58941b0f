"""Git introspection and safe checkout of other revisions.

:class:`GitClient` runs the ``git`` executable in a repository and
raises :class:`~benchkeeper.errors.GitCommandError` on failure.

:func:`safe_checkout` checks out another branch or commit for the
duration of a ``with`` block and always puts the working tree back the
way it found it: original branch (or detached commit) checked out again
and local changes popped from the stash.
"""

from __future__ import annotations

import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from benchkeeper.errors import GitCommandError, GitRestoreError
from benchkeeper.logging import get_logger

log = get_logger("git")

STASH_MESSAGE = "benchkeeper auto stash"


class GitClient:
    """Thin wrapper around the git command line for one repository."""

    def __init__(self, repo_dir: Path | str = ".", *, timeout: int = 60) -> None:
        self.repo_dir = Path(repo_dir)
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        cmd = ["git", *args]
        log.debug("Running: %s", " ".join(cmd))
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=str(self.repo_dir),
            timeout=self.timeout,
        )
        if proc.returncode != 0:
            raise GitCommandError(cmd, proc.returncode, proc.stderr)
        return proc.stdout

    def current_branch(self) -> str | None:
        """Name of the checked-out branch, or None when HEAD is detached."""
        proc = subprocess.run(
            ["git", "symbolic-ref", "--quiet", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=str(self.repo_dir),
            timeout=self.timeout,
        )
        if proc.returncode == 0:
            return proc.stdout.strip() or None
        return None

    def head_commit(self) -> str:
        return self.rev_parse("HEAD")

    def checkout(self, ref: str) -> None:
        self._run("checkout", "--quiet", ref)

    def has_changes(self) -> bool:
        """True if tracked files have uncommitted modifications.

        Untracked files are ignored: they survive a checkout, and the
        results directory often lives untracked inside the repository.
        """
        return bool(self._run("status", "--porcelain", "--untracked-files=no").strip())

    def stash_save(self, message: str | None = None) -> bool:
        """Stash uncommitted changes to tracked files.

        Returns:
            True if a stash entry was created, False if there was nothing to stash.
        """
        if not self.has_changes():
            return False
        args = ["stash", "push"]
        if message:
            args += ["-m", message]
        self._run(*args)
        return True

    def stash_pop(self) -> None:
        self._run("stash", "pop")

    def rev_parse(self, ref: str) -> str:
        """Resolve *ref* to a full commit hash."""
        return self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").strip()

    def rev_list(self, *args: str) -> list[str]:
        return [line.strip() for line in self._run("rev-list", *args).splitlines() if line.strip()]

    def commit_message(self, ref: str, fmt: str = "%s") -> str:
        return self._run("log", "-1", f"--pretty=format:{fmt}", ref).strip()

    def is_root_commit(self, ref: str) -> bool:
        """True if *ref* has no parent."""
        try:
            self._run("rev-parse", "--verify", "--quiet", f"{ref}^")
        except GitCommandError:
            return True
        return False


# ---------------------------------------------------------------------------
# safe_checkout
# ---------------------------------------------------------------------------


@dataclass
class GitState:
    """Where the working tree was before a safe checkout."""

    branch: str | None
    commit: str
    stashed: bool = False

    @property
    def ref(self) -> str:
        """The ref to check out to get back here."""
        return self.branch or self.commit

    def describe(self) -> str:
        if self.branch:
            return f"branch '{self.branch}'"
        return f"detached commit {self.commit[:8]}"


def capture_state(git: GitClient) -> GitState:
    return GitState(branch=git.current_branch(), commit=git.head_commit())


def _restore(state: GitState, git: GitClient) -> None:
    """Check out the recorded state again, then pop our stash.

    Raises:
        GitRestoreError: If checking out the recorded branch/commit fails.
    """
    try:
        git.checkout(state.ref)
    except GitCommandError as exc:
        raise GitRestoreError(exc.command, exc.returncode, exc.stderr) from exc
    if not state.stashed:
        return
    try:
        git.stash_pop()
    except GitCommandError as exc:
        log.critical(
            "Could not pop the '%s' stash on %s; recover it with 'git stash pop': %s",
            STASH_MESSAGE,
            state.describe(),
            exc,
        )


@contextmanager
def safe_checkout(
    git: GitClient,
    ref: str,
    *,
    stash_message: str = STASH_MESSAGE,
) -> Iterator[GitState]:
    """Check out *ref* for the duration of the block, then restore.

    1. Record the current branch (or exact commit when detached).
    2. Stash uncommitted changes, if any.
    3. Check out *ref* and run the block.
    4. On every exit path, check out the recorded state again and pop
       the stash.

    A failed restore is logged at CRITICAL.  If the block itself raised,
    the block's exception keeps propagating; otherwise
    :class:`~benchkeeper.errors.GitRestoreError` is raised.
    """
    state = capture_state(git)
    state.stashed = git.stash_save(stash_message)
    if state.stashed:
        log.info("Stashed local changes before checking out %s", ref)

    body_failed = False
    try:
        log.info("Checking out %s", ref)
        git.checkout(ref)
        yield state
    except BaseException:
        body_failed = True
        raise
    finally:
        try:
            _restore(state, git)
            log.debug("Restored %s", state.describe())
        except GitRestoreError as exc:
            log.critical(
                "Failed to restore %s after checking out %s%s: %s",
                state.describe(),
                ref,
                " (local changes are still in the stash)" if state.stashed else "",
                exc,
            )
            if not body_failed:
                raise
