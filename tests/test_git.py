"""Tests for benchkeeper.git — GitClient and safe_checkout.

The restoration tests run against real temporary repositories and are
skipped when git is not installed.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from benchkeeper.errors import GitCommandError, GitRestoreError
from benchkeeper.git import STASH_MESSAGE, GitClient, GitState, safe_checkout
from benchkeeper.runners import resolve_commit_range

from bench_test_helpers import HAS_GIT, git, init_repo


class TestGitClientMocked(unittest.TestCase):
    """GitClient command construction and error handling."""

    def _proc(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
        proc = MagicMock()
        proc.returncode = returncode
        proc.stdout = stdout
        proc.stderr = stderr
        return proc

    @patch("benchkeeper.git.subprocess.run")
    def test_failure_raises_with_details(self, mock_run: MagicMock) -> None:
        mock_run.return_value = self._proc(128, stderr="fatal: bad revision\n")
        client = GitClient("/repo")
        with self.assertRaises(GitCommandError) as ctx:
            client.checkout("nope")
        self.assertEqual(ctx.exception.returncode, 128)
        self.assertEqual(ctx.exception.command, ["git", "checkout", "--quiet", "nope"])
        self.assertIn("bad revision", str(ctx.exception))

    @patch("benchkeeper.git.subprocess.run")
    def test_runs_in_repo_dir(self, mock_run: MagicMock) -> None:
        mock_run.return_value = self._proc(stdout="abc123\n")
        self.assertEqual(GitClient("/repo").rev_parse("HEAD"), "abc123")
        self.assertEqual(mock_run.call_args.kwargs["cwd"], "/repo")

    @patch("benchkeeper.git.subprocess.run")
    def test_detached_head_has_no_branch(self, mock_run: MagicMock) -> None:
        mock_run.return_value = self._proc(1)
        self.assertIsNone(GitClient().current_branch())

    @patch("benchkeeper.git.subprocess.run")
    def test_stash_save_nothing_to_stash(self, mock_run: MagicMock) -> None:
        mock_run.return_value = self._proc(stdout="")
        self.assertFalse(GitClient().stash_save("msg"))
        self.assertEqual(mock_run.call_count, 1)

    @patch("benchkeeper.git.subprocess.run")
    def test_rev_list_splits_lines(self, mock_run: MagicMock) -> None:
        mock_run.return_value = self._proc(stdout="a\nb\n\nc\n")
        self.assertEqual(GitClient().rev_list("--reverse", "x..y"), ["a", "b", "c"])


class TestSafeCheckoutMocked(unittest.TestCase):
    """Restore ordering and failure handling with a fake client."""

    def _client(self, *, branch: str | None = "main", dirty: bool = False) -> MagicMock:
        client = MagicMock(spec=GitClient)
        client.current_branch.return_value = branch
        client.head_commit.return_value = "c0ffee00" * 5
        client.stash_save.return_value = dirty
        return client

    def test_restores_branch_and_pops_stash(self) -> None:
        client = self._client(dirty=True)
        with safe_checkout(client, "feature") as state:
            self.assertTrue(state.stashed)
        self.assertEqual(
            [c.args for c in client.checkout.call_args_list], [("feature",), ("main",)]
        )
        client.stash_save.assert_called_once_with(STASH_MESSAGE)
        client.stash_pop.assert_called_once_with()

    def test_detached_restores_commit(self) -> None:
        client = self._client(branch=None)
        with safe_checkout(client, "feature"):
            pass
        client.checkout.assert_called_with("c0ffee00" * 5)
        client.stash_pop.assert_not_called()

    def test_body_exception_propagates_after_restore(self) -> None:
        client = self._client(dirty=True)
        with self.assertRaises(KeyError):
            with safe_checkout(client, "feature"):
                raise KeyError("boom")
        client.checkout.assert_called_with("main")
        client.stash_pop.assert_called_once_with()

    def test_failed_checkout_of_target_still_restores(self) -> None:
        client = self._client(dirty=True)
        client.checkout.side_effect = [GitCommandError(["git", "checkout"], 1), None]
        with self.assertRaises(GitCommandError):
            with safe_checkout(client, "missing"):
                self.fail("body must not run")
        client.stash_pop.assert_called_once_with()

    def test_restore_failure_raises_restore_error(self) -> None:
        client = self._client()
        client.checkout.side_effect = [None, GitCommandError(["git", "checkout"], 1, "locked")]
        with self.assertLogs("benchkeeper", level="CRITICAL"):
            with self.assertRaises(GitRestoreError):
                with safe_checkout(client, "feature"):
                    pass

    def test_restore_failure_does_not_mask_body_error(self) -> None:
        client = self._client()
        client.checkout.side_effect = [None, GitCommandError(["git", "checkout"], 1)]
        with self.assertLogs("benchkeeper", level="CRITICAL"):
            with self.assertRaises(ValueError):
                with safe_checkout(client, "feature"):
                    raise ValueError("body")

    def test_stash_pop_failure_logged_not_raised(self) -> None:
        client = self._client(dirty=True)
        client.stash_pop.side_effect = GitCommandError(["git", "stash", "pop"], 1, "conflict")
        with self.assertLogs("benchkeeper", level="CRITICAL") as logs:
            with safe_checkout(client, "feature"):
                pass
        self.assertTrue(any("git stash pop" in line for line in logs.output))


class TestGitState(unittest.TestCase):
    def test_ref_prefers_branch(self) -> None:
        self.assertEqual(GitState(branch="main", commit="abc").ref, "main")
        self.assertEqual(GitState(branch=None, commit="abc").ref, "abc")

    def test_describe(self) -> None:
        self.assertEqual(GitState(branch="main", commit="abc").describe(), "branch 'main'")
        self.assertIn("detached", GitState(branch=None, commit="0123456789").describe())


@unittest.skipUnless(HAS_GIT, "git is not installed")
class TestSafeCheckoutRealRepo(unittest.TestCase):
    """The working tree always ends up where it started."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.repo = Path(self._tmp.name) / "repo"
        self.commits = init_repo(self.repo, commits=3)
        git(self.repo, "branch", "feature", self.commits[0])
        self.client = GitClient(self.repo)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _data(self) -> str:
        return (self.repo / "data.txt").read_text(encoding="utf-8")

    def test_client_queries(self) -> None:
        self.assertEqual(self.client.current_branch(), "main")
        self.assertEqual(self.client.head_commit(), self.commits[-1])
        self.assertEqual(self.client.commit_message(self.commits[1]), "commit 1")
        self.assertTrue(self.client.is_root_commit(self.commits[0]))
        self.assertFalse(self.client.is_root_commit(self.commits[1]))
        self.assertFalse(self.client.has_changes())

    def test_rev_parse_unknown_ref(self) -> None:
        with self.assertRaises(GitCommandError):
            self.client.rev_parse("no-such-branch")

    def test_on_branch_clean(self) -> None:
        with safe_checkout(self.client, "feature"):
            self.assertEqual(self._data(), "version 0\n")
            self.assertEqual(self.client.current_branch(), "feature")
        self.assertEqual(self.client.current_branch(), "main")
        self.assertEqual(self.client.head_commit(), self.commits[-1])
        self.assertEqual(self._data(), "version 2\n")

    def test_on_branch_with_local_changes(self) -> None:
        (self.repo / "data.txt").write_text("work in progress\n", encoding="utf-8")
        with safe_checkout(self.client, "feature") as state:
            self.assertTrue(state.stashed)
            self.assertEqual(self._data(), "version 0\n")
        self.assertEqual(self.client.current_branch(), "main")
        self.assertEqual(self._data(), "work in progress\n")
        self.assertEqual(git(self.repo, "stash", "list"), "")

    def test_untracked_files_are_left_alone(self) -> None:
        (self.repo / "scratch.txt").write_text("untracked\n", encoding="utf-8")
        with safe_checkout(self.client, "feature") as state:
            self.assertFalse(state.stashed)
            self.assertTrue((self.repo / "scratch.txt").exists())
        self.assertEqual(git(self.repo, "stash", "list"), "")

    def test_detached_head(self) -> None:
        git(self.repo, "checkout", "--quiet", self.commits[1])
        with safe_checkout(self.client, self.commits[0]):
            self.assertEqual(self._data(), "version 0\n")
        self.assertIsNone(self.client.current_branch())
        self.assertEqual(self.client.head_commit(), self.commits[1])

    def test_detached_head_with_local_changes(self) -> None:
        git(self.repo, "checkout", "--quiet", self.commits[1])
        (self.repo / "data.txt").write_text("dirty\n", encoding="utf-8")
        with safe_checkout(self.client, "main"):
            self.assertEqual(self._data(), "version 2\n")
        self.assertEqual(self.client.head_commit(), self.commits[1])
        self.assertEqual(self._data(), "dirty\n")

    def test_body_raises(self) -> None:
        (self.repo / "data.txt").write_text("keep me\n", encoding="utf-8")
        with self.assertRaises(RuntimeError):
            with safe_checkout(self.client, "feature"):
                raise RuntimeError("benchmark crashed")
        self.assertEqual(self.client.current_branch(), "main")
        self.assertEqual(self._data(), "keep me\n")

    def test_unknown_target_restores_changes(self) -> None:
        (self.repo / "data.txt").write_text("keep me\n", encoding="utf-8")
        with self.assertRaises(GitCommandError):
            with safe_checkout(self.client, "no-such-branch"):
                pass
        self.assertEqual(self.client.current_branch(), "main")
        self.assertEqual(self._data(), "keep me\n")

    def test_not_a_repository(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = GitClient(tmpdir)
            with self.assertRaises(GitCommandError):
                client.head_commit()
            self.assertIsNone(client.current_branch())


@unittest.skipUnless(HAS_GIT, "git is not installed")
class TestCommitRangeRealRepo(unittest.TestCase):
    """Commit ranges resolved by git itself come back oldest first."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.repo = Path(self._tmp.name) / "repo"
        self.commits = init_repo(self.repo, commits=4)
        self.client = GitClient(self.repo)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_abbreviated_hashes(self) -> None:
        c = self.commits
        resolved = resolve_commit_range(self.client, f"{c[1][:7]}..{c[3][:7]}")
        self.assertEqual(resolved, c[1:])

    def test_range_from_root_commit(self) -> None:
        c = self.commits
        resolved = resolve_commit_range(self.client, f"{c[0][:7]}..{c[2][:7]}")
        self.assertEqual(resolved, c[:3])

    def test_range_to_head(self) -> None:
        c = self.commits
        self.assertEqual(resolve_commit_range(self.client, f"{c[2]}..HEAD"), c[2:])


if __name__ == "__main__":
    unittest.main()
