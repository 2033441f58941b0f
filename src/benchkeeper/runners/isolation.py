"""Process-level isolation for a single benchmark invocation.

Both strategies run the ``benchkeeper run`` command line for one group
and hand back its exit status and combined stdout/stderr.  A spawned
child is a fresh interpreter, so it can select the runtime variant
through ``PYTHON_JIT``; a forked child inherits the parent's.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from benchkeeper.config import BenchConfig
from benchkeeper.errors import ConfigError
from benchkeeper.results import Runtime

log = logging.getLogger("benchkeeper")


@dataclass
class CommandLine:
    """A ``benchkeeper`` invocation: CLI arguments plus environment overrides."""

    args: list[str]
    env: dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> list[str]:
        return [sys.executable, "-m", "benchkeeper", *self.args]

    def __str__(self) -> str:
        prefix = " ".join(f"{k}={v}" for k, v in sorted(self.env.items()))
        return f"{prefix} {' '.join(self.argv)}".strip()


@dataclass
class ExecutionOutcome:
    exit_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def build_command(
    config: BenchConfig,
    job_type: str,
    group: str,
    report: str | None = None,
    test: str | None = None,
    runtime: Runtime | None = None,
    *,
    branch: str | None = None,
    commit_hash: str | None = None,
    commit_message: str | None = None,
) -> CommandLine:
    """Build the command that runs one group in a child process.

    The child runs the group in-process and ignores configuration files,
    so everything it needs is passed explicitly.  When *runtime* is
    given, ``PYTHON_JIT`` is set to select it.
    """
    args = ["run", job_type, group]
    if report is not None:
        args.append(report)
        if test is not None:
            args.append(test)
    args += [
        "--no-config",
        "--no-summary",
        "--no-retention",
        "--runner",
        "immediate",
        "--storage-backend",
        config.storage_backend,
        "--storage-name",
        config.storage_name,
        "--results-dir",
        str(Path(config.results_dir).resolve()),
        "--retention-policy",
        config.retention_policy,
        "--retention-days",
        str(config.retention_days),
        "--test-time",
        str(config.test_time),
        "--test-warm-up",
        str(config.test_warm_up),
        "--tests-path",
        str(Path(config.tests_path).resolve()),
    ]
    env: dict[str, str] = {}
    if runtime is not None:
        args += ["--runtime", runtime.value]
        env["PYTHON_JIT"] = runtime.env_value
    if config.verbose:
        args.append("--verbose")
    elif config.quiet:
        args.append("--quiet")
    if branch is not None:
        args += ["--branch", branch]
    if commit_hash is not None:
        args += ["--commit", commit_hash]
    if commit_message is not None:
        args += ["--commit-message", commit_message]
    return CommandLine(args=args, env=env)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class IsolationStrategy:
    name = ""

    def execute(self, command: CommandLine) -> ExecutionOutcome:
        raise NotImplementedError


class SubprocessIsolation(IsolationStrategy):
    """Run the command in a fresh interpreter."""

    name = "subprocess"

    def __init__(self, *, cwd: Path | None = None, timeout: float | None = None) -> None:
        self.cwd = cwd
        self.timeout = timeout

    def execute(self, command: CommandLine) -> ExecutionOutcome:
        env = {**os.environ, **command.env}
        log.debug("Spawning: %s", command)
        proc = subprocess.run(
            command.argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            env=env,
            cwd=str(self.cwd) if self.cwd else None,
            timeout=self.timeout,
        )
        return ExecutionOutcome(exit_code=proc.returncode, output=proc.stdout or "")


def _cli_entry(args: Sequence[str]) -> int:
    """Run the CLI in this process and return its exit status."""
    import click

    from benchkeeper.cli import main

    try:
        main.main(args=list(args), prog_name="benchkeeper", standalone_mode=False)
    except click.exceptions.Exit as exc:
        return exc.exit_code
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.exceptions.Abort:
        return 1
    return 0


class ForkIsolation(IsolationStrategy):
    """Run the command in a forked copy of this process.

    The child writes its stdout and stderr into a pipe the parent reads.
    *entry* receives the command's arguments and returns the exit status.
    """

    name = "fork"

    def __init__(self, entry: Callable[[Sequence[str]], int] = _cli_entry) -> None:
        if not hasattr(os, "fork"):
            raise ConfigError("The forked runner needs os.fork(), which this platform lacks")
        self.entry = entry

    def execute(self, command: CommandLine) -> ExecutionOutcome:
        log.debug("Forking: %s", command)
        sys.stdout.flush()
        sys.stderr.flush()
        read_fd, write_fd = os.pipe()
        pid = os.fork()
        if pid == 0:
            self._child(command, read_fd, write_fd)

        os.close(write_fd)
        chunks: list[bytes] = []
        with os.fdopen(read_fd, "rb") as reader:
            for chunk in iter(lambda: reader.read(65536), b""):
                chunks.append(chunk)
        _, status = os.waitpid(pid, 0)
        return ExecutionOutcome(
            exit_code=os.waitstatus_to_exitcode(status),
            output=b"".join(chunks).decode("utf-8", errors="replace"),
        )

    def _child(self, command: CommandLine, read_fd: int, write_fd: int) -> None:
        code = 1
        try:
            os.close(read_fd)
            os.dup2(write_fd, 1)
            os.dup2(write_fd, 2)
            os.close(write_fd)
            os.environ.update(command.env)
            code = self.entry(command.args)
        except SystemExit as exc:
            code = exc.code if isinstance(exc.code, int) else 1
        except BaseException:
            traceback.print_exc()
        finally:
            try:
                sys.stdout.flush()
                sys.stderr.flush()
            finally:
                os._exit(code)
