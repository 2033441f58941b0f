"""Logging setup for benchkeeper.

Each command invocation configures the ``benchkeeper`` logger once: a
console handler whose level follows ``--verbose`` / ``--quiet`` and an
optional DEBUG file handler.  Modules log through child loggers from
:func:`get_logger`, so their records reach the same handlers.

Runs started by a parent runner (spawned, forked, or on another branch
or commit) tag their console lines with the revision they run for.  The
parent echoes a child's output, and the tag keeps it attributable.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "benchkeeper"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    """DEBUG with *verbose*, WARNING with *quiet*, INFO otherwise; *verbose* wins."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def revision_label(branch: str | None = None, commit_hash: str | None = None) -> str | None:
    """Short tag for a child run: the branch, else the abbreviated commit."""
    if branch:
        return branch
    if commit_hash:
        return commit_hash[:8]
    return None


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    label: str | None = None,
) -> logging.Logger:
    """Configure and return the root benchkeeper logger.

    Handlers from an earlier call are closed and replaced.  With *label*,
    every console line carries ``[label]`` after the level name.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = f"%(levelname)-8s [{label}] %(message)s" if label else _CONSOLE_FORMAT
    console = logging.StreamHandler()
    console.setLevel(console_level(verbose=verbose, quiet=quiet))
    console.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger ``benchkeeper.<name>``."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
