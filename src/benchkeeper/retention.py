"""Retention policies deciding which stored results survive a cleanup sweep."""

from __future__ import annotations

import re
import time

from benchkeeper.errors import ConfigError
from benchkeeper.results import Result

DEFAULT_RETENTION_DAYS = 30


class RetentionPolicy:
    """Base class: a pure predicate over a :class:`Result`."""

    def retain(self, result: Result, now: float | None = None) -> bool:
        raise NotImplementedError(f"{type(self).__name__} must implement retain()")

    @property
    def name(self) -> str:
        """Snake-case policy name, e.g. ``keep_all``."""
        return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", type(self).__name__).lower()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class KeepAll(RetentionPolicy):
    """Never cleans anything up (the default)."""

    def retain(self, result: Result, now: float | None = None) -> bool:
        return True


class KeepNone(RetentionPolicy):
    """Cleans up every result."""

    def retain(self, result: Result, now: float | None = None) -> bool:
        return False


class DateBased(RetentionPolicy):
    """Keeps results that are at most *retention_days* old.

    The boundary is inclusive: a result exactly ``retention_days`` old is
    retained.
    """

    def __init__(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> None:
        if retention_days < 0:
            raise ValueError(f"retention_days must be >= 0 (got {retention_days})")
        self.retention_days = retention_days

    def retain(self, result: Result, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return result.age_days(current) <= self.retention_days

    @property
    def name(self) -> str:
        return f"date_based_{self.retention_days}_days"

    def __repr__(self) -> str:
        return f"DateBased(retention_days={self.retention_days})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, DateBased) and other.retention_days == self.retention_days

    def __hash__(self) -> int:
        return hash(("date_based", self.retention_days))


_ALIASES: dict[str, str] = {
    "keep": "keep_all",
    "keep_all": "keep_all",
    "all": "keep_all",
    "none": "keep_none",
    "keep_none": "keep_none",
    "date": "date_based",
    "date_based": "date_based",
}

POLICY_NAMES = sorted(_ALIASES)


def create_policy(name: str, retention_days: int = DEFAULT_RETENTION_DAYS) -> RetentionPolicy:
    """Build a retention policy from its name or alias.

    Raises:
        ConfigError: If *name* is not a known policy.
    """
    canonical = _ALIASES.get(name.strip().lower().replace("-", "_"))
    if canonical == "keep_all":
        return KeepAll()
    if canonical == "keep_none":
        return KeepNone()
    if canonical == "date_based":
        try:
            return DateBased(retention_days)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
    raise ConfigError(
        f"Unknown retention policy '{name}' (expected one of: {', '.join(POLICY_NAMES)})"
    )
