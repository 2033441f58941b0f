"""Run configuration and ``.benchkeeper.yml`` loading.

Handles:
- Loading a configuration mapping from a YAML file.
- Finding the configuration file (working directory, then home).
- Merging command-line options over file values.
- Validating the final configuration before a run.
- Writing a configuration back out as YAML.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from benchkeeper.compare import SortOrder
from benchkeeper.errors import ConfigError
from benchkeeper.results import RuntimeSelection
from benchkeeper.retention import RetentionPolicy, create_policy
from benchkeeper.stores import BACKENDS

log = logging.getLogger("benchkeeper")

CONFIG_FILE_NAME = ".benchkeeper.yml"


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class BenchConfig:
    """Resolved configuration for a benchmark run."""

    # Execution
    runtime: str = "both"  # "both", "interp" or "jit"
    runner: str = "immediate"
    test_time: float = 1.0  # seconds of measurement per test
    test_warm_up: float = 0.2  # seconds of warm-up per test

    # Storage
    storage_backend: str = "json"
    storage_name: str = "benchmark_history"
    results_dir: Path = field(default_factory=lambda: Path(".benchkeeper"))
    retention_policy: str = "keep_all"
    retention_days: int = 30

    # Reporting
    summary_order: str = "leader"
    ascii_only: bool = False

    # Git variants
    compare_with_branch: str | None = None
    commit_range: str | None = None
    ignore_commits: str | None = None  # "abc123,def456..789abc"
    control_commit: str | None = None
    use_cached: bool = False
    results_only: bool = False
    # Set for child runs; the parent has already applied retention.
    skip_retention: bool = False

    # Suite
    tests_path: Path = field(default_factory=lambda: Path("benchmarks"))

    # Logging
    verbose: bool = False
    quiet: bool = False

    @property
    def runtime_selection(self) -> RuntimeSelection:
        return RuntimeSelection.parse(self.runtime)

    @property
    def order(self) -> SortOrder:
        return SortOrder.parse(self.summary_order)

    def build_retention_policy(self) -> RetentionPolicy:
        """Raises ConfigError for an unknown policy name."""
        return create_policy(self.retention_policy, self.retention_days)

    def to_mapping(self) -> dict[str, Any]:
        """Serialize to a YAML-friendly dict (paths as strings, no None values)."""
        data: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[f.name] = str(value) if isinstance(value, Path) else value
        return data


_FIELDS = {f.name: f for f in dataclasses.fields(BenchConfig)}
_PATH_FIELDS = {"results_dir", "tests_path"}
_BOOL_FIELDS = {
    "ascii_only",
    "use_cached",
    "results_only",
    "skip_retention",
    "verbose",
    "quiet",
}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a run configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    from benchkeeper.runners import RunnerKind

    errors: list[ValidationError] = []

    try:
        config.runtime_selection
    except ValueError as exc:
        errors.append(ValidationError(field="runtime", message=str(exc)))

    runner_names = [k.value for k in RunnerKind]
    if config.runner not in runner_names:
        errors.append(
            ValidationError(
                field="runner",
                message=(
                    f"Unknown runner '{config.runner}' "
                    f"(expected one of: {', '.join(runner_names)})."
                ),
            )
        )

    if config.storage_backend not in BACKENDS:
        errors.append(
            ValidationError(
                field="storage_backend",
                message=(
                    f"Unsupported storage backend '{config.storage_backend}' "
                    f"(expected one of: {', '.join(BACKENDS)})."
                ),
            )
        )

    try:
        config.build_retention_policy()
    except ConfigError as exc:
        errors.append(ValidationError(field="retention_policy", message=str(exc)))

    try:
        config.order
    except ValueError as exc:
        errors.append(ValidationError(field="summary_order", message=str(exc)))

    if config.test_time <= 0:
        errors.append(
            ValidationError(
                field="test_time",
                message=f"Test time must be positive (got {config.test_time}).",
            )
        )
    if config.test_warm_up < 0:
        errors.append(
            ValidationError(
                field="test_warm_up",
                message=f"Warm-up time cannot be negative (got {config.test_warm_up}).",
            )
        )

    if config.commit_range and config.compare_with_branch:
        errors.append(
            ValidationError(
                field="compare_with_branch",
                message="--commit-range takes precedence; --compare-with is ignored.",
                severity="warning",
            )
        )

    if (config.commit_range or config.compare_with_branch) and config.storage_backend == "memory":
        errors.append(
            ValidationError(
                field="storage_backend",
                message=(
                    "Branch and commit comparisons run each revision in a separate "
                    "process; the memory backend cannot see their results."
                ),
            )
        )
    elif config.runner in ("spawn", "forked") and config.storage_backend == "memory":
        errors.append(
            ValidationError(
                field="storage_backend",
                message=(
                    f"The {config.runner} runner saves results in child processes; "
                    f"they will not be visible in the memory backend."
                ),
                severity="warning",
            )
        )

    for name in ("ignore_commits", "control_commit", "use_cached", "results_only"):
        if getattr(config, name) and not config.commit_range:
            errors.append(
                ValidationError(
                    field=name,
                    message=f"'{name}' only applies with a commit range.",
                    severity="warning",
                )
            )

    if config.verbose and config.quiet:
        errors.append(
            ValidationError(
                field="quiet",
                message="--verbose and --quiet both given; --verbose wins.",
                severity="warning",
            )
        )

    return errors


def check_config(config: BenchConfig) -> None:
    """Log validation warnings and raise on the first error.

    Raises:
        ConfigError: If the configuration has any error-severity problem.
    """
    problems = validate_config(config)
    for problem in problems:
        if problem.severity == "warning":
            log.warning("%s: %s", problem.field, problem.message)
    failures = [p for p in problems if p.severity == "error"]
    if failures:
        raise ConfigError("; ".join(f"{p.field}: {p.message}" for p in failures))


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def find_config_file(start: Path | None = None) -> Path | None:
    """Return the first ``.benchkeeper.yml`` in *start* (default cwd) or the home directory."""
    candidates = [(start or Path.cwd()) / CONFIG_FILE_NAME, Path.home() / CONFIG_FILE_NAME]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path) -> dict[str, Any]:
    """Load a configuration mapping from a YAML file.

    Format::

        runner: spawn
        runtime: both
        storage_backend: sqlite
        retention_policy: date_based
        retention_days: 14
        summary_order: leader

    Returns:
        The parsed YAML as a dict (empty for an empty file).

    Raises:
        ConfigError: If the file is missing, is not valid YAML or is not a mapping.
    """
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a YAML mapping, got {type(data).__name__}")
    return data


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _PATH_FIELDS:
        return Path(value)
    if name in _BOOL_FIELDS:
        return bool(value)
    if name in ("test_time", "test_warm_up"):
        return float(value)
    if name == "retention_days":
        return int(value)
    return value


def config_from_mapping(
    data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from a parsed configuration mapping.

    Keys may use dashes or underscores.  Unknown keys are logged and
    ignored.  CLI overrides that are not ``None`` take precedence over
    file values.

    Raises:
        ConfigError: If a value cannot be converted to the field's type.
    """
    values: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = str(raw_key).replace("-", "_")
        if key not in _FIELDS:
            log.warning("Ignoring unknown config key '%s'", raw_key)
            continue
        values[key] = value
    for key, value in (cli_overrides or {}).items():
        if value is not None and key in _FIELDS:
            values[key] = value

    try:
        coerced = {k: _coerce(k, v) for k, v in values.items()}
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    return BenchConfig(**{k: v for k, v in coerced.items() if v is not None})


def save_config(config: BenchConfig, config_path: Path) -> None:
    """Write *config* to *config_path* as YAML."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.safe_dump(config.to_mapping(), sort_keys=False),
        encoding="utf-8",
    )
