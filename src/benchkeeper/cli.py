"""Command-line interface for benchkeeper.

Subcommands:
    benchkeeper run       Run benchmarks and store the results
    benchkeeper results   Compare stored results against their baselines
    benchkeeper store     Clean up or inspect stored results
    benchkeeper list      List the groups, reports and tests of the suite
    benchkeeper config    Show or save the resolved configuration
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Any, Callable

import click

from benchkeeper import __version__
from benchkeeper.config import (
    BenchConfig,
    check_config,
    config_from_mapping,
    find_config_file,
    load_config,
    save_config,
)
from benchkeeper.errors import BenchkeeperError
from benchkeeper.logging import revision_label, setup_logging
from benchkeeper.session import Provenance, Session
from benchkeeper.stores import ResultStore

RUNNER_CHOICES = [
    "immediate",
    "spawn",
    "thread",
    "forked",
    "branch_comparison",
    "commit_range",
]
RUNTIME_CHOICES = ["both", "interp", "jit"]
BACKEND_CHOICES = ["json", "sqlite", "memory"]
ORDER_CHOICES = ["leader", "asc", "desc"]
TYPE_CHOICES = ["ips", "memory"]


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """benchkeeper: run micro-benchmarks across runtimes, branches and commits."""


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def common_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Configuration, storage and logging options shared by every command."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(path_type=Path),
            default=None,
            help="Configuration file (default: .benchkeeper.yml in cwd or home).",
        ),
        click.option("--no-config", is_flag=True, hidden=True),
        click.option("--storage-backend", type=click.Choice(BACKEND_CHOICES), default=None),
        click.option("--storage-name", type=str, default=None),
        click.option("--results-dir", type=click.Path(path_type=Path), default=None),
        click.option(
            "--retention-policy",
            type=str,
            default=None,
            help="keep_all, keep_none or date_based.",
        ),
        click.option("--retention-days", type=int, default=None),
        click.option("--tests-path", type=click.Path(path_type=Path), default=None),
        click.option("-v", "--verbose", is_flag=True, help="Show detailed output."),
        click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors."),
        click.option("--log-file", type=click.Path(path_type=Path), default=None),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def resolve_config(
    config_path: Path | None,
    no_config: bool,
    overrides: dict[str, Any],
) -> BenchConfig:
    """Merge the configuration file (if any) with command-line overrides."""
    data: dict[str, Any] = {}
    if not no_config:
        path = config_path or find_config_file()
        if path is not None:
            data = load_config(path)
    config = config_from_mapping(data, cli_overrides=overrides)
    check_config(config)
    return config


def _storage_overrides(kwargs: dict[str, Any]) -> dict[str, Any]:
    keys = (
        "storage_backend",
        "storage_name",
        "results_dir",
        "retention_policy",
        "retention_days",
        "tests_path",
    )
    overrides = {k: kwargs.pop(k) for k in keys}
    overrides["verbose"] = kwargs.pop("verbose") or None
    overrides["quiet"] = kwargs.pop("quiet") or None
    return overrides


def handle_errors(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Turn benchkeeper errors into a clean non-zero exit."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except BenchkeeperError as exc:
            raise click.ClickException(str(exc)) from exc
        except KeyboardInterrupt:
            click.echo("\nInterrupted.", err=True)
            raise SystemExit(130)  # noqa: B904

    return wrapper


def _build_session(config: BenchConfig, **provenance: str | None) -> Session:
    return Session.from_config(config, provenance=Provenance(**provenance))


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("job_type", metavar="TYPE", type=click.Choice(TYPE_CHOICES))
@click.argument("group", required=False)
@click.argument("report", required=False)
@click.argument("test", required=False)
@common_options
@click.option("--runner", type=click.Choice(RUNNER_CHOICES), default=None)
@click.option("--runtime", type=click.Choice(RUNTIME_CHOICES), default=None)
@click.option("--test-time", type=float, default=None, help="Seconds of measurement per test.")
@click.option("--test-warm-up", type=float, default=None, help="Seconds of warm-up per test.")
@click.option(
    "--compare-with",
    "compare_with_branch",
    type=str,
    default=None,
    help="Also run on this branch and compare.",
)
@click.option("--commit-range", type=str, default=None, help="e.g. HEAD~5..HEAD")
@click.option(
    "--ignore-commits",
    type=str,
    default=None,
    help="Comma-separated commits or ranges to skip.",
)
@click.option("--control-commit", type=str, default=None)
@click.option("--use-cached", is_flag=True, help="Reuse stored results for a commit.")
@click.option("--results-only", is_flag=True, help="Do not run; load stored results.")
@click.option("--order", "summary_order", type=click.Choice(ORDER_CHOICES), default=None)
@click.option("--ascii", "ascii_only", is_flag=True, help="ASCII-only output.")
@click.option("--summary/--no-summary", default=True, help="Print a comparison after the run.")
@click.option("--branch", type=str, default=None, hidden=True)
@click.option("--commit", "commit_hash", type=str, default=None, hidden=True)
@click.option("--commit-message", type=str, default=None, hidden=True)
@click.option("--no-retention", "skip_retention", is_flag=True, hidden=True)
@handle_errors
def run(
    job_type: str,
    group: str | None,
    report: str | None,
    test: str | None,
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    summary: bool,
    branch: str | None,
    commit_hash: str | None,
    commit_message: str | None,
    **kwargs: Any,
) -> None:
    """Run TYPE benchmarks (ips or memory) for GROUP [REPORT [TEST]], or everything.

    \b
    Examples:
        benchkeeper run ips
        benchkeeper run ips strings concat --runtime jit
        benchkeeper run memory --compare-with main
        benchkeeper run ips --commit-range HEAD~5..HEAD --use-cached
    """
    from benchkeeper.benchmark import make_job_factory
    from benchkeeper.runners import create_runner

    setup_logging(
        verbose=kwargs["verbose"],
        quiet=kwargs["quiet"],
        log_file=log_file,
        label=revision_label(branch, commit_hash),
    )
    overrides = _storage_overrides(kwargs)
    for flag in ("use_cached", "results_only", "ascii_only", "skip_retention"):
        overrides[flag] = kwargs.pop(flag) or None
    overrides.update(kwargs)
    config = resolve_config(config_path, no_config, overrides)

    session = _build_session(
        config,
        branch=branch,
        commit_hash=commit_hash,
        commit_message=commit_message,
    )
    suite = session.load_suite()
    factory = make_job_factory(
        job_type,
        config,
        session.store,
        report_name=report,
        test_name=test,
    )
    runner = create_runner(session, suite)
    outcome = runner.run(group, job_factory=factory)

    click.echo(f"{len(outcome.results)} result(s) from {len(outcome.executed)} run(s)")
    if outcome.skipped:
        click.echo(f"Reused stored results for {len(outcome.skipped)} revision(s)")
    if summary:
        _echo_report(
            session.store,
            config,
            job_type,
            group=group,
            report=report,
            baseline_branch=outcome.baseline_branch,
            control_commit=outcome.control_commit,
        )


# ---------------------------------------------------------------------------
# results
# ---------------------------------------------------------------------------


def _echo_report(
    store: ResultStore,
    config: BenchConfig,
    job_type: str,
    *,
    group: str | None = None,
    report: str | None = None,
    baseline_branch: str | None = None,
    control_commit: str | None = None,
) -> int:
    from benchkeeper.report import build_report, format_report

    summary = build_report(
        store,
        job_type,
        jit_only=config.runtime_selection.jit_only,
        order=config.order,
        group=group,
        report=report,
        baseline_branch=baseline_branch,
        control_commit=control_commit,
    )
    if summary.buckets:
        click.echo()
        click.echo(format_report(summary, ascii_only=config.ascii_only))
    return len(summary.errors)


@main.command()
@click.argument("job_type", metavar="TYPE", type=click.Choice(TYPE_CHOICES))
@click.argument("group", required=False)
@click.argument("report", required=False)
@common_options
@click.option("--runtime", type=click.Choice(RUNTIME_CHOICES), default=None)
@click.option("--order", "summary_order", type=click.Choice(ORDER_CHOICES), default=None)
@click.option("--baseline-branch", type=str, default=None, help="Take baselines from this branch.")
@click.option(
    "--control-commit",
    "anchor_commit",
    type=str,
    default=None,
    help="Take baselines from this commit (full or abbreviated hash).",
)
@click.option("--ascii", "ascii_only", is_flag=True, help="ASCII-only output.")
@handle_errors
def results(
    job_type: str,
    group: str | None,
    report: str | None,
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    baseline_branch: str | None,
    anchor_commit: str | None,
    **kwargs: Any,
) -> None:
    """Compare stored TYPE results against each report's baseline."""
    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    overrides = _storage_overrides(kwargs)
    overrides["ascii_only"] = kwargs.pop("ascii_only") or None
    overrides.update(kwargs)
    config = resolve_config(config_path, no_config, overrides)
    session = _build_session(config)

    failed = _echo_report(
        session.store,
        config,
        job_type,
        group=group,
        report=report,
        baseline_branch=baseline_branch,
        control_commit=anchor_commit,
    )
    if failed:
        click.echo(f"{failed} report(s) could not be compared (no baseline)", err=True)


# ---------------------------------------------------------------------------
# store
# ---------------------------------------------------------------------------


@main.group()
def store() -> None:
    """Clean up or inspect stored results."""


@store.command("clean")
@common_options
@click.option("--all", "clean_all", is_flag=True, help="Remove every result, ignoring retention.")
@handle_errors
def store_clean(
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    clean_all: bool,
    **kwargs: Any,
) -> None:
    """Apply the retention policy to the stored results."""
    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    config = resolve_config(config_path, no_config, _storage_overrides(kwargs))
    result_store = _build_session(config).store
    if clean_all:
        result_store.clear()
        click.echo(f"Removed all results from '{config.storage_name}'")
        return
    removed = result_store.clean_results()
    click.echo(
        f"Removed {removed} result(s) using the {result_store.retention_policy.name} policy"
    )


@store.command("show")
@click.argument("result_id")
@common_options
@handle_errors
def store_show(
    result_id: str,
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    **kwargs: Any,
) -> None:
    """Print one stored result as JSON."""
    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    config = resolve_config(config_path, no_config, _storage_overrides(kwargs))
    found = _build_session(config).store.load_result(result_id)
    if found is None:
        raise click.ClickException(f"No result with id '{result_id}'")
    click.echo(json.dumps(found.to_dict(), indent=2))


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@main.command("list")
@common_options
@handle_errors
def list_suite(
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    **kwargs: Any,
) -> None:
    """List the groups, reports and tests of the benchmark suite."""
    from benchkeeper.suite import load_suite

    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    config = resolve_config(config_path, no_config, _storage_overrides(kwargs))
    suite = load_suite(config.tests_path)
    if not suite.has_tests():
        click.echo(f"No benchmarks found in {config.tests_path}")
        return
    for group in suite.groups.values():
        click.echo(group.name)
        for report in group.reports:
            click.echo(f"  {report.name}")
            for t in report.tests:
                markers = []
                if t.control:
                    markers.append("control")
                if report.is_baseline(t):
                    markers.append("baseline")
                suffix = f" ({', '.join(markers)})" if markers else ""
                click.echo(f"    {t.name}{suffix}")


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@main.group("config")
def config_group() -> None:
    """Show or save the resolved configuration."""


@config_group.command("show")
@common_options
@handle_errors
def config_show(
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    **kwargs: Any,
) -> None:
    """Print the configuration after merging file and options."""
    import yaml

    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    config = resolve_config(config_path, no_config, _storage_overrides(kwargs))
    click.echo(yaml.safe_dump(config.to_mapping(), sort_keys=False).rstrip())


@config_group.command("save")
@click.argument("destination", type=click.Path(path_type=Path), required=False)
@common_options
@handle_errors
def config_save(
    destination: Path | None,
    config_path: Path | None,
    no_config: bool,
    log_file: Path | None,
    **kwargs: Any,
) -> None:
    """Write the merged configuration to DESTINATION (default: ./.benchkeeper.yml)."""
    from benchkeeper.config import CONFIG_FILE_NAME

    setup_logging(verbose=kwargs["verbose"], quiet=kwargs["quiet"], log_file=log_file)
    config = resolve_config(config_path, no_config, _storage_overrides(kwargs))
    target = destination or Path(CONFIG_FILE_NAME)
    save_config(config, target)
    click.echo(f"Configuration saved to {target}")
