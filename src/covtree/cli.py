"""covtree CLI — top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from covtree import __version__
from covtree.adapters.coverage import detect_provider, find_report
from covtree.config import CONFIG_FILE_NAME, CovtreeConfig, load_config, validate_config
from covtree.coverage.metrics import DisplayedCoveragePercent, calculate_displayed_stat
from covtree.coverage.session import CoverageSession
from covtree.errors import CoverageError
from covtree.reporters.formatting import make_thresholds
from covtree.reporters.terminal import TerminalReporter
from covtree.utils.uri import Uri

if TYPE_CHECKING:
    from covtree.coverage.nodes import CoverageNode
    from covtree.coverage.session import CoverageTree
    from covtree.models.coverage import CoverageDetail

logger = logging.getLogger(__name__)
console = Console()
reporter = TerminalReporter(console)

_REPORT_FORMATS = ("auto", "istanbul", "coverage.py")


def _configure_logging(*, verbose: bool) -> None:
    """Route covtree's loggers through rich."""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    package_logger = logging.getLogger("covtree")
    package_logger.handlers[:] = [handler]
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_project_config(path: str) -> CovtreeConfig:
    try:
        return load_config(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


def _resolve_report(config: CovtreeConfig, report: Path | None) -> Path:
    """Pick the report file: explicit argument, configured path, then standard locations."""
    if report is not None:
        return report
    if config.report_path.is_file():
        return config.report_path
    found = find_report(Path(config.root))
    if found is None:
        reporter.print_error(
            "No coverage report found. "
            f"Pass one explicitly or set report.path in {CONFIG_FILE_NAME}."
        )
        raise click.Abort
    return found


def _make_session(
    config: CovtreeConfig, report_file: Path, report_format: str | None
) -> CoverageSession:
    root = Path(config.root) / config.report.root if config.report.root else None
    try:
        provider = detect_provider(
            report_file, report_format=report_format or config.report.format, root=root
        )
    except CoverageError as e:
        reporter.print_error(str(e))
        raise click.Abort from e
    return CoverageSession(provider)


def _count_to_dict(count: Any) -> dict[str, int] | None:
    return None if count is None else asdict(count)


def _node_to_dict(node: CoverageNode, method: DisplayedCoveragePercent) -> dict[str, Any]:
    return {
        "uri": str(node.uri),
        "kind": node.kind.value,
        "statement": _count_to_dict(node.statement),
        "branch": _count_to_dict(node.branch),
        "function": _count_to_dict(node.function),
        "tpc": node.tpc,
        "percent": calculate_displayed_stat(node, method),
    }


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="covtree")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """covtree — hierarchical test coverage explorer."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose=verbose)


@cli.command("summary")
@click.argument("report", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--format", "report_format", type=click.Choice(_REPORT_FORMATS), help="Report format."
)
@click.option(
    "--metric",
    type=click.Choice([m.value for m in DisplayedCoveragePercent]),
    help="Metric shown in the Coverage column (overrides config).",
)
@click.option("--depth", type=click.IntRange(min=0), help="Maximum tree depth (0 = all).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def summary(
    report: Path | None,
    path: str,
    report_format: str | None,
    metric: str | None,
    depth: int | None,
    *,
    as_json: bool,
) -> None:
    """Show the coverage tree of a report.

    Example:
      covtree summary coverage/coverage-final.json
      covtree summary --metric minimum --depth 2
    """
    config = _load_project_config(path)
    report_file = _resolve_report(config, report)
    session = _make_session(config, report_file, report_format)
    method = (
        DisplayedCoveragePercent(metric) if metric else config.display.coverage_percent
    )

    try:
        tree: CoverageTree = asyncio.run(session.get_all_files())
    except CoverageError as e:
        reporter.print_error(f"Failed to build coverage tree: {e}")
        raise click.Abort from e

    if as_json:
        nodes = [
            {"path": "/".join(key), **_node_to_dict(node, method)}
            for key, node in tree.nodes()
            if node is not None
        ]
        click.echo(json.dumps(nodes, indent=2))
        return

    reporter.print_coverage_tree(
        tree,
        method=method,
        thresholds=make_thresholds(config.thresholds.good, config.thresholds.warning),
        max_depth=config.display.max_depth if depth is None else depth,
    )


@cli.command("file")
@click.argument("report", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("file_path", metavar="FILE")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--format", "report_format", type=click.Choice(_REPORT_FORMATS), help="Report format."
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def file_details(
    report: Path, file_path: str, path: str, report_format: str | None, *, as_json: bool
) -> None:
    """Show one file's coverage and its uncovered lines.

    FILE is resolved against the project root when relative.

    Example:
      covtree file coverage.json src/app.py
    """
    config = _load_project_config(path)
    session = _make_session(config, report, report_format)

    target = Path(file_path)
    if not target.is_absolute():
        target = (Path(config.root) / target).resolve()
    uri = Uri.file(target)

    async def _lookup() -> tuple[CoverageNode | None, list[CoverageDetail]]:
        node = await session.get_uri(uri)
        if node is None or not node.is_leaf:
            return node, []
        return node, await node.details()

    try:
        node, details = asyncio.run(_lookup())
    except CoverageError as e:
        reporter.print_error(f"Failed to read coverage for {file_path}: {e}")
        raise click.Abort from e

    if node is None:
        reporter.print_error(f"No coverage recorded for {target}")
        raise click.Abort

    if as_json:
        payload = _node_to_dict(node, config.display.coverage_percent)
        payload["details"] = [
            {**asdict(d), "type": d.type.value} for d in details
        ]
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    reporter.print_file_details(node, details)


@cli.group("config")
def config_group() -> None:
    """Inspect covtree configuration."""


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.covtree.yml`.

    Example:
      covtree config validate
    """
    config = _load_project_config(path)
    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    console.print()
    raise click.Abort


def main() -> None:
    cli()
