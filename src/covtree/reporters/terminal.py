"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from covtree.coverage.metrics import (
    DisplayedCoveragePercent,
    calculate_displayed_stat,
    percent,
)
from covtree.models.coverage import DeclarationCoverage, Range, StatementCoverage
from covtree.reporters.formatting import (
    DEFAULT_THRESHOLDS,
    RICH_STYLES,
    ColorThreshold,
    color_for_percent,
    display_percent,
)
from covtree.utils.prefix_tree import ROOT

if TYPE_CHECKING:
    from covtree.coverage.nodes import CoverageNode
    from covtree.coverage.session import CoverageTree
    from covtree.models.coverage import CoverageDetail, CoveredCount

console = Console()

_INDENT = "  "
_MAX_UNCOVERED_DISPLAY = 50


def _format_count(count: CoveredCount | None) -> str:
    if count is None:
        return "-"
    return f"{count.covered}/{count.total}"


def find_display_root(tree: CoverageTree) -> int:
    """Skip the chain of single-child positions above the first real branch point.

    Scheme, authority and shared leading directories are collapsed so the
    table starts at the deepest directory containing every file.
    """
    index = ROOT
    while True:
        children = tree.children_of(index)
        if len(children) != 1:
            return index
        child = children[0]
        node = tree.value_at(child)
        if node is not None and node.is_leaf:
            return index
        index = child


class TerminalReporter:
    """Rich terminal output for coverage trees and file details."""

    def __init__(self, output: Console | None = None) -> None:
        self.console = output or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def _styled_percent(self, value: float, thresholds: tuple[ColorThreshold, ...]) -> str:
        style = RICH_STYLES[color_for_percent(value, thresholds)]
        return f"[{style}]{display_percent(value)}[/{style}]"

    def print_coverage_tree(
        self,
        tree: CoverageTree,
        *,
        method: DisplayedCoveragePercent = DisplayedCoveragePercent.TOTAL_COVERAGE,
        thresholds: tuple[ColorThreshold, ...] = DEFAULT_THRESHOLDS,
        max_depth: int = 0,
    ) -> None:
        """Print the tree as an indented table.

        Args:
            tree: Aggregated coverage tree.
            method: Which metric fills the Coverage column.
            thresholds: Color cut-offs.
            max_depth: Deepest level to print below the display root (0 = all).
        """
        table = Table(title="Coverage", title_style="bold cyan")
        table.add_column("Path", style="bold")
        table.add_column("Coverage", justify="right")
        table.add_column("Statements", justify="right")
        table.add_column("Branches", justify="right")
        table.add_column("Functions", justify="right")

        root = find_display_root(tree)
        root_node = tree.value_at(root)
        if root_node is not None:
            table.add_row(
                f"[bold]{root_node.uri.path or '/'}[/bold]",
                self._styled_percent(calculate_displayed_stat(root_node, method), thresholds),
                _format_count(root_node.statement),
                _format_count(root_node.branch),
                _format_count(root_node.function),
            )
            table.add_section()

        stack = [(child, 0) for child in reversed(tree.children_of(root))]
        while stack:
            index, depth = stack.pop()
            node = tree.value_at(index)
            if node is None:
                continue
            segment = tree.path_of(index)[-1]
            name = segment if node.is_leaf else f"{segment}/"
            table.add_row(
                f"{_INDENT * depth}{name}",
                self._styled_percent(calculate_displayed_stat(node, method), thresholds),
                _format_count(node.statement),
                _format_count(node.branch),
                _format_count(node.function),
            )
            if not max_depth or depth + 1 < max_depth:
                stack.extend((child, depth + 1) for child in reversed(tree.children_of(index)))

        self.console.print(table)

    def print_file_details(self, node: CoverageNode, details: list[CoverageDetail]) -> None:
        """Print a file's counts followed by its uncovered statements and declarations."""
        self.print_header(node.uri.path)
        for label, count in (
            ("Statements", node.statement),
            ("Branches", node.branch),
            ("Functions", node.function),
        ):
            if count is not None:
                self.console.print(
                    f"{label + ':':<12}{_format_count(count)} ({display_percent(percent(count))})"
                )

        table = Table(title="Uncovered", title_style="bold yellow")
        table.add_column("Line", justify="right")
        table.add_column("Kind")
        table.add_column("Detail")

        rows = 0
        for detail in details:
            line = _display_line(detail)
            if isinstance(detail, DeclarationCoverage):
                if not detail.is_covered:
                    table.add_row(str(line), "function", detail.name)
                    rows += 1
            elif isinstance(detail, StatementCoverage):
                if not detail.is_covered:
                    table.add_row(str(line), "statement", "")
                    rows += 1
                missed = [arm.label or "branch" for arm in detail.branches if not arm.is_covered]
                if missed and detail.is_covered:
                    table.add_row(str(line), "branch", ", ".join(missed))
                    rows += 1
            if rows >= _MAX_UNCOVERED_DISPLAY:
                break

        if rows:
            self.console.print(table)
        else:
            self.print_success("Everything in this file is covered")


def _display_line(detail: CoverageDetail) -> int:
    """One-based line number of a detail entry."""
    location = detail.location
    line = location.start.line if isinstance(location, Range) else location.line
    return line + 1


# Singleton instance for easy import
reporter = TerminalReporter()
