"""Display policy for coverage percentages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from covtree.coverage.metrics import percent

if TYPE_CHECKING:
    from covtree.coverage.nodes import CoverageNode

_PRECISION = 2


class CoverageColor(Enum):
    """Color bucket for a coverage fraction."""

    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"


RICH_STYLES = {
    CoverageColor.GOOD: "green",
    CoverageColor.WARNING: "yellow",
    CoverageColor.BAD: "red",
}


@dataclass(frozen=True, slots=True)
class ColorThreshold:
    color: CoverageColor
    threshold: float


DEFAULT_THRESHOLDS = (
    ColorThreshold(CoverageColor.GOOD, 0.9),
    ColorThreshold(CoverageColor.WARNING, 0.8),
    ColorThreshold(CoverageColor.BAD, float("-inf")),
)


def make_thresholds(good: float, warning: float) -> tuple[ColorThreshold, ...]:
    """Build a descending threshold list from configured cut-offs."""
    return (
        ColorThreshold(CoverageColor.GOOD, good),
        ColorThreshold(CoverageColor.WARNING, warning),
        ColorThreshold(CoverageColor.BAD, float("-inf")),
    )


def display_percent(value: float, precision: int = _PRECISION) -> str:
    """Format a 0.0-1.0 fraction as a percentage.

    Incomplete coverage that would round up to ``100.00%`` is shown as the
    largest value below it (``99.99%`` at two decimals).
    """
    display = f"{value * 100:.{precision}f}"
    if value < 1 and display == f"{100:.{precision}f}":
        return f"{100 - 10**-precision:.{precision}f}%"
    return f"{display}%"


def color_for_percent(
    value: float, thresholds: tuple[ColorThreshold, ...] = DEFAULT_THRESHOLDS
) -> CoverageColor:
    """Return the color of the first threshold *value* reaches."""
    for entry in thresholds:
        if value >= entry.threshold:
            return entry.color
    return CoverageColor.BAD


def statement_coverage_text(node: CoverageNode) -> str:
    return f"{display_percent(percent(node.statement))} statement coverage"


def function_coverage_text(node: CoverageNode) -> str | None:
    if node.function is None:
        return None
    return f"{display_percent(percent(node.function))} function coverage"


def branch_coverage_text(node: CoverageNode) -> str | None:
    if node.branch is None:
        return None
    return f"{display_percent(percent(node.branch))} branch coverage"


def summary_lines(node: CoverageNode) -> list[str]:
    """Human-readable per-category summaries, skipping absent categories."""
    lines = [
        statement_coverage_text(node),
        function_coverage_text(node),
        branch_coverage_text(node),
    ]
    return [line for line in lines if line is not None]
