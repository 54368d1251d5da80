"""Scalar coverage metrics derived from a node's counts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, assert_never

if TYPE_CHECKING:
    from covtree.coverage.nodes import CoverageNode
    from covtree.models.coverage import CoveredCount


class DisplayedCoveragePercent(Enum):
    """Which scalar to surface as a node's coverage percentage."""

    STATEMENT = "statement"
    MINIMUM = "minimum"
    TOTAL_COVERAGE = "totalCoverage"


def percent(count: CoveredCount) -> float:
    """Return the covered fraction of *count*; nothing measurable counts as 1.0."""
    return 1.0 if count.total == 0 else count.covered / count.total


def calculate_displayed_stat(node: CoverageNode, method: DisplayedCoveragePercent) -> float:
    """Select the coverage fraction to display for *node*."""
    match method:
        case DisplayedCoveragePercent.STATEMENT:
            return percent(node.statement)
        case DisplayedCoveragePercent.MINIMUM:
            value = percent(node.statement)
            if node.branch is not None:
                value = min(value, percent(node.branch))
            if node.function is not None:
                value = min(value, percent(node.function))
            return value
        case DisplayedCoveragePercent.TOTAL_COVERAGE:
            return node.tpc
        case _:
            assert_never(method)


@dataclass(frozen=True, slots=True)
class CoveragePresentation:
    """Numbers a presentation layer needs to draw a node's coverage."""

    overall_percent: float
    statement_percent: float
    function_percent: float | None = None
    branch_percent: float | None = None


def presentation_data(node: CoverageNode, method: DisplayedCoveragePercent) -> CoveragePresentation:
    """Collect the overall and per-category fractions for *node*."""
    return CoveragePresentation(
        overall_percent=calculate_displayed_stat(node, method),
        statement_percent=percent(node.statement),
        function_percent=percent(node.function) if node.function is not None else None,
        branch_percent=percent(node.branch) if node.branch is not None else None,
    )
