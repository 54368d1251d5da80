"""Data models for covtree."""

from covtree.models.coverage import (
    BranchCoverage,
    CoverageDetail,
    CoveredCount,
    DeclarationCoverage,
    DetailType,
    FileCoverageRecord,
    Location,
    Position,
    Range,
    StatementCoverage,
)

__all__ = [
    "BranchCoverage",
    "CoverageDetail",
    "CoveredCount",
    "DeclarationCoverage",
    "DetailType",
    "FileCoverageRecord",
    "Location",
    "Position",
    "Range",
    "StatementCoverage",
]
