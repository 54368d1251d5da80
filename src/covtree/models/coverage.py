"""Coverage data models: covered counts, file records and detail entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covtree.utils.uri import Uri


@dataclass(frozen=True, slots=True)
class CoveredCount:
    """Covered/total pair for one coverage category."""

    covered: int
    """Number of covered units (statements, branches or functions)."""

    total: int
    """Number of measurable units."""

    def __post_init__(self) -> None:
        if self.covered < 0 or self.total < 0:
            msg = f"Coverage counts must be non-negative (got {self.covered}/{self.total})"
            raise ValueError(msg)
        if self.covered > self.total:
            msg = f"Covered count exceeds total ({self.covered}/{self.total})"
            raise ValueError(msg)

    def __add__(self, other: CoveredCount) -> CoveredCount:
        return CoveredCount(covered=self.covered + other.covered, total=self.total + other.total)

    @classmethod
    def empty(cls) -> CoveredCount:
        """Return the zero count."""
        return cls(covered=0, total=0)


def sum_counts(counts: list[CoveredCount]) -> CoveredCount:
    """Add up a list of counts, returning the zero count for an empty list."""
    result = CoveredCount.empty()
    for count in counts:
        result += count
    return result


# ── Detail entries ───────────────────────────────────────────────


class DetailType(Enum):
    """Kind of a fine-grained coverage entry."""

    STATEMENT = "statement"
    DECLARATION = "declaration"


@dataclass(frozen=True, slots=True)
class Position:
    """Zero-based line/character position in a source file."""

    line: int
    character: int = 0


@dataclass(frozen=True, slots=True)
class Range:
    """Span between two positions."""

    start: Position
    end: Position


Location = Position | Range


@dataclass(frozen=True, slots=True)
class BranchCoverage:
    """One arm of a branch attached to a statement."""

    count: int
    """Number of times the arm was taken."""

    location: Location | None = None
    label: str = ""

    @property
    def is_covered(self) -> bool:
        """Return True if the arm was taken at least once."""
        return self.count > 0


@dataclass(frozen=True, slots=True)
class StatementCoverage:
    """Execution count of a single statement and its branch arms."""

    count: int
    location: Location
    branches: tuple[BranchCoverage, ...] = ()
    type: DetailType = field(default=DetailType.STATEMENT, init=False)

    @property
    def is_covered(self) -> bool:
        """Return True if the statement was executed at least once."""
        return self.count > 0


@dataclass(frozen=True, slots=True)
class DeclarationCoverage:
    """Execution count of a function, method or other declaration."""

    name: str
    count: int
    location: Location
    type: DetailType = field(default=DetailType.DECLARATION, init=False)

    @property
    def is_covered(self) -> bool:
        """Return True if the declaration was entered at least once."""
        return self.count > 0


CoverageDetail = StatementCoverage | DeclarationCoverage


# ── File records ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class FileCoverageRecord:
    """Raw coverage summary for one file as supplied by a provider."""

    uri: Uri
    """Resource identifier of the file."""

    statement: CoveredCount
    """Statement coverage, always present."""

    branch: CoveredCount | None = None
    """Branch coverage, if the provider measured it."""

    function: CoveredCount | None = None
    """Function/declaration coverage, if the provider measured it."""

    details: tuple[CoverageDetail, ...] | None = None
    """Pre-resolved detail entries; ``None`` means resolve on demand."""
