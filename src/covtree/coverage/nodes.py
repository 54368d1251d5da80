"""Coverage tree nodes.

A node is either a *leaf*, backed by one provider record and able to resolve
per-line details, or an *aggregate*, whose counts are the sums of everything
below it in the tree. Both share the same shape; callers only look at
:attr:`CoverageNode.kind` when they need details.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from covtree.errors import UnsupportedDetailsError
from covtree.utils.async_cache import AsyncCell

if TYPE_CHECKING:
    from covtree.adapters.coverage.base import CoverageProvider
    from covtree.models.coverage import CoverageDetail, CoveredCount, FileCoverageRecord
    from covtree.utils.cancellation import CancellationToken
    from covtree.utils.uri import Uri

logger = logging.getLogger(__name__)


class NodeKind(Enum):
    """Variant tag of a :class:`CoverageNode`."""

    LEAF = "leaf"
    AGGREGATE = "aggregate"


@dataclass(eq=False)
class CoverageNode:
    """Coverage counts for a file or for a directory-like grouping of files."""

    kind: NodeKind
    uri: Uri
    statement: CoveredCount
    branch: CoveredCount | None = None
    function: CoveredCount | None = None
    index: int | None = None
    """Provider-assigned file index (leaves only)."""

    _provider: CoverageProvider | None = field(default=None, repr=False)
    _details: AsyncCell[list[CoverageDetail]] | None = field(default=None, repr=False)

    @classmethod
    def leaf(
        cls, record: FileCoverageRecord, index: int, provider: CoverageProvider
    ) -> CoverageNode:
        """Create a leaf from a provider record."""
        name = f"details[{record.uri}]"
        details: AsyncCell[list[CoverageDetail]]
        if record.details is not None:
            details = AsyncCell.ready(list(record.details), name=name)
        else:
            details = AsyncCell(name)
        return cls(
            kind=NodeKind.LEAF,
            uri=record.uri,
            statement=record.statement,
            branch=record.branch,
            function=record.function,
            index=index,
            _provider=provider,
            _details=details,
        )

    @classmethod
    def aggregate(
        cls,
        uri: Uri,
        statement: CoveredCount,
        branch: CoveredCount | None = None,
        function: CoveredCount | None = None,
    ) -> CoverageNode:
        """Create an aggregate from already summed counts."""
        return cls(
            kind=NodeKind.AGGREGATE,
            uri=uri,
            statement=statement,
            branch=branch,
            function=function,
        )

    @property
    def is_leaf(self) -> bool:
        return self.kind is NodeKind.LEAF

    @property
    def tpc(self) -> float:
        """Total percent covered (0.0-1.0) across all present categories.

        Covered units over total units, summed over statements and, when
        present, branches and functions (the Clover total coverage formula).
        A node with nothing measurable counts as fully covered.
        """
        numerator = self.statement.covered
        denominator = self.statement.total

        if self.branch is not None:
            numerator += self.branch.covered
            denominator += self.branch.total

        if self.function is not None:
            numerator += self.function.covered
            denominator += self.function.total

        return 1.0 if denominator == 0 else numerator / denominator

    async def details(self, token: CancellationToken | None = None) -> list[CoverageDetail]:
        """Return per-statement and per-declaration details for this file.

        Resolved through the provider at most once; concurrent callers share
        the pending request and a failed request is forgotten so the next
        call retries.

        Raises:
            UnsupportedDetailsError: If this node is an aggregate.
        """
        if (
            self.kind is not NodeKind.LEAF
            or self._details is None
            or self._provider is None
            or self.index is None
        ):
            msg = f"Node {self.uri} is not a provider-backed file and has no coverage details"
            raise UnsupportedDetailsError(msg)

        provider = self._provider
        index = self.index

        async def _resolve() -> list[CoverageDetail]:
            logger.debug("Resolving coverage details for %s (index %d)", self.uri, index)
            return await provider.resolve_file_coverage(index, token)

        return await self._details.get(_resolve)
