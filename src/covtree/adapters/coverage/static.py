"""In-memory coverage provider."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covtree.adapters.coverage.base import CoverageProvider

if TYPE_CHECKING:
    from collections.abc import Sequence

    from covtree.models.coverage import CoverageDetail, FileCoverageRecord
    from covtree.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class StaticCoverageProvider(CoverageProvider):
    """Serves records and details that are already in memory.

    Args:
        records: Per-file summaries, in file-index order.
        details: Detail entries per file index. Missing indices resolve to an
            empty list.
    """

    def __init__(
        self,
        records: Sequence[FileCoverageRecord],
        details: dict[int, list[CoverageDetail]] | None = None,
    ) -> None:
        self._records = list(records)
        self._details = dict(details or {})

    @property
    def name(self) -> str:
        return "static"

    async def provide_file_coverage(
        self, token: CancellationToken | None = None
    ) -> list[FileCoverageRecord]:
        if token is not None:
            token.raise_if_cancelled()
        return list(self._records)

    async def resolve_file_coverage(
        self, file_index: int, token: CancellationToken | None = None
    ) -> list[CoverageDetail]:
        if token is not None:
            token.raise_if_cancelled()
        if not 0 <= file_index < len(self._records):
            msg = f"No coverage record at index {file_index}"
            raise IndexError(msg)
        return list(self._details.get(file_index, []))
