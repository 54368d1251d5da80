"""Provider contract for supplying coverage data to a session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covtree.models.coverage import CoverageDetail, FileCoverageRecord
    from covtree.utils.cancellation import CancellationToken


class CoverageProvider(ABC):
    """Source of coverage records for one test run.

    A provider returns the flat list of per-file summaries up front and
    resolves the fine-grained details of a single file on request, addressed
    by the file's position in that list.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'istanbul', 'coverage.py', 'static')."""

    @abstractmethod
    async def provide_file_coverage(
        self, token: CancellationToken | None = None
    ) -> list[FileCoverageRecord]:
        """Return the per-file coverage summaries for the run.

        Args:
            token: Cancellation signal; a cancelled call raises
                ``OperationCancelledError``.

        Returns:
            One record per file. The record's position is its file index.
        """

    @abstractmethod
    async def resolve_file_coverage(
        self, file_index: int, token: CancellationToken | None = None
    ) -> list[CoverageDetail]:
        """Return per-statement and per-declaration details for one file.

        Args:
            file_index: Position of the file in the list returned by
                :meth:`provide_file_coverage`.
            token: Cancellation signal.

        Returns:
            Detail entries for the file.
        """
