"""Shared machinery for providers that read a JSON coverage report from disk."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from covtree.adapters.coverage.base import CoverageProvider
from covtree.errors import CoverageReportError
from covtree.utils.uri import Uri

if TYPE_CHECKING:
    from covtree.models.coverage import CoverageDetail, FileCoverageRecord
    from covtree.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Raised by parsers when an entry has the wrong shape or impossible counts
_MALFORMED_ENTRY_ERRORS = (TypeError, ValueError, AttributeError, KeyError)


def load_json_report(report_file: Path) -> dict[str, Any]:
    """Read *report_file* and return its top-level JSON object.

    Raises:
        CoverageReportError: If the file is missing, unreadable or not a JSON object.
    """
    try:
        with report_file.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        msg = f"Failed to read coverage report {report_file}: {e}"
        raise CoverageReportError(msg) from e

    if not isinstance(data, dict):
        msg = f"Coverage report {report_file} is not a JSON object"
        raise CoverageReportError(msg)
    return data


class JsonReportProvider(CoverageProvider):
    """Provider backed by a JSON report with one entry per source file.

    The report is read once, off the event loop. Summaries are produced for
    every entry up front; details are parsed only when a file asks for them.

    Args:
        report_file: Path to the report.
        root: Directory that relative source paths are resolved against.
            Defaults to the report's directory.
    """

    def __init__(self, report_file: Path, root: Path | None = None) -> None:
        self._report_file = Path(report_file)
        self._root = Path(root) if root is not None else self._report_file.parent
        self._entries: list[tuple[str, dict[str, Any]]] | None = None
        self._lock = asyncio.Lock()

    @property
    def report_file(self) -> Path:
        return self._report_file

    async def provide_file_coverage(
        self, token: CancellationToken | None = None
    ) -> list[FileCoverageRecord]:
        entries = await self._load_entries(token)
        records = await asyncio.to_thread(self._parse_records, entries)
        logger.info(
            "Loaded %d file(s) from %s report %s", len(records), self.name, self._report_file
        )
        return records

    async def resolve_file_coverage(
        self, file_index: int, token: CancellationToken | None = None
    ) -> list[CoverageDetail]:
        entries = await self._load_entries(token)
        if not 0 <= file_index < len(entries):
            msg = f"No file at index {file_index} in {self._report_file}"
            raise IndexError(msg)
        path, data = entries[file_index]
        if token is not None:
            token.raise_if_cancelled()
        return await asyncio.to_thread(self._parse_file_details, path, data)

    def uri_for(self, file_path: str) -> Uri:
        """Turn a path from the report into a ``file`` URI.

        Relative paths are resolved on disk, so call this off the event loop.
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = (self._root / path).resolve()
        return Uri.file(path)

    def _parse_records(
        self, entries: list[tuple[str, dict[str, Any]]]
    ) -> list[FileCoverageRecord]:
        records = []
        for path, data in entries:
            try:
                records.append(self.parse_record(self.uri_for(path), data))
            except _MALFORMED_ENTRY_ERRORS as e:
                msg = f"Malformed {self.name} entry for {path} in {self._report_file}: {e}"
                raise CoverageReportError(msg) from e
        return records

    def _parse_file_details(self, path: str, data: dict[str, Any]) -> list[CoverageDetail]:
        try:
            return self.parse_details(data)
        except _MALFORMED_ENTRY_ERRORS as e:
            msg = f"Malformed {self.name} details for {path} in {self._report_file}: {e}"
            raise CoverageReportError(msg) from e

    async def _load_entries(
        self, token: CancellationToken | None
    ) -> list[tuple[str, dict[str, Any]]]:
        if token is not None:
            token.raise_if_cancelled()
        async with self._lock:
            entries = self._entries
            if entries is None:
                data = await asyncio.to_thread(load_json_report, self._report_file)
                try:
                    entries = self.iter_entries(data)
                except _MALFORMED_ENTRY_ERRORS as e:
                    msg = f"Malformed {self.name} report {self._report_file}: {e}"
                    raise CoverageReportError(msg) from e
                self._entries = entries
        if token is not None:
            token.raise_if_cancelled()
        return entries

    @abstractmethod
    def iter_entries(self, data: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(source path, per-file data)`` pairs from the parsed report."""

    @abstractmethod
    def parse_record(self, uri: Uri, data: dict[str, Any]) -> FileCoverageRecord:
        """Build the summary record for one file."""

    @abstractmethod
    def parse_details(self, data: dict[str, Any]) -> list[CoverageDetail]:
        """Build the detail entries for one file."""
