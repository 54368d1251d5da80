"""Istanbul/c8 coverage provider for JavaScript/TypeScript reports.

Reads the ``coverage-final.json`` written by Istanbul, nyc, c8, Vitest and
Jest. Istanbul reports statements, branches and functions for every file, so
all three categories are always present.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from covtree.adapters.coverage.report import JsonReportProvider
from covtree.models.coverage import (
    BranchCoverage,
    CoveredCount,
    DeclarationCoverage,
    FileCoverageRecord,
    Position,
    Range,
    StatementCoverage,
)

if TYPE_CHECKING:
    from covtree.models.coverage import CoverageDetail
    from covtree.utils.uri import Uri

logger = logging.getLogger(__name__)

# Istanbul standard output locations, relative to the project root
ISTANBUL_REPORT_PATHS = (
    "coverage/coverage-final.json",
    ".nyc_output/coverage-final.json",
)


def looks_like_istanbul(data: dict[str, Any]) -> bool:
    """Return True if *data* has the shape of an Istanbul file map."""
    return any(
        isinstance(entry, dict) and "statementMap" in entry and "s" in entry
        for entry in data.values()
    )


class IstanbulCoverageProvider(JsonReportProvider):
    """Provider for Istanbul JSON coverage.

    Istanbul format::

        {
          "/path/to/file.ts": {
            "path": "/path/to/file.ts",
            "statementMap": { "0": {"start": {...}, "end": {...}}, ... },
            "fnMap": { "0": {"name": "add", "loc": {...}}, ... },
            "branchMap": { "0": {"loc": {...}, "locations": [...]}, ... },
            "s": { "0": 1, "1": 0, ... },   // statement hit counts
            "f": { "0": 1, ... },           // function hit counts
            "b": { "0": [1, 0], ... }       // hit count per branch arm
          }
        }
    """

    @property
    def name(self) -> str:
        return "istanbul"

    def iter_entries(self, data: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
        entries = []
        for key, file_data in data.items():
            if not isinstance(file_data, dict):
                logger.warning("Skipping malformed Istanbul entry %s", key)
                continue
            entries.append((str(file_data.get("path", key)), file_data))
        return entries

    # ── Summaries ────────────────────────────────────────────────

    def parse_record(self, uri: Uri, data: dict[str, Any]) -> FileCoverageRecord:
        statement_counts = data.get("s", {})
        statement = CoveredCount(
            covered=sum(1 for count in statement_counts.values() if count > 0),
            total=len(statement_counts),
        )

        branch = None
        if "b" in data:
            arms = [count for counts in data["b"].values() for count in counts]
            branch = CoveredCount(covered=sum(1 for c in arms if c > 0), total=len(arms))

        function = None
        if "f" in data:
            fn_counts = data["f"]
            function = CoveredCount(
                covered=sum(1 for count in fn_counts.values() if count > 0),
                total=len(fn_counts),
            )

        return FileCoverageRecord(uri=uri, statement=statement, branch=branch, function=function)

    # ── Details ──────────────────────────────────────────────────

    def parse_details(self, data: dict[str, Any]) -> list[CoverageDetail]:
        statements = self._attach_branches(data, self._parse_statements(data))
        details: list[CoverageDetail] = sorted(statements, key=lambda s: _start_line(s.location))
        details.extend(self._parse_declarations(data))
        return details

    def _parse_statements(self, data: dict[str, Any]) -> list[StatementCoverage]:
        statement_map = data.get("statementMap", {})
        statements = []
        for stmt_id, count in data.get("s", {}).items():
            location = _parse_range(statement_map.get(stmt_id, {}))
            if location is not None:
                statements.append(StatementCoverage(count=count, location=location))
        return statements

    def _attach_branches(
        self, data: dict[str, Any], statements: list[StatementCoverage]
    ) -> list[StatementCoverage]:
        """Attach branch arms to the first statement on the branch's line."""
        first_on_line: dict[int, int] = {}
        for i, statement in enumerate(statements):
            first_on_line.setdefault(_start_line(statement.location), i)

        branch_map = data.get("branchMap", {})
        for branch_id, counts in data.get("b", {}).items():
            info = branch_map.get(branch_id, {})
            location = _parse_range(info.get("loc", {}))
            if not isinstance(counts, list) or location is None:
                continue

            arm_locations = info.get("locations", [])
            arms = tuple(
                BranchCoverage(
                    count=count,
                    location=_parse_range(arm_locations[i]) if i < len(arm_locations) else None,
                    label=f"{info.get('type', 'branch')} #{i}",
                )
                for i, count in enumerate(counts)
            )

            target = first_on_line.get(location.start.line)
            if target is None:
                # Branch without a statement on its line (e.g. default args)
                first_on_line[location.start.line] = len(statements)
                statements.append(
                    StatementCoverage(count=sum(counts), location=location, branches=arms)
                )
            else:
                statement = statements[target]
                statements[target] = replace(statement, branches=statement.branches + arms)
        return statements

    def _parse_declarations(self, data: dict[str, Any]) -> list[DeclarationCoverage]:
        fn_map = data.get("fnMap", {})
        declarations = []
        for fn_id, count in data.get("f", {}).items():
            info = fn_map.get(fn_id, {})
            location = _parse_range(info.get("loc", {})) or Range(Position(0), Position(0))
            declarations.append(
                DeclarationCoverage(
                    name=info.get("name", f"anonymous_{fn_id}"),
                    count=count,
                    location=location,
                )
            )
        return declarations


# ── Helper functions ─────────────────────────────────────────────


def _parse_position(raw: dict[str, Any]) -> Position | None:
    """Convert an Istanbul ``{line, column}`` (1-based lines) to a zero-based position."""
    line = raw.get("line")
    if line is None:
        return None
    column = raw.get("column")
    return Position(line=max(int(line) - 1, 0), character=int(column or 0))


def _parse_range(raw: dict[str, Any]) -> Range | None:
    start = _parse_position(raw.get("start", {}))
    if start is None:
        return None
    end = _parse_position(raw.get("end", {})) or start
    return Range(start=start, end=end)


def _start_line(location: Position | Range) -> int:
    return location.start.line if isinstance(location, Range) else location.line
