"""coverage.py provider for Python projects.

Reads the JSON report written by ``coverage json`` (or ``pytest --cov
--cov-report=json``). Branch counts are only present when the run measured
branches, and function counts only when the report carries the
``functions`` section added in coverage.py 7.6.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from covtree.adapters.coverage.report import JsonReportProvider
from covtree.models.coverage import (
    BranchCoverage,
    CoveredCount,
    DeclarationCoverage,
    FileCoverageRecord,
    Position,
    StatementCoverage,
)

if TYPE_CHECKING:
    from covtree.models.coverage import CoverageDetail
    from covtree.utils.uri import Uri

logger = logging.getLogger(__name__)

COVERAGE_PY_REPORT_PATHS = ("coverage.json",)

# Arc entries are [from_line, to_line] pairs
_ARC_LENGTH = 2

# coverage.py files module-level code under an unnamed "function"
_MODULE_SCOPE = ""


def looks_like_coverage_py(data: dict[str, Any]) -> bool:
    """Return True if *data* has the shape of a coverage.py JSON report."""
    return isinstance(data.get("meta"), dict) and isinstance(data.get("files"), dict)


class CoveragePyProvider(JsonReportProvider):
    """Provider for coverage.py JSON reports.

    Coverage.py JSON format::

        {
          "meta": {"version": "7.x.x", "branch_coverage": true, ...},
          "files": {
            "src/example.py": {
              "executed_lines": [1, 2, 5, 6],
              "missing_lines": [3, 4],
              "executed_branches": [[2, 3], [2, 5]],
              "missing_branches": [[5, -1]],
              "summary": {"covered_lines": 4, "num_statements": 6,
                          "num_branches": 3, "covered_branches": 2, ...},
              "functions": {"add": {"executed_lines": [...], ...}, ...}
            }
          },
          "totals": {...}
        }
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._branch_coverage = False

    @property
    def name(self) -> str:
        return "coverage.py"

    def iter_entries(self, data: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
        meta = data.get("meta", {})
        self._branch_coverage = bool(isinstance(meta, dict) and meta.get("branch_coverage"))

        entries = []
        files = data.get("files", {})
        for file_path, file_data in files.items():
            if not isinstance(file_data, dict):
                logger.warning("Skipping malformed coverage.py entry %s", file_path)
                continue
            entries.append((file_path, file_data))
        return entries

    # ── Summaries ────────────────────────────────────────────────

    def parse_record(self, uri: Uri, data: dict[str, Any]) -> FileCoverageRecord:
        summary = data.get("summary", {})
        executed = data.get("executed_lines", [])
        missing = data.get("missing_lines", [])
        statement = CoveredCount(
            covered=int(summary.get("covered_lines", len(executed))),
            total=int(summary.get("num_statements", len(executed) + len(missing))),
        )

        branch = None
        if self._branch_coverage or "num_branches" in summary:
            branch = CoveredCount(
                covered=int(summary.get("covered_branches", 0)),
                total=int(summary.get("num_branches", 0)),
            )

        function = None
        functions = _named_functions(data)
        if functions is not None:
            function = CoveredCount(
                covered=sum(1 for info in functions.values() if info.get("executed_lines")),
                total=len(functions),
            )

        return FileCoverageRecord(uri=uri, statement=statement, branch=branch, function=function)

    # ── Details ──────────────────────────────────────────────────

    def parse_details(self, data: dict[str, Any]) -> list[CoverageDetail]:
        arms = _parse_branch_arms(data)

        hits = {line: 1 for line in data.get("executed_lines", [])}
        hits.update({line: 0 for line in data.get("missing_lines", [])})

        details: list[CoverageDetail] = [
            StatementCoverage(
                count=count,
                location=Position(line=line - 1),
                branches=tuple(arms.get(line, ())),
            )
            for line, count in sorted(hits.items())
        ]
        details.extend(self._parse_declarations(data))
        return details

    def _parse_declarations(self, data: dict[str, Any]) -> list[DeclarationCoverage]:
        functions = _named_functions(data) or {}
        declarations = []
        for name, info in functions.items():
            executed = info.get("executed_lines", [])
            lines = [*executed, *info.get("missing_lines", [])]
            # The JSON report has no definition line; use the first body line
            first_line = min(lines) if lines else 1
            declarations.append(
                DeclarationCoverage(
                    name=name,
                    count=1 if executed else 0,
                    location=Position(line=first_line - 1),
                )
            )
        return declarations


# ── Helper functions ─────────────────────────────────────────────


def _named_functions(data: dict[str, Any]) -> dict[str, dict[str, Any]] | None:
    """Return the report's functions without the module-level pseudo entry."""
    functions = data.get("functions")
    if not isinstance(functions, dict):
        return None
    return {
        name: info
        for name, info in functions.items()
        if name != _MODULE_SCOPE and isinstance(info, dict)
    }


def _parse_branch_arms(data: dict[str, Any]) -> dict[int, list[BranchCoverage]]:
    """Group executed and missing arcs by their source line."""
    arms: dict[int, list[BranchCoverage]] = defaultdict(list)
    for key, count in (("executed_branches", 1), ("missing_branches", 0)):
        for arc in data.get(key, []):
            if not isinstance(arc, list) or len(arc) < _ARC_LENGTH:
                continue
            source, target = int(arc[0]), int(arc[1])
            label = "exit" if target < 0 else f"line {target}"
            location = Position(line=target - 1) if target > 0 else None
            arms[source].append(BranchCoverage(count=count, location=location, label=label))
    return arms
