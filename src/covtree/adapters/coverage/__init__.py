"""Coverage providers that feed a coverage session."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from covtree.adapters.coverage.base import CoverageProvider
from covtree.adapters.coverage.coverage_py import (
    COVERAGE_PY_REPORT_PATHS,
    CoveragePyProvider,
    looks_like_coverage_py,
)
from covtree.adapters.coverage.istanbul import (
    ISTANBUL_REPORT_PATHS,
    IstanbulCoverageProvider,
    looks_like_istanbul,
)
from covtree.adapters.coverage.report import JsonReportProvider, load_json_report
from covtree.adapters.coverage.static import StaticCoverageProvider
from covtree.errors import CoverageReportError

logger = logging.getLogger(__name__)

_PROVIDERS: dict[str, type[JsonReportProvider]] = {
    "istanbul": IstanbulCoverageProvider,
    "coverage.py": CoveragePyProvider,
}


def find_report(project_root: Path) -> Path | None:
    """Return the first standard coverage report found under *project_root*."""
    for rel in (*ISTANBUL_REPORT_PATHS, *COVERAGE_PY_REPORT_PATHS):
        candidate = project_root / rel
        if candidate.is_file():
            return candidate
    return None


def detect_provider(
    report_file: Path, *, report_format: str = "auto", root: Path | None = None
) -> JsonReportProvider:
    """Create a provider for *report_file*.

    With ``report_format="auto"`` the report is peeked at to tell Istanbul
    and coverage.py output apart.

    Raises:
        CoverageReportError: If the format is unknown or cannot be detected.
    """
    if report_format != "auto":
        provider_cls = _PROVIDERS.get(report_format)
        if provider_cls is None:
            msg = f"Unknown coverage report format: {report_format}"
            raise CoverageReportError(msg)
        return provider_cls(report_file, root)

    data = load_json_report(report_file)
    if looks_like_coverage_py(data):
        logger.debug("Detected coverage.py report: %s", report_file)
        return CoveragePyProvider(report_file, root)
    if looks_like_istanbul(data) or not data:
        logger.debug("Detected Istanbul report: %s", report_file)
        return IstanbulCoverageProvider(report_file, root)

    preview = json.dumps(sorted(data)[:3])
    msg = f"Cannot detect coverage report format of {report_file} (top-level keys: {preview})"
    raise CoverageReportError(msg)


__all__ = [
    "CoveragePyProvider",
    "CoverageProvider",
    "IstanbulCoverageProvider",
    "JsonReportProvider",
    "StaticCoverageProvider",
    "detect_provider",
    "find_report",
]
