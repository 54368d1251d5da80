"""Exceptions raised by the coverage tree."""

from __future__ import annotations


class CoverageError(Exception):
    """Base class for covtree errors."""


class CoverageConstructionError(CoverageError):
    """The coverage tree could not be built from the provider's records."""


class DuplicateKeyError(CoverageConstructionError):
    """Two records decompose to the same tree key."""

    def __init__(self, key: list[str] | tuple[str, ...]) -> None:
        self.key = tuple(key)
        super().__init__(f"Duplicate coverage entry for {'/'.join(self.key)!r}")


class OperationCancelledError(CoverageError):
    """The operation was cancelled through its cancellation token."""


class UnsupportedDetailsError(CoverageError):
    """Detail resolution was requested on a node that has no provider data."""


class CoverageReportError(CoverageError):
    """A coverage report could not be read or parsed."""
