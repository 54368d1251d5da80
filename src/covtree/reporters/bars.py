"""Coverage bars: the view model behind a node's percentage and bars.

The bars follow the active configuration. When the displayed-percent option
changes they re-render from the node they already hold; the coverage tree is
never rebuilt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from covtree.config import ConfigKeys
from covtree.coverage.metrics import calculate_displayed_stat, presentation_data
from covtree.reporters.formatting import (
    CoverageColor,
    branch_coverage_text,
    color_for_percent,
    display_percent,
    function_coverage_text,
    make_thresholds,
    statement_coverage_text,
    summary_lines,
)
from covtree.utils.events import Emitter

if TYPE_CHECKING:
    from collections.abc import Callable

    from covtree.config import ConfigurationChangeEvent, ConfigurationService
    from covtree.coverage.nodes import CoverageNode
    from covtree.utils.events import Subscription

logger = logging.getLogger(__name__)

_RENDER_KEYS = (
    ConfigKeys.COVERAGE_PERCENT,
    ConfigKeys.COMPACT,
    ConfigKeys.THRESHOLD_GOOD,
    ConfigKeys.THRESHOLD_WARNING,
)


class BarKind(Enum):
    """Which bar a hover or render refers to."""

    OVERALL = "overall"
    STATEMENT = "statement"
    FUNCTION = "function"
    BRANCH = "branch"


@dataclass(frozen=True, slots=True)
class Bar:
    """One rendered bar."""

    visible: bool
    width: float = 0.0
    """Filled fraction, 0.0-1.0."""

    color: CoverageColor | None = None


HIDDEN_BAR = Bar(visible=False)


@dataclass(frozen=True, slots=True)
class BarsView:
    """Everything needed to draw the bars for one node."""

    overall: str
    bars: dict[BarKind, Bar] = field(default_factory=dict)


_HOVER_TEXT: dict[BarKind, Callable[[CoverageNode], str | None]] = {
    BarKind.OVERALL: lambda node: "\n\n".join(summary_lines(node)),
    BarKind.STATEMENT: statement_coverage_text,
    BarKind.FUNCTION: function_coverage_text,
    BarKind.BRANCH: branch_coverage_text,
}


class CoverageBars:
    """Tracks the coverage shown for one element and re-renders it on config changes.

    Args:
        config: Live configuration to read the displayed metric and
            thresholds from.
        compact: Show only the overall bar instead of one bar per category.
            ``None`` follows ``display.compact`` from *config*, including
            later changes.
    """

    def __init__(self, config: ConfigurationService, *, compact: bool | None = None) -> None:
        self._config = config
        self._compact_override = compact
        self._coverage: CoverageNode | None = None
        self._view: BarsView | None = None
        self._subscription: Subscription | None = None
        self._change = Emitter[None]()

    @property
    def coverage(self) -> CoverageNode | None:
        return self._coverage

    @property
    def compact(self) -> bool:
        if self._compact_override is not None:
            return self._compact_override
        return bool(self._config.get(ConfigKeys.COMPACT))

    @property
    def view(self) -> BarsView | None:
        """The last rendered view, or ``None`` when nothing is shown."""
        return self._view

    def on_did_change(self, listener: Callable[[None], None]) -> Subscription:
        """Register *listener*; it fires whenever the displayed coverage changes."""
        return self._change.subscribe(listener)

    def set_coverage(self, coverage: CoverageNode | None) -> None:
        """Show *coverage*, or clear the bars when it is ``None``."""
        if coverage is None:
            if self._coverage is not None:
                self._clear()
                self._change.fire(None)
            return

        self._coverage = coverage
        self._render()
        if self._subscription is None:
            self._subscription = self._config.on_did_change(self._on_config_change)
        self._change.fire(None)

    def hover_text(self, kind: BarKind) -> str | None:
        """Return the hover text for *kind*, or ``None`` if the category is absent."""
        if self._coverage is None:
            return None
        return _HOVER_TEXT[kind](self._coverage)

    def dispose(self) -> None:
        self._clear()
        self._change.dispose()

    def _clear(self) -> None:
        self._coverage = None
        self._view = None
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

    def _on_config_change(self, event: ConfigurationChangeEvent) -> None:
        if self._coverage is None:
            return
        if any(event.affects_configuration(key) for key in _RENDER_KEYS):
            logger.debug("Re-rendering coverage bars for %s", self._coverage.uri)
            self._render()
            self._change.fire(None)

    def _render(self) -> None:
        node = self._coverage
        if node is None:
            return

        config = self._config.config
        thresholds = make_thresholds(config.thresholds.good, config.thresholds.warning)

        def bar(value: float | None) -> Bar:
            if value is None:
                return HIDDEN_BAR
            return Bar(visible=True, width=value, color=color_for_percent(value, thresholds))

        overall = calculate_displayed_stat(node, config.display.coverage_percent)
        bars = {BarKind.OVERALL: bar(overall)}
        if not self.compact:
            data = presentation_data(node, config.display.coverage_percent)
            bars[BarKind.STATEMENT] = bar(data.statement_percent)
            bars[BarKind.FUNCTION] = bar(data.function_percent)
            bars[BarKind.BRANCH] = bar(data.branch_percent)
        self._view = BarsView(overall=display_percent(overall), bars=bars)
