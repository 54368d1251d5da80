"""Tests for covtree.reporters.bars."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from covtree.config import ConfigKeys, ConfigurationService, CovtreeConfig, DisplayConfig
from covtree.coverage.metrics import DisplayedCoveragePercent
from covtree.coverage.nodes import CoverageNode
from covtree.coverage.session import CoverageSession
from covtree.models.coverage import CoveredCount, FileCoverageRecord
from covtree.reporters.bars import HIDDEN_BAR, BarKind, CoverageBars
from covtree.reporters.formatting import CoverageColor
from covtree.utils.uri import Uri


def _service() -> ConfigurationService:
    return ConfigurationService(CovtreeConfig(root="/p"))


async def _node_and_provider() -> tuple[CoverageNode, AsyncMock]:
    provider = AsyncMock()
    provider.name = "mock"
    provider.provide_file_coverage.return_value = [
        FileCoverageRecord(
            uri=Uri.file("/src/app.py"),
            statement=CoveredCount(19, 20),
            branch=CoveredCount(7, 10),
        )
    ]
    node = await CoverageSession(provider).get_uri(Uri.file("/src/app.py"))
    assert node is not None
    return node, provider


class TestCoverageBars:
    @pytest.mark.asyncio
    async def test_renders_per_category(self) -> None:
        node, _ = await _node_and_provider()
        bars = CoverageBars(_service())
        bars.set_coverage(node)

        view = bars.view
        assert view is not None
        assert view.overall == "86.67%"
        assert view.bars[BarKind.STATEMENT].color is CoverageColor.GOOD
        assert view.bars[BarKind.BRANCH].color is CoverageColor.BAD
        assert view.bars[BarKind.FUNCTION] is HIDDEN_BAR

    @pytest.mark.asyncio
    async def test_compact_shows_only_overall(self) -> None:
        node, _ = await _node_and_provider()
        bars = CoverageBars(_service(), compact=True)
        bars.set_coverage(node)
        assert bars.view is not None
        assert list(bars.view.bars) == [BarKind.OVERALL]

    @pytest.mark.asyncio
    async def test_config_change_rerenders_without_provider(self) -> None:
        node, provider = await _node_and_provider()
        service = _service()
        bars = CoverageBars(service)
        changes: list[None] = []
        bars.on_did_change(changes.append)
        bars.set_coverage(node)

        service.update(ConfigKeys.COVERAGE_PERCENT, DisplayedCoveragePercent.MINIMUM)

        assert bars.view is not None
        assert bars.view.overall == "70.00%"
        assert len(changes) == 2
        assert provider.provide_file_coverage.await_count == 1
        provider.resolve_file_coverage.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_threshold_change_recolors(self) -> None:
        node, _ = await _node_and_provider()
        service = _service()
        bars = CoverageBars(service)
        bars.set_coverage(node)

        service.update(ConfigKeys.THRESHOLD_GOOD, 0.96)

        assert bars.view is not None
        assert bars.view.bars[BarKind.STATEMENT].color is CoverageColor.WARNING

    @pytest.mark.asyncio
    async def test_unrelated_change_is_ignored(self) -> None:
        node, _ = await _node_and_provider()
        service = _service()
        bars = CoverageBars(service)
        changes: list[None] = []
        bars.on_did_change(changes.append)
        bars.set_coverage(node)

        service.update(ConfigKeys.MAX_DEPTH, 3)

        assert len(changes) == 1

    @pytest.mark.asyncio
    async def test_clearing_unsubscribes(self) -> None:
        node, _ = await _node_and_provider()
        service = _service()
        bars = CoverageBars(service)
        changes: list[None] = []
        bars.on_did_change(changes.append)
        bars.set_coverage(node)

        bars.set_coverage(None)
        service.update(ConfigKeys.COVERAGE_PERCENT, DisplayedCoveragePercent.STATEMENT)

        assert bars.view is None
        assert len(changes) == 2

    @pytest.mark.asyncio
    async def test_hover_text(self) -> None:
        node, _ = await _node_and_provider()
        bars = CoverageBars(_service())
        assert bars.hover_text(BarKind.OVERALL) is None
        bars.set_coverage(node)

        assert bars.hover_text(BarKind.BRANCH) == "70.00% branch coverage"
        assert bars.hover_text(BarKind.FUNCTION) is None
        assert bars.hover_text(BarKind.OVERALL) == (
            "95.00% statement coverage\n\n70.00% branch coverage"
        )

    @pytest.mark.asyncio
    async def test_compact_follows_config(self) -> None:
        node, _ = await _node_and_provider()
        service = ConfigurationService(
            CovtreeConfig(root="/p", display=DisplayConfig(compact=True))
        )
        bars = CoverageBars(service)
        bars.set_coverage(node)
        assert bars.view is not None
        assert list(bars.view.bars) == [BarKind.OVERALL]

        service.update(ConfigKeys.COMPACT, False)

        assert bars.compact is False
        assert bars.view is not None
        assert BarKind.BRANCH in bars.view.bars

    @pytest.mark.asyncio
    async def test_explicit_compact_ignores_config(self) -> None:
        node, _ = await _node_and_provider()
        service = _service()
        bars = CoverageBars(service, compact=False)
        bars.set_coverage(node)

        service.update(ConfigKeys.COMPACT, True)

        assert bars.compact is False
        assert bars.view is not None
        assert BarKind.BRANCH in bars.view.bars
