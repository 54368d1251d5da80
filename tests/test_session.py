"""Tests for covtree.coverage.session and covtree.coverage.nodes."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from covtree.adapters.coverage.static import StaticCoverageProvider
from covtree.coverage.nodes import CoverageNode, NodeKind
from covtree.coverage.session import CoverageSession, build_coverage_tree
from covtree.errors import DuplicateKeyError, OperationCancelledError, UnsupportedDetailsError
from covtree.models.coverage import (
    CoveredCount,
    FileCoverageRecord,
    Position,
    StatementCoverage,
)
from covtree.utils.cancellation import CancellationToken
from covtree.utils.uri import Uri

# ── Helpers ──────────────────────────────────────────────────────


def _record(
    path: str,
    statement: tuple[int, int],
    branch: tuple[int, int] | None = None,
    function: tuple[int, int] | None = None,
) -> FileCoverageRecord:
    return FileCoverageRecord(
        uri=Uri.file(path),
        statement=CoveredCount(*statement),
        branch=CoveredCount(*branch) if branch else None,
        function=CoveredCount(*function) if function else None,
    )


def _mock_provider(records: list[FileCoverageRecord]) -> AsyncMock:
    provider = AsyncMock()
    provider.name = "mock"
    provider.provide_file_coverage.return_value = records
    provider.resolve_file_coverage.return_value = [
        StatementCoverage(count=1, location=Position(0))
    ]
    return provider


_RECORDS = [
    _record("/a/b/x", (1, 2), branch=(1, 1)),
    _record("/a/b/y", (3, 4), function=(2, 3)),
    _record("/a/z", (0, 5)),
]


# ── Tree construction ────────────────────────────────────────────


class TestBuildCoverageTree:
    def test_directory_sums_children(self) -> None:
        tree = build_coverage_tree(_RECORDS[:2], _mock_provider([]))
        node = tree.find(["file", "", "", "a", "b"])
        assert node is not None
        assert node.kind is NodeKind.AGGREGATE
        assert node.statement == CoveredCount(4, 6)
        assert node.uri == Uri.file("/a/b")

    def test_single_child_directory_passes_counts_through(self) -> None:
        tree = build_coverage_tree(_RECORDS[:2], _mock_provider([]))
        parent = tree.find(["file", "", "", "a"])
        child = tree.find(["file", "", "", "a", "b"])
        assert parent is not None
        assert child is not None
        assert parent.statement == CoveredCount(4, 6)
        assert parent.branch == child.branch == CoveredCount(1, 1)
        assert parent.function == child.function == CoveredCount(2, 3)

    def test_optional_categories_present_if_any_descendant_has_them(self) -> None:
        tree = build_coverage_tree(_RECORDS, _mock_provider([]))
        node = tree.find(["file", "", "", "a"])
        assert node is not None
        assert node.statement == CoveredCount(4, 11)
        assert node.branch == CoveredCount(1, 1)
        assert node.function == CoveredCount(2, 3)

    def test_category_absent_when_no_descendant_has_it(self) -> None:
        tree = build_coverage_tree([_RECORDS[2]], _mock_provider([]))
        node = tree.find(["file", "", "", "a"])
        assert node is not None
        assert node.branch is None
        assert node.function is None

    def test_every_position_below_root_has_a_node(self) -> None:
        tree = build_coverage_tree(_RECORDS, _mock_provider([]))
        assert all(value is not None for _, value in tree.nodes())

    def test_leaves_keep_their_record(self) -> None:
        tree = build_coverage_tree(_RECORDS, _mock_provider([]))
        leaf = tree.find(["file", "", "", "a", "z"])
        assert leaf is not None
        assert leaf.is_leaf
        assert leaf.index == 2
        assert leaf.statement == CoveredCount(0, 5)

    def test_duplicate_uri_fails(self) -> None:
        records = [_record("/a/x", (1, 1)), _record("/a/x", (0, 1))]
        with pytest.raises(DuplicateKeyError):
            build_coverage_tree(records, _mock_provider([]))

    def test_empty_records(self) -> None:
        tree = build_coverage_tree([], _mock_provider([]))
        assert len(tree) == 0


# ── Session ──────────────────────────────────────────────────────


class TestCoverageSession:
    @pytest.mark.asyncio
    async def test_tree_built_once(self) -> None:
        provider = _mock_provider(_RECORDS)
        session = CoverageSession(provider)

        first = await session.get_all_files()
        second = await session.get_all_files()
        await session.get_uri(Uri.file("/a/b"))

        assert first is second
        assert provider.provide_file_coverage.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_build(self) -> None:
        provider = _mock_provider(_RECORDS)
        session = CoverageSession(provider)

        trees = await asyncio.gather(session.get_all_files(), session.get_all_files())

        assert trees[0] is trees[1]
        assert provider.provide_file_coverage.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_then_retry(self) -> None:
        provider = _mock_provider(_RECORDS)
        provider.provide_file_coverage.side_effect = [RuntimeError("report missing"), _RECORDS]
        session = CoverageSession(provider)

        with pytest.raises(RuntimeError, match="report missing"):
            await session.get_all_files()

        tree = await session.get_all_files()
        assert tree.find(["file", "", "", "a"]) is not None
        assert provider.provide_file_coverage.await_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_uri_fails_and_retries(self) -> None:
        records = [_record("/a/x", (1, 1)), _record("/a/x", (0, 1))]
        provider = _mock_provider(records)
        session = CoverageSession(provider)

        with pytest.raises(DuplicateKeyError):
            await session.get_all_files()
        with pytest.raises(DuplicateKeyError):
            await session.get_all_files()
        assert provider.provide_file_coverage.await_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_build_is_not_cached(self) -> None:
        provider = StaticCoverageProvider(_RECORDS)
        session = CoverageSession(provider)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await session.get_all_files(token)

        tree = await session.get_all_files()
        assert len(tree) > 0

    @pytest.mark.asyncio
    async def test_get_uri(self) -> None:
        session = CoverageSession(_mock_provider(_RECORDS))

        leaf = await session.get_uri(Uri.file("/a/b/x"))
        directory = await session.get_uri(Uri.file("/a/b"))
        missing = await session.get_uri(Uri.file("/nope"))

        assert leaf is not None
        assert leaf.is_leaf
        assert directory is not None
        assert directory.statement == CoveredCount(4, 6)
        assert missing is None

    @pytest.mark.asyncio
    async def test_get_files_in_provider_order(self) -> None:
        session = CoverageSession(_mock_provider(_RECORDS))
        files = await session.get_files()
        assert [f.uri for f in files] == [r.uri for r in _RECORDS]

    @pytest.mark.asyncio
    async def test_reset_during_pending_build_keeps_new_listing(self) -> None:
        old = _record("/old.py", (1, 1))
        new = _record("/new.py", (1, 2))
        started = asyncio.Event()
        release = asyncio.Event()

        async def provide(token: CancellationToken | None = None) -> list[FileCoverageRecord]:
            if not started.is_set():
                started.set()
                await release.wait()
                return [old]
            return [new]

        provider = _mock_provider([])
        provider.provide_file_coverage.side_effect = provide
        session = CoverageSession(provider)

        stale = asyncio.create_task(session.get_all_files())
        await started.wait()
        session.reset()
        fresh = await session.get_all_files()
        release.set()
        await stale

        files = await session.get_files()
        assert [f.uri for f in files] == [Uri.file("/new.py")]
        assert await session.get_all_files() is fresh
        assert await session.get_uri(Uri.file("/old.py")) is None

    @pytest.mark.asyncio
    async def test_reset_rebuilds(self) -> None:
        provider = _mock_provider(_RECORDS)
        session = CoverageSession(provider)
        await session.get_all_files()
        session.reset()
        await session.get_all_files()
        assert provider.provide_file_coverage.await_count == 2


# ── Nodes ────────────────────────────────────────────────────────


class TestCoverageNode:
    def test_tpc_combines_categories(self) -> None:
        node = CoverageNode.aggregate(
            Uri.file("/a"),
            CoveredCount(3, 4),
            branch=CoveredCount(1, 2),
            function=CoveredCount(2, 4),
        )
        assert node.tpc == pytest.approx(6 / 10)

    def test_tpc_zero_denominator_is_full(self) -> None:
        node = CoverageNode.aggregate(Uri.file("/a"), CoveredCount(0, 0))
        assert node.tpc == 1.0

    def test_tpc_statement_only(self) -> None:
        node = CoverageNode.aggregate(Uri.file("/a"), CoveredCount(1, 4))
        assert node.tpc == 0.25

    @pytest.mark.asyncio
    async def test_aggregate_has_no_details(self) -> None:
        node = CoverageNode.aggregate(Uri.file("/a"), CoveredCount(1, 4))
        with pytest.raises(UnsupportedDetailsError):
            await node.details()

    @pytest.mark.asyncio
    async def test_details_resolved_once_for_concurrent_callers(self) -> None:
        provider = _mock_provider(_RECORDS)
        session = CoverageSession(provider)
        leaf = await session.get_uri(Uri.file("/a/b/y"))
        assert leaf is not None

        results = await asyncio.gather(leaf.details(), leaf.details())
        await leaf.details()

        assert results[0] == results[1]
        provider.resolve_file_coverage.assert_awaited_once_with(1, None)

    @pytest.mark.asyncio
    async def test_details_failure_then_retry(self) -> None:
        provider = _mock_provider(_RECORDS)
        provider.resolve_file_coverage.side_effect = [
            RuntimeError("flaky"),
            [StatementCoverage(count=0, location=Position(4))],
        ]
        session = CoverageSession(provider)
        leaf = await session.get_uri(Uri.file("/a/z"))
        assert leaf is not None

        with pytest.raises(RuntimeError, match="flaky"):
            await leaf.details()
        details = await leaf.details()

        assert details == [StatementCoverage(count=0, location=Position(4))]
        assert provider.resolve_file_coverage.await_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_details_are_retried(self) -> None:
        stmt = StatementCoverage(count=1, location=Position(0))
        provider = StaticCoverageProvider(_RECORDS, details={0: [stmt]})
        session = CoverageSession(provider)
        leaf = await session.get_uri(Uri.file("/a/b/x"))
        assert leaf is not None
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await leaf.details(token)

        assert await leaf.details() == [stmt]

    @pytest.mark.asyncio
    async def test_leaf_without_provider_has_no_details(self) -> None:
        node = CoverageNode(
            kind=NodeKind.LEAF, uri=Uri.file("/a/x"), statement=CoveredCount(1, 1)
        )
        with pytest.raises(UnsupportedDetailsError):
            await node.details()

    @pytest.mark.asyncio
    async def test_pre_resolved_details_skip_provider(self) -> None:
        stmt = StatementCoverage(count=1, location=Position(0))
        record = FileCoverageRecord(
            uri=Uri.file("/a/x"), statement=CoveredCount(1, 1), details=(stmt,)
        )
        provider = _mock_provider([record])
        session = CoverageSession(provider)
        leaf = await session.get_uri(Uri.file("/a/x"))
        assert leaf is not None

        assert await leaf.details() == [stmt]
        provider.resolve_file_coverage.assert_not_awaited()
