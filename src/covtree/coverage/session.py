"""Coverage session: builds and caches the aggregated coverage tree for a run."""

from __future__ import annotations

import logging
from operator import attrgetter
from typing import TYPE_CHECKING

from covtree.coverage.nodes import CoverageNode
from covtree.models.coverage import CoveredCount
from covtree.utils.async_cache import AsyncCell
from covtree.utils.cancellation import run_with_cancellation
from covtree.utils.prefix_tree import PrefixTree
from covtree.utils.uri import tree_path_for_uri, tree_path_to_uri

if TYPE_CHECKING:
    from covtree.adapters.coverage.base import CoverageProvider
    from covtree.models.coverage import FileCoverageRecord
    from covtree.utils.cancellation import CancellationToken
    from covtree.utils.uri import Uri

logger = logging.getLogger(__name__)

CoverageTree = PrefixTree[CoverageNode]


class CoverageSession:
    """Exposes coverage information for one test run.

    The tree is built from the provider the first time any accessor is
    called and reused afterwards. A failed build is forgotten, so the next
    accessor call asks the provider again.
    """

    def __init__(self, provider: CoverageProvider) -> None:
        self._provider = provider
        self._tree: AsyncCell[CoverageTree] = AsyncCell(f"coverage-tree[{provider.name}]")

    @property
    def provider(self) -> CoverageProvider:
        return self._provider

    async def get_all_files(self, token: CancellationToken | None = None) -> CoverageTree:
        """Return the aggregated coverage tree, building it on first use."""
        return await self._tree.get(lambda: self._create_file_coverage(token))

    async def get_uri(
        self, uri: Uri, token: CancellationToken | None = None
    ) -> CoverageNode | None:
        """Return the node for *uri* (file or directory), or ``None``."""
        tree = await self.get_all_files(token)
        return tree.find(tree_path_for_uri(uri))

    async def get_files(self, token: CancellationToken | None = None) -> list[CoverageNode]:
        """Return every file node in provider order."""
        tree = await self.get_all_files(token)
        return sorted((node for node in tree.values() if node.is_leaf), key=attrgetter("index"))

    def reset(self) -> None:
        """Drop the cached tree so the next accessor call rebuilds it."""
        self._tree.clear()

    async def _create_file_coverage(self, token: CancellationToken | None) -> CoverageTree:
        records = await run_with_cancellation(self._provider.provide_file_coverage(token), token)
        tree = build_coverage_tree(records, self._provider)
        logger.info(
            "Built coverage tree from %d file(s) (%d node(s))",
            len(records),
            len(tree),
        )
        return tree


def build_coverage_tree(
    records: list[FileCoverageRecord], provider: CoverageProvider
) -> CoverageTree:
    """Insert *records* as leaves and fill every other position with an aggregate.

    Raises:
        DuplicateKeyError: If two records share the same URI.
    """
    tree: CoverageTree = PrefixTree()

    # 1. Leaves
    for index, record in enumerate(records):
        tree.insert(tree_path_for_uri(record.uri), CoverageNode.leaf(record, index, provider))

    # 2. Aggregates, children before parents
    for position in tree.post_order():
        if tree.value_at(position) is not None:
            continue

        statement = CoveredCount.empty()
        branch: CoveredCount | None = None
        function: CoveredCount | None = None
        for child_position in tree.children_of(position):
            child = tree.value_at(child_position)
            if child is None:
                continue
            statement += child.statement
            if child.branch is not None:
                branch = (branch or CoveredCount.empty()) + child.branch
            if child.function is not None:
                function = (function or CoveredCount.empty()) + child.function

        uri = tree_path_to_uri(tree.path_of(position))
        tree.set_value(position, CoverageNode.aggregate(uri, statement, branch, function))

    return tree
