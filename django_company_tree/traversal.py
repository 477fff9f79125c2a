"""Bounded transitive-closure queries over the active company tree.

Both directions are computed in application code, one level at a time, so
the algorithm does not depend on recursive SQL support:

* descendants: breadth-first frontier expansion, one ``get_children`` call
  per level;
* ancestors: repeated parent lookups.

Corrupted data (cycles, absurdly deep chains, runaway fan-out) truncates the
result and logs a warning. Read paths never raise because of it.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Hashable, List

import django_company_tree.conf as conf
from django_company_tree.stores import factory
from django_company_tree.stores.base import CompanyNode, TreeStore, sort_key

logger = logging.getLogger(__name__)


class TraversalEngine:
    """Descendant and ancestor lookups bounded by depth and result size."""

    def __init__(
        self,
        store: TreeStore | None = None,
        *,
        max_depth: int | None = None,
        max_nodes: int | None = None,
    ) -> None:
        limits = conf.get_tree_limits()
        self._store = store or factory.get_store()
        self.max_depth = max_depth if max_depth is not None else limits.max_depth
        self.max_nodes = max_nodes if max_nodes is not None else limits.max_nodes

    @property
    def store(self) -> TreeStore:
        return self._store

    def get_children(self, node_id: Hashable) -> List[CompanyNode]:
        children = list(self._store.get_children([node_id]))
        children.sort(key=sort_key)
        return children

    def get_descendants(self, node_id: Hashable) -> List[CompanyNode]:
        """Return every active node below ``node_id``, ordered by level then name."""

        found: Dict[Hashable, CompanyNode] = {}
        visited = {node_id}
        frontier: List[Hashable] = [node_id]
        depth = 0

        while frontier:
            children = self._store.get_children(frontier)
            fresh = [child for child in children if child.id not in visited]

            if depth >= self.max_depth:
                if fresh:
                    logger.warning(
                        "Descendant traversal of %s truncated at depth %d (%d nodes beyond the cap)",
                        node_id,
                        self.max_depth,
                        len(fresh),
                    )
                break

            if len(fresh) < len(children):
                logger.warning(
                    "Cycle detected below %s at depth %d; skipping %d revisited nodes",
                    node_id,
                    depth + 1,
                    len(children) - len(fresh),
                )

            next_frontier: List[Hashable] = []
            for child in sorted(fresh, key=sort_key):
                if len(found) >= self.max_nodes:
                    logger.warning(
                        "Descendant traversal of %s truncated at %d nodes",
                        node_id,
                        self.max_nodes,
                    )
                    return _ordered(found)
                visited.add(child.id)
                found[child.id] = child
                next_frontier.append(child.id)

            frontier = next_frontier
            depth += 1

        return _ordered(found)

    def get_descendant_ids(self, node_id: Hashable) -> FrozenSet[Hashable]:
        return frozenset(node.id for node in self.get_descendants(node_id))

    def get_subtree_ids(self, node_id: Hashable) -> FrozenSet[Hashable]:
        """Return ``node_id`` together with all of its descendant ids."""

        return frozenset({node_id}) | self.get_descendant_ids(node_id)

    def get_ancestors(self, node_id: Hashable) -> List[CompanyNode]:
        """Return the active ancestors of ``node_id``, nearest first, ending at the root.

        The walk stops at a missing or inactive parent, since a soft-deleted
        company cuts its subtree off from the active tree.
        """

        node = self._store.get_by_id(node_id)
        if node is None:
            return []

        ancestors: List[CompanyNode] = []
        seen = {node.id}
        parent_id = node.parent_id

        while parent_id is not None:
            if len(ancestors) >= self.max_depth:
                logger.warning(
                    "Ancestor traversal of %s truncated at depth %d",
                    node_id,
                    self.max_depth,
                )
                break
            if parent_id in seen:
                logger.warning("Cycle detected above %s at %s", node_id, parent_id)
                break
            parent = self._store.get_by_id(parent_id)
            if parent is None or not parent.is_active:
                break
            ancestors.append(parent)
            seen.add(parent.id)
            parent_id = parent.parent_id

        return ancestors

    def is_descendant_of(self, candidate_id: Hashable, ancestor_id: Hashable) -> bool:
        return candidate_id in self.get_descendant_ids(ancestor_id)


def _ordered(found: Dict[Hashable, CompanyNode]) -> List[CompanyNode]:
    return sorted(found.values(), key=sort_key)
