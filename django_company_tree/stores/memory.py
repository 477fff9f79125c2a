"""In-memory store used for tests and database-free embedding."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Mapping, Sequence

from ..exceptions import CompanyNotFound, DuplicateCode, MultipleRootsNotAllowed
from .base import CompanyNode, TreeStore, sort_key


class InMemoryTreeStore(TreeStore):
    """Dictionary-backed store with snapshot rollback for ``atomic()``."""

    def __init__(self, nodes: Iterable[CompanyNode] = ()) -> None:
        self._nodes: Dict[Hashable, CompanyNode] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._pending: List[Callable[[], Any]] = []
        for node in nodes:
            self._nodes[node.id] = replace(node)
        # Lets tests count how many frontier queries a traversal issued.
        self.children_queries = 0

    def create(self, node: CompanyNode) -> CompanyNode:
        with self._lock:
            self._check_constraints(node)
            self._nodes[node.id] = replace(node)
            return replace(node)

    def update(self, node: CompanyNode) -> CompanyNode:
        with self._lock:
            if node.id not in self._nodes:
                raise CompanyNotFound(node.id)
            self._check_constraints(node)
            self._nodes[node.id] = replace(node)
            return replace(node)

    def _check_constraints(self, node: CompanyNode) -> None:
        # Same guarantees as the unique constraints on the Company table.
        if not node.is_active:
            return
        others = [other for other in self._nodes.values() if other.is_active and other.id != node.id]
        if any(other.code == node.code for other in others):
            raise DuplicateCode(node.code)
        if node.parent_id is None:
            for other in others:
                if other.parent_id is None:
                    raise MultipleRootsNotAllowed(other.id)

    def get_by_id(self, node_id: Hashable) -> CompanyNode | None:
        node = self._nodes.get(node_id)
        return replace(node) if node is not None else None

    def get_by_code(self, code: str, *, include_inactive: bool = False) -> CompanyNode | None:
        matches = [
            node
            for node in self._nodes.values()
            if node.code == code and (include_inactive or node.is_active)
        ]
        if not matches:
            return None
        # Prefer the active holder of a code over soft-deleted ones.
        matches.sort(key=lambda node: not node.is_active)
        return replace(matches[0])

    def get_many(self, node_ids: Iterable[Hashable]) -> Mapping[Hashable, CompanyNode]:
        return {
            node_id: replace(self._nodes[node_id])
            for node_id in node_ids
            if node_id in self._nodes
        }

    def get_children(self, parent_ids: Iterable[Hashable]) -> Sequence[CompanyNode]:
        self.children_queries += 1
        wanted = set(parent_ids)
        return [
            replace(node)
            for node in self._nodes.values()
            if node.is_active and node.parent_id in wanted
        ]

    def count_active_roots(self) -> int:
        return sum(1 for node in self._nodes.values() if node.is_active and node.parent_id is None)

    def get_active_root(self) -> CompanyNode | None:
        roots = [node for node in self._nodes.values() if node.is_active and node.parent_id is None]
        if not roots:
            return None
        roots.sort(key=sort_key)
        return replace(roots[0])

    def list_active(self) -> Sequence[CompanyNode]:
        nodes = [replace(node) for node in self._nodes.values() if node.is_active]
        nodes.sort(key=sort_key)
        return nodes

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = {node_id: replace(node) for node_id, node in self._nodes.items()}
            pending_mark = len(self._pending)
            self._depth += 1
            try:
                yield
            except BaseException:
                self._nodes = snapshot
                del self._pending[pending_mark:]
                raise
            finally:
                self._depth -= 1

            if self._depth == 0:
                callbacks, self._pending = self._pending, []
                for callback in callbacks:
                    callback()

    def on_commit(self, callback: Callable[[], Any]) -> None:
        with self._lock:
            if self._depth == 0:
                callback()
            else:
                self._pending.append(callback)

    # ----------------------------------------------------------------- helpers
    def all_nodes(self) -> Sequence[CompanyNode]:
        """Return every stored node, including inactive ones."""

        return [replace(node) for node in self._nodes.values()]
