"""Invariant checks run before any hierarchy mutation is persisted."""

from __future__ import annotations

from typing import Hashable

from django_company_tree.exceptions import (
    CycleDetected,
    DuplicateCode,
    MultipleRootsNotAllowed,
    ParentNotFound,
)
from django_company_tree.stores.base import CompanyNode, TreeStore
from django_company_tree.traversal import TraversalEngine


class HierarchyValidator:
    """Gatekeeper for single-root, acyclicity and code uniqueness.

    The validator only rejects ambiguous or invalid states. Resolving them
    (for example demoting an old holding) is the caller's decision.
    """

    def __init__(self, store: TreeStore, traversal: TraversalEngine) -> None:
        self._store = store
        self._traversal = traversal

    def validate_code(self, code: str, *, exclude_id: Hashable | None = None) -> None:
        existing = self._store.get_by_code(code)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateCode(code)

    def validate_create(self, code: str, parent_id: Hashable | None) -> int:
        """Check a new node and return the level it must be stored with."""

        self.validate_code(code)
        if parent_id is None:
            self._ensure_root_slot_free(exclude_id=None)
            return 0
        parent = self._resolve_parent(parent_id)
        return parent.level + 1

    def validate_reparent(self, node: CompanyNode, new_parent_id: Hashable | None) -> None:
        if new_parent_id is None:
            self._ensure_root_slot_free(exclude_id=node.id)
            return

        if new_parent_id == node.id:
            raise CycleDetected(node.id, new_parent_id)
        self._resolve_parent(new_parent_id)
        if self._traversal.is_descendant_of(new_parent_id, node.id):
            raise CycleDetected(node.id, new_parent_id)
        if self._in_parent_chain(node.id, new_parent_id):
            raise CycleDetected(node.id, new_parent_id)

    def validate_reactivation(self, node: CompanyNode) -> None:
        self.validate_code(node.code, exclude_id=node.id)
        if node.parent_id is None:
            self._ensure_root_slot_free(exclude_id=node.id)
        else:
            self._resolve_parent(node.parent_id)

    def _ensure_root_slot_free(self, *, exclude_id: Hashable | None) -> None:
        if self._store.count_active_roots() == 0:
            return
        root = self._store.get_active_root()
        if root is not None and root.id != exclude_id:
            raise MultipleRootsNotAllowed(root.id)

    def _in_parent_chain(self, node_id: Hashable, start_id: Hashable) -> bool:
        # Walks raw parent pointers, inactive rows included, so a company
        # cannot be hung below a child that was orphaned by a soft delete.
        seen = set()
        current = self._store.get_by_id(start_id)
        while current is not None and len(seen) < self._traversal.max_nodes:
            if current.id == node_id:
                return True
            if current.id in seen or current.parent_id is None:
                return False
            seen.add(current.id)
            current = self._store.get_by_id(current.parent_id)
        return False

    def _resolve_parent(self, parent_id: Hashable) -> CompanyNode:
        parent = self._store.get_by_id(parent_id)
        if parent is None or not parent.is_active:
            raise ParentNotFound(parent_id)
        return parent
