"""Hierarchy mutations: validate, persist and repair as one unit of work."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Iterable, Iterator, List

import django_company_tree.conf as conf
from django_company_tree.conf import TreeLimits
from django_company_tree.exceptions import (
    CompanyNotFound,
    HierarchyError,
    InactiveCompany,
    MultipleRootsNotAllowed,
    ParentNotFound,
    RootDeactivationNotAllowed,
)
from django_company_tree.levels import LevelConsistencyEngine, RepairReport
from django_company_tree.signals import hierarchy_changed
from django_company_tree.stores import factory
from django_company_tree.stores.base import CompanyNode, TreeStore
from django_company_tree.traversal import TraversalEngine
from django_company_tree.validation import HierarchyValidator

logger = logging.getLogger(__name__)

# Serialises mutations inside one process; the store's atomic() block covers
# concurrent writers in other processes.
_MUTATION_LOCK = threading.RLock()


class HierarchyService:
    """Entry point for every change to the company tree.

    Each mutation runs inside ``store.atomic()``. If validation, persistence
    or level repair fails, the whole mutation is rolled back and the error
    propagates to the caller.
    """

    def __init__(self, store: TreeStore | None = None, *, limits: TreeLimits | None = None) -> None:
        limits = limits or conf.get_tree_limits()
        self._store = store or factory.get_store()
        self.traversal = TraversalEngine(
            self._store,
            max_depth=limits.max_depth,
            max_nodes=limits.max_nodes,
        )
        self.validator = HierarchyValidator(self._store, self.traversal)
        self.levels = LevelConsistencyEngine(
            self._store,
            self.traversal,
            max_depth=limits.max_depth,
            max_passes=limits.max_repair_passes,
        )

    @property
    def store(self) -> TreeStore:
        return self._store

    # ------------------------------------------------------------------ reads
    def get_node(self, node_id: Hashable) -> CompanyNode:
        node = self._store.get_by_id(node_id)
        if node is None:
            raise CompanyNotFound(node_id)
        return node

    def get_node_by_code(self, code: str, *, include_inactive: bool = False) -> CompanyNode | None:
        return self._store.get_by_code(code, include_inactive=include_inactive)

    def get_root(self) -> CompanyNode | None:
        return self._store.get_active_root()

    def count_active_roots(self) -> int:
        return self._store.count_active_roots()

    # -------------------------------------------------------------- mutations
    def create_node(
        self,
        code: str,
        name: str,
        parent_id: Hashable | None = None,
        *,
        description: str = "",
    ) -> CompanyNode:
        code = _clean_code(code)
        with self._mutation():
            level = self.validator.validate_create(code, parent_id)
            node = CompanyNode(code=code, name=name, description=description, level=0)
            level, _ = self.levels.clamp(node.id, level)
            if parent_id is not None:
                node.parent_id = self._store.get_by_id(parent_id).id
            node.level = level
            created = self._store.create(node)
            self._notify("create", [created.id])

        logger.info(
            "Created company %s (%s) under %s at level %d",
            created.id,
            created.code,
            created.parent_id,
            created.level,
        )
        return created

    def reparent_node(
        self,
        node_id: Hashable,
        new_parent_id: Hashable | None,
        *,
        demote_existing_root: bool = False,
    ) -> RepairReport:
        """Move ``node_id`` under ``new_parent_id`` and repair levels below it.

        Passing ``None`` promotes the company to holding. That is rejected
        while another active holding exists, unless ``demote_existing_root``
        is set, in which case the old holding is moved under the new one.
        """

        with self._mutation():
            node = self._get_active(node_id)

            parent = None
            if new_parent_id is not None:
                parent = self._store.get_by_id(new_parent_id)
                if parent is None or not parent.is_active:
                    raise ParentNotFound(new_parent_id)

            target_id = parent.id if parent is not None else None
            if node.parent_id == target_id:
                logger.debug("Company %s already sits under %s; nothing to do", node.id, target_id)
                return RepairReport(node_id=node.id, skipped=True)

            if parent is None:
                report = self._promote(node, demote_existing_root)
            else:
                self.validator.validate_reparent(node, parent.id)
                old_parent_id = node.parent_id
                node.parent_id = parent.id
                node.level = self.levels.expected_level(node.id, parent)
                self._store.update(node)
                report = self.levels.repair(node.id)
                logger.info(
                    "Moved company %s (%s) from %s to %s; %d levels corrected in %d passes",
                    node.id,
                    node.code,
                    old_parent_id,
                    parent.id,
                    report.corrections,
                    report.passes,
                )

            self._notify("reparent", [node.id])
        return report

    def update_node(
        self,
        node_id: Hashable,
        *,
        name: str | None = None,
        code: str | None = None,
        description: str | None = None,
    ) -> CompanyNode:
        with self._mutation():
            node = self._get_active(node_id)
            if code is not None:
                code = _clean_code(code)
                if code != node.code:
                    self.validator.validate_code(code, exclude_id=node.id)
                    node.code = code
            if name is not None:
                node.name = name
            if description is not None:
                node.description = description
            self._store.update(node)
            self._notify("update", [node.id])

        logger.info("Updated company %s (%s)", node.id, node.code)
        return node

    def deactivate_node(self, node_id: Hashable, *, cascade: bool = False) -> List[Hashable]:
        """Soft-delete a company, and its active subtree when ``cascade`` is set.

        Without ``cascade`` the active children stay in place but drop out of
        every traversal until the company is reactivated.
        Returns the ids that were deactivated.
        """

        with self._mutation():
            node = self._get_active(node_id)
            if node.parent_id is None:
                raise RootDeactivationNotAllowed(node.id)

            targets = [node]
            if cascade:
                targets.extend(self.traversal.get_descendants(node.id))
            elif self._store.get_children([node.id]):
                logger.warning(
                    "Deactivating %s (%s) detaches its active children from the tree",
                    node.id,
                    node.code,
                )

            for target in targets:
                target.is_active = False
                self._store.update(target)
            ids = [target.id for target in targets]
            self._notify("deactivate", ids)

        logger.info("Deactivated %d companies starting at %s (%s)", len(ids), node.id, node.code)
        return ids

    def reactivate_node(self, node_id: Hashable) -> CompanyNode:
        with self._mutation():
            node = self._store.get_by_id(node_id)
            if node is None:
                raise CompanyNotFound(node_id)
            if node.is_active:
                return node

            self.validator.validate_reactivation(node)
            parent = self._store.get_by_id(node.parent_id) if node.parent_id is not None else None
            node.level = self.levels.expected_level(node.id, parent)
            node.is_active = True
            self._store.update(node)
            if parent is None:
                self.levels.repair_below(node.id)
            else:
                self.levels.repair(node.id)
            self._notify("reactivate", [node.id])

        logger.info("Reactivated company %s (%s) at level %d", node.id, node.code, node.level)
        return node

    def recompute_levels(self) -> RepairReport:
        """Re-derive every level in the active tree."""

        with self._mutation():
            report = self.levels.recompute_all()
            self._notify("recompute", [])
        logger.info(
            "Recomputed company levels: %d corrections in %d passes",
            report.corrections,
            report.passes,
        )
        return report

    # -------------------------------------------------------------- internals
    def _promote(self, node: CompanyNode, demote_existing_root: bool) -> RepairReport:
        root = self._store.get_active_root()
        if root is not None and root.id != node.id and not demote_existing_root:
            raise MultipleRootsNotAllowed(root.id)

        # The old holding leaves the root slot first; only one active root
        # may exist at any point, even inside the transaction.
        if root is not None and root.id != node.id:
            root.parent_id = node.id
            root.level = 1
            self._store.update(root)
            logger.info("Demoted holding %s (%s) under %s", root.id, root.code, node.id)

        node.parent_id = None
        node.level = 0
        self._store.update(node)

        report = self.levels.repair_below(node.id)
        logger.info("Promoted company %s (%s) to holding", node.id, node.code)
        return report

    def _get_active(self, node_id: Hashable) -> CompanyNode:
        node = self._store.get_by_id(node_id)
        if node is None:
            raise CompanyNotFound(node_id)
        if not node.is_active:
            raise InactiveCompany(node.id)
        return node

    def _notify(self, action: str, node_ids: Iterable[Hashable]) -> None:
        ids = list(node_ids)
        self._store.on_commit(
            lambda: hierarchy_changed.send(sender=type(self), action=action, node_ids=ids)
        )

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        with _MUTATION_LOCK, self._store.atomic():
            yield


def _clean_code(code: str | None) -> str:
    code = (code or "").strip()
    if not code:
        raise HierarchyError("Company code must not be empty.")
    return code
