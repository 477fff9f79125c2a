"""Level consistency repair.

``level`` is derived data: the number of parent hops to the root, clamped at
the configured maximum depth. After a company changes parent, its own level
and the level of every descendant must be re-derived.

Repair is a bounded fixed-point iteration rather than one top-down sweep.
Descendants come back ordered by their *stored* level, which may be stale, so
a child can be visited before its parent is corrected. Each pass re-reads the
subtree and fixes what is wrong; the loop ends at the first pass that changes
nothing. Every single correction is valid for the data seen when it was made,
so stopping between passes never leaves a half-written row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Tuple

import django_company_tree.conf as conf
from django_company_tree.exceptions import (
    CompanyNotFound,
    ConsistencyRepairExhausted,
    DepthCapExceeded,
)
from django_company_tree.stores.base import CompanyNode, TreeStore
from django_company_tree.traversal import TraversalEngine

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    node_id: Hashable
    passes: int = 0
    corrections: int = 0
    clamped: List[DepthCapExceeded] = field(default_factory=list)
    converged: bool = True
    skipped: bool = False


class LevelConsistencyEngine:
    """Re-derives ``level`` for a re-parented company and its subtree."""

    def __init__(
        self,
        store: TreeStore | None = None,
        traversal: TraversalEngine | None = None,
        *,
        max_depth: int | None = None,
        max_passes: int | None = None,
    ) -> None:
        limits = conf.get_tree_limits()
        self._traversal = traversal or TraversalEngine(store)
        self._store = store or self._traversal.store
        self.max_depth = max_depth if max_depth is not None else limits.max_depth
        self.max_passes = max_passes if max_passes is not None else limits.max_repair_passes
        # Repair has to reach nodes deeper than the level cap, since those are
        # the ones that need clamping. Only the node cap bounds this walk.
        self._walker = TraversalEngine(
            self._store,
            max_depth=self._traversal.max_nodes,
            max_nodes=self._traversal.max_nodes,
        )

    def clamp(self, node_id: Hashable, computed: int) -> Tuple[int, DepthCapExceeded | None]:
        """Cap ``computed`` at the maximum depth, returning the notice if clamped."""

        if computed <= self.max_depth:
            return computed, None
        logger.warning(
            "Calculated level %d for %s exceeds maximum depth %d; clamping",
            computed,
            node_id,
            self.max_depth,
        )
        return self.max_depth, DepthCapExceeded(node_id, computed, self.max_depth)

    def expected_level(self, node_id: Hashable, parent: CompanyNode | None) -> int:
        if parent is None:
            return 0
        level, _ = self.clamp(node_id, parent.level + 1)
        return level

    def repair(self, node_id: Hashable) -> RepairReport:
        """Restore level consistency for ``node_id`` and everything below it.

        Raises :class:`ConsistencyRepairExhausted` if no fixed point is reached
        within ``max_passes`` passes.
        """

        node = self._store.get_by_id(node_id)
        if node is None:
            raise CompanyNotFound(node_id)

        report = RepairReport(node_id=node.id)
        if node.parent_id is None:
            # The root is always level 0 and never derived from a parent.
            logger.debug("Skipping level repair for root company %s", node.id)
            report.skipped = True
            return report

        self._converge(node.id, report, include_origin=True)
        return report

    def repair_below(self, node_id: Hashable) -> RepairReport:
        """Re-derive levels strictly below ``node_id``, leaving its own level alone.

        Used after a company is promoted to root, where ``repair`` would skip.
        """

        node = self._store.get_by_id(node_id)
        if node is None:
            raise CompanyNotFound(node_id)

        report = RepairReport(node_id=node.id)
        self._converge(node.id, report, include_origin=False)
        return report

    def recompute_all(self) -> RepairReport:
        """Re-derive every level in the active tree, starting from the root(s)."""

        report = RepairReport(node_id=None)
        roots = [node for node in self._store.list_active() if node.parent_id is None]
        for root in roots:
            if root.level != 0:
                logger.info("Resetting root %s level %d -> 0", root.id, root.level)
                root.level = 0
                self._store.update(root)
                report.corrections += 1
        for root in roots:
            self._converge(root.id, report, include_origin=False)
        return report

    # ------------------------------------------------------------------ internals
    def _converge(self, origin_id: Hashable, report: RepairReport, *, include_origin: bool) -> None:
        clamped_ids = {notice.node_id for notice in report.clamped}

        for pass_number in range(1, self.max_passes + 1):
            report.passes += 1
            descendants = self._walker.get_descendants(origin_id)
            if not descendants and not include_origin:
                return

            origin = self._store.get_by_id(origin_id)
            known: Dict[Hashable, CompanyNode] = {origin.id: origin}
            known.update((desc.id, desc) for desc in descendants)

            batch: List[CompanyNode] = list(descendants)
            if include_origin:
                batch.insert(0, origin)

            corrected = 0
            for desc in batch:
                if desc.parent_id is None:
                    continue
                parent = known.get(desc.parent_id) or self._store.get_by_id(desc.parent_id)
                if parent is None:
                    logger.warning(
                        "Parent %s of %s not found during level repair",
                        desc.parent_id,
                        desc.id,
                    )
                    continue

                expected, notice = self.clamp(desc.id, parent.level + 1)
                if notice is not None and desc.id not in clamped_ids:
                    clamped_ids.add(desc.id)
                    report.clamped.append(notice)

                if desc.level == expected:
                    continue

                old_level = desc.level
                desc.level = expected
                self._store.update(desc)
                known[desc.id] = desc
                corrected += 1
                logger.info(
                    "Updated level of %s (%s) from %d to %d (parent level %d)",
                    desc.id,
                    desc.code,
                    old_level,
                    expected,
                    parent.level,
                )

            report.corrections += corrected
            logger.debug(
                "Level repair pass %d below %s corrected %d companies",
                pass_number,
                origin_id,
                corrected,
            )
            if corrected == 0:
                return

        report.converged = False
        logger.error(
            "Level repair below %s did not converge after %d passes",
            origin_id,
            self.max_passes,
        )
        raise ConsistencyRepairExhausted(origin_id, self.max_passes)
