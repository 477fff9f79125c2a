"""Base store definitions for django-company-tree."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Hashable, Iterable, Mapping, Protocol, Sequence


@dataclass
class CompanyNode:
    """Storage-agnostic snapshot of one company in the tree."""

    code: str
    name: str = ""
    parent_id: Hashable | None = None
    level: int = 0
    is_active: bool = True
    description: str = ""
    id: Hashable = field(default_factory=uuid.uuid4)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class TreeStore(Protocol):
    """Protocol describing the persistence contract for company nodes.

    Stores enforce only what the database constraints enforce (active code
    uniqueness and a single active root); callers check the rest first.
    Returned nodes are copies, so mutating one has no effect until it is
    passed back to :meth:`update`.
    """

    def create(self, node: CompanyNode) -> CompanyNode:
        """Persist a new node.

        Raises ``DuplicateCode`` on an active code clash and
        ``MultipleRootsNotAllowed`` on a second active root.
        """

    def update(self, node: CompanyNode) -> CompanyNode:
        """Replace the stored node with ``node``, under the same constraints as ``create``."""

    def get_by_id(self, node_id: Hashable) -> CompanyNode | None:
        ...

    def get_by_code(self, code: str, *, include_inactive: bool = False) -> CompanyNode | None:
        ...

    def get_many(self, node_ids: Iterable[Hashable]) -> Mapping[Hashable, CompanyNode]:
        """Return active and inactive nodes keyed by id; unknown ids are skipped."""

    def get_children(self, parent_ids: Iterable[Hashable]) -> Sequence[CompanyNode]:
        """Return the active direct children of every id in ``parent_ids``."""

    def count_active_roots(self) -> int:
        ...

    def get_active_root(self) -> CompanyNode | None:
        ...

    def list_active(self) -> Sequence[CompanyNode]:
        """Return every active node ordered by level then name."""

    def atomic(self) -> ContextManager[None]:
        """Run the enclosed block as one transaction holding the tree write lock."""

    def on_commit(self, callback: Callable[[], Any]) -> None:
        """Run ``callback`` once the current transaction commits."""


def sort_key(node: CompanyNode) -> tuple:
    return (node.level, node.name, node.code)
