"""RBAC scope resolution derived from tree position.

Scoped-resource code (reports, documents, users) asks for a
:class:`CompanyScope` once per request and turns it into a filter. It never
walks the tree itself.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, ClassVar, FrozenSet, Hashable, Iterable, MutableMapping

import django_company_tree.conf as conf
from django_company_tree.conf import RolePolicy
from django_company_tree.traversal import TraversalEngine


@dataclass(frozen=True)
class CompanyScope:
    """Set of company ids an actor may act on, or the unscoped sentinel.

    Ids are kept as strings so UUID objects and their text form compare equal.
    """

    unscoped: bool = False
    company_ids: FrozenSet[str] = frozenset()

    UNSCOPED: ClassVar["CompanyScope"]
    EMPTY: ClassVar["CompanyScope"]

    @classmethod
    def of(cls, company_ids: Iterable[Hashable]) -> "CompanyScope":
        return cls(company_ids=frozenset(str(company_id) for company_id in company_ids))

    @property
    def is_empty(self) -> bool:
        return not self.unscoped and not self.company_ids

    def allows(self, company_id: Hashable | None) -> bool:
        if self.unscoped:
            return True
        if company_id is None:
            return False
        return str(company_id) in self.company_ids


CompanyScope.UNSCOPED = CompanyScope(unscoped=True)
CompanyScope.EMPTY = CompanyScope()


_SHARED_CACHE: MutableMapping[str, FrozenSet[str]] = {}
_SHARED_CACHE_LOCK = threading.Lock()


def clear_shared_scope_cache() -> None:
    """Drop the process-wide descendant cache. Called on every tree change."""

    with _SHARED_CACHE_LOCK:
        _SHARED_CACHE.clear()


class ScopeResolver:
    """Request-scoped helper translating (role, home company) into a scope.

    Descendant sets are cached per resolver. When ``COMPANY_TREE['SCOPE_CACHE']``
    is enabled they are also shared process-wide until the next
    ``hierarchy_changed`` signal.

    Example:
        resolver = ScopeResolver()
        scope = resolver.resolve(user.role, user.company_id)
        reports = Report.objects.in_scope(scope)
    """

    def __init__(
        self,
        traversal: TraversalEngine | None = None,
        *,
        policy: RolePolicy | None = None,
        shared_cache: bool | None = None,
    ) -> None:
        self._traversal = traversal or TraversalEngine()
        self._policy = policy or conf.get_role_policy()
        self._shared = bool(conf.get_setting("SCOPE_CACHE")) if shared_cache is None else shared_cache
        self._cache: MutableMapping[str, FrozenSet[str]] = {}

    def resolve(self, role: str | None, home_company_id: Hashable | None) -> CompanyScope:
        if self._policy.is_superadmin(role):
            return CompanyScope.UNSCOPED
        if home_company_id is None or not self._is_active(home_company_id):
            return CompanyScope.EMPTY
        if self._policy.is_subtree(role):
            return CompanyScope(
                company_ids=frozenset({str(home_company_id)}) | self.descendant_ids(home_company_id)
            )
        return CompanyScope.of([home_company_id])

    def validate_access(
        self,
        actor_home_company_id: Hashable | None,
        target_company_id: Hashable | None,
    ) -> bool:
        """True if the target is the actor's company or one of its descendants."""

        if actor_home_company_id is None or target_company_id is None:
            return False
        if not self._is_active(actor_home_company_id):
            return False
        if str(actor_home_company_id) == str(target_company_id):
            return True
        return str(target_company_id) in self.descendant_ids(actor_home_company_id)

    def descendant_ids(self, company_id: Hashable) -> FrozenSet[str]:
        key = str(company_id)
        if key in self._cache:
            return self._cache[key]

        if self._shared:
            with _SHARED_CACHE_LOCK:
                cached = _SHARED_CACHE.get(key)
            if cached is not None:
                self._cache[key] = cached
                return cached

        ids = frozenset(str(node.id) for node in self._traversal.get_descendants(company_id))
        self._cache[key] = ids
        if self._shared:
            with _SHARED_CACHE_LOCK:
                _SHARED_CACHE[key] = ids
        return ids

    def clear_cache(self) -> None:
        self._cache.clear()

    def _is_active(self, company_id: Hashable) -> bool:
        # A soft-deleted home company grants nothing, not even itself.
        company = self._traversal.store.get_by_id(company_id)
        return company is not None and company.is_active


def resolve_scope(role: str | None, home_company_id: Hashable | None, **kwargs: Any) -> CompanyScope:
    """Convenience wrapper around :class:`ScopeResolver`."""

    return ScopeResolver(**kwargs).resolve(role, home_company_id)
