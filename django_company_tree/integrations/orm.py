"""ORM integration helpers."""

from __future__ import annotations

from typing import Hashable

from django.db import models

from django_company_tree.scope import CompanyScope, ScopeResolver


class ScopedQuerySet(models.QuerySet):
    """QuerySet for models that belong to one company through a foreign key.

    The scope is resolved once per request; filtering is a plain ``__in``
    lookup and never walks the tree.
    """

    def in_scope(self, scope: CompanyScope, field: str = "company"):
        if scope.unscoped:
            return self
        if scope.is_empty:
            return self.none()
        return self.filter(**{f"{field}__in": sorted(scope.company_ids)})

    def visible_to(
        self,
        role: str | None,
        home_company_id: Hashable | None,
        *,
        resolver: ScopeResolver | None = None,
        field: str = "company",
    ):
        resolver = resolver or ScopeResolver()
        return self.in_scope(resolver.resolve(role, home_company_id), field=field)


class ScopedManager(models.Manager.from_queryset(ScopedQuerySet)):  # type: ignore[misc]
    pass
