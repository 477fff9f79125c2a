"""Store backed by the ``Company`` Django model."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Hashable, Iterable, Iterator, Mapping, NoReturn, Sequence

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.utils import timezone

from ..exceptions import CompanyNotFound, DuplicateCode, MultipleRootsNotAllowed
from ..models import Company
from .base import CompanyNode, TreeStore


class DjangoTreeStore(TreeStore):
    """Tree store that reads and writes the ``Company`` table.

    Hierarchy mutations are serialised by locking the active root row inside
    ``atomic()``. Databases without ``SELECT ... FOR UPDATE`` (SQLite)
    serialise writers on their own.
    """

    def __init__(self, *, using: str = DEFAULT_DB_ALIAS) -> None:
        self._using = using

    @property
    def _companies(self):
        return Company.objects.using(self._using)

    def create(self, node: CompanyNode) -> CompanyNode:
        if self._companies.active().filter(code=node.code).exists():
            raise DuplicateCode(node.code)
        try:
            with transaction.atomic(using=self._using):
                company = self._companies.create(
                    id=node.id,
                    code=node.code,
                    name=node.name,
                    description=node.description,
                    parent_id=node.parent_id,
                    level=node.level,
                    is_active=node.is_active,
                )
        except IntegrityError as exc:
            self._raise_constraint_error(node, exc)
        return to_node(company)

    def update(self, node: CompanyNode) -> CompanyNode:
        try:
            with transaction.atomic(using=self._using):
                updated = self._companies.filter(pk=node.id).update(
                    code=node.code,
                    name=node.name,
                    description=node.description,
                    parent_id=node.parent_id,
                    level=node.level,
                    is_active=node.is_active,
                    updated_at=timezone.now(),
                )
        except IntegrityError as exc:
            self._raise_constraint_error(node, exc)
        if not updated:
            raise CompanyNotFound(node.id)
        return node

    def _raise_constraint_error(self, node: CompanyNode, exc: IntegrityError) -> NoReturn:
        """Translate a constraint violation written by a concurrent writer."""

        if not node.is_active:
            raise exc
        others = self._companies.active().exclude(pk=node.id)
        if others.filter(code=node.code).exists():
            raise DuplicateCode(node.code) from exc
        if node.parent_id is None:
            root = others.filter(parent__isnull=True).first()
            if root is not None:
                raise MultipleRootsNotAllowed(root.pk) from exc
        raise exc

    def get_by_id(self, node_id: Hashable) -> CompanyNode | None:
        try:
            company = self._companies.filter(pk=node_id).first()
        except ValidationError:
            # Not a valid primary key, so no such company.
            return None
        return to_node(company) if company is not None else None

    def get_by_code(self, code: str, *, include_inactive: bool = False) -> CompanyNode | None:
        qs = self._companies.filter(code=code)
        if not include_inactive:
            qs = qs.filter(is_active=True)
        company = qs.order_by("-is_active", "-updated_at").first()
        return to_node(company) if company is not None else None

    def get_many(self, node_ids: Iterable[Hashable]) -> Mapping[Hashable, CompanyNode]:
        ids = list(node_ids)
        if not ids:
            return {}
        return {company.pk: to_node(company) for company in self._companies.filter(pk__in=ids)}

    def get_children(self, parent_ids: Iterable[Hashable]) -> Sequence[CompanyNode]:
        ids = list(parent_ids)
        if not ids:
            return []
        return [to_node(company) for company in self._companies.children_of(ids)]

    def count_active_roots(self) -> int:
        return self._companies.roots().count()

    def get_active_root(self) -> CompanyNode | None:
        company = self._companies.roots().order_by("level", "name").first()
        return to_node(company) if company is not None else None

    def list_active(self) -> Sequence[CompanyNode]:
        return [to_node(company) for company in self._companies.active().order_by("level", "name", "code")]

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with transaction.atomic(using=self._using):
            list(self._companies.roots().select_for_update().values_list("pk", flat=True))
            yield

    def on_commit(self, callback: Callable[[], Any]) -> None:
        transaction.on_commit(callback, using=self._using)


def to_node(company: Company) -> CompanyNode:
    return CompanyNode(
        id=company.pk,
        code=company.code,
        name=company.name,
        description=company.description,
        parent_id=company.parent_id,
        level=company.level,
        is_active=company.is_active,
    )
