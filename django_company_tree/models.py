"""Database models backing django-company-tree."""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import Q


class CompanyQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def roots(self):
        return self.filter(is_active=True, parent__isnull=True)

    def children_of(self, parent_ids):
        return self.filter(is_active=True, parent_id__in=list(parent_ids))


class CompanyManager(models.Manager.from_queryset(CompanyQuerySet)):  # type: ignore[misc]
    pass


class Company(models.Model):
    """One node of the organisational tree.

    ``level`` is derived data. Only the level consistency engine decides what
    it should be; everything else treats it as a cached value.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="children",
        on_delete=models.PROTECT,
    )
    level = models.PositiveSmallIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CompanyManager()

    class Meta:
        ordering = ("level", "name")
        verbose_name_plural = "companies"
        constraints = [
            models.UniqueConstraint(
                fields=("code",),
                condition=Q(is_active=True),
                name="company_tree_unique_active_code",
            ),
            models.UniqueConstraint(
                fields=("is_active",),
                condition=Q(is_active=True, parent__isnull=True),
                name="company_tree_single_active_root",
            ),
        ]
        indexes = [
            models.Index(fields=("parent", "is_active"), name="company_tree_parent_idx"),
        ]

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __str__(self) -> str:  # pragma: no cover - admin nicety
        return f"{self.name} ({self.code})"
