"""Integration helpers for company-scoped models."""

from .orm import ScopedManager, ScopedQuerySet

__all__ = ["ScopedManager", "ScopedQuerySet"]
