"""Store factory and override hooks."""

from __future__ import annotations

from typing import Optional

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

import django_company_tree.conf as conf

from .base import TreeStore

_store: Optional[TreeStore] = None


def get_store() -> TreeStore:
    global _store
    if _store is not None:
        return _store

    path = conf.get_setting("STORE")
    if not isinstance(path, str) or not path:
        raise ImproperlyConfigured("settings.COMPANY_TREE['STORE'] must be a dotted class path.")

    try:
        store_class = import_string(path)
    except ImportError as e:
        raise ImproperlyConfigured(f"Could not import tree store {path!r}: {e}") from e

    _store = store_class()
    return _store


def set_store(store: TreeStore | None) -> None:
    global _store
    _store = store


def reset_store() -> None:
    global _store
    _store = None
