"""Signals and cache invalidation hooks."""

from __future__ import annotations

from django.core.signals import setting_changed
from django.db.models.signals import post_delete, post_save
from django.dispatch import Signal, receiver

import django_company_tree.conf as conf
from django_company_tree.scope import clear_shared_scope_cache
from django_company_tree.stores import factory

#: Sent after a hierarchy mutation commits. ``action`` is one of
#: ``"create"``, ``"reparent"``, ``"update"``, ``"deactivate"``,
#: ``"reactivate"``, ``"recompute"``; ``node_ids`` lists the touched companies.
hierarchy_changed = Signal()

_SIGNALS_CONNECTED = False


def connect_company_signals() -> None:
    """
    Invalidate scope caches when ``Company`` rows are written directly.

    Called from the app's ready() hook. Safe to call multiple times.
    """
    global _SIGNALS_CONNECTED

    if _SIGNALS_CONNECTED:
        return

    from django_company_tree.models import Company

    post_save.connect(_handle_company_write, sender=Company, weak=False)
    post_delete.connect(_handle_company_write, sender=Company, weak=False)

    _SIGNALS_CONNECTED = True


def disconnect_company_signals() -> None:
    """Disconnect ``Company`` signal handlers. Primarily for testing."""
    global _SIGNALS_CONNECTED

    from django_company_tree.models import Company

    post_save.disconnect(_handle_company_write, sender=Company)
    post_delete.disconnect(_handle_company_write, sender=Company)

    _SIGNALS_CONNECTED = False


def _handle_company_write(sender, instance, **kwargs) -> None:
    clear_shared_scope_cache()


@receiver(hierarchy_changed)
def _handle_hierarchy_changed(**_: object) -> None:
    clear_shared_scope_cache()


@receiver(setting_changed)
def _handle_setting_changed(setting: str, **_: object) -> None:
    if setting != "COMPANY_TREE":
        return
    conf.reset_conf_cache()
    factory.reset_store()
    clear_shared_scope_cache()
