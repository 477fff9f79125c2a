"""Configuration helpers for django-company-tree."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Mapping

import yaml
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

DEFAULT_STORE = "django_company_tree.stores.orm.DjangoTreeStore"

DEFAULTS: Mapping[str, Any] = {
    "MAX_DEPTH": 10,
    "MAX_NODES": 10_000,
    "MAX_REPAIR_PASSES": 10,
    "STORE": DEFAULT_STORE,
    "SUPERADMIN_ROLES": ("superadmin", "administrator"),
    "SUBTREE_ROLES": ("admin",),
    "POLICY_FILE": None,
    "SCOPE_CACHE": False,
}


@dataclass(frozen=True)
class TreeLimits:
    """Loop and size bounds shared by traversal and level repair."""

    max_depth: int = 10
    max_nodes: int = 10_000
    max_repair_passes: int = 10


@dataclass(frozen=True)
class RolePolicy:
    """Role names that decide how an actor's company scope is computed."""

    superadmin_roles: FrozenSet[str] = frozenset({"superadmin", "administrator"})
    subtree_roles: FrozenSet[str] = frozenset({"admin"})

    def is_superadmin(self, role: str | None) -> bool:
        return _normalize(role) in self.superadmin_roles

    def is_subtree(self, role: str | None) -> bool:
        return _normalize(role) in self.subtree_roles


_LIMITS_CACHE: TreeLimits | None = None
_POLICY_CACHE: RolePolicy | None = None


def get_setting(name: str) -> Any:
    """Return a single ``COMPANY_TREE`` value, falling back to the default."""

    config = _get_tree_settings()
    return config.get(name, DEFAULTS[name])


def get_tree_limits() -> TreeLimits:
    """Return the cached :class:`TreeLimits` built from Django settings."""

    global _LIMITS_CACHE

    if _LIMITS_CACHE is not None:
        return _LIMITS_CACHE

    _LIMITS_CACHE = TreeLimits(
        max_depth=_positive_int("MAX_DEPTH"),
        max_nodes=_positive_int("MAX_NODES"),
        max_repair_passes=_positive_int("MAX_REPAIR_PASSES"),
    )
    return _LIMITS_CACHE


def get_role_policy() -> RolePolicy:
    """Return the cached :class:`RolePolicy`.

    A YAML file named by ``POLICY_FILE`` takes full precedence over the
    role lists in settings.
    """

    global _POLICY_CACHE

    if _POLICY_CACHE is not None:
        return _POLICY_CACHE

    policy_path = get_setting("POLICY_FILE")
    if policy_path and os.path.exists(policy_path):
        _POLICY_CACHE = _load_policy_file(policy_path)
        return _POLICY_CACHE

    _POLICY_CACHE = RolePolicy(
        superadmin_roles=_role_set(get_setting("SUPERADMIN_ROLES"), "SUPERADMIN_ROLES"),
        subtree_roles=_role_set(get_setting("SUBTREE_ROLES"), "SUBTREE_ROLES"),
    )
    return _POLICY_CACHE


def reset_conf_cache() -> None:
    """Clear cached limits and role policy. Primarily intended for tests."""

    global _LIMITS_CACHE, _POLICY_CACHE
    _LIMITS_CACHE = None
    _POLICY_CACHE = None


def _get_tree_settings() -> Mapping[str, Any]:
    value = getattr(settings, "COMPANY_TREE", None)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ImproperlyConfigured("settings.COMPANY_TREE must be a mapping.")
    return value


def _positive_int(name: str) -> int:
    value = get_setting(name)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ImproperlyConfigured(
            f"settings.COMPANY_TREE[{name!r}] must be a positive integer, got {value!r}."
        )
    return value


def _role_set(value: Any, name: str) -> FrozenSet[str]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ImproperlyConfigured(f"settings.COMPANY_TREE[{name!r}] must be a list of role names.")
    return frozenset(_normalize(role) for role in value)


def _load_policy_file(path: str) -> RolePolicy:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    roles = data.get("roles") if isinstance(data, Mapping) else None
    if not isinstance(roles, Mapping):
        raise ImproperlyConfigured(f"Role policy file {path!r} must define a 'roles' mapping.")

    return RolePolicy(
        superadmin_roles=_role_set(roles.get("superadmin", ()), "POLICY_FILE:superadmin"),
        subtree_roles=_role_set(roles.get("subtree", ()), "POLICY_FILE:subtree"),
    )


def _normalize(role: str | None) -> str:
    return (role or "").strip().lower()
