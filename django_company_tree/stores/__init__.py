"""Persistence backends for company nodes."""

from .base import CompanyNode, TreeStore
from .factory import get_store, reset_store, set_store
from .memory import InMemoryTreeStore

__all__ = [
    "CompanyNode",
    "TreeStore",
    "InMemoryTreeStore",
    "get_store",
    "set_store",
    "reset_store",
]
