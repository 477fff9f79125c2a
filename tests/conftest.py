from collections.abc import Iterator
from typing import Hashable

import pytest

import django_company_tree.conf as conf
from django_company_tree.conf import TreeLimits
from django_company_tree.scope import clear_shared_scope_cache
from django_company_tree.services import HierarchyService
from django_company_tree.stores import InMemoryTreeStore, reset_store, set_store
from django_company_tree.stores.base import CompanyNode
from django_company_tree.traversal import TraversalEngine


@pytest.fixture(autouse=True)
def reset_company_tree_state() -> Iterator[None]:
    conf.reset_conf_cache()
    reset_store()
    clear_shared_scope_cache()
    yield
    conf.reset_conf_cache()
    reset_store()
    clear_shared_scope_cache()


@pytest.fixture
def memory_store() -> Iterator[InMemoryTreeStore]:
    store = InMemoryTreeStore()
    set_store(store)
    yield store
    reset_store()


@pytest.fixture
def service(memory_store: InMemoryTreeStore) -> HierarchyService:
    return HierarchyService(memory_store)


@pytest.fixture
def orm_service(db) -> HierarchyService:
    from django_company_tree.stores.orm import DjangoTreeStore

    return HierarchyService(DjangoTreeStore())


@pytest.fixture
def holding(service: HierarchyService) -> CompanyNode:
    """Small tree: PDV -> (ENU -> ENU-EXP, PTG)."""
    root = service.create_node("PDV", "Holding")
    enu = service.create_node("ENU", "Energia", root.id)
    service.create_node("ENU-EXP", "Energia Export", enu.id)
    service.create_node("PTG", "Portugal", root.id)
    return root


def chain_store(length: int, *, levels: int | None = None) -> tuple[InMemoryTreeStore, list[CompanyNode]]:
    """Build a parent chain of ``length`` nodes.

    Levels are stored correctly unless ``levels`` is given, in which case
    every non-root node starts with that (stale) level.
    """

    nodes: list[CompanyNode] = []
    parent_id: Hashable | None = None
    for index in range(length):
        level = index if levels is None or parent_id is None else levels
        node = CompanyNode(code=f"C{index:02d}", name=f"Company {index:02d}", parent_id=parent_id, level=level)
        nodes.append(node)
        parent_id = node.id
    return InMemoryTreeStore(nodes), nodes


def assert_levels_consistent(store: InMemoryTreeStore, limits: TreeLimits | None = None) -> None:
    limits = limits or conf.get_tree_limits()
    traversal = TraversalEngine(store, max_depth=limits.max_depth, max_nodes=limits.max_nodes)

    assert store.count_active_roots() == 1
    root = store.get_active_root()
    assert root.level == 0

    for node in traversal.get_descendants(root.id):
        parent = store.get_by_id(node.parent_id)
        assert parent.is_active
        assert node.level == min(parent.level + 1, limits.max_depth), node.code
        assert node.id not in traversal.get_descendant_ids(node.id)
