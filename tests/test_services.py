"""End-to-end hierarchy scenarios through the mutation service."""

import pytest

from django_company_tree.exceptions import (
    CompanyNotFound,
    ConsistencyRepairExhausted,
    CycleDetected,
    DuplicateCode,
    HierarchyError,
    InactiveCompany,
    MultipleRootsNotAllowed,
    ParentNotFound,
    RootDeactivationNotAllowed,
)
from django_company_tree.signals import hierarchy_changed

from tests.conftest import assert_levels_consistent


def _codes(nodes):
    return [node.code for node in nodes]


def test_create_root(service) -> None:
    root = service.create_node("PDV", "Holding")

    assert root.level == 0
    assert root.parent_id is None
    assert service.count_active_roots() == 1
    assert service.get_root().id == root.id


def test_create_child(service) -> None:
    root = service.create_node("PDV", "Holding")
    enu = service.create_node("ENU", "Energia", root.id)

    assert enu.level == 1
    assert _codes(service.traversal.get_descendants(root.id)) == ["ENU"]
    assert _codes(service.traversal.get_ancestors(enu.id)) == ["PDV"]


def test_create_grandchild(service, holding) -> None:
    enu = service.get_node_by_code("ENU")
    exp = service.get_node_by_code("ENU-EXP")

    assert exp.level == 2
    assert {"ENU", "ENU-EXP"} <= set(_codes(service.traversal.get_descendants(holding.id)))
    assert service.traversal.is_descendant_of(exp.id, holding.id)
    assert exp.parent_id == enu.id


def test_second_root_rejected(service, holding) -> None:
    with pytest.raises(MultipleRootsNotAllowed):
        service.create_node("NEWHOLD", "New Holding")

    assert service.get_node_by_code("NEWHOLD") is None
    assert service.count_active_roots() == 1


def test_inverting_relationship_rejected(service, holding, memory_store) -> None:
    enu = service.get_node_by_code("ENU")
    exp = service.get_node_by_code("ENU-EXP")
    before = {node.id: (node.parent_id, node.level) for node in memory_store.all_nodes()}

    with pytest.raises(CycleDetected):
        service.reparent_node(enu.id, exp.id)

    after = {node.id: (node.parent_id, node.level) for node in memory_store.all_nodes()}
    assert after == before


def test_reparent_under_sibling_cascades_levels(service, holding) -> None:
    enu = service.get_node_by_code("ENU")
    ptg = service.get_node_by_code("PTG")

    report = service.reparent_node(enu.id, ptg.id)

    assert service.get_node(enu.id).level == 2
    assert service.get_node_by_code("ENU-EXP").level == 3
    assert report.converged
    assert report.corrections == 1
    descendants = {node.code: node.level for node in service.traversal.get_descendants(holding.id)}
    assert descendants == {"PTG": 1, "ENU": 2, "ENU-EXP": 3}
    assert_levels_consistent(service.store)


def test_reparent_to_current_parent_is_noop(service, holding) -> None:
    enu = service.get_node_by_code("ENU")

    report = service.reparent_node(enu.id, holding.id)

    assert report.skipped
    assert report.corrections == 0
    assert service.get_node_by_code("ENU-EXP").level == 2


def test_reparent_to_missing_parent(service, holding) -> None:
    with pytest.raises(ParentNotFound):
        service.reparent_node(service.get_node_by_code("ENU").id, "nope")


def test_promote_without_demotion_rejected(service, holding) -> None:
    enu = service.get_node_by_code("ENU")

    with pytest.raises(MultipleRootsNotAllowed) as excinfo:
        service.reparent_node(enu.id, None)

    assert excinfo.value.existing_root_id == holding.id
    assert service.get_node(enu.id).parent_id == holding.id


def test_promote_with_demotion_swaps_holding(service, holding) -> None:
    enu = service.get_node_by_code("ENU")

    service.reparent_node(enu.id, None, demote_existing_root=True)

    assert service.get_root().code == "ENU"
    old = service.get_node(holding.id)
    assert old.parent_id == enu.id
    assert old.level == 1
    assert service.get_node_by_code("PTG").level == 2
    assert service.get_node_by_code("ENU-EXP").level == 1
    assert service.count_active_roots() == 1
    assert_levels_consistent(service.store)


def test_update_renames_and_checks_code(service, holding) -> None:
    enu = service.get_node_by_code("ENU")

    updated = service.update_node(enu.id, name="Energia SA", code=" ENU2 ")

    assert updated.code == "ENU2"
    assert service.get_node(enu.id).name == "Energia SA"
    with pytest.raises(DuplicateCode):
        service.update_node(enu.id, code="PTG")


def test_empty_code_rejected(service) -> None:
    with pytest.raises(HierarchyError):
        service.create_node("  ", "Blank")


def test_duplicate_code_on_create(service, holding) -> None:
    with pytest.raises(DuplicateCode):
        service.create_node("PTG", "Again", holding.id)


def test_deactivate_removes_only_the_node(service, holding, memory_store) -> None:
    enu = service.get_node_by_code("ENU")
    exp = service.get_node_by_code("ENU-EXP")

    assert service.deactivate_node(enu.id) == [enu.id]

    assert memory_store.get_by_id(enu.id).is_active is False
    assert memory_store.get_by_id(exp.id).is_active is True
    assert _codes(service.traversal.get_descendants(holding.id)) == ["PTG"]
    with pytest.raises(InactiveCompany):
        service.reparent_node(enu.id, holding.id)


def test_deactivate_cascade(service, holding, memory_store) -> None:
    enu = service.get_node_by_code("ENU")
    exp = service.get_node_by_code("ENU-EXP")

    ids = service.deactivate_node(enu.id, cascade=True)

    assert set(ids) == {enu.id, exp.id}
    assert memory_store.get_by_id(exp.id).is_active is False


def test_root_cannot_be_deactivated(service, holding) -> None:
    with pytest.raises(RootDeactivationNotAllowed):
        service.deactivate_node(holding.id)

    assert service.count_active_roots() == 1


def test_reactivate_restores_subtree(service, holding) -> None:
    enu = service.get_node_by_code("ENU")
    service.deactivate_node(enu.id)

    node = service.reactivate_node(enu.id)

    assert node.is_active
    assert node.level == 1
    assert {"ENU", "ENU-EXP"} <= set(_codes(service.traversal.get_descendants(holding.id)))


def test_reactivate_with_reused_code_rejected(service, holding) -> None:
    ptg = service.get_node_by_code("PTG")
    service.deactivate_node(ptg.id)
    service.create_node("PTG", "New Portugal", holding.id)

    with pytest.raises(DuplicateCode):
        service.reactivate_node(ptg.id)


def test_unknown_company(service) -> None:
    with pytest.raises(CompanyNotFound):
        service.get_node("missing")
    with pytest.raises(CompanyNotFound):
        service.reparent_node("missing", None)


def test_failed_repair_rolls_back_parent_change(service, holding, memory_store, monkeypatch) -> None:
    enu = service.get_node_by_code("ENU")
    ptg = service.get_node_by_code("PTG")

    def explode(node_id):
        raise ConsistencyRepairExhausted(node_id, 10)

    monkeypatch.setattr(service.levels, "repair", explode)

    with pytest.raises(ConsistencyRepairExhausted):
        service.reparent_node(enu.id, ptg.id)

    stored = memory_store.get_by_id(enu.id)
    assert stored.parent_id == holding.id
    assert stored.level == 1


def test_hierarchy_changed_sent_after_commit(service, holding) -> None:
    received = []

    def handler(sender, action, node_ids, **kwargs):
        received.append((action, node_ids))

    hierarchy_changed.connect(handler)
    try:
        enu = service.get_node_by_code("ENU")
        service.reparent_node(enu.id, service.get_node_by_code("PTG").id)
        with pytest.raises(CycleDetected):
            service.reparent_node(enu.id, service.get_node_by_code("ENU-EXP").id)
    finally:
        hierarchy_changed.disconnect(handler)

    assert received == [("reparent", [enu.id])]


def test_recompute_levels(service, holding, memory_store) -> None:
    exp = memory_store.get_by_code("ENU-EXP")
    exp.level = 7
    memory_store.update(exp)

    report = service.recompute_levels()

    assert report.corrections == 1
    assert memory_store.get_by_id(exp.id).level == 2


@pytest.mark.django_db
def test_orm_scenarios(orm_service) -> None:
    from django_company_tree.models import Company

    root = orm_service.create_node("PDV", "Holding")
    enu = orm_service.create_node("ENU", "Energia", root.id)
    exp = orm_service.create_node("ENU-EXP", "Energia Export", enu.id)
    ptg = orm_service.create_node("PTG", "Portugal", root.id)

    with pytest.raises(MultipleRootsNotAllowed):
        orm_service.create_node("NEWHOLD", "New Holding")
    with pytest.raises(CycleDetected):
        orm_service.reparent_node(enu.id, exp.id)
    with pytest.raises(ParentNotFound):
        orm_service.reparent_node(enu.id, "not-a-uuid")

    orm_service.reparent_node(str(enu.id), str(ptg.id))

    levels = dict(Company.objects.active().values_list("code", "level"))
    assert levels == {"PDV": 0, "PTG": 1, "ENU": 2, "ENU-EXP": 3}
    assert Company.objects.get(code="ENU").parent_id == ptg.id


@pytest.mark.django_db
def test_orm_promotion_keeps_single_root(orm_service) -> None:
    from django_company_tree.models import Company

    root = orm_service.create_node("PDV", "Holding")
    enu = orm_service.create_node("ENU", "Energia", root.id)
    orm_service.create_node("ENU-EXP", "Energia Export", enu.id)

    orm_service.reparent_node(enu.id, None, demote_existing_root=True)

    assert list(Company.objects.roots().values_list("code", flat=True)) == ["ENU"]
    levels = dict(Company.objects.active().values_list("code", "level"))
    assert levels == {"ENU": 0, "PDV": 1, "ENU-EXP": 1}


@pytest.mark.django_db
def test_orm_signal_on_commit(orm_service, django_capture_on_commit_callbacks) -> None:
    received = []

    def handler(sender, action, node_ids, **kwargs):
        received.append(action)

    hierarchy_changed.connect(handler)
    try:
        with django_capture_on_commit_callbacks(execute=True):
            orm_service.create_node("PDV", "Holding")
    finally:
        hierarchy_changed.disconnect(handler)

    assert received == ["create"]
