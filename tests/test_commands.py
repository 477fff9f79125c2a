import io

import pytest
import yaml
from django.core.management import call_command

from django_company_tree.models import Company

pytestmark = pytest.mark.django_db


@pytest.fixture
def tree(orm_service):
    root = orm_service.create_node("PDV", "Holding")
    enu = orm_service.create_node("ENU", "Energia", root.id, description="Energy arm")
    orm_service.create_node("ENU-EXP", "Energia Export", enu.id)
    orm_service.create_node("PTG", "Portugal", root.id)
    return root


def test_fix_company_levels(tree) -> None:
    Company.objects.filter(code="ENU-EXP").update(level=6)
    Company.objects.filter(code="PDV").update(level=3)
    out = io.StringIO()

    call_command("fix_company_levels", stdout=out)

    levels = dict(Company.objects.values_list("code", "level"))
    assert levels == {"PDV": 0, "ENU": 1, "ENU-EXP": 2, "PTG": 1}
    output = out.getvalue()
    assert "Fixed 2 company levels" in output
    assert "ENU-EXP" in output


def test_fix_company_levels_quiet(tree) -> None:
    out = io.StringIO()

    call_command("fix_company_levels", "--quiet-tree", stdout=out)

    assert "Fixed 0 company levels" in out.getvalue()
    assert "Portugal" not in out.getvalue()


def test_export_company_tree(tree, tmp_path) -> None:
    output = tmp_path / "tree.yaml"

    call_command("export_company_tree", str(output), stdout=io.StringIO())

    data = yaml.safe_load(output.read_text())
    company = data["company"]
    assert company["code"] == "PDV"
    assert [child["code"] for child in company["children"]] == ["ENU", "PTG"]
    enu = company["children"][0]
    assert enu["description"] == "Energy arm"
    assert enu["children"] == [{"code": "ENU-EXP", "name": "Energia Export", "level": 2}]


def test_export_without_tree(db, tmp_path) -> None:
    output = tmp_path / "tree.yaml"
    err = io.StringIO()

    call_command("export_company_tree", str(output), stdout=io.StringIO(), stderr=err)

    assert yaml.safe_load(output.read_text()) == {"company": {}}
    assert "No active holding" in err.getvalue()
