"""Org hierarchy and role repositories: boundary records and chain walks."""

import pytest

from app.core.exceptions import HierarchyIntegrityError
from app.models import db as _db
from app.models.org import Coordination, Division, Team
from app.services.org_repository import (
    OrgHierarchyRepository,
    OrgPlacement,
    ProfileRecord,
    TeamRecord,
    clean_code,
)
from app.services.role_repository import RoleAssignmentRepository


def test_clean_code_normalizes_case_and_blanks():
    assert clean_code("  djtb-cub ") == "DJTB-CUB"
    assert clean_code("") is None
    assert clean_code("   ") is None
    assert clean_code(None) is None


def test_lookups_return_frozen_records(org):
    repo = OrgHierarchyRepository()
    team = repo.get_team("djtb-cub")
    assert team == TeamRecord(id="DJTB-CUB", name="Equipe Cubatão", coord_id="DJTB-CUB")
    with pytest.raises(AttributeError):
        team.coord_id = "X"
    assert repo.get_team("NOPE") is None
    assert repo.get_division(None) is None


def test_chain_from_team_resolves_all_levels(org):
    placement = OrgHierarchyRepository().chain_from_team("DJTV-JUN")
    assert placement == OrgPlacement(
        team_id="DJTV-JUN", coord_id="DJTV-JUN", division_id="DJTV", department_id="DJT",
    )


def test_chain_from_guest_team_stops_at_team(org):
    assert OrgHierarchyRepository().chain_from_team("CONVIDADOS") == OrgPlacement(team_id="CONVIDADOS")


def test_chain_from_unknown_team_keeps_code(org):
    assert OrgHierarchyRepository().chain_from_team("DJTX-NEW") == OrgPlacement(team_id="DJTX-NEW")


def test_strict_walk_raises_on_unknown_team(org):
    with pytest.raises(HierarchyIntegrityError) as exc:
        OrgHierarchyRepository().chain_from_team("DJTX-NEW", strict=True)
    assert exc.value.path == ["DJTX-NEW"]


def test_dangling_coordination_link(org, fk_off):
    _db.session.add(Team(id="DJTB-ORF", name="Órfã", coord_id="DJTB-GONE"))
    _db.session.commit()

    repo = OrgHierarchyRepository()
    assert repo.chain_from_team("DJTB-ORF") == OrgPlacement(team_id="DJTB-ORF", coord_id="DJTB-GONE")
    with pytest.raises(HierarchyIntegrityError) as exc:
        repo.chain_from_team("DJTB-ORF", strict=True)
    assert exc.value.path == ["DJTB-ORF", "DJTB-GONE"]


def test_find_integrity_issues_reports_every_dangling_link(org, fk_off):
    _db.session.add(Team(id="DJTB-ORF", name="Órfã", coord_id="DJTB-GONE"))
    _db.session.add(Coordination(id="DJTV-ORF", name="Órfã", division_id="DJTZ"))
    _db.session.add(Division(id="DJTQ", name="Sem depto", department_id="XXX"))
    _db.session.commit()

    issues = OrgHierarchyRepository().find_integrity_issues()
    assert {"level": "team", "id": "DJTB-ORF", "missing_parent": "DJTB-GONE"} in issues
    assert {"level": "coordination", "id": "DJTV-ORF", "missing_parent": "DJTZ"} in issues
    assert {"level": "division", "id": "DJTQ", "missing_parent": "XXX"} in issues
    assert len(issues) == 3


def test_clean_hierarchy_has_no_issues(org):
    assert OrgHierarchyRepository().find_integrity_issues() == []


def test_get_profile_cleans_fields(org, make_profile):
    p = make_profile("ana@djt.test", team_id="DJTB-CUB", coord_id=" djtb-cub ", sigla_area="  DJTB CUB ")
    record = OrgHierarchyRepository().get_profile(p.id)
    assert isinstance(record, ProfileRecord)
    assert record.coord_id == "DJTB-CUB"
    assert record.sigla_area == "DJTB CUB"
    assert record.is_leader is False


def test_list_profiles_orders_by_creation(org, make_profile):
    first = make_profile("a@djt.test")
    second = make_profile("b@djt.test")
    records = OrgHierarchyRepository().list_profiles([second.id, first.id, "missing"])
    assert [r.id for r in records] == [first.id, second.id]


def test_labels_for_returns_stored_labels(org, make_profile):
    p = make_profile("c@djt.test", roles=("gerente", "colaborador"))
    assert set(RoleAssignmentRepository().labels_for(p.id)) == {"gerente", "colaborador"}


def test_holders_of_includes_legacy_aliases(org, make_profile):
    legacy = make_profile("legacy@djt.test", roles=("coordenador",))
    canonical = make_profile("canon@djt.test", roles=("coordenador_djtx", "lider_equipe"))
    make_profile("collab@djt.test", roles=("colaborador",))

    holders = RoleAssignmentRepository().holders_of(["coordenador_djtx", "lider_equipe"])
    assert holders == [legacy.id, canonical.id]
