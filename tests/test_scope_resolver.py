"""ScopeResolver: role precedence, placement derivation and capability flags."""

import logging

import pytest

from app.core.exceptions import UnauthorizedError
from app.models import db as _db
from app.models.auth import UserRole
from app.services.roles import RoleHierarchy
from app.services.scope_resolver import ScopeOverride, ScopeResolver, normalize_team_code


@pytest.fixture()
def resolver(app):
    return ScopeResolver.from_config(app.config)


# ── normalize_team_code ──────────────────────────────────────────────────


@pytest.mark.parametrize("raw,expected", [
    ("djtb cub", "DJTB-CUB"),
    ("  DJTV--JUN ", "DJTV-JUN"),
    ("djtb/sto.", "DJTB-STO"),
    ("---", None),
    ("", None),
    (None, None),
])
def test_normalize_team_code(raw, expected):
    assert normalize_team_code(raw) == expected


def test_normalize_team_code_truncates():
    assert len(normalize_team_code("X" * 80)) == 32


# ── Role selection ───────────────────────────────────────────────────────


def test_highest_role_wins(org, make_profile, resolver):
    p = make_profile("multi@djt.test", roles=("colaborador", "lider_equipe", "coordenador"), team_id="DJTB-CUB")
    scope = resolver.resolve(p.id)
    assert scope.effective_role == "coordenador_djtx"
    assert scope.roles == frozenset({"colaborador", "lider_equipe", "coordenador_djtx"})


def test_no_roles_defaults_to_collaborator(org, make_profile, resolver):
    p = make_profile("plain@djt.test", team_id="DJTB-CUB")
    scope = resolver.resolve(p.id)
    assert scope.effective_role == "colaborador"
    assert scope.is_leader is False
    assert scope.has_studio_access is False


def test_invited_curator_presents_as_curator(org, make_profile, resolver):
    p = make_profile("cur@djt.test", roles=("invited", "content_curator"))
    scope = resolver.resolve(p.id)
    assert scope.effective_role == "content_curator"
    assert scope.has_studio_access is True
    assert scope.is_leader is False


def test_curator_grant_does_not_outrank_hierarchy(org, make_profile, resolver):
    p = make_profile("lead@djt.test", roles=("lider_equipe", "content_curator"), team_id="DJTB-CUB")
    assert resolver.resolve(p.id).effective_role == "lider_equipe"


def test_role_edit_applies_on_next_resolve(org, make_profile, resolver):
    p = make_profile("promo@djt.test", roles=("colaborador",), team_id="DJTB-CUB")
    assert resolver.resolve(p.id).effective_role == "colaborador"

    _db.session.add(UserRole(user_id=p.id, role="gerente"))
    _db.session.commit()
    assert resolver.resolve(p.id).effective_role == "gerente_djt"


def test_alternate_hierarchy_is_injectable(org, make_profile):
    p = make_profile("alt@djt.test", roles=("admin", "lider_equipe"))
    flipped = ScopeResolver(RoleHierarchy(order=("lider_equipe", "admin"), privileged=frozenset()))
    scope = flipped.resolve(p.id)
    assert scope.effective_role == "lider_equipe"
    assert scope.is_leader is False


def test_missing_identity_is_unauthorized(resolver):
    with pytest.raises(UnauthorizedError):
        resolver.resolve(None)


def test_unknown_identity_is_unauthorized(org, resolver):
    with pytest.raises(UnauthorizedError):
        resolver.resolve("00000000-0000-0000-0000-000000000000")


# ── Placement ────────────────────────────────────────────────────────────


def test_placement_from_team_chain(org, make_profile, resolver):
    p = make_profile("team@djt.test", team_id="DJTV-ITA")
    scope = resolver.resolve(p.id)
    assert (scope.team_id, scope.coord_id, scope.division_id, scope.department_id) == (
        "DJTV-ITA", "DJTV-ITA", "DJTV", "DJT",
    )
    assert scope.scope_overrides == ()


def test_placement_from_sigla_area_fallback(org, make_profile, resolver):
    p = make_profile("sigla@djt.test", sigla_area="djtb sto")
    scope = resolver.resolve(p.id)
    assert scope.team_id == "DJTB-STO"
    assert scope.coord_id == "DJTB-STO"
    assert scope.division_id == "DJTB"


def test_placement_from_operational_base_fallback(org, make_profile, resolver):
    p = make_profile("base@djt.test", operational_base="DJTV JUN")
    assert resolver.resolve(p.id).division_id == "DJTV"


def test_profile_override_wins_and_is_recorded(org, make_profile, resolver, caplog):
    p = make_profile("ovr@djt.test", team_id="DJTB-CUB", coord_id="DJTV-JUN")
    with caplog.at_level(logging.WARNING, logger="app.services.scope_resolver"):
        scope = resolver.resolve(p.id)

    assert scope.coord_id == "DJTV-JUN"
    # division follows the effective coordination
    assert scope.division_id == "DJTV"
    assert scope.scope_overrides == (ScopeOverride(field="coord_id", override="DJTV-JUN", derived="DJTB-CUB"),)
    assert any("scope_override_divergence" in r.getMessage() for r in caplog.records)


def test_matching_profile_field_is_not_an_override(org, make_profile, resolver):
    p = make_profile("same@djt.test", team_id="DJTB-CUB", coord_id="djtb-cub", division_id="DJTB")
    assert resolver.resolve(p.id).scope_overrides == ()


def test_division_only_profile(org, make_profile, resolver):
    p = make_profile("div@djt.test", roles=("gerente_divisao_djtx",), division_id="DJTV")
    scope = resolver.resolve(p.id)
    assert scope.team_id is None
    assert scope.coord_id is None
    assert scope.division_id == "DJTV"
    assert scope.department_id == "DJT"


def test_dangling_chain_is_tolerated(org, make_profile, resolver):
    p = make_profile("dang@djt.test", sigla_area="DJTX NOVA")
    scope = resolver.resolve(p.id)
    assert scope.team_id == "DJTX-NOVA"
    assert scope.coord_id is None
    assert scope.division_id is None


def test_placement_for_team(org, resolver):
    placement = resolver.placement_for_team("djtb-sto")
    assert placement.coord_id == "DJTB-STO"
    assert placement.division_id == "DJTB"
    assert resolver.placement_for_team(None).division_id is None


# ── Capabilities ─────────────────────────────────────────────────────────


def test_privileged_tier_grants_leader_and_studio(org, make_profile, resolver):
    p = make_profile("lider@djt.test", roles=("lider_equipe",), team_id="DJTB-CUB")
    scope = resolver.resolve(p.id)
    assert scope.is_leader is True
    assert scope.has_studio_access is True


def test_profile_flags_grant_capabilities(org, make_profile, resolver):
    p = make_profile("flags@djt.test", team_id="DJTB-CUB", is_leader=True, studio_access=True)
    scope = resolver.resolve(p.id)
    assert scope.effective_role == "colaborador"
    assert scope.is_leader is True
    assert scope.has_studio_access is True


def test_finance_grant_opens_studio_only(org, make_profile, resolver):
    p = make_profile("fin@djt.test", roles=("colaborador", "analista_financeiro"), team_id="DJTB-CUB")
    scope = resolver.resolve(p.id)
    assert scope.effective_role == "colaborador"
    assert scope.has_studio_access is True
    assert scope.is_leader is False


def test_to_dict_shape(org, make_profile, resolver):
    p = make_profile("dict@djt.test", roles=("coordenador_djtx",), team_id="DJTB-CUB")
    d = resolver.resolve(p.id).to_dict()
    assert d["role"] == "coordenador_djtx"
    assert d["org_scope"] == {
        "team_id": "DJTB-CUB", "coord_id": "DJTB-CUB", "division_id": "DJTB", "department_id": "DJT",
    }
    assert d["scope_overrides"] == []
