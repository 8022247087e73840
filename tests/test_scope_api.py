"""GET /api/v1/auth/me and the bearer-token middleware."""

from app.services.jwt_service import generate_access_token


def test_me_requires_token(client):
    res = client.get("/api/v1/auth/me")
    assert res.status_code == 401
    assert res.get_json() == {"error": "Authentication required", "code": "ERR_UNAUTHORIZED"}


def test_me_rejects_expired_token(client, org, make_profile):
    p = make_profile("old@djt.test", roles=("lider_equipe",), team_id="DJTB-CUB")
    token = generate_access_token(p.id, expires_in=-10)
    res = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_me_returns_effective_scope(client, org, make_profile, auth_headers):
    p = make_profile(
        "coord@djt.test", roles=("coordenador", "lider_equipe", "content_curator"), team_id="DJTV-ITA",
    )
    res = client.get("/api/v1/auth/me", headers=auth_headers(p.id))
    assert res.status_code == 200
    data = res.get_json()
    assert data["user_id"] == p.id
    assert data["role"] == "coordenador_djtx"
    assert data["roles"] == ["content_curator", "coordenador_djtx", "lider_equipe"]
    assert data["is_leader"] is True
    assert data["studio_access"] is True
    assert data["org_scope"] == {
        "team_id": "DJTV-ITA", "coord_id": "DJTV-ITA", "division_id": "DJTV", "department_id": "DJT",
    }


def test_me_reports_overrides(client, org, make_profile, auth_headers):
    p = make_profile("mov@djt.test", team_id="DJTB-CUB", division_id="DJTV")
    data = client.get("/api/v1/auth/me", headers=auth_headers(p.id)).get_json()
    assert data["org_scope"]["division_id"] == "DJTV"
    assert data["scope_overrides"] == [{"field": "division_id", "override": "DJTV", "derived": "DJTB"}]


def test_responses_carry_request_id(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"
