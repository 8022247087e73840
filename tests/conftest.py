"""
Shared pytest fixtures for the DJT Quest test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: seeded Department → Division → Coordination → Team hierarchy
    - make_profile: factory for profiles with role labels
    - make_event: factory for submitted events
    - auth_headers: bearer header for a profile id
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
import sqlalchemy as sa

from app import create_app
from app.models import db as _db
from app.models.auth import Profile, UserRole
from app.models.evaluation import Event
from app.models.org import Coordination, Department, Division, Team
from app.services.jwt_service import generate_access_token

BASE_TIME = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def fk_off():
    """Disable SQLite FK enforcement for a test that seeds dangling links."""
    _db.session.commit()
    _db.session.execute(sa.text("PRAGMA foreign_keys=OFF"))
    yield
    _db.session.rollback()
    _db.session.execute(sa.text("PRAGMA foreign_keys=ON"))


# ── Org hierarchy ────────────────────────────────────────────────────────


@pytest.fixture()
def org():
    """
    DJT
     ├─ DJTB
     │   ├─ DJTB-CUB → team DJTB-CUB
     │   └─ DJTB-STO → team DJTB-STO
     └─ DJTV
         ├─ DJTV-JUN → team DJTV-JUN
         └─ DJTV-ITA → team DJTV-ITA
    CONVIDADOS (team outside the hierarchy)
    """
    _db.session.add(Department(id="DJT", name="Departamento DJT"))
    _db.session.add_all([
        Division(id="DJTB", name="Divisão Baixada", department_id="DJT"),
        Division(id="DJTV", name="Divisão Vale", department_id="DJT"),
    ])
    _db.session.add_all([
        Coordination(id="DJTB-CUB", name="Cubatão", division_id="DJTB"),
        Coordination(id="DJTB-STO", name="Santos", division_id="DJTB"),
        Coordination(id="DJTV-JUN", name="Jundiaí", division_id="DJTV"),
        Coordination(id="DJTV-ITA", name="Itapetininga", division_id="DJTV"),
    ])
    _db.session.add_all([
        Team(id="DJTB-CUB", name="Equipe Cubatão", coord_id="DJTB-CUB"),
        Team(id="DJTB-STO", name="Equipe Santos", coord_id="DJTB-STO"),
        Team(id="DJTV-JUN", name="Equipe Jundiaí", coord_id="DJTV-JUN"),
        Team(id="DJTV-ITA", name="Equipe Itapetininga", coord_id="DJTV-ITA"),
        Team(id="CONVIDADOS", name="Convidados", coord_id=None),
    ])
    _db.session.commit()
    return {
        "department": "DJT",
        "divisions": ("DJTB", "DJTV"),
        "teams": ("DJTB-CUB", "DJTB-STO", "DJTV-JUN", "DJTV-ITA"),
    }


@pytest.fixture()
def make_profile():
    """Factory: make_profile("a@x", team_id=..., roles=("lider_equipe",), **fields).

    Profiles get strictly increasing created_at so pool order is deterministic.
    """
    seq = itertools.count()

    def _make(email, roles=(), **fields):
        fields.setdefault("name", email.split("@")[0])
        profile = Profile(email=email, created_at=BASE_TIME + timedelta(seconds=next(seq)), **fields)
        _db.session.add(profile)
        _db.session.flush()
        for label in roles:
            _db.session.add(UserRole(user_id=profile.id, role=label))
        _db.session.commit()
        return profile

    return _make


@pytest.fixture()
def make_event():
    """Factory: make_event(submitter, team_id=...) with increasing created_at."""
    seq = itertools.count()

    def _make(submitter, team_id=None, **fields):
        event = Event(
            user_id=submitter.id,
            team_id=team_id,
            created_at=BASE_TIME + timedelta(minutes=next(seq)),
            **fields,
        )
        _db.session.add(event)
        _db.session.commit()
        return event

    return _make


@pytest.fixture()
def auth_headers():
    """Factory: auth_headers(user_id) → bearer header with a fresh access token."""

    def _headers(user_id):
        return {"Authorization": f"Bearer {generate_access_token(user_id)}"}

    return _headers
