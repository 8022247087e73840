"""
Organizational hierarchy repository — read-only access to
Department / Division / Coordination / Team and profile placement.

Rows never leave this module: every accessor returns a frozen record
validated at the boundary (codes stripped and upper-cased, blanks → None).

Chain walks:
    team → coordination → division → department   (at most 4 hops)

A dangling parent reference stops the walk; in strict mode it raises
``HierarchyIntegrityError`` instead. ``find_integrity_issues`` reports every
dangling link for the integrity job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from sqlalchemy import select

from app.core.exceptions import HierarchyIntegrityError
from app.models import db
from app.models.auth import Profile
from app.models.org import Coordination, Department, Division, Team

logger = logging.getLogger(__name__)

MAX_CHAIN_HOPS = 4


def clean_code(raw) -> str | None:
    """Canonical form of an organizational code: stripped, upper-case, or None."""
    if raw is None:
        return None
    code = str(raw).strip().upper()
    return code or None


# ── Boundary records ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class DepartmentRecord:
    id: str
    name: str


@dataclass(frozen=True)
class DivisionRecord:
    id: str
    name: str
    department_id: str | None


@dataclass(frozen=True)
class CoordinationRecord:
    id: str
    name: str
    division_id: str | None


@dataclass(frozen=True)
class TeamRecord:
    id: str
    name: str
    coord_id: str | None


@dataclass(frozen=True)
class ProfileRecord:
    id: str
    name: str | None
    email: str | None
    team_id: str | None
    coord_id: str | None
    division_id: str | None
    department_id: str | None
    sigla_area: str | None
    operational_base: str | None
    is_leader: bool
    studio_access: bool


@dataclass(frozen=True)
class OrgPlacement:
    """Resolved position of a user or event in the hierarchy."""

    team_id: str | None = None
    coord_id: str | None = None
    division_id: str | None = None
    department_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "coord_id": self.coord_id,
            "division_id": self.division_id,
            "department_id": self.department_id,
        }


def _profile_record(row: Profile) -> ProfileRecord:
    return ProfileRecord(
        id=str(row.id),
        name=row.name,
        email=row.email,
        team_id=clean_code(row.team_id),
        coord_id=clean_code(row.coord_id),
        division_id=clean_code(row.division_id),
        department_id=clean_code(row.department_id),
        sigla_area=(row.sigla_area or "").strip() or None,
        operational_base=(row.operational_base or "").strip() or None,
        is_leader=bool(row.is_leader),
        studio_access=bool(row.studio_access),
    )


class OrgHierarchyRepository:
    """Read accessor over the four hierarchy levels and profiles."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ── Single-node lookups ───────────────────────────────────────────────

    def get_department(self, department_id: str | None) -> DepartmentRecord | None:
        code = clean_code(department_id)
        if not code:
            return None
        row = self.session.get(Department, code)
        if row is None:
            return None
        return DepartmentRecord(id=clean_code(row.id), name=row.name)

    def get_division(self, division_id: str | None) -> DivisionRecord | None:
        code = clean_code(division_id)
        if not code:
            return None
        row = self.session.get(Division, code)
        if row is None:
            return None
        return DivisionRecord(id=clean_code(row.id), name=row.name, department_id=clean_code(row.department_id))

    def get_coordination(self, coord_id: str | None) -> CoordinationRecord | None:
        code = clean_code(coord_id)
        if not code:
            return None
        row = self.session.get(Coordination, code)
        if row is None:
            return None
        return CoordinationRecord(id=clean_code(row.id), name=row.name, division_id=clean_code(row.division_id))

    def get_team(self, team_id: str | None) -> TeamRecord | None:
        code = clean_code(team_id)
        if not code:
            return None
        row = self.session.get(Team, code)
        if row is None:
            return None
        return TeamRecord(id=clean_code(row.id), name=row.name, coord_id=clean_code(row.coord_id))

    # ── Profiles ──────────────────────────────────────────────────────────

    def get_profile(self, user_id: str | None) -> ProfileRecord | None:
        if not user_id:
            return None
        row = self.session.get(Profile, str(user_id))
        return _profile_record(row) if row is not None else None

    def list_profiles(self, user_ids) -> list[ProfileRecord]:
        """Profiles for ``user_ids`` in stable order (created_at, id)."""
        ids = [str(u) for u in user_ids or ()]
        if not ids:
            return []
        rows = self.session.execute(
            select(Profile)
            .where(Profile.id.in_(ids))
            .order_by(Profile.created_at, Profile.id)
        ).scalars().all()
        return [_profile_record(r) for r in rows]

    # ── Chain walks ───────────────────────────────────────────────────────

    def chain_from_team(self, team_id: str | None, *, strict: bool = False) -> OrgPlacement:
        """Walk team → coordination → division → department."""
        code = clean_code(team_id)
        if not code:
            return OrgPlacement()
        team = self.get_team(code)
        if team is None:
            self._dangling("team", code, [code], strict)
            return OrgPlacement(team_id=code)
        upper = self.chain_from_coordination(team.coord_id, strict=strict, _path=[code])
        return replace(upper, team_id=team.id)

    def chain_from_coordination(
        self, coord_id: str | None, *, strict: bool = False, _path: list[str] | None = None,
    ) -> OrgPlacement:
        """Walk coordination → division → department."""
        path = list(_path or [])
        code = clean_code(coord_id)
        if not code:
            return OrgPlacement()
        path.append(code)
        coord = self.get_coordination(code)
        if coord is None:
            self._dangling("coordination", code, path, strict)
            return OrgPlacement(coord_id=code)
        upper = self.chain_from_division(coord.division_id, strict=strict, _path=path)
        return replace(upper, coord_id=coord.id)

    def chain_from_division(
        self, division_id: str | None, *, strict: bool = False, _path: list[str] | None = None,
    ) -> OrgPlacement:
        """Walk division → department."""
        path = list(_path or [])
        code = clean_code(division_id)
        if not code:
            return OrgPlacement()
        path.append(code)
        if len(path) > MAX_CHAIN_HOPS:
            raise HierarchyIntegrityError(path[0], path)
        division = self.get_division(code)
        if division is None:
            self._dangling("division", code, path, strict)
            return OrgPlacement(division_id=code)
        department_id = division.department_id
        if department_id:
            path.append(department_id)
            if self.get_department(department_id) is None:
                self._dangling("department", department_id, path, strict)
        return OrgPlacement(division_id=division.id, department_id=department_id)

    def _dangling(self, level: str, code: str, path: list[str], strict: bool) -> None:
        if strict:
            raise HierarchyIntegrityError(path[0], path)
        logger.debug("hierarchy_link_missing level=%s code=%s path=%s", level, code, "->".join(path))

    # ── Integrity report ──────────────────────────────────────────────────

    def find_integrity_issues(self) -> list[dict]:
        """List nodes whose parent reference points at a missing row."""
        issues: list[dict] = []
        checks = (
            (Team, "coord_id", Coordination, "team"),
            (Coordination, "division_id", Division, "coordination"),
            (Division, "department_id", Department, "division"),
        )
        for model, fk, parent_model, level in checks:
            parent_ids = set(self.session.execute(select(parent_model.id)).scalars().all())
            rows = self.session.execute(
                select(model.id, getattr(model, fk)).where(getattr(model, fk).isnot(None))
            ).all()
            for node_id, parent_id in rows:
                if parent_id not in parent_ids:
                    issues.append({"level": level, "id": node_id, "missing_parent": parent_id})
        return issues
