"""Role assignment repository — read access to ``user_roles`` labels."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select

from app.models import db
from app.models.auth import Profile, UserRole
from app.services.roles import ROLE_ALIASES, normalize_role


class RoleAssignmentRepository:
    """Label lookups. Labels are returned as stored; callers normalize."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def labels_for(self, user_id: str) -> tuple[str, ...]:
        rows = self.session.execute(
            select(UserRole.role).where(UserRole.user_id == str(user_id)).order_by(UserRole.id)
        ).scalars().all()
        return tuple(r for r in rows if r)

    def holders_of(self, labels: Iterable[str]) -> list[str]:
        """User ids holding any of ``labels`` (legacy aliases included).

        Ordered by profile creation, then id, so callers get a stable
        iteration order across runs.
        """
        wanted = {normalize_role(label) for label in labels if normalize_role(label)}
        if not wanted:
            return []
        stored = set(wanted) | {alias for alias, canonical in ROLE_ALIASES.items() if canonical in wanted}
        rows = self.session.execute(
            select(Profile.id)
            .join(UserRole, UserRole.user_id == Profile.id)
            .where(UserRole.role.in_(sorted(stored)))
            .group_by(Profile.id, Profile.created_at)
            .order_by(Profile.created_at, Profile.id)
        ).scalars().all()
        return [str(r) for r in rows]
