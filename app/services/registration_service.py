"""Registration review service.

Leaders approve or reject self-registrations that fall inside their
organizational scope. ``sigla_area`` on the registration is the tag the
AuthorizationFilter gates on; guest registrations (CONVIDADOS / EXTERNO)
are visible to every leader tier.

Every transition runs: load pending record → scope gate → side effects.
Nothing is written when the gate denies.

Approval creates the Profile with ``DEFAULT_ROLE`` and places it:
    guest tag            → team GUEST_TEAM_ID, no coordination/division
    existing team code   → that team; coordination/division derived from it
    "DIV-TAG" code       → division DIV, coordination DIV-TAG, and team TAG
                           when such a team exists
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundOrAlreadyProcessedError, ValidationError
from app.models import db
from app.models.auth import Profile, UserRole
from app.models.org import Team
from app.models.registration import PendingRegistration
from app.services.authorization import AuthorizationFilter
from app.services.notification import NotificationDispatcher
from app.services.roles import COLLAB
from app.services.scope_resolver import EffectiveScope, normalize_team_code

logger = logging.getLogger(__name__)

_MAX_NOTES = 2000
DEFAULT_GUEST_TEAM = "CONVIDADOS"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_pending(registration_id: str) -> PendingRegistration:
    reg = db.session.get(PendingRegistration, str(registration_id))
    if reg is None or reg.status != "pending":
        raise NotFoundOrAlreadyProcessedError("PendingRegistration", registration_id)
    return reg


def _clean_notes(notes) -> str | None:
    if notes is None:
        return None
    text = str(notes).strip()
    if len(text) > _MAX_NOTES:
        raise ValidationError(f"notes must be ≤ {_MAX_NOTES} characters", {"notes": "too long"})
    return text or None


def _mark_reviewed(reg: PendingRegistration, status: str, scope: EffectiveScope, notes) -> None:
    reg.status = status
    reg.reviewed_by = scope.user_id
    reg.reviewed_at = datetime.now(timezone.utc)
    reg.review_notes = notes


def _email_taken(email: str) -> bool:
    return db.session.execute(
        select(Profile.id).where(func.lower(Profile.email) == email)
    ).first() is not None


def _guest_team() -> str:
    team_id = current_app.config.get("GUEST_TEAM_ID") or DEFAULT_GUEST_TEAM
    if db.session.get(Team, team_id) is None:
        db.session.add(Team(id=team_id, name="Convidados (externo)", coord_id=None))
    return team_id


def derive_placement(raw) -> dict:
    """team_id / coord_id / division_id for a free-text area code.

    Only fields that can be placed are set; the rest are None.
    """
    placement = {"team_id": None, "coord_id": None, "division_id": None}
    code = normalize_team_code(raw)
    if not code:
        return placement
    if db.session.get(Team, code) is not None:
        placement["team_id"] = code
        return placement

    parts = code.split("-")
    if len(parts) < 2:
        return placement
    division, tag = parts[0], parts[1]
    placement["division_id"] = division
    placement["coord_id"] = f"{division}-{tag}"
    if db.session.get(Team, tag) is not None:
        placement["team_id"] = tag
    return placement


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_pending(scope: EffectiveScope, auth: AuthorizationFilter | None = None, limit: int | None = None) -> list[dict]:
    """Pending registrations visible to ``scope``, newest first.

    Returns an empty list, never an error, when nothing is visible.
    """
    auth = auth or AuthorizationFilter.from_config()
    limit = limit or current_app.config.get("PENDING_REGISTRATION_LIMIT", 500)
    stmt = select(PendingRegistration).where(PendingRegistration.status == "pending")
    stmt = auth.filter_query(stmt, scope, PendingRegistration.sigla_area)
    stmt = stmt.order_by(PendingRegistration.created_at.desc(), PendingRegistration.id).limit(limit)
    rows = db.session.execute(stmt).scalars().all()
    logger.debug("registrations_listed user_id=%s role=%s count=%d", scope.user_id, scope.effective_role, len(rows))
    return [r.to_dict() for r in rows]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def approve_registration(
    registration_id: str,
    scope: EffectiveScope,
    notes=None,
    auth: AuthorizationFilter | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict:
    """Approve a pending registration and create its Profile.

    Raises:
        NotFoundOrAlreadyProcessedError: missing or already reviewed.
        ForbiddenError: the registration's area is outside ``scope``.
        ConflictError: a profile with the same e-mail already exists,
            including one created by a concurrent approval.
    """
    auth = auth or AuthorizationFilter.from_config()
    reg = _get_pending(registration_id)
    auth.check(reg.sigla_area, scope)
    notes = _clean_notes(notes)

    reg_id = reg.id
    email = (reg.email or "").strip().lower()
    if _email_taken(email):
        raise ConflictError("Profile", "email", email)

    if auth.is_guest_tag(reg.sigla_area):
        guest_team = _guest_team()
        placement = {"team_id": guest_team, "coord_id": None, "division_id": None}
        sigla_area = operational_base = guest_team
    else:
        placement = derive_placement(reg.sigla_area or reg.operational_base)
        sigla_area, operational_base = reg.sigla_area, reg.operational_base

    role = current_app.config.get("DEFAULT_ROLE") or COLLAB
    try:
        profile = Profile(
            name=reg.name,
            email=email,
            matricula=reg.matricula,
            sigla_area=sigla_area,
            operational_base=operational_base,
            **placement,
        )
        db.session.add(profile)
        db.session.flush()
        db.session.add(UserRole(user_id=profile.id, role=role))
        _mark_reviewed(reg, "approved", scope, notes)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning("registration_approve_conflict registration_id=%s email=%s", reg_id, email)
        raise ConflictError("Profile", "email", email)

    logger.info(
        "registration_approved registration_id=%s profile_id=%s reviewer=%s role=%s",
        reg.id, profile.id, scope.user_id, role,
        extra={"user_id": scope.user_id, "effective_role": scope.effective_role},
    )

    dispatcher = dispatcher or NotificationDispatcher()
    try:
        dispatcher.scope_changed(profile.id, dict(placement, sigla_area=sigla_area), "registration_approved")
    except Exception:
        db.session.rollback()
        logger.exception("registration_notify_failed profile_id=%s", profile.id)

    result = reg.to_dict()
    result["profile_id"] = profile.id
    result["role"] = role
    return result


def reject_registration(
    registration_id: str,
    scope: EffectiveScope,
    notes=None,
    auth: AuthorizationFilter | None = None,
) -> dict:
    """Reject a pending registration.

    Raises:
        NotFoundOrAlreadyProcessedError: missing or already reviewed.
        ForbiddenError: the registration's area is outside ``scope``.
    """
    auth = auth or AuthorizationFilter.from_config()
    reg = _get_pending(registration_id)
    auth.check(reg.sigla_area, scope)
    _mark_reviewed(reg, "rejected", scope, _clean_notes(notes))
    db.session.commit()
    logger.info(
        "registration_rejected registration_id=%s reviewer=%s", reg.id, scope.user_id,
        extra={"user_id": scope.user_id, "effective_role": scope.effective_role},
    )
    return reg.to_dict()
