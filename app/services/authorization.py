"""
Authorization Filter — decides which organizational tags an EffectiveScope
may see or act on, for single records and for list queries.

Decision table (tag = organizational code such as "DJTB-CUB"):

    admin / gerente_djt        any tag
    gerente_divisao_djtx       tag starts with division_id           | guest tag
    coordenador_djtx           tag starts with division_id or coord_id,
                               or equals team_id                     | guest tag
    lider_equipe               tag equals team_id                    | guest tag
    everything else            deny

Tags are compared in canonical form (``canonical_tag``: stripped,
upper-cased). ``to_query_filter`` compares the raw column, so the column must
hold canonical tags; ``PendingRegistration.sigla_area`` is canonicalized on
write. An empty scope id never matches anything, so a leader with no
division can not see the whole table through a "starts with ''" comparison.

``in_scope`` and ``to_query_filter`` are kept equivalent: a record passes one
exactly when it passes the other.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping

from flask import current_app
from sqlalchemy import and_, false, or_, true

from app.core.exceptions import ForbiddenError
from app.models.registration import canonical_tag
from app.services.roles import ADMIN, COORD, DIV_MANAGER, MANAGER, TEAM_LEADER
from app.services.scope_resolver import EffectiveScope

logger = logging.getLogger(__name__)

DEFAULT_GUEST_TAGS = ("CONVIDADOS", "EXTERNO")

UNRESTRICTED_ROLES = frozenset({ADMIN, MANAGER})
GUEST_VISIBLE_ROLES = frozenset({DIV_MANAGER, COORD, TEAM_LEADER})

_LIKE_ESCAPE = "\\"


def _norm(value) -> str:
    return canonical_tag(value) or ""


def _escape_like(value: str) -> str:
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


class AuthorizationFilter:
    """Scope gate shared by single-record checks and list filtering."""

    def __init__(self, guest_tags: Iterable[str] = DEFAULT_GUEST_TAGS):
        self.guest_tags = frozenset(t for t in (_norm(g) for g in guest_tags) if t)

    @classmethod
    def from_config(cls, cfg: Mapping | None = None) -> "AuthorizationFilter":
        cfg = cfg if cfg is not None else current_app.config
        return cls(guest_tags=cfg.get("GUEST_AREA_TAGS") or DEFAULT_GUEST_TAGS)

    # ── Rules ────────────────────────────────────────────────────────────

    def _rules(self, scope: EffectiveScope) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """(prefixes, exact tags) granted to a restricted scope, guest tags excluded."""
        role = scope.effective_role
        division = _norm(scope.division_id)
        coord = _norm(scope.coord_id)
        team = _norm(scope.team_id)
        if role == DIV_MANAGER:
            prefixes, exact = (division,), ()
        elif role == COORD:
            prefixes, exact = (division, coord), (team,)
        elif role == TEAM_LEADER:
            prefixes, exact = (), (team,)
        else:
            prefixes, exact = (), ()
        return tuple(p for p in prefixes if p), tuple(e for e in exact if e)

    def is_unrestricted(self, scope: EffectiveScope) -> bool:
        return scope.effective_role in UNRESTRICTED_ROLES

    def is_guest_tag(self, tag) -> bool:
        return _norm(tag) in self.guest_tags

    # ── Single record ────────────────────────────────────────────────────

    def in_scope(self, target_tag, scope: EffectiveScope) -> bool:
        """True when ``scope`` may view or act on a record tagged ``target_tag``."""
        if scope is None:
            return False
        if self.is_unrestricted(scope):
            return True
        tag = _norm(target_tag)
        if not tag:
            return False
        if scope.effective_role in GUEST_VISIBLE_ROLES and tag in self.guest_tags:
            return True
        prefixes, exact = self._rules(scope)
        return tag in exact or any(tag.startswith(p) for p in prefixes)

    # ── Lists ────────────────────────────────────────────────────────────

    def to_query_filter(self, scope: EffectiveScope, column):
        """SQLAlchemy expression equivalent to ``in_scope`` over ``column``."""
        if scope is None:
            return false()
        if self.is_unrestricted(scope):
            return true()
        if scope.effective_role not in GUEST_VISIBLE_ROLES:
            return false()

        prefixes, exact = self._rules(scope)
        clauses = [column.like(_escape_like(p) + "%", escape=_LIKE_ESCAPE) for p in prefixes]
        allowed = set(exact) | set(self.guest_tags)
        if allowed:
            clauses.append(column.in_(sorted(allowed)))
        if not clauses:
            return false()
        # NULL / blank tags never match
        return and_(column.isnot(None), or_(*clauses))

    def filter_query(self, query, scope: EffectiveScope, column):
        """Apply the scope filter to a ``select()`` (or legacy Query)."""
        return query.where(self.to_query_filter(scope, column))

    def filter_records(self, records: Iterable, scope: EffectiveScope, tag_getter: Callable) -> list:
        """In-memory counterpart of ``filter_query``."""
        return [r for r in records if self.in_scope(tag_getter(r), scope)]

    # ── Gate ─────────────────────────────────────────────────────────────

    def check(self, target_tag, scope: EffectiveScope) -> None:
        """Raise ForbiddenError when ``scope`` can not act on ``target_tag``."""
        if not self.in_scope(target_tag, scope):
            logger.warning(
                "scope_denied user_id=%s role=%s target_tag=%s",
                getattr(scope, "user_id", None), getattr(scope, "effective_role", None), target_tag,
            )
            raise ForbiddenError("Target is outside your organizational scope", target_tag=target_tag)
