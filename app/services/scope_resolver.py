"""
Scope Resolver — computes the caller's EffectiveScope for one request.

Resolution order:
  1. Role labels → normalized (legacy aliases mapped) → highest-wins pick
     against the injected RoleHierarchy; no match → hierarchy default role.
  2. Placement:
       team   = profile.team_id, else team code derived from sigla_area /
                operational_base
       coord  = profile.coord_id, else team chain
       div    = profile.division_id, else chain from the effective coord
       dept   = profile.department_id, else chain from the effective division
     A profile field always wins. When it disagrees with the hierarchy-derived
     value the pair is kept in ``scope_overrides`` and logged.
  3. Capabilities: is_leader / has_studio_access are OR'd from profile flags,
     privileged tier and the additive non-hierarchical grants.
  4. invited + content_curator (no hierarchy role) presents as content_curator.

The scope is never cached: role or profile edits apply on the next request.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from flask import current_app

from app.core.exceptions import HierarchyIntegrityError, UnauthorizedError
from app.services.org_repository import (
    OrgHierarchyRepository,
    OrgPlacement,
    ProfileRecord,
    clean_code,
)
from app.services.role_repository import RoleAssignmentRepository
from app.services.roles import (
    CONTENT_CURATOR,
    INVITED,
    NON_HIERARCHICAL_GRANTS,
    RoleHierarchy,
    roles_to_set,
)

logger = logging.getLogger(__name__)

_NON_CODE_CHARS = re.compile(r"[^A-Z0-9-]")
_DASH_RUNS = re.compile(r"-+")
TEAM_CODE_MAX_LEN = 32


def normalize_team_code(raw: str | None) -> str | None:
    """Turn a free-text area code into a team id ("djtb cub" → "DJTB-CUB")."""
    code = _NON_CODE_CHARS.sub("-", str(raw or "").strip().upper())
    code = _DASH_RUNS.sub("-", code).strip("-")[:TEAM_CODE_MAX_LEN]
    return code or None


@dataclass(frozen=True)
class ScopeOverride:
    """A profile field that overrides a different hierarchy-derived value."""

    field: str
    override: str
    derived: str


@dataclass(frozen=True)
class PlacementResolution:
    placement: OrgPlacement
    overrides: tuple[ScopeOverride, ...] = ()


@dataclass(frozen=True)
class EffectiveScope:
    user_id: str
    effective_role: str
    roles: frozenset[str]
    team_id: str | None = None
    coord_id: str | None = None
    division_id: str | None = None
    department_id: str | None = None
    is_leader: bool = False
    has_studio_access: bool = False
    scope_overrides: tuple[ScopeOverride, ...] = ()

    @property
    def placement(self) -> OrgPlacement:
        return OrgPlacement(
            team_id=self.team_id,
            coord_id=self.coord_id,
            division_id=self.division_id,
            department_id=self.department_id,
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.effective_role,
            "roles": sorted(self.roles),
            "is_leader": self.is_leader,
            "studio_access": self.has_studio_access,
            "org_scope": {
                "team_id": self.team_id,
                "coord_id": self.coord_id,
                "division_id": self.division_id,
                "department_id": self.department_id,
            },
            "scope_overrides": [
                {"field": o.field, "override": o.override, "derived": o.derived}
                for o in self.scope_overrides
            ],
        }


class ScopeResolver:
    """Stateless resolver; build one per request or share freely."""

    def __init__(
        self,
        hierarchy: RoleHierarchy,
        org_repo: OrgHierarchyRepository | None = None,
        role_repo: RoleAssignmentRepository | None = None,
    ):
        self.hierarchy = hierarchy
        self.org_repo = org_repo or OrgHierarchyRepository()
        self.role_repo = role_repo or RoleAssignmentRepository()

    @classmethod
    def from_config(cls, cfg=None) -> "ScopeResolver":
        """Resolver wired with the hierarchy from app config."""
        cfg = cfg if cfg is not None else current_app.config
        return cls(RoleHierarchy.from_config(cfg))

    # ── Public API ───────────────────────────────────────────────────────

    def resolve(self, user_id: str | None) -> EffectiveScope:
        """Compute the EffectiveScope of a verified identity.

        Raises:
            UnauthorizedError: ``user_id`` is missing or has no profile.
        """
        if not user_id:
            raise UnauthorizedError("Missing identity")
        profile = self.org_repo.get_profile(str(user_id))
        if profile is None:
            logger.warning("scope_resolve_unknown_identity user_id=%s", user_id)
            raise UnauthorizedError("Unknown identity")

        held = roles_to_set(self.role_repo.labels_for(profile.id))
        effective_role = self.select_role(held)
        resolution = self.placement_for(profile)
        placement = resolution.placement

        privileged = self.hierarchy.is_privileged(effective_role)
        scope = EffectiveScope(
            user_id=profile.id,
            effective_role=effective_role,
            roles=held,
            team_id=placement.team_id,
            coord_id=placement.coord_id,
            division_id=placement.division_id,
            department_id=placement.department_id,
            is_leader=profile.is_leader or privileged,
            has_studio_access=(
                profile.studio_access or privileged or bool(held & NON_HIERARCHICAL_GRANTS)
            ),
            scope_overrides=resolution.overrides,
        )
        logger.debug(
            "scope_resolved user_id=%s role=%s team=%s coord=%s division=%s",
            scope.user_id, scope.effective_role, scope.team_id, scope.coord_id, scope.division_id,
        )
        return scope

    def select_role(self, held: frozenset[str]) -> str:
        """Highest-wins pick with the curation-only promotion."""
        selected = self.hierarchy.select(held)
        if selected in (None, INVITED) and CONTENT_CURATOR in held:
            return CONTENT_CURATOR
        return selected or self.hierarchy.default_role

    def placement_for(self, profile: ProfileRecord) -> PlacementResolution:
        """Resolve a profile's placement, profile fields first."""
        overrides: list[ScopeOverride] = []

        team_id = profile.team_id or normalize_team_code(profile.sigla_area or profile.operational_base)
        from_team = self._safe_walk(self.org_repo.chain_from_team, team_id, profile.id)

        coord_id = self._pick("coord_id", profile.coord_id, from_team.coord_id, profile.id, overrides)
        from_coord = (
            from_team
            if coord_id == from_team.coord_id
            else self._safe_walk(self.org_repo.chain_from_coordination, coord_id, profile.id)
        )

        division_id = self._pick("division_id", profile.division_id, from_coord.division_id, profile.id, overrides)
        from_division = (
            from_coord
            if division_id == from_coord.division_id
            else self._safe_walk(self.org_repo.chain_from_division, division_id, profile.id)
        )

        department_id = self._pick(
            "department_id", profile.department_id, from_division.department_id, profile.id, overrides,
        )
        return PlacementResolution(
            placement=OrgPlacement(
                team_id=clean_code(team_id),
                coord_id=coord_id,
                division_id=division_id,
                department_id=department_id,
            ),
            overrides=tuple(overrides),
        )

    def placement_for_team(self, team_id: str | None) -> OrgPlacement:
        """Canonical chain placement for a team (no profile overrides)."""
        return self._safe_walk(self.org_repo.chain_from_team, team_id, None)

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _pick(field, override, derived, user_id, overrides: list[ScopeOverride]):
        if override and derived and override != derived:
            overrides.append(ScopeOverride(field=field, override=override, derived=derived))
            logger.warning(
                "scope_override_divergence user_id=%s field=%s override=%s derived=%s",
                user_id, field, override, derived,
            )
        return override or derived

    @staticmethod
    def _safe_walk(walk, code, user_id) -> OrgPlacement:
        if not code:
            return OrgPlacement()
        try:
            return walk(code)
        except HierarchyIntegrityError as exc:
            logger.error("hierarchy_integrity_error user_id=%s detail=%s", user_id, exc)
            return OrgPlacement()
