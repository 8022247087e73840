"""
Role catalogue — canonical labels, legacy aliases and the ordered hierarchy.

Role labels are stored lower-case in ``user_roles.role``. Old rows may still
carry deprecated labels (``gerente``, ``lider_divisao``, ``coordenador``);
every read goes through ``normalize_role`` before the label is used.

The ordered hierarchy is an explicit value (``RoleHierarchy``) handed to the
ScopeResolver at construction time, so alternate hierarchies can be tested
without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

ADMIN = "admin"
MANAGER = "gerente_djt"
DIV_MANAGER = "gerente_divisao_djtx"
COORD = "coordenador_djtx"
TEAM_LEADER = "lider_equipe"
COLLAB = "colaborador"
INVITED = "invited"

# Additive grants outside the hierarchy precedence chain
CONTENT_CURATOR = "content_curator"
FINANCE_ANALYST = "analista_financeiro"

NON_HIERARCHICAL_GRANTS = frozenset({CONTENT_CURATOR, FINANCE_ANALYST})

ROLE_ALIASES: Mapping[str, str] = {
    "gerente": MANAGER,
    "lider_divisao": DIV_MANAGER,
    "coordenador": COORD,
}

DEFAULT_HIERARCHY_ORDER = (ADMIN, MANAGER, DIV_MANAGER, COORD, TEAM_LEADER, COLLAB, INVITED)
DEFAULT_PRIVILEGED = frozenset({ADMIN, MANAGER, DIV_MANAGER, COORD, TEAM_LEADER})


def normalize_role(raw: str | None) -> str:
    """Map a stored label to its canonical form.

    Idempotent: canonical labels pass through unchanged. Empty input yields "".
    """
    r = str(raw or "").strip()
    if not r:
        return ""
    return ROLE_ALIASES.get(r, r)


def roles_to_set(labels: Iterable[str | None]) -> frozenset[str]:
    """Normalize and de-duplicate labels, dropping empties."""
    return frozenset(nr for nr in (normalize_role(r) for r in labels or ()) if nr)


@dataclass(frozen=True)
class RoleHierarchy:
    """Fixed precedence list, highest privilege first.

    ``select`` is a highest-wins pick, not a union: the first label of
    ``order`` the user holds becomes the effective role.
    """

    order: tuple[str, ...] = DEFAULT_HIERARCHY_ORDER
    privileged: frozenset[str] = field(default_factory=lambda: DEFAULT_PRIVILEGED)
    default_role: str = COLLAB

    def __post_init__(self):
        order = tuple(normalize_role(r) for r in self.order if normalize_role(r))
        if len(set(order)) != len(order):
            raise ValueError(f"Role hierarchy has duplicate labels: {order}")
        object.__setattr__(self, "order", order)
        object.__setattr__(self, "privileged", roles_to_set(self.privileged))
        object.__setattr__(self, "default_role", normalize_role(self.default_role) or COLLAB)

    def select(self, held: Iterable[str]) -> str | None:
        """Return the highest-ranked held label, or None when none is ranked."""
        held_set = roles_to_set(held)
        for label in self.order:
            if label in held_set:
                return label
        return None

    def rank(self, role: str) -> int:
        """Position in the hierarchy (0 = highest); unknown labels rank last."""
        try:
            return self.order.index(normalize_role(role))
        except ValueError:
            return len(self.order)

    def is_privileged(self, role: str | None) -> bool:
        return bool(role) and role in self.privileged

    def at_least(self, role: str | None, floor: str) -> bool:
        """True when ``role`` ranks at or above ``floor``."""
        if not role or role not in self.order:
            return False
        return self.rank(role) <= self.rank(floor)

    @classmethod
    def from_config(cls, cfg: Mapping) -> "RoleHierarchy":
        return cls(
            order=tuple(cfg.get("ROLE_HIERARCHY") or DEFAULT_HIERARCHY_ORDER),
            privileged=frozenset(cfg.get("PRIVILEGED_ROLES") or DEFAULT_PRIVILEGED),
            default_role=cfg.get("DEFAULT_ROLE") or COLLAB,
        )


DEFAULT_ROLE_HIERARCHY = RoleHierarchy()
