"""
Scope Decorators — resolve the caller's EffectiveScope before a route runs.

Usage:
    @bp.route("/api/v1/registrations/pending", methods=["GET"])
    @require_scope(min_role="lider_equipe")
    def list_pending():
        scope = current_scope()
        ...

    @bp.route("/api/v1/evaluations/assign", methods=["POST"])
    @require_scope(roles=("admin", "gerente_djt"))
    def trigger_assignment():
        ...

Order of checks, before any side effect:
    1. no verified identity (g.jwt_user_id)      → 401 ERR_UNAUTHORIZED
    2. identity without a profile                 → 401 ERR_UNAUTHORIZED
    3. effective role below ``min_role`` / not in ``roles`` → 403 ERR_FORBIDDEN
    4. g.scope = EffectiveScope, call the view

Per-record gating (``in_scope`` on the target's tag) happens in the service
layer once the record is loaded.
"""

import functools
import logging

from flask import g

from app.core.exceptions import UnauthorizedError
from app.services.roles import normalize_role
from app.services.scope_resolver import EffectiveScope, ScopeResolver
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_scope() -> EffectiveScope | None:
    """EffectiveScope resolved for this request, if any."""
    return getattr(g, "scope", None)


def require_scope(min_role: str | None = None, roles=None):
    """
    Decorator: require a verified identity and, optionally, a role tier.

    Args:
        min_role: lowest hierarchy label allowed (rank-based).
        roles: explicit allow-list of effective roles.
    """
    allowed = frozenset(normalize_role(r) for r in roles) if roles else None

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if not user_id:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            resolver = ScopeResolver.from_config()
            try:
                scope = resolver.resolve(user_id)
            except UnauthorizedError as exc:
                logger.warning("Scope resolution refused on %s: %s", f.__name__, exc)
                return api_error(E.UNAUTHORIZED, "Authentication required")
            g.scope = scope

            denied = (
                (allowed is not None and scope.effective_role not in allowed)
                or (min_role and not resolver.hierarchy.at_least(scope.effective_role, min_role))
            )
            if denied:
                logger.warning(
                    "User %s denied: role '%s' on %s",
                    scope.user_id, scope.effective_role, f.__name__,
                    extra={"user_id": scope.user_id, "effective_role": scope.effective_role},
                )
                return api_error(E.FORBIDDEN, "Insufficient role for this operation")

            return f(*args, **kwargs)
        return decorated
    return decorator
