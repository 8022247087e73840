"""
Scope blueprint — effective scope introspection.

Endpoints:
    GET /api/v1/auth/me   — EffectiveScope of the caller
"""

from flask import Blueprint, jsonify

from app.blueprints import register_domain_error_handlers
from app.middleware.scope_required import current_scope, require_scope

scope_bp = Blueprint("scope", __name__, url_prefix="/api/v1/auth")
register_domain_error_handlers(scope_bp)


@scope_bp.route("/me", methods=["GET"])
@require_scope()
def me():
    """Role, capabilities and organizational placement of the caller."""
    return jsonify(current_scope().to_dict()), 200
