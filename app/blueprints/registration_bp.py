"""
Registration review blueprint.

Endpoints:
    GET  /api/v1/registrations/pending          — pending list, scope-filtered
    POST /api/v1/registrations/<id>/approve     — approve one registration
    POST /api/v1/registrations/<id>/reject      — reject one registration

All routes need lider_equipe or above. Single-record transitions answer
404 when the registration is missing or already reviewed and 403 when it is
outside the caller's scope (404 when SCOPE_DENIAL_AS_NOT_FOUND is on).
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import register_domain_error_handlers
from app.middleware.scope_required import current_scope, require_scope
from app.services import registration_service
from app.services.roles import TEAM_LEADER

logger = logging.getLogger(__name__)

registration_bp = Blueprint("registration", __name__, url_prefix="/api/v1/registrations")
register_domain_error_handlers(registration_bp)


@registration_bp.route("/pending", methods=["GET"])
@require_scope(min_role=TEAM_LEADER)
def list_pending():
    items = registration_service.list_pending(current_scope())
    return jsonify({"items": items, "total": len(items)}), 200


@registration_bp.route("/<registration_id>/approve", methods=["POST"])
@require_scope(min_role=TEAM_LEADER)
def approve(registration_id):
    data = request.get_json(silent=True) or {}
    result = registration_service.approve_registration(registration_id, current_scope(), notes=data.get("notes"))
    return jsonify(result), 200


@registration_bp.route("/<registration_id>/reject", methods=["POST"])
@require_scope(min_role=TEAM_LEADER)
def reject(registration_id):
    data = request.get_json(silent=True) or {}
    result = registration_service.reject_registration(registration_id, current_scope(), notes=data.get("notes"))
    return jsonify(result), 200
