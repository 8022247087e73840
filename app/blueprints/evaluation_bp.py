"""
Evaluation blueprint — evaluator assignment batch trigger and workload view.

Endpoints:
    POST /api/v1/evaluations/assign     — run the evaluator_assignment job
    GET  /api/v1/evaluations/workload   — live workload per evaluator
    GET  /api/v1/evaluations/jobs       — batch jobs with their run history
    PATCH /api/v1/evaluations/jobs/<job_name>/toggle — enable or disable a job
"""

import logging

from flask import Blueprint, jsonify, request

from app.blueprints import register_domain_error_handlers
from app.middleware.scope_required import current_scope, require_scope
from app.services.assignment_engine import AssignmentEngine
from app.services.authorization import AuthorizationFilter
from app.services.roles import ADMIN, COORD, MANAGER
from app.services.scheduler_service import SchedulerService
from app.core.exceptions import ValidationError
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

evaluation_bp = Blueprint("evaluation", __name__, url_prefix="/api/v1/evaluations")
register_domain_error_handlers(evaluation_bp)

ASSIGNMENT_JOB = "evaluator_assignment"


@evaluation_bp.route("/assign", methods=["POST"])
@require_scope(roles=(ADMIN, MANAGER))
def trigger_assignment():
    """Run one assignment batch now and return its result."""
    scope = current_scope()
    logger.info(
        "Assignment batch triggered by %s", scope.user_id,
        extra={"user_id": scope.user_id, "effective_role": scope.effective_role, "job_name": ASSIGNMENT_JOB},
    )
    run = SchedulerService.run_job(ASSIGNMENT_JOB)
    if run["status"] == "skipped":
        return api_error(E.CONFLICT_DUPLICATE, f"Job {ASSIGNMENT_JOB} skipped: {run['error']}", details=run)
    if run["status"] != "success":
        return api_error(E.INTERNAL, "Assignment batch failed", details={"job_name": ASSIGNMENT_JOB})
    return jsonify(run), 200


@evaluation_bp.route("/workload", methods=["GET"])
@require_scope(min_role=COORD)
def workload():
    """Open assignments per evaluator, limited to the caller's scope."""
    scope = current_scope()
    auth = AuthorizationFilter.from_config()
    rows = [
        (cand, open_items)
        for cand, open_items in AssignmentEngine().workload_report()
        if auth.in_scope(cand.org_tag, scope)
    ]
    items = [
        {
            "evaluator_id": cand.user_id,
            "team_id": cand.team_id,
            "coord_id": cand.coord_id,
            "division_id": cand.division_id,
            "open_items": open_items,
        }
        for cand, open_items in rows
    ]
    return jsonify({"items": items, "total": len(items)}), 200


# ── Batch job management ─────────────────────────────────────────────────


@evaluation_bp.route("/jobs", methods=["GET"])
@require_scope(roles=(ADMIN, MANAGER))
def list_jobs():
    """Registered batch jobs with their enable flag and last run."""
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs)}), 200


@evaluation_bp.route("/jobs/<job_name>/toggle", methods=["PATCH"])
@require_scope(roles=(ADMIN, MANAGER))
def toggle_job(job_name):
    """Enable or disable a batch job."""
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        raise ValidationError("'enabled' field is required (true/false)", {"enabled": "required boolean"})

    result = SchedulerService.toggle_job(job_name, enabled)
    if result is None:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")

    scope = current_scope()
    logger.info(
        "Job %s %s by %s", job_name, "enabled" if enabled else "disabled", scope.user_id,
        extra={"user_id": scope.user_id, "effective_role": scope.effective_role, "job_name": job_name},
    )
    return jsonify(result), 200
