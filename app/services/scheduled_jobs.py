"""
DJT Quest Platform
Scheduled Jobs — batch entry points registered with the SchedulerService.

Jobs:
    - evaluator_assignment: assign pending events to cross-area evaluators
    - org_hierarchy_integrity: report dangling links in the org hierarchy
"""

from __future__ import annotations

import logging
from typing import Any

from app.services.assignment_engine import AssignmentEngine
from app.services.org_repository import OrgHierarchyRepository
from app.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("evaluator_assignment")
def run_evaluator_assignment(app) -> dict[str, Any]:
    """Assign every pending event to the least-loaded cross-area evaluator."""
    result = AssignmentEngine().assign_pending()
    return result.to_dict()


@register_job("org_hierarchy_integrity")
def run_org_hierarchy_integrity(app) -> dict[str, Any]:
    """Report teams, coordinations and divisions whose parent row is missing."""
    issues = OrgHierarchyRepository().find_integrity_issues()
    for issue in issues:
        logger.warning(
            "Hierarchy link missing: %s %s -> %s",
            issue["level"], issue["id"], issue["missing_parent"],
            extra={"job_name": "org_hierarchy_integrity"},
        )
    return {"issues_found": len(issues), "issues": issues}
