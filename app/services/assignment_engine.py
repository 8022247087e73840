"""
Assignment Engine — cross-area, workload-balanced peer evaluator assignment.

One ``assign_pending()`` call is a single batch pass:

    1. Pending events: status == "submitted" and no evaluator yet,
       oldest first (created_at, id).
    2. Evaluator pool: holders of EVALUATOR_ROLES, placement resolved with the
       same precedence as ScopeResolver, in stable order (created_at, id).
    3. Live workload per evaluator: open queue entries (completed_at IS NULL),
       read once and kept as an in-memory counter for the batch.
    4. Per event: eligible = not the submitter, and neither coordination nor
       division equal to the event origin. Lowest current workload wins,
       ties go to pool order.
    5. Persist per event (claim event + insert queue entry + commit). A failed
       commit is rolled back, logged and recorded; the batch moves on.

Events with no eligible evaluator stay untouched and are reported in
``AssignmentResult.unassigned``. A second run over the same data assigns
nothing because the selection query only sees events without an evaluator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.evaluation import EVENT_STATUS_SUBMITTED, EvaluationQueueEntry, Event
from app.services.notification import NotificationDispatcher
from app.services.org_repository import OrgPlacement
from app.services.roles import roles_to_set
from app.services.scope_resolver import ScopeResolver

logger = logging.getLogger(__name__)

DEFAULT_EVALUATOR_ROLES = ("gerente_djt", "gerente_divisao_djtx", "coordenador_djtx", "lider_equipe")


@dataclass(frozen=True)
class PendingEvent:
    id: str
    user_id: str
    team_id: str | None


@dataclass(frozen=True)
class EvaluatorCandidate:
    user_id: str
    coord_id: str | None
    division_id: str | None
    team_id: str | None = None

    @property
    def org_tag(self) -> str | None:
        """Most specific known unit, used to scope workload listings."""
        return self.team_id or self.coord_id or self.division_id


@dataclass
class AssignmentResult:
    considered: int = 0
    assigned: int = 0
    pairs: list[tuple[str, str]] = field(default_factory=list)
    unassigned: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "considered": self.considered,
            "assigned": self.assigned,
            "pairs": [{"event_id": e, "evaluator_id": u} for e, u in self.pairs],
            "unassigned": list(self.unassigned),
            "failed": list(self.failed),
        }


def _same(a: str | None, b: str | None) -> bool:
    """Two organizational ids match only when both are known."""
    return bool(a) and bool(b) and a == b


def is_cross_area(candidate: EvaluatorCandidate, origin: OrgPlacement, submitter_id: str) -> bool:
    """Eligibility of ``candidate`` for an event from ``origin``."""
    if candidate.user_id == submitter_id:
        return False
    if not candidate.coord_id and not candidate.division_id:
        return False
    if _same(candidate.coord_id, origin.coord_id):
        return False
    if _same(candidate.division_id, origin.division_id):
        return False
    return True


class AssignmentEngine:
    """Batch assigner. Build one per run; state lives only for that run."""

    def __init__(
        self,
        resolver: ScopeResolver | None = None,
        evaluator_roles=None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.resolver = resolver or ScopeResolver.from_config()
        if evaluator_roles is None:
            evaluator_roles = current_app.config.get("EVALUATOR_ROLES") or DEFAULT_EVALUATOR_ROLES
        self.evaluator_roles = roles_to_set(evaluator_roles)
        self.dispatcher = dispatcher or NotificationDispatcher()

    # ── Inputs ────────────────────────────────────────────────────────────

    def pending_events(self) -> list[PendingEvent]:
        rows = db.session.execute(
            select(Event.id, Event.user_id, Event.team_id)
            .where(Event.status == EVENT_STATUS_SUBMITTED, Event.assigned_evaluator_id.is_(None))
            .order_by(Event.created_at, Event.id)
        ).all()
        return [PendingEvent(id=r.id, user_id=r.user_id, team_id=r.team_id) for r in rows]

    def evaluator_pool(self) -> list[EvaluatorCandidate]:
        holder_ids = self.resolver.role_repo.holders_of(self.evaluator_roles)
        pool = []
        for profile in self.resolver.org_repo.list_profiles(holder_ids):
            placement = self.resolver.placement_for(profile).placement
            pool.append(EvaluatorCandidate(
                user_id=profile.id,
                coord_id=placement.coord_id,
                division_id=placement.division_id,
                team_id=placement.team_id,
            ))
        return pool

    @staticmethod
    def live_workload(user_ids=None) -> dict[str, int]:
        """Open queue entries per evaluator."""
        stmt = (
            select(EvaluationQueueEntry.assigned_to, func.count(EvaluationQueueEntry.id))
            .where(EvaluationQueueEntry.completed_at.is_(None))
            .group_by(EvaluationQueueEntry.assigned_to)
        )
        if user_ids is not None:
            stmt = stmt.where(EvaluationQueueEntry.assigned_to.in_(list(user_ids)))
        return {str(uid): int(n) for uid, n in db.session.execute(stmt).all()}

    def event_origin(self, event: PendingEvent) -> OrgPlacement:
        """Origin of an event: its team chain, else the submitter's placement."""
        origin = self.resolver.placement_for_team(event.team_id)
        if origin.coord_id or origin.division_id:
            return origin
        submitter = self.resolver.org_repo.get_profile(event.user_id)
        if submitter is None:
            return origin
        return self.resolver.placement_for(submitter).placement

    def workload_report(self) -> list[tuple[EvaluatorCandidate, int]]:
        """Evaluator pool with its live workload, pool order."""
        pool = self.evaluator_pool()
        workload = self.live_workload(c.user_id for c in pool)
        return [(c, workload.get(c.user_id, 0)) for c in pool]

    # ── Selection ─────────────────────────────────────────────────────────

    @staticmethod
    def pick(candidates: list[EvaluatorCandidate], workload: dict[str, int]) -> EvaluatorCandidate | None:
        """Lowest workload; the first candidate wins ties."""
        best = None
        for cand in candidates:
            if best is None or workload.get(cand.user_id, 0) < workload.get(best.user_id, 0):
                best = cand
        return best

    # ── Batch ─────────────────────────────────────────────────────────────

    def assign_pending(self) -> AssignmentResult:
        result = AssignmentResult()
        events = self.pending_events()
        result.considered = len(events)
        if not events:
            logger.info("assignment_batch_empty")
            return result

        pool = self.evaluator_pool()
        workload = self.live_workload(c.user_id for c in pool)
        logger.info(
            "assignment_batch_start events=%d evaluators=%d", len(events), len(pool),
            extra={"job_name": "evaluator_assignment"},
        )

        for event in events:
            origin = self.event_origin(event)
            if not origin.coord_id and not origin.division_id:
                logger.warning("assignment_origin_unknown event_id=%s", event.id, extra={"event_id": event.id})
                result.unassigned.append(event.id)
                continue

            eligible = [c for c in pool if is_cross_area(c, origin, event.user_id)]
            chosen = self.pick(eligible, workload)
            if chosen is None:
                logger.warning(
                    "assignment_no_eligible_evaluator event_id=%s coord=%s division=%s",
                    event.id, origin.coord_id, origin.division_id, extra={"event_id": event.id},
                )
                result.unassigned.append(event.id)
                continue

            try:
                claimed = self._persist(event, chosen.user_id)
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception(
                    "assignment_persist_failed event_id=%s evaluator_id=%s", event.id, chosen.user_id,
                    extra={"event_id": event.id, "evaluator_id": chosen.user_id},
                )
                result.failed.append(event.id)
                continue
            if not claimed:
                logger.info("assignment_already_claimed event_id=%s", event.id)
                continue

            workload[chosen.user_id] = workload.get(chosen.user_id, 0) + 1
            result.assigned += 1
            result.pairs.append((event.id, chosen.user_id))
            logger.info(
                "assignment_created event_id=%s evaluator_id=%s", event.id, chosen.user_id,
                extra={"event_id": event.id, "evaluator_id": chosen.user_id},
            )
            self._notify(event.id, chosen.user_id)

        logger.info(
            "assignment_batch_done considered=%d assigned=%d unassigned=%d failed=%d",
            result.considered, result.assigned, len(result.unassigned), len(result.failed),
            extra={"job_name": "evaluator_assignment"},
        )
        return result

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    def _persist(event: PendingEvent, evaluator_id: str) -> bool:
        """Claim the event and queue it; False when another run got there first."""
        claimed = db.session.execute(
            update(Event)
            .where(Event.id == event.id, Event.assigned_evaluator_id.is_(None))
            .values(assigned_evaluator_id=evaluator_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if not claimed:
            db.session.rollback()
            return False
        db.session.add(EvaluationQueueEntry(
            event_id=event.id,
            assigned_to=evaluator_id,
            is_cross_evaluation=True,
        ))
        db.session.commit()
        return True

    def _notify(self, event_id: str, evaluator_id: str) -> None:
        try:
            self.dispatcher.evaluator_assigned(event_id, evaluator_id)
        except Exception:
            db.session.rollback()
            logger.exception("assignment_notify_failed event_id=%s evaluator_id=%s", event_id, evaluator_id)
