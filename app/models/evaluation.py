"""
DJT Quest Platform
Field action evaluation models.

Models:
    - Event: a submitted field action awaiting peer evaluation
    - EvaluationQueueEntry: one outstanding (or completed) evaluator assignment

Live workload of an evaluator = number of queue entries assigned to them
with ``completed_at IS NULL``.
"""

import uuid
from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

EVENT_STATUS_SUBMITTED = "submitted"
EVENT_STATUSES = {"submitted", "awaiting_second_evaluation", "evaluated", "rejected", "retry_pending"}


class Event(db.Model):
    __tablename__ = "events"
    __table_args__ = (
        db.Index("ix_events_pending", "status", "assigned_evaluator_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True,
        comment="Submitter",
    )
    team_id = db.Column(
        db.String(32), db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True,
        comment="Submitter's team at submission time",
    )
    status = db.Column(db.String(40), default=EVENT_STATUS_SUBMITTED, nullable=False)
    assigned_evaluator_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    submitter = db.relationship("Profile", foreign_keys=[user_id])
    queue_entries = db.relationship(
        "EvaluationQueueEntry", back_populates="event", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def is_assigned(self):
        return self.assigned_evaluator_id is not None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "team_id": self.team_id,
            "status": self.status,
            "assigned_evaluator_id": self.assigned_evaluator_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Event {self.id} {self.status}>"


class EvaluationQueueEntry(db.Model):
    __tablename__ = "evaluation_queue"
    __table_args__ = (
        db.UniqueConstraint("event_id", "assigned_to", name="uq_evaluation_queue_event_evaluator"),
        db.Index("ix_evaluation_queue_open", "assigned_to", "completed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    assigned_to = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
    )
    assigned_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    is_cross_evaluation = db.Column(db.Boolean, default=True, nullable=False)

    event = db.relationship("Event", back_populates="queue_entries")

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "assigned_to": self.assigned_to,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "is_cross_evaluation": bool(self.is_cross_evaluation),
        }

    def __repr__(self):
        return f"<EvaluationQueueEntry {self.event_id}->{self.assigned_to}>"
