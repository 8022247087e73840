"""
Pending self-registrations awaiting review by a leader.

``sigla_area`` is the organizational tag that decides which approvers can
see and act on the record. It is stored in canonical form (stripped,
upper-cased) so SQL filters can compare the raw column.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import validates

from app.models import db

REGISTRATION_STATUSES = {"pending", "approved", "rejected"}


def canonical_tag(value) -> str | None:
    """Stored form of an organizational tag: stripped and upper-cased."""
    if value is None:
        return None
    return str(value).strip().upper()


class PendingRegistration(db.Model):
    __tablename__ = "pending_registrations"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, index=True)
    matricula = db.Column(db.String(50))
    sigla_area = db.Column(db.String(64), nullable=False, index=True)
    operational_base = db.Column(db.String(64))
    status = db.Column(db.String(20), default="pending", nullable=False, index=True)
    reviewed_by = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    review_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @validates("sigla_area")
    def _store_canonical_tag(self, key, value):
        return canonical_tag(value)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "matricula": self.matricula,
            "sigla_area": self.sigla_area,
            "operational_base": self.operational_base,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PendingRegistration {self.email} {self.status}>"
