"""
Auth Models — profiles and role labels.

Profiles carry denormalized placement shortcuts (team/coord/division) next to
the canonical Team → Coordination → Division chain. Role labels are stored as
plain lower-case strings; legacy aliases survive in old rows and are
normalized at read time (see app.services.roles).
"""

import uuid
from datetime import datetime, timezone

from app.models import db


# ═══════════════════════════════════════════════════════════════
# 1. PROFILES
# ═══════════════════════════════════════════════════════════════
class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200))
    email = db.Column(db.String(200), unique=True, nullable=False)
    matricula = db.Column(db.String(50))

    # Denormalized placement; may legitimately diverge from the team chain
    team_id = db.Column(db.String(32), db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    coord_id = db.Column(db.String(32), nullable=True, index=True)
    division_id = db.Column(db.String(32), nullable=True, index=True)
    department_id = db.Column(db.String(32), nullable=True)

    # Free-text area codes captured at registration
    sigla_area = db.Column(db.String(64))
    operational_base = db.Column(db.String(64))

    is_leader = db.Column(db.Boolean, default=False, nullable=False)
    studio_access = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user_roles = db.relationship(
        "UserRole", back_populates="profile", lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self, include_roles=False):
        d = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "matricula": self.matricula,
            "team_id": self.team_id,
            "coord_id": self.coord_id,
            "division_id": self.division_id,
            "department_id": self.department_id,
            "sigla_area": self.sigla_area,
            "operational_base": self.operational_base,
            "is_leader": bool(self.is_leader),
            "studio_access": bool(self.studio_access),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = [ur.role for ur in self.user_roles.all()]
        return d

    def __repr__(self):
        return f"<Profile {self.id} {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. USER_ROLES
# ═══════════════════════════════════════════════════════════════
class UserRole(db.Model):
    __tablename__ = "user_roles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(50), nullable=False)
    assigned_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )

    profile = db.relationship("Profile", back_populates="user_roles")

    def __repr__(self):
        return f"<UserRole {self.user_id}:{self.role}>"
