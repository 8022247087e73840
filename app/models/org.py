"""
Organizational hierarchy models.

    Department  (e.g. "DJT")
      └─ Division      (e.g. "DJTB")
           └─ Coordination  (e.g. "DJTB-STO")
                └─ Team          (e.g. "DJTB-CUB")

Ids are the organizational codes themselves. Each node points one level up;
the repository layer walks the chain and guards against cycles.
"""

from datetime import datetime, timezone

from app.models import db


class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    divisions = db.relationship("Division", back_populates="department", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name}

    def __repr__(self):
        return f"<Department {self.id}>"


class Division(db.Model):
    __tablename__ = "divisions"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    department_id = db.Column(
        db.String(32), db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    department = db.relationship("Department", back_populates="divisions")
    coordinations = db.relationship("Coordination", back_populates="division", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "department_id": self.department_id}

    def __repr__(self):
        return f"<Division {self.id}>"


class Coordination(db.Model):
    __tablename__ = "coordinations"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    division_id = db.Column(
        db.String(32), db.ForeignKey("divisions.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    division = db.relationship("Division", back_populates="coordinations")
    teams = db.relationship("Team", back_populates="coordination", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "division_id": self.division_id}

    def __repr__(self):
        return f"<Coordination {self.id}>"


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    # NULL for units outside the hierarchy (e.g. the guest team)
    coord_id = db.Column(
        db.String(32), db.ForeignKey("coordinations.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    coordination = db.relationship("Coordination", back_populates="teams")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "coord_id": self.coord_id}

    def __repr__(self):
        return f"<Team {self.id}>"
