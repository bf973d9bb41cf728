from datetime import datetime
from models.db import db

# Temples, their services and weekly timings are owned by the catalog side.
# The booking engine only reads them.

class Temple(db.Model):
    __tablename__ = "temples"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    state = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(30), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    services = db.relationship("TempleService", back_populates="temple")
    timings = db.relationship("TempleTiming", back_populates="temple")


class TempleService(db.Model):
    __tablename__ = "temple_services"

    id = db.Column(db.Integer, primary_key=True)
    temple_id = db.Column(db.Integer, db.ForeignKey("temples.id"), nullable=False, index=True)

    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes
    price = db.Column(db.Integer, nullable=False, default=0)  # smallest unit (e.g., INR)

    # availability flag
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    temple = db.relationship("Temple", back_populates="services")


class TempleTiming(db.Model):
    __tablename__ = "temple_timings"

    id = db.Column(db.Integer, primary_key=True)
    temple_id = db.Column(db.Integer, db.ForeignKey("temples.id"), nullable=False, index=True)

    day_of_week = db.Column(db.Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    opening_time = db.Column(db.Time, nullable=False)
    closing_time = db.Column(db.Time, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    temple = db.relationship("Temple", back_populates="timings")

    __table_args__ = (
        db.UniqueConstraint("temple_id", "day_of_week", name="uq_temple_timing_day"),
    )
