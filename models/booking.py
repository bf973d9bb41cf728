from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
PAYMENT_STATUSES = ("pending", "completed", "failed")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    temple_id = db.Column(db.Integer, db.ForeignKey("temples.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("temple_services.id"), nullable=False, index=True)

    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.Time, nullable=False)

    # price snapshot taken at booking time, smallest unit
    amount = db.Column(db.Integer, nullable=False)

    special_requests = db.Column(db.Text, nullable=True)
    contact_phone = db.Column(db.String(30), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="pending")
    # payment_status is written by the payment service only
    payment_status = db.Column(db.String(20), nullable=False, default="pending")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User")
    temple = db.relationship("Temple")
    service = db.relationship("TempleService")

    __table_args__ = (
        # Hard business-rule: one active booking per temple slot (prevents double booking).
        # Cancelled/completed rows fall out of the index so the slot can be booked again.
        db.Index(
            "uq_bookings_active_slot",
            "temple_id", "booking_date", "booking_time",
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'confirmed')"),
            postgresql_where=db.text("status IN ('pending', 'confirmed')"),
        ),
    )
