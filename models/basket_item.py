from datetime import datetime
from models.db import db

class BasketItem(db.Model):
    __tablename__ = "temple_basket"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    temple_id = db.Column(db.Integer, db.ForeignKey("temples.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("temple_services.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.Time, nullable=False)
    special_requests = db.Column(db.Text, nullable=True)

    # ordered list of {"name": ..., "attributes": {...}}
    devotee_details = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    temple = db.relationship("Temple")
    service = db.relationship("TempleService")

    __table_args__ = (
        # Adding the same service again updates the row instead of duplicating it
        db.UniqueConstraint("user_id", "service_id", name="uq_basket_user_service"),
    )
