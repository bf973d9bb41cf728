"""Booking records: creation with a price snapshot, owner cancel and reschedule, reads."""
from datetime import date, datetime, time
from typing import Optional

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from core.conflicts import has_conflict
from core.context import CallerContext
from core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from models import db
from models.booking import Booking, BOOKING_STATUSES
from models.temple import TempleService
from utils.audit import log_event

# pending -> confirmed/completed is driven by temple admins, not by this module
TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"cancelled", "completed"},
    "cancelled": set(),
    "completed": set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, set())


def transition(booking: Booking, new_status: str, reason: Optional[str] = None) -> Booking:
    if new_status not in BOOKING_STATUSES:
        raise ValidationError("Invalid status")
    if not can_transition(booking.status, new_status):
        raise InvalidStateError(f"Cannot change booking from {booking.status} to {new_status}")

    booking.status = new_status
    if new_status == "cancelled":
        booking.cancelled_at = datetime.utcnow()
        booking.cancel_reason = reason
    return booking


ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"


def _today() -> date:
    # same UTC clock as the created_at / updated_at columns
    return datetime.utcnow().date()


def _is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    # Postgres names the index; SQLite lists the indexed columns
    return ACTIVE_SLOT_INDEX in message or "bookings.booking_time" in message


def _flush_slot():
    """Flush pending booking changes, mapping an active-slot clash to ConflictError."""
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_slot_violation(exc):
            # another request took the slot after our check
            raise ConflictError()
        current_app.logger.error("booking write rejected by the database: %s", exc.orig)
        raise InternalError("Could not save booking") from exc


def get_active_service(temple_id: int, service_id: int) -> TempleService:
    service = (
        TempleService.query
        .filter_by(id=service_id, temple_id=temple_id, is_active=True)
        .first()
    )
    if service is None:
        raise NotFoundError("Service not found or not available")
    return service


def add_booking(
    caller: CallerContext,
    service: TempleService,
    day: date,
    at: time,
    amount: int,
    special_requests: Optional[str] = None,
    contact_phone: Optional[str] = None,
) -> Booking:
    """Stage a pending booking in the current transaction (flushed, not committed).

    Raises ConflictError when the slot is taken, either by the early check or
    by the active-slot unique index at flush time. On a flush failure the
    session is rolled back.
    """
    if day < _today():
        raise ValidationError("Cannot book a past date")

    if has_conflict(service.temple_id, day, at):
        raise ConflictError()

    booking = Booking(
        user_id=caller.user_id,
        temple_id=service.temple_id,
        service_id=service.id,
        booking_date=day,
        booking_time=at,
        amount=amount,
        special_requests=special_requests,
        contact_phone=contact_phone,
        status="pending",
        payment_status="pending",
    )
    db.session.add(booking)
    _flush_slot()
    return booking


def create_booking(
    caller: CallerContext,
    temple_id: int,
    service_id: int,
    day: date,
    at: time,
    special_requests: Optional[str] = None,
    contact_phone: Optional[str] = None,
) -> Booking:
    service = get_active_service(temple_id, service_id)

    try:
        booking = add_booking(
            caller, service, day, at, service.price,
            special_requests=special_requests,
            contact_phone=contact_phone,
        )
    except ConflictError:
        log_event(
            "BOOKING_FAIL_ALREADY_BOOKED",
            user_id=caller.user_id,
            entity="temple",
            entity_id=temple_id,
            metadata={"booking_date": day.isoformat(), "booking_time": at.strftime("%H:%M")},
        )
        raise

    db.session.commit()
    current_app.logger.info("booking %s created for user %s", booking.id, caller.user_id)
    log_event("BOOKING_CREATE", user_id=caller.user_id, entity="booking", entity_id=booking.id,
              metadata={"service_id": service.id, "amount": booking.amount})
    return booking


def get_booking(caller: CallerContext, booking_id: int) -> Booking:
    booking = Booking.query.filter_by(id=booking_id, user_id=caller.user_id).first()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def list_bookings(caller: CallerContext, status: Optional[str] = None, limit: Optional[int] = None, offset: int = 0):
    """Caller's bookings, newest slot first. Returns (rows, total)."""
    if status and status not in BOOKING_STATUSES:
        raise ValidationError("Invalid status")

    max_limit = current_app.config.get("BOOKINGS_PAGE_MAX", 100)
    if limit is None:
        limit = current_app.config.get("BOOKINGS_PAGE_LIMIT", 20)
    limit = min(limit, max_limit)

    q = Booking.query.filter_by(user_id=caller.user_id)
    if status:
        q = q.filter_by(status=status)

    total = q.count()
    rows = (
        q.order_by(Booking.booking_date.desc(), Booking.booking_time.desc(), Booking.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return rows, total


def update_status(caller: CallerContext, booking_id: int, new_status: str, reason: Optional[str] = None) -> Booking:
    """Owner-side status change. The only move allowed here is to ``cancelled``."""
    if new_status not in BOOKING_STATUSES:
        raise ValidationError("Invalid status")

    booking = get_booking(caller, booking_id)

    if new_status != "cancelled":
        raise ForbiddenError("You can only cancel your bookings")
    if booking.status == "completed":
        raise InvalidStateError("Cannot cancel completed booking")
    if booking.status == "cancelled":
        raise InvalidStateError("Booking is already cancelled")

    transition(booking, "cancelled", reason=reason)
    db.session.commit()

    log_event("BOOKING_CANCEL", user_id=caller.user_id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason} if reason else None)
    return booking


def reschedule_booking(caller: CallerContext, booking_id: int, day: date, at: time) -> Booking:
    """Move one of the caller's live bookings to another slot at the same temple."""
    booking = get_booking(caller, booking_id)

    if booking.status in ("cancelled", "completed"):
        raise InvalidStateError(f"Cannot reschedule a {booking.status} booking")
    if day < _today():
        raise ValidationError("Cannot book a past date")

    # the booking's own row must not block a move onto the slot it already holds
    if has_conflict(booking.temple_id, day, at, exclude_booking_id=booking.id):
        raise ConflictError()

    previous = {"booking_date": booking.booking_date.isoformat(),
                "booking_time": booking.booking_time.strftime("%H:%M")}
    booking.booking_date = day
    booking.booking_time = at
    _flush_slot()
    db.session.commit()

    log_event("BOOKING_RESCHEDULE", user_id=caller.user_id, entity="booking", entity_id=booking.id,
              metadata={"from": previous, "to": {"booking_date": day.isoformat(), "booking_time": at.strftime("%H:%M")}})
    return booking


def booking_stats(caller: CallerContext) -> dict:
    def _count(status):
        return func.coalesce(func.sum(case((Booking.status == status, 1), else_=0)), 0)

    row = (
        db.session.query(
            func.count(Booking.id),
            _count("pending"),
            _count("confirmed"),
            _count("completed"),
            _count("cancelled"),
            func.coalesce(func.sum(case((Booking.status == "completed", Booking.amount), else_=0)), 0),
        )
        .filter(Booking.user_id == caller.user_id)
        .one()
    )
    total, pending, confirmed, completed, cancelled, spent = row
    return {
        "total_bookings": int(total),
        "pending_bookings": int(pending),
        "confirmed_bookings": int(confirmed),
        "completed_bookings": int(completed),
        "cancelled_bookings": int(cancelled),
        "total_spent": int(spent),
    }
