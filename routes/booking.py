from flask import Blueprint, request, jsonify, current_app

from core import bookings as booking_store
from core.errors import ValidationError
from core.slots import availability_for
from utils.auth_context import login_required, current_caller
from utils.parsing import parse_date, parse_time, parse_int, format_time

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def booking_to_dict(b):
    return {
        "id": b.id,
        "user_id": b.user_id,
        "user_name": b.user.name if b.user else None,
        "temple_id": b.temple_id,
        "temple_name": b.temple.name if b.temple else None,
        "city": b.temple.city if b.temple else None,
        "state": b.temple.state if b.temple else None,
        "service_id": b.service_id,
        "service_name": b.service.name if b.service else None,
        "duration": b.service.duration if b.service else None,
        "booking_date": b.booking_date.isoformat(),
        "booking_time": format_time(b.booking_time),
        "amount": b.amount,
        "special_requests": b.special_requests,
        "contact_phone": b.contact_phone,
        "status": b.status,
        "payment_status": b.payment_status,
        "created_at": b.created_at.isoformat(),
        "updated_at": b.updated_at.isoformat() if b.updated_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "cancel_reason": b.cancel_reason,
    }


def _optional_text(data, key):
    value = data.get(key)
    if value is None:
        return None
    return str(value).strip() or None


# ---------- DEVOTEES: book a slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    required = ("temple_id", "service_id", "booking_date", "booking_time")
    if any(data.get(k) in (None, "") for k in required):
        raise ValidationError("Temple ID, service ID, booking date, and time are required")

    booking = booking_store.create_booking(
        current_caller(),
        temple_id=parse_int(data.get("temple_id"), "temple_id"),
        service_id=parse_int(data.get("service_id"), "service_id"),
        day=parse_date(data.get("booking_date")),
        at=parse_time(data.get("booking_time")),
        special_requests=_optional_text(data, "special_requests"),
        contact_phone=_optional_text(data, "contact_phone"),
    )
    return jsonify(success=True, message="Booking created successfully", data=booking_to_dict(booking)), 201


# ---------- DEVOTEES: view my bookings ----------
@booking_bp.get("/my-bookings")
@login_required
def my_bookings():
    status = (request.args.get("status") or "").strip() or None
    limit = parse_int(request.args.get("limit"), "limit",
                      default=current_app.config.get("BOOKINGS_PAGE_LIMIT", 20), minimum=1)
    offset = parse_int(request.args.get("offset"), "offset", default=0, minimum=0)

    rows, total = booking_store.list_bookings(current_caller(), status=status, limit=limit, offset=offset)
    return jsonify(
        success=True,
        data=[booking_to_dict(b) for b in rows],
        pagination={"limit": min(limit, current_app.config.get("BOOKINGS_PAGE_MAX", 100)),
                    "offset": offset, "total": total},
    ), 200


@booking_bp.get("/stats")
@login_required
def my_stats():
    return jsonify(success=True, data=booking_store.booking_stats(current_caller())), 200


# ---------- PUBLIC: free slots for a temple day ----------
@booking_bp.get("/available-slots/<int:temple_id>/<date_str>")
def available_slots(temple_id: int, date_str: str):
    day = parse_date(date_str, field="date")
    raw_service = request.args.get("service_id")
    service_id = parse_int(raw_service, "service_id") if raw_service else None

    result = availability_for(temple_id, service_id, day)
    body = {"success": True, "data": [format_time(s) for s in result.slots]}
    if result.message:
        body["message"] = result.message
    return jsonify(body), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = booking_store.get_booking(current_caller(), booking_id)
    return jsonify(success=True, data=booking_to_dict(booking)), 200


# ---------- DEVOTEES: cancel booking ----------
@booking_bp.put("/<int:booking_id>/status")
@login_required
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    status = status.strip() if isinstance(status, str) else ""
    reason = _optional_text(data, "reason")
    if reason:
        reason = reason[:255]

    booking = booking_store.update_status(current_caller(), booking_id, status, reason=reason)
    return jsonify(success=True, message="Booking status updated successfully", data=booking_to_dict(booking)), 200


# ---------- DEVOTEES: move booking to another slot ----------
@booking_bp.put("/<int:booking_id>/reschedule")
@login_required
def reschedule_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    # older clients send date/time
    raw_date = data.get("booking_date", data.get("date"))
    raw_time = data.get("booking_time", data.get("time"))
    if raw_date in (None, "") or raw_time in (None, ""):
        raise ValidationError("New booking date and time are required")

    booking = booking_store.reschedule_booking(
        current_caller(),
        booking_id,
        day=parse_date(raw_date),
        at=parse_time(raw_time),
    )
    return jsonify(success=True, message="Booking rescheduled successfully", data=booking_to_dict(booking)), 200
