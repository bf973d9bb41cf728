from datetime import date, time

from models.booking import Booking, ACTIVE_BOOKING_STATUSES


def _active_bookings(temple_id: int, day: date):
    return Booking.query.filter(
        Booking.temple_id == temple_id,
        Booking.booking_date == day,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    )


def has_conflict(temple_id: int, day: date, at: time, *, exclude_booking_id=None) -> bool:
    """True if a pending/confirmed booking already holds this temple slot."""
    q = _active_bookings(temple_id, day).filter(Booking.booking_time == at)
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return q.first() is not None


def booked_times(temple_id: int, day: date) -> set:
    # one query for the whole day instead of one per slot
    rows = _active_bookings(temple_id, day).with_entities(Booking.booking_time).all()
    return {_minute(r.booking_time) for r in rows}


def _minute(value: time) -> time:
    return value.replace(second=0, microsecond=0)
