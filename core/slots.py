"""Bookable slot computation for a temple, service and date.

A temple's day is cut into fixed-size slots from opening time (inclusive)
to closing time (exclusive). Slots already held by a pending or confirmed
booking are left out.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from flask import current_app

from core.conflicts import booked_times
from core.timing import get_timing
from models.temple import TempleService

DEFAULT_GRANULARITY_MINUTES = 30

CLOSED_MESSAGE = "Temple is closed on this day"
SERVICE_UNAVAILABLE_MESSAGE = "Service is not available"


@dataclass
class SlotAvailability:
    slots: List[time] = field(default_factory=list)
    # set when the list is empty for a reason other than "fully booked"
    message: Optional[str] = None


def _granularity() -> int:
    return current_app.config.get("SLOT_GRANULARITY_MINUTES", DEFAULT_GRANULARITY_MINUTES)


def enumerate_slots(opening: time, closing: time, granularity_minutes: int) -> List[time]:
    """Slot start times in [opening, closing).

    A closing time off the grid cuts the last slot short; it still starts
    before closing so it is listed.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity must be positive")

    anchor = date(2000, 1, 1)
    cursor = datetime.combine(anchor, opening)
    end = datetime.combine(anchor, closing)
    step = timedelta(minutes=granularity_minutes)

    out = []
    while cursor < end:
        out.append(cursor.time())
        cursor += step
    return out


def availability_for(temple_id: int, service_id: Optional[int], day: date) -> SlotAvailability:
    if service_id is not None:
        service = TempleService.query.filter_by(id=service_id, temple_id=temple_id, is_active=True).first()
        if service is None:
            return SlotAvailability(message=SERVICE_UNAVAILABLE_MESSAGE)

    timing = get_timing(temple_id, day)
    if timing is None:
        return SlotAvailability(message=CLOSED_MESSAGE)

    candidates = enumerate_slots(timing.opening_time, timing.closing_time, _granularity())
    if not candidates:
        return SlotAvailability()

    taken = booked_times(temple_id, day)
    return SlotAvailability(slots=[s for s in candidates if s not in taken])


def compute_slots(temple_id: int, service_id: Optional[int], day: date) -> List[time]:
    return availability_for(temple_id, service_id, day).slots
