from datetime import date

from models.temple import TempleTiming


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, matching temple_timings.day_of_week."""
    return (day.weekday() + 1) % 7


def get_timing(temple_id: int, day: date):
    """Active timing row for the weekday of ``day``, or None when closed."""
    return (
        TempleTiming.query
        .filter_by(temple_id=temple_id, day_of_week=day_of_week(day), is_active=True)
        .first()
    )
