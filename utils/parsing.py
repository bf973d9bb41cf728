from datetime import date, datetime, time

from core.errors import ValidationError


def parse_date(value, field="booking_date") -> date:
    # Expect ISO date like "2026-01-20"
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def parse_time(value, field="booking_time") -> time:
    # "HH:MM" or "HH:MM:SS"; seconds are dropped, slots are minute based
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    raw = str(value).strip() if value is not None else ""
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time().replace(second=0)
        except ValueError:
            continue
    raise ValidationError(f"Invalid {field}. Use HH:MM")


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def parse_int(value, field, default=None, minimum=None):
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return number
