from typing import Optional

from flask import current_app

from core.basket import available_items, delete_all
from core.bookings import add_booking
from core.context import CallerContext
from core.errors import BookingError, ValidationError
from models import db
from utils.audit import log_event


def checkout(caller: CallerContext, payment_method: Optional[str] = None) -> dict:
    """Turn every bookable basket row of the caller into a pending booking.

    All bookings and the basket delete share one transaction: if any item
    fails (a slot taken since it was added, a past date), nothing is booked
    and the basket is left as it was.
    """
    payment_method = payment_method or current_app.config.get("DEFAULT_PAYMENT_METHOD", "razorpay")

    rows = available_items(caller)
    if not rows:
        raise ValidationError("Basket is empty")

    created = []
    total_amount = 0
    try:
        for item, service in rows:
            amount = item.quantity * service.price
            booking = add_booking(
                caller, service, item.booking_date, item.booking_time, amount,
                special_requests=item.special_requests,
            )
            created.append(booking)
            total_amount += amount

        # also drops rows for services that went unavailable
        delete_all(caller)
        db.session.commit()
    except BookingError as exc:
        db.session.rollback()
        log_event("BASKET_CHECKOUT_FAIL", user_id=caller.user_id, entity="basket",
                  metadata={"error": exc.message, "items": len(rows), "staged": len(created)})
        raise
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("checkout for user %s created %d bookings", caller.user_id, len(created))
    log_event("BASKET_CHECKOUT", user_id=caller.user_id, entity="basket",
              metadata={"booking_ids": [b.id for b in created], "total_amount": total_amount,
                        "payment_method": payment_method})
    return {
        "bookings": created,
        "total_amount": total_amount,
        "payment_method": payment_method,
    }
