"""Per-user basket of prospective bookings.

One row per (user, service): adding a service that is already in the basket
overwrites the row. Totals are derived from the current service price on
every read and never stored.
"""
from datetime import date, time
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from core.bookings import get_active_service
from core.context import CallerContext
from core.errors import NotFoundError, ValidationError
from models import db
from models.basket_item import BasketItem
from models.temple import TempleService
from utils.audit import log_event
from utils.parsing import format_time

# marks "field not sent" in partial updates, where None means "clear it"
UNSET = object()


def normalize_devotees(devotees) -> List[dict]:
    """Validate devotee details into an ordered list of {name, attributes}."""
    if devotees is None:
        return []
    if not isinstance(devotees, list):
        raise ValidationError("devotee_details must be a list")

    out = []
    for entry in devotees:
        if not isinstance(entry, dict):
            raise ValidationError("Each devotee must be an object")
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Each devotee needs a name")
        name = name.strip()
        attributes = entry.get("attributes")
        if attributes is None:
            # flat payloads from older clients: everything but name is an attribute
            attributes = {k: v for k, v in entry.items() if k != "name"}
        if not isinstance(attributes, dict):
            raise ValidationError("Devotee attributes must be an object")
        out.append({"name": name, "attributes": attributes})
    return out


def _check_quantity(quantity: int) -> int:
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")
    return quantity


def _apply(item: BasketItem, quantity, day, at, special_requests, devotees):
    item.quantity = quantity
    item.booking_date = day
    item.booking_time = at
    item.special_requests = special_requests
    item.devotee_details = devotees


def upsert_item(
    caller: CallerContext,
    temple_id: int,
    service_id: int,
    quantity: int,
    day: date,
    at: time,
    special_requests: Optional[str] = None,
    devotee_details=None,
) -> BasketItem:
    service = get_active_service(temple_id, service_id)
    quantity = _check_quantity(quantity)
    devotees = normalize_devotees(devotee_details)

    item = BasketItem.query.filter_by(user_id=caller.user_id, service_id=service.id).first()
    created = item is None
    if created:
        item = BasketItem(user_id=caller.user_id, temple_id=service.temple_id, service_id=service.id)
        db.session.add(item)
    _apply(item, quantity, day, at, special_requests, devotees)

    try:
        db.session.commit()
    except IntegrityError:
        # a parallel add inserted the same (user, service) first; update that row
        db.session.rollback()
        item = BasketItem.query.filter_by(user_id=caller.user_id, service_id=service.id).one()
        _apply(item, quantity, day, at, special_requests, devotees)
        db.session.commit()
        created = False

    log_event("BASKET_ADD" if created else "BASKET_UPDATE", user_id=caller.user_id,
              entity="basket_item", entity_id=item.id, metadata={"service_id": service.id, "quantity": quantity})
    return item


def get_item(caller: CallerContext, item_id: int) -> BasketItem:
    item = BasketItem.query.filter_by(id=item_id, user_id=caller.user_id).first()
    if item is None:
        raise NotFoundError("Basket item not found")
    return item


def update_item(
    caller: CallerContext,
    item_id: int,
    quantity: Optional[int] = None,
    day: Optional[date] = None,
    at: Optional[time] = None,
    special_requests=UNSET,
    devotee_details=None,
) -> BasketItem:
    """Partial update of one of the caller's basket rows.

    None leaves a field as is, except ``special_requests``: it is only left
    alone when UNSET, so an explicit None clears it.
    """
    item = get_item(caller, item_id)

    if quantity is not None:
        item.quantity = _check_quantity(quantity)
    if day is not None:
        item.booking_date = day
    if at is not None:
        item.booking_time = at
    if special_requests is not UNSET:
        item.special_requests = special_requests
    if devotee_details is not None:
        item.devotee_details = normalize_devotees(devotee_details)

    db.session.commit()
    log_event("BASKET_UPDATE", user_id=caller.user_id, entity="basket_item", entity_id=item.id)
    return item


def available_items(caller: CallerContext):
    """(item, service) pairs whose service is still bookable, oldest first."""
    return (
        db.session.query(BasketItem, TempleService)
        .join(TempleService, BasketItem.service_id == TempleService.id)
        .filter(BasketItem.user_id == caller.user_id, TempleService.is_active.is_(True))
        .order_by(BasketItem.created_at.asc(), BasketItem.id.asc())
        .all()
    )


def item_to_dict(item: BasketItem, service: TempleService) -> dict:
    return {
        "id": item.id,
        "temple_id": item.temple_id,
        "temple_name": item.temple.name if item.temple else None,
        "service_id": item.service_id,
        "service_name": service.name,
        "price": service.price,
        "is_available": service.is_active,
        "quantity": item.quantity,
        "total_price": item.quantity * service.price,
        "booking_date": item.booking_date.isoformat(),
        "booking_time": format_time(item.booking_time),
        "special_requests": item.special_requests,
        "devotee_details": item.devotee_details or [],
        "created_at": item.created_at.isoformat(),
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def list_items(caller: CallerContext) -> dict:
    items = [item_to_dict(item, service) for item, service in available_items(caller)]
    return {
        "items": items,
        "summary": {
            "total_items": sum(i["quantity"] for i in items),
            "total_amount": sum(i["total_price"] for i in items),
        },
    }


def remove_item(caller: CallerContext, item_id: int) -> None:
    deleted = BasketItem.query.filter_by(id=item_id, user_id=caller.user_id).delete()
    if not deleted:
        db.session.rollback()
        raise NotFoundError("Basket item not found")
    db.session.commit()
    log_event("BASKET_REMOVE", user_id=caller.user_id, entity="basket_item", entity_id=item_id)


def delete_all(caller: CallerContext) -> int:
    """Delete every basket row of the caller in the current transaction."""
    return BasketItem.query.filter_by(user_id=caller.user_id).delete()


def clear(caller: CallerContext) -> int:
    removed = delete_all(caller)
    db.session.commit()
    log_event("BASKET_CLEAR", user_id=caller.user_id, entity="basket", metadata={"removed": removed})
    return removed
