from flask import Blueprint, request, jsonify

from core import basket as basket_store
from core.checkout import checkout
from core.errors import ValidationError
from routes.booking import booking_to_dict
from utils.auth_context import login_required, current_caller
from utils.parsing import parse_date, parse_time, parse_int

basket_bp = Blueprint("basket", __name__, url_prefix="/bookings/basket")


def _text(data, key):
    value = data.get(key)
    if value is None:
        return None
    return str(value).strip() or None


@basket_bp.post("/add")
@login_required
def add_to_basket():
    data = request.get_json(silent=True) or {}
    required = ("temple_id", "service_id", "booking_date", "booking_time")
    if any(data.get(k) in (None, "") for k in required):
        raise ValidationError("Temple ID, service ID, booking date, and time are required")

    item = basket_store.upsert_item(
        current_caller(),
        temple_id=parse_int(data.get("temple_id"), "temple_id"),
        service_id=parse_int(data.get("service_id"), "service_id"),
        quantity=parse_int(data.get("quantity"), "quantity", default=1, minimum=1),
        day=parse_date(data.get("booking_date")),
        at=parse_time(data.get("booking_time")),
        special_requests=_text(data, "special_requests"),
        devotee_details=data.get("devotee_details"),
    )
    return jsonify(success=True, message="Service added to basket",
                   data=basket_store.item_to_dict(item, item.service)), 200


@basket_bp.get("")
@login_required
def get_basket():
    return jsonify(success=True, data=basket_store.list_items(current_caller())), 200


@basket_bp.put("/<int:item_id>")
@login_required
def update_basket_item(item_id: int):
    data = request.get_json(silent=True) or {}

    quantity = data.get("quantity")
    booking_date = data.get("booking_date")
    booking_time = data.get("booking_time")

    item = basket_store.update_item(
        current_caller(),
        item_id,
        quantity=parse_int(quantity, "quantity", minimum=1) if quantity is not None else None,
        day=parse_date(booking_date) if booking_date else None,
        at=parse_time(booking_time) if booking_time else None,
        special_requests=_text(data, "special_requests") if "special_requests" in data else basket_store.UNSET,
        devotee_details=data.get("devotee_details"),
    )
    return jsonify(success=True, message="Basket item updated",
                   data=basket_store.item_to_dict(item, item.service)), 200


@basket_bp.delete("/<int:item_id>")
@login_required
def remove_from_basket(item_id: int):
    basket_store.remove_item(current_caller(), item_id)
    return jsonify(success=True, message="Item removed from basket"), 200


@basket_bp.delete("")
@login_required
def clear_basket():
    removed = basket_store.clear(current_caller())
    return jsonify(success=True, message="Basket cleared", data={"removed": removed}), 200


@basket_bp.post("/checkout")
@login_required
def checkout_basket():
    data = request.get_json(silent=True) or {}
    payment_method = _text(data, "payment_method")

    result = checkout(current_caller(), payment_method)
    return jsonify(
        success=True,
        message="Bookings created from basket",
        data={
            "bookings": [booking_to_dict(b) for b in result["bookings"]],
            "total_amount": result["total_amount"],
            "payment_method": result["payment_method"],
        },
    ), 201
