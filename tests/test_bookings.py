from datetime import time

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import MONDAY, TUESDAY
from core import bookings as booking_store
from core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from models import db, AuditLog, Booking


def _payload(temple, service, **overrides):
    data = {
        "temple_id": temple.id,
        "service_id": service.id,
        "booking_date": MONDAY.isoformat(),
        "booking_time": "09:30",
        "special_requests": "Please chant for the family",
        "contact_phone": "+919800000000",
    }
    data.update(overrides)
    return data


class TestCreateBooking:
    def test_creates_pending_booking_with_price_snapshot(self, client, auth_headers, temple, services):
        resp = client.post("/bookings", json=_payload(temple, services["A"]), headers=auth_headers)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        data = body["data"]
        assert data["amount"] == 500
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["booking_time"] == "09:30"
        assert data["temple_name"] == "Kapaleeshwarar Temple"
        assert data["service_name"] == "Abhishekam"
        assert data["user_name"] == "Lakshmi"

    def test_requires_authentication(self, client, temple, services):
        resp = client.post("/bookings", json=_payload(temple, services["A"]))
        assert resp.status_code == 401
        assert resp.get_json() == {"success": False, "message": "Authentication required"}

    def test_rejects_unknown_token(self, client, temple, services):
        resp = client.post("/bookings", json=_payload(temple, services["A"]),
                           headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("missing", ["temple_id", "service_id", "booking_date", "booking_time"])
    def test_missing_fields(self, client, auth_headers, temple, services, missing):
        data = _payload(temple, services["A"])
        del data[missing]
        resp = client.post("/bookings", json=data, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_malformed_time(self, client, auth_headers, temple, services):
        resp = client.post("/bookings", json=_payload(temple, services["A"], booking_time="half past nine"),
                           headers=auth_headers)
        assert resp.status_code == 400

    def test_unavailable_service_is_not_found(self, client, auth_headers, temple, services):
        services["A"].is_active = False
        db.session.commit()
        resp = client.post("/bookings", json=_payload(temple, services["A"]), headers=auth_headers)
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Service not found or not available"

    def test_service_must_belong_to_temple(self, client, auth_headers, temple, other_temple):
        resp = client.post("/bookings", json=_payload(temple, other_temple.services[0]), headers=auth_headers)
        assert resp.status_code == 404

    def test_past_date_rejected(self, client, auth_headers, temple, services):
        resp = client.post("/bookings", json=_payload(temple, services["A"], booking_date="2020-01-06"),
                           headers=auth_headers)
        assert resp.status_code == 400

    def test_taken_slot_conflicts(self, client, auth_headers, other_auth_headers, temple, services):
        assert client.post("/bookings", json=_payload(temple, services["A"]), headers=auth_headers).status_code == 201

        resp = client.post("/bookings", json=_payload(temple, services["B"]), headers=other_auth_headers)
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "This time slot is already booked"
        assert AuditLog.query.filter_by(action="BOOKING_FAIL_ALREADY_BOOKED").count() == 1

    def test_cancelled_slot_can_be_rebooked(self, client, auth_headers, other_auth_headers, temple, services):
        first = client.post("/bookings", json=_payload(temple, services["A"]), headers=auth_headers).get_json()["data"]
        client.put(f"/bookings/{first['id']}/status", json={"status": "cancelled"}, headers=auth_headers)

        resp = client.post("/bookings", json=_payload(temple, services["A"]), headers=other_auth_headers)
        assert resp.status_code == 201

    def test_amount_is_not_tied_to_later_price_changes(self, caller, temple, services):
        booking = booking_store.create_booking(caller, temple.id, services["A"].id, MONDAY, time(9, 0))
        services["A"].price = 900
        db.session.commit()
        assert db.session.get(Booking, booking.id).amount == 500


class TestNoDoubleBooking:
    def test_unique_index_catches_a_race_past_the_check(self, monkeypatch, caller, other_caller, temple, services):
        booking_store.create_booking(caller, temple.id, services["A"].id, MONDAY, time(10, 0))

        # simulate the other request having read "free" before our insert landed
        monkeypatch.setattr(booking_store, "has_conflict", lambda *args, **kwargs: False)
        with pytest.raises(ConflictError):
            booking_store.create_booking(other_caller, temple.id, services["B"].id, MONDAY, time(10, 0))

        active = Booking.query.filter(
            Booking.temple_id == temple.id,
            Booking.booking_date == MONDAY,
            Booking.booking_time == time(10, 0),
            Booking.status.in_(["pending", "confirmed"]),
        ).count()
        assert active == 1

    def test_other_integrity_errors_are_not_conflicts(self, caller, services):
        # NOT NULL on amount, not the active-slot index
        with pytest.raises(InternalError):
            booking_store.add_booking(caller, services["A"], MONDAY, time(9, 0), amount=None)
        assert Booking.query.count() == 0

    def test_slot_violation_is_recognised_by_index_or_columns(self):
        def _error(message):
            return IntegrityError("INSERT INTO bookings ...", {}, Exception(message))

        assert booking_store._is_slot_violation(_error(
            'duplicate key value violates unique constraint "uq_bookings_active_slot"'))
        assert booking_store._is_slot_violation(_error(
            "UNIQUE constraint failed: bookings.temple_id, bookings.booking_date, bookings.booking_time"))
        assert not booking_store._is_slot_violation(_error("NOT NULL constraint failed: bookings.amount"))

    def test_index_ignores_finished_bookings(self, user, other_user, services, make_booking):
        make_booking(user, services["A"], status="cancelled")
        make_booking(user, services["A"], status="completed")
        make_booking(other_user, services["A"], status="pending")
        assert Booking.query.count() == 3

    def test_confirmed_booking_blocks_slot(self, caller, user, temple, services, make_booking):
        make_booking(user, services["A"], at=time(10, 30), status="confirmed")
        with pytest.raises(ConflictError):
            booking_store.create_booking(caller, temple.id, services["B"].id, MONDAY, time(10, 30))


class TestReadBookings:
    def test_my_bookings_only_lists_own_rows(self, client, auth_headers, user, other_user, services, make_booking):
        make_booking(user, services["A"], at=time(9, 0))
        make_booking(user, services["B"], at=time(10, 0))
        make_booking(other_user, services["A"], at=time(10, 30))

        resp = client.get("/bookings/my-bookings", headers=auth_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert [b["booking_time"] for b in body["data"]] == ["10:00", "09:00"]
        assert body["pagination"] == {"limit": 20, "offset": 0, "total": 2}

    def test_my_bookings_status_filter_and_paging(self, client, auth_headers, user, services, make_booking):
        make_booking(user, services["A"], at=time(9, 0))
        make_booking(user, services["A"], at=time(9, 30), status="cancelled")
        make_booking(user, services["A"], at=time(10, 0))

        resp = client.get("/bookings/my-bookings?status=pending&limit=1&offset=1", headers=auth_headers)
        body = resp.get_json()
        assert [b["booking_time"] for b in body["data"]] == ["09:00"]
        assert body["pagination"]["total"] == 2

    def test_my_bookings_rejects_unknown_status(self, client, auth_headers):
        assert client.get("/bookings/my-bookings?status=lost", headers=auth_headers).status_code == 400

    def test_get_booking_hides_other_users_rows(self, client, auth_headers, other_user, services, make_booking):
        foreign = make_booking(other_user, services["A"])
        assert client.get(f"/bookings/{foreign.id}", headers=auth_headers).status_code == 404

    def test_get_booking(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"])
        resp = client.get(f"/bookings/{booking.id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["id"] == booking.id

    def test_stats(self, client, auth_headers, user, services, make_booking):
        make_booking(user, services["A"], at=time(9, 0), status="completed")
        make_booking(user, services["B"], at=time(9, 30), status="completed")
        make_booking(user, services["A"], at=time(10, 0), status="cancelled")
        make_booking(user, services["A"], at=time(10, 30))

        data = client.get("/bookings/stats", headers=auth_headers).get_json()["data"]
        assert data == {
            "total_bookings": 4,
            "pending_bookings": 1,
            "confirmed_bookings": 0,
            "completed_bookings": 2,
            "cancelled_bookings": 1,
            "total_spent": 800,
        }

    def test_stats_for_new_user(self, caller):
        assert booking_store.booking_stats(caller)["total_spent"] == 0


class TestStatusUpdate:
    def test_owner_can_cancel(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"])
        resp = client.put(f"/bookings/{booking.id}/status",
                          json={"status": "cancelled", "reason": "Travel plans changed"}, headers=auth_headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["status"] == "cancelled"
        assert data["cancel_reason"] == "Travel plans changed"
        assert data["cancelled_at"] is not None

    def test_invalid_status_value(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"])
        resp = client.put(f"/bookings/{booking.id}/status", json={"status": "refunded"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid status"

    @pytest.mark.parametrize("current", ["pending", "confirmed", "cancelled", "completed"])
    def test_completing_is_always_forbidden(self, caller, user, services, make_booking, current):
        booking = make_booking(user, services["A"], status=current)
        with pytest.raises(ForbiddenError):
            booking_store.update_status(caller, booking.id, "completed")

    def test_forbidden_over_http(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"])
        resp = client.put(f"/bookings/{booking.id}/status", json={"status": "confirmed"}, headers=auth_headers)
        assert resp.status_code == 403

    def test_completed_booking_cannot_be_cancelled(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"], status="completed")
        resp = client.put(f"/bookings/{booking.id}/status", json={"status": "cancelled"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Cannot cancel completed booking"

    def test_cancelled_booking_stays_cancelled(self, caller, user, services, make_booking):
        booking = make_booking(user, services["A"], status="cancelled")
        with pytest.raises(InvalidStateError):
            booking_store.update_status(caller, booking.id, "cancelled")

    def test_cannot_cancel_someone_elses_booking(self, caller, other_user, services, make_booking):
        booking = make_booking(other_user, services["A"])
        with pytest.raises(NotFoundError):
            booking_store.update_status(caller, booking.id, "cancelled")
        assert db.session.get(Booking, booking.id).status == "pending"


class TestStateMachine:
    @pytest.mark.parametrize("current,new", [
        ("pending", "confirmed"),
        ("pending", "cancelled"),
        ("confirmed", "cancelled"),
        ("confirmed", "completed"),
    ])
    def test_allowed(self, current, new):
        assert booking_store.can_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        ("pending", "completed"),
        ("confirmed", "pending"),
        ("cancelled", "pending"),
        ("cancelled", "confirmed"),
        ("completed", "cancelled"),
        ("completed", "pending"),
    ])
    def test_rejected(self, current, new):
        assert not booking_store.can_transition(current, new)

    def test_transition_refuses_skips(self):
        booking = Booking(status="pending")
        with pytest.raises(InvalidStateError):
            booking_store.transition(booking, "completed")

    def test_transition_unknown_status(self):
        with pytest.raises(ValidationError):
            booking_store.transition(Booking(status="pending"), "archived")

    def test_transition_to_cancelled_stamps_time(self):
        booking = booking_store.transition(Booking(status="confirmed"), "cancelled", reason="ill")
        assert booking.cancelled_at is not None
        assert booking.cancel_reason == "ill"


class TestReschedule:
    def test_moves_to_free_slot(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"], at=time(9, 30))
        resp = client.put(f"/bookings/{booking.id}/reschedule",
                          json={"booking_date": TUESDAY.isoformat(), "booking_time": "10:00"},
                          headers=auth_headers)

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["booking_date"] == TUESDAY.isoformat()
        assert data["booking_time"] == "10:00"
        assert data["status"] == "pending"
        assert AuditLog.query.filter_by(action="BOOKING_RESCHEDULE").count() == 1

    def test_accepts_date_and_time_keys(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"], at=time(9, 30))
        resp = client.put(f"/bookings/{booking.id}/reschedule",
                          json={"date": MONDAY.isoformat(), "time": "10:30"}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["booking_time"] == "10:30"

    def test_same_slot_is_not_a_conflict_with_itself(self, caller, user, services, make_booking):
        booking = make_booking(user, services["A"], at=time(9, 30), status="confirmed")
        moved = booking_store.reschedule_booking(caller, booking.id, MONDAY, time(9, 30))
        assert moved.booking_time == time(9, 30)

    def test_taken_slot_conflicts(self, client, auth_headers, user, other_user, services, make_booking):
        make_booking(other_user, services["B"], at=time(10, 0))
        booking = make_booking(user, services["A"], at=time(9, 30))

        resp = client.put(f"/bookings/{booking.id}/reschedule",
                          json={"booking_date": MONDAY.isoformat(), "booking_time": "10:00"},
                          headers=auth_headers)
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "This time slot is already booked"
        assert db.session.get(Booking, booking.id).booking_time == time(9, 30)

    def test_unique_index_catches_a_race_past_the_check(self, monkeypatch, caller, user, other_user,
                                                         services, make_booking):
        make_booking(other_user, services["B"], at=time(10, 0))
        booking = make_booking(user, services["A"], at=time(9, 30))

        monkeypatch.setattr(booking_store, "has_conflict", lambda *args, **kwargs: False)
        with pytest.raises(ConflictError):
            booking_store.reschedule_booking(caller, booking.id, MONDAY, time(10, 0))
        assert db.session.get(Booking, booking.id).booking_time == time(9, 30)

    def test_slot_freed_by_cancellation_can_be_taken(self, caller, user, other_user, services, make_booking):
        make_booking(other_user, services["B"], at=time(10, 0), status="cancelled")
        booking = make_booking(user, services["A"], at=time(9, 30))
        assert booking_store.reschedule_booking(caller, booking.id, MONDAY, time(10, 0)).booking_time == time(10, 0)

    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    def test_finished_booking_cannot_move(self, client, auth_headers, user, services, make_booking, status):
        booking = make_booking(user, services["A"], status=status)
        resp = client.put(f"/bookings/{booking.id}/reschedule",
                          json={"booking_date": TUESDAY.isoformat(), "booking_time": "10:00"},
                          headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"Cannot reschedule a {status} booking"

    def test_other_users_booking_is_not_found(self, caller, other_user, services, make_booking):
        booking = make_booking(other_user, services["A"])
        with pytest.raises(NotFoundError):
            booking_store.reschedule_booking(caller, booking.id, TUESDAY, time(10, 0))

    def test_past_date_rejected(self, caller, user, services, make_booking):
        booking = make_booking(user, services["A"])
        with pytest.raises(ValidationError):
            booking_store.reschedule_booking(caller, booking.id, MONDAY.replace(year=2020), time(10, 0))

    def test_past_date_uses_utc_day(self, monkeypatch, caller, user, services, make_booking):
        booking = make_booking(user, services["A"])
        monkeypatch.setattr(booking_store, "_today", lambda: TUESDAY)
        with pytest.raises(ValidationError):
            booking_store.reschedule_booking(caller, booking.id, MONDAY, time(10, 0))

    def test_missing_fields(self, client, auth_headers, user, services, make_booking):
        booking = make_booking(user, services["A"])
        resp = client.put(f"/bookings/{booking.id}/reschedule", json={"booking_date": TUESDAY.isoformat()},
                          headers=auth_headers)
        assert resp.status_code == 400
