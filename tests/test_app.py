from datetime import datetime, timedelta
from types import SimpleNamespace

from conftest import MONDAY
from core import bookings
from models import db, Session
from security.session import issue_token


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["ok"] is True


def test_unknown_route_uses_envelope(client):
    resp = client.get("/nowhere")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_unexpected_error_is_generic_500(app, client, auth_headers, monkeypatch):
    def _boom(caller):
        raise RuntimeError("db exploded")

    monkeypatch.setattr(bookings, "booking_stats", _boom)
    resp = client.get("/bookings/stats", headers=auth_headers)
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "message": "Internal server error"}


def test_expired_token_is_rejected(client, user):
    token = issue_token(user.id)
    sess = Session.query.filter_by(user_id=user.id).one()
    sess.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.session.commit()

    resp = client.get("/bookings/stats", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_revoked_token_is_rejected(client, user):
    token = issue_token(user.id)
    Session.query.filter_by(user_id=user.id).update({"revoked": True})
    db.session.commit()

    assert client.get("/bookings/stats", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_seed_demo_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "Sri Venkateswara Temple" in result.output

    # idempotent
    again = runner.invoke(args=["seed-demo"])
    assert again.exit_code == 0


def test_issue_token_command(app, client):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["issue-token", "new@example.com", "--name", "Meera"])
    assert result.exit_code == 0
    token = result.output.strip()

    resp = client.get("/bookings/stats", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_storage_failure_is_generic_500(client, auth_headers, temple, services, monkeypatch):
    # a service row without a price makes the insert violate NOT NULL on amount
    priceless = SimpleNamespace(id=services["A"].id, temple_id=temple.id, price=None)
    monkeypatch.setattr(bookings, "get_active_service", lambda temple_id, service_id: priceless)

    resp = client.post("/bookings", json={
        "temple_id": temple.id,
        "service_id": services["A"].id,
        "booking_date": MONDAY.isoformat(),
        "booking_time": "09:30",
    }, headers=auth_headers)
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "message": "Internal server error"}
