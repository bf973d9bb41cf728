from datetime import date, time

import pytest

from app import create_app
from config import TestConfig
from core.context import CallerContext
from models import db, User, Temple, TempleService, TempleTiming, Booking
from security.session import issue_token

# 2030-01-07 is a Monday (day_of_week 1), 2030-01-08 a Tuesday
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def temple(app):
    t = Temple(name="Kapaleeshwarar Temple", city="Chennai", state="Tamil Nadu")
    db.session.add(t)
    db.session.flush()
    db.session.add(TempleTiming(temple_id=t.id, day_of_week=1, opening_time=time(9, 0), closing_time=time(11, 0)))
    db.session.commit()
    return t


@pytest.fixture
def services(temple):
    abhishekam = TempleService(temple_id=temple.id, name="Abhishekam", price=500, duration=45)
    archana = TempleService(temple_id=temple.id, name="Archana", price=300, duration=15)
    db.session.add_all([abhishekam, archana])
    db.session.commit()
    return {"A": abhishekam, "B": archana}


@pytest.fixture
def other_temple(app):
    t = Temple(name="Meenakshi Temple", city="Madurai")
    db.session.add(t)
    db.session.flush()
    svc = TempleService(temple_id=t.id, name="Kalyanam", price=750)
    db.session.add(svc)
    db.session.commit()
    return t


def _make_user(email, name):
    user = User(email=email, name=name)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    return _make_user("devotee@example.com", "Lakshmi")


@pytest.fixture
def other_user(app):
    return _make_user("other@example.com", "Ravi")


@pytest.fixture
def caller(user):
    return CallerContext(user_id=user.id)


@pytest.fixture
def other_caller(other_user):
    return CallerContext(user_id=other_user.id)


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user.id)}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {issue_token(other_user.id)}"}


@pytest.fixture
def make_booking():
    """Insert a booking row directly, bypassing the engine (for seeding states)."""
    def _make(user, service, day=MONDAY, at=time(9, 30), status="pending"):
        b = Booking(
            user_id=user.id,
            temple_id=service.temple_id,
            service_id=service.id,
            booking_date=day,
            booking_time=at,
            amount=service.price,
            status=status,
        )
        db.session.add(b)
        db.session.commit()
        return b
    return _make
