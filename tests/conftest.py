import pytest

from app import create_app
from config import Config
from models import db
from models.user import Role, User
from rental.clock import FrozenClock
from security.session import create_session

START = "2030-01-01T00:00:00Z"


class RentalTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    CREATE_TABLES_ON_START = True
    BACKGROUND_JOBS_ENABLED = False
    LATE_FEE_CAP_MULTIPLE = None


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def app(clock):
    app = create_app(RentalTestConfig)
    app.config["RENTAL_CLOCK"] = clock
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def make_user(app, email, *roles):
    with app.app_context():
        user = User(email=email, full_name=email.split("@")[0])
        for name in roles:
            user.roles.append(Role.query.filter_by(name=name).first())
        db.session.add(user)
        db.session.commit()
        return user.id, create_session(user.id)


def client_for(app, token):
    client = app.test_client()
    client.set_cookie(app.config["AUTH_COOKIE_NAME"], token)
    return client


@pytest.fixture
def renter(app):
    _, token = make_user(app, "renter@example.com", "RENTER")
    return client_for(app, token)


@pytest.fixture
def other_renter(app):
    _, token = make_user(app, "other@example.com", "RENTER")
    return client_for(app, token)


@pytest.fixture
def admin(app):
    _, token = make_user(app, "admin@example.com", "ADMIN")
    return client_for(app, token)


@pytest.fixture
def super_admin(app):
    _, token = make_user(app, "root@example.com", "SUPER_ADMIN")
    return client_for(app, token)


BOOKING_PAYLOAD = {
    "carId": 7,
    "pickupDateTime": "2030-01-01T02:00:00Z",
    "dropDateTime": "2030-01-02T02:00:00Z",
    "pricePerDay": 2000,
}


@pytest.fixture
def create_booking(renter):
    def _create(client=None, **overrides):
        payload = dict(BOOKING_PAYLOAD, **overrides)
        resp = (client or renter).post("/bookings", json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _create


@pytest.fixture
def paid_booking(renter, create_booking):
    booking = create_booking()
    resp = renter.post(f"/bookings/{booking['id']}/advance", json={"paymentMethod": "UPI"})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["booking"]
