from models import db
from models.booking import Booking
from models.offer import Offer
from utils.clock import utcnow
from utils.payment_timeout import expire_stale_negotiations, sweep_payment_timeouts
from utils.scheduler import run_housekeeping

from tests.conftest import client_for


def test_unpaid_booking_is_cancelled_after_timeout(app, renter, create_booking, clock):
    booking = create_booking()
    with app.app_context():
        assert sweep_payment_timeouts(utcnow()) == 0

    clock.advance(seconds=16 * 60)
    result = app.test_cli_runner().invoke(args=["sweep-timeouts"])
    assert result.exit_code == 0
    assert "1 bookings cancelled" in result.output

    row = renter.get(f"/bookings/{booking['id']}").get_json()
    assert row["stage"] == "Cancelled"
    assert row["bookingStatus"] == "CANCELLED"
    assert row["cancelReason"] == "Payment timeout"


def test_paid_booking_survives_the_sweep(app, paid_booking, clock):
    clock.advance(hours=1)
    with app.app_context():
        assert sweep_payment_timeouts(utcnow()) == 0
        assert db.session.get(Booking, paid_booking["id"]).booking_status == "CONFIRMED"


def test_idle_offers_expire(app, renter):
    resp = renter.post("/offers", json={
        "carId": 3,
        "offeredPrice": 900,
        "fromDate": "2030-01-05T00:00:00Z",
        "toDate": "2030-01-06T00:00:00Z",
        "pricePerDay": 1000,
    })
    offer_id = resp.get_json()["id"]

    clock = app.config["RENTAL_CLOCK"]
    clock.advance(hours=47)
    with app.app_context():
        assert expire_stale_negotiations(utcnow()) == {"offers": 0, "bookings": 0}
    clock.advance(hours=2)
    with app.app_context():
        assert expire_stale_negotiations(utcnow()) == {"offers": 1, "bookings": 0}
        assert db.session.get(Offer, offer_id).bargain_status == "EXPIRED"


def test_cancelling_expires_the_open_bargain(renter, create_booking):
    booking_id = create_booking()["id"]
    renter.put(f"/bookings/{booking_id}/bargain", json={"action": "counter", "counterPrice": 1500})
    renter.post(f"/bookings/{booking_id}/cancel", json={})
    assert renter.get(f"/bookings/{booking_id}").get_json()["bargain"]["status"] == "EXPIRED"


def test_sync_stages_persists_late_fee(app, paid_booking, clock):
    clock.set("2030-01-02T05:00:00Z")
    result = app.test_cli_runner().invoke(args=["sync-stages"])
    assert "1 bookings updated" in result.output

    with app.app_context():
        row = db.session.get(Booking, paid_booking["id"])
        assert row.rental_stage == "Overdue"
        assert row.late_fee == 250
        assert row.remaining_amount == 1650


def test_housekeeping_job_runs_every_sweep(app, create_booking, paid_booking, clock):
    unpaid = create_booking(carId=8)
    clock.set("2030-01-02T05:00:00Z")
    run_housekeeping(app)

    with app.app_context():
        assert db.session.get(Booking, unpaid["id"]).booking_status == "CANCELLED"
        assert db.session.get(Booking, paid_booking["id"]).rental_stage == "Overdue"


def test_issue_session_and_me(app):
    result = app.test_cli_runner().invoke(args=["issue-session", "New@Example.com", "--name", "New Renter"])
    assert result.exit_code == 0
    token = result.output.strip()

    client = client_for(app, token)
    me = client.get("/auth/me").get_json()
    assert me["email"] == "new@example.com"
    assert me["roles"] == ["RENTER"]
    assert me["actor"] == "user"

    runner = app.test_cli_runner()
    assert "promoted to ADMIN" in runner.invoke(args=["make-admin", "new@example.com"]).output
    assert client.get("/auth/me").get_json()["actor"] == "admin"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_make_admin_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["make-admin", "ghost@example.com"])
    assert "User not found" in result.output
