def test_health(app):
    resp = app.test_client().get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["Cache-Control"] == "no-store"


def test_bookings_require_a_session(app):
    resp = app.test_client().get("/bookings")
    assert resp.status_code == 401


def test_create_booking_quotes_and_waits_for_payment(create_booking):
    booking = create_booking()
    assert booking["bookingStatus"] == "PENDING_PAYMENT"
    assert booking["stage"] == "PendingPayment"
    assert booking["finalAmount"] == 2000
    assert booking["advanceRequired"] == 600
    assert booking["hourlyLateRate"] == 125
    assert booking["gracePeriodHours"] == 1
    assert booking["paymentDeadline"] == "2030-01-01T00:15:00Z"
    assert booking["deadline"] == "2030-01-02T03:00:00Z"
    assert booking["bargain"]["status"] == "NONE"


def test_create_booking_validates_input(renter):
    resp = renter.post("/bookings", json={"pickupDateTime": "2030-01-01T02:00:00Z"})
    assert resp.status_code == 400

    past = {"carId": 1, "pickupDateTime": "2029-12-31T00:00:00Z", "dropDateTime": "2030-01-02T00:00:00Z",
            "pricePerDay": 1000}
    resp = renter.post("/bookings", json=past)
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "Pickup date cannot be in the past"

    backwards = dict(past, pickupDateTime="2030-01-03T00:00:00Z")
    assert renter.post("/bookings", json=backwards).status_code == 422

    no_price = dict(past, pickupDateTime="2030-01-01T01:00:00Z", pricePerDay=0)
    assert renter.post("/bookings", json=no_price).status_code == 422

    garbage = dict(past, pickupDateTime="soon")
    assert renter.post("/bookings", json=garbage).status_code == 422


def test_bookings_are_private(renter, other_renter, admin, create_booking):
    booking = create_booking()
    assert other_renter.get(f"/bookings/{booking['id']}").status_code == 404
    assert other_renter.get("/bookings").get_json() == []
    assert renter.get(f"/bookings/{booking['id']}").status_code == 200
    assert [b["id"] for b in admin.get("/bookings").get_json()] == [booking["id"]]


def test_advance_payment_schedules_the_booking(renter, create_booking):
    booking = create_booking()
    resp = renter.post(f"/bookings/{booking['id']}/advance", json={"paymentMethod": "upi"})
    assert resp.status_code == 200
    paid = resp.get_json()["booking"]
    assert paid["bookingStatus"] == "CONFIRMED"
    assert paid["paymentStatus"] == "ADVANCE_PAID"
    assert paid["advancePaid"] == 600
    assert paid["remainingAmount"] == 1400
    assert paid["stage"] == "Scheduled"

    again = renter.post(f"/bookings/{booking['id']}/advance", json={"paymentMethod": "UPI"})
    assert again.status_code == 409


def test_advance_rejects_unknown_method(renter, create_booking):
    booking = create_booking()
    resp = renter.post(f"/bookings/{booking['id']}/advance", json={"paymentMethod": "BARTER"})
    assert resp.status_code == 422


def test_advance_after_payment_window(renter, create_booking, clock):
    booking = create_booking()
    clock.advance(seconds=16 * 60)
    resp = renter.post(f"/bookings/{booking['id']}/advance", json={"paymentMethod": "CARD"})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Payment window has expired"


def test_live_figures_follow_the_server_clock(renter, paid_booking, clock):
    booking_id = paid_booking["id"]

    clock.set("2030-01-01T03:00:00Z")
    active = renter.get(f"/bookings/{booking_id}").get_json()
    assert active["stage"] == "Active"
    assert active["rentalStage"] == "Active"
    assert active["tripStatus"] == "active"
    assert active["live"]["late_fee"] == 0

    clock.set("2030-01-02T05:00:00Z")
    overdue = renter.get(f"/bookings/{booking_id}").get_json()
    assert overdue["stage"] == "Overdue"
    assert overdue["live"] == {
        "stage": "Overdue",
        "late_hours": 2.0,
        "late_fee": 250.0,
        "remaining_amount": 1650.0,
        "is_live": True,
    }
    assert overdue["lateFee"] == 250
    assert overdue["remainingAmount"] == 1650


def test_renter_return_settles_late_fee(renter, admin, paid_booking, clock):
    booking_id = paid_booking["id"]
    clock.set("2030-01-02T05:00:00Z")

    resp = renter.put(f"/bookings/{booking_id}/return", json={"paymentMethod": "CASH"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["settlement"] == {
        "collectedAmount": 1650.0,
        "lateHours": 2.0,
        "lateFee": 250.0,
        "damageCost": 0.0,
        "paymentMethod": "CASH",
    }
    assert body["booking"]["stage"] == "Completed"
    assert body["booking"]["paymentStatus"] == "FULLY_PAID"
    assert body["booking"]["remainingAmount"] == 0
    assert body["booking"]["actualReturnTime"] == "2030-01-02T05:00:00Z"

    # the figures are frozen once settled
    clock.advance(hours=10)
    later = renter.get(f"/bookings/{booking_id}").get_json()
    assert later["lateFee"] == 250
    assert later["live"]["remaining_amount"] == 0

    again = renter.put(f"/bookings/{booking_id}/return", json={"paymentMethod": "CASH"})
    assert again.status_code == 422

    payments = admin.get(f"/admin/bookings/{booking_id}/payments").get_json()
    assert [(p["kind"], p["amount"]) for p in payments] == [("ADVANCE", 600), ("SETTLEMENT", 1650)]


def test_unpaid_booking_cannot_be_returned(renter, create_booking):
    booking = create_booking()
    resp = renter.put(f"/bookings/{booking['id']}/return", json={})
    assert resp.status_code == 422


def test_cancel_before_the_trip(renter, paid_booking):
    resp = renter.post(f"/bookings/{paid_booking['id']}/cancel", json={"reason": "plans changed"})
    assert resp.status_code == 200

    booking = renter.get(f"/bookings/{paid_booking['id']}").get_json()
    assert booking["stage"] == "Cancelled"
    assert booking["bookingStatus"] == "CANCELLED_BY_USER"
    assert booking["refundAmount"] == 0
    assert booking["cancelReason"] == "plans changed"


def test_cannot_cancel_a_running_trip(renter, paid_booking, clock):
    clock.set("2030-01-01T05:00:00Z")
    resp = renter.post(f"/bookings/{paid_booking['id']}/cancel", json={})
    assert resp.status_code == 409


def test_other_renter_cannot_pay_or_cancel(other_renter, create_booking):
    booking = create_booking()
    assert other_renter.post(f"/bookings/{booking['id']}/advance", json={}).status_code == 404
    assert other_renter.post(f"/bookings/{booking['id']}/cancel", json={}).status_code == 404


def test_return_before_pickup_is_refused(renter, admin, paid_booking):
    booking_id = paid_booking["id"]
    resp = renter.put(f"/bookings/{booking_id}/return", json={"paymentMethod": "CASH"})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "A Scheduled booking has not started and cannot be returned"

    booking = renter.get(f"/bookings/{booking_id}").get_json()
    assert booking["stage"] == "Scheduled"
    assert booking["paymentStatus"] == "ADVANCE_PAID"
    payments = admin.get(f"/admin/bookings/{booking_id}/payments").get_json()
    assert [p["kind"] for p in payments] == ["ADVANCE"]
