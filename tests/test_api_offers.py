OFFER = {
    "carId": 7,
    "offeredPrice": 1500,
    "fromDate": "2030-01-01T02:00:00Z",
    "toDate": "2030-01-02T02:00:00Z",
    "pricePerDay": 2000,
    "message": "Long-time customer",
}


def make_offer(client, **overrides):
    resp = client.post("/offers", json=dict(OFFER, **overrides))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_create_offer(renter):
    offer = make_offer(renter)
    assert offer["status"] == "USER_OFFERED"
    assert offer["originalPrice"] == 2000
    assert offer["bargain"]["offeredPrice"] == 1500
    assert offer["bargain"]["userAttempts"] == 1
    assert offer["bookingId"] is None


def test_duplicate_open_offer_is_refused(renter):
    make_offer(renter)
    resp = renter.post("/offers", json=OFFER)
    assert resp.status_code == 422


def test_offer_input_validation(renter):
    assert renter.post("/offers", json=dict(OFFER, carId="7")).status_code == 400
    assert renter.post("/offers", json=dict(OFFER, offeredPrice=0)).status_code == 422
    assert renter.post("/offers", json=dict(OFFER, message="x" * 501)).status_code == 422


def test_counter_then_renter_accepts_creates_booking(renter, admin):
    offer = make_offer(renter)

    resp = admin.put(f"/offers/{offer['id']}/counter", json={"counterPrice": 1800, "message": "Best I can do"})
    assert resp.status_code == 200
    assert resp.get_json()["offer"]["status"] == "ADMIN_COUNTERED"
    assert resp.get_json()["offer"]["adminMessage"] == "Best I can do"

    resp = renter.put(f"/offers/{offer['id']}/respond", json={"action": "accept"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["offer"]["status"] == "ACCEPTED"
    booking = body["booking"]
    assert booking["finalAmount"] == 1800
    assert booking["totalAmount"] == 2000
    assert booking["bookingStatus"] == "PENDING_PAYMENT"
    assert booking["bargain"]["status"] == "ACCEPTED"
    assert booking["offerId"] == offer["id"]
    assert body["offer"]["bookingId"] == booking["id"]

    paid = renter.post(f"/bookings/{booking['id']}/advance", json={}).get_json()["booking"]
    assert paid["advancePaid"] == 540


def test_renter_counters_back(renter, admin):
    offer = make_offer(renter)
    admin.put(f"/offers/{offer['id']}/counter", json={"counterPrice": 1900})

    resp = renter.put(f"/offers/{offer['id']}/respond", json={"action": "counter", "offeredPrice": 1700})
    assert resp.status_code == 200
    assert resp.get_json()["offer"]["status"] == "USER_OFFERED"
    assert resp.get_json()["offer"]["bargain"]["userAttempts"] == 2

    # nothing to answer until the admin moves again
    again = renter.put(f"/offers/{offer['id']}/respond", json={"action": "counter", "offeredPrice": 1750})
    assert again.status_code == 409


def test_admin_accepts_offer_at_renter_price(renter, admin):
    offer = make_offer(renter)
    resp = admin.put(f"/offers/{offer['id']}/accept")
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["finalAmount"] == 1500
    assert admin.put(f"/offers/{offer['id']}/accept").status_code == 409


def test_rejected_offer_is_closed(renter, admin):
    offer = make_offer(renter)
    assert admin.put(f"/offers/{offer['id']}/reject").status_code == 200
    resp = renter.put(f"/offers/{offer['id']}/respond", json={"action": "accept"})
    assert resp.status_code == 409
    # a closed offer no longer blocks a new one for the same period
    make_offer(renter)


def test_offer_visibility(renter, other_renter, admin):
    offer = make_offer(renter)
    assert other_renter.get(f"/offers/{offer['id']}").status_code == 404
    assert other_renter.put(f"/offers/{offer['id']}/respond", json={"action": "reject"}).status_code == 404
    assert renter.get(f"/offers/{offer['id']}").status_code == 200
    assert [o["id"] for o in renter.get("/offers/me").get_json()] == [offer["id"]]

    assert renter.get("/offers").status_code == 403
    listed = admin.get("/offers?status=user_offered").get_json()
    assert [o["id"] for o in listed] == [offer["id"]]
    assert admin.get("/offers?status=ACCEPTED").get_json() == []


def test_respond_needs_a_known_action(renter):
    offer = make_offer(renter)
    assert renter.put(f"/offers/{offer['id']}/respond", json={"action": "shrug"}).status_code == 400


def test_offer_accepted_after_pickup_expires_instead(renter, admin, clock):
    offer = make_offer(renter)
    clock.set("2030-01-01T03:00:00Z")

    resp = admin.put(f"/offers/{offer['id']}/accept")
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Offer expired because the pickup date has passed"

    row = renter.get(f"/offers/{offer['id']}").get_json()
    assert row["status"] == "EXPIRED"
    assert row["bookingId"] is None
    assert renter.get("/bookings").get_json() == []
