"""
HTTP surface: envelopes, status codes and the full delivery flow.
"""
from conftest import auth_headers


def create_order(client, customer, price=2000, **extra):
    body = {
        "pickup": {"address": "12 Herbert Macaulay Way, Yaba", "lat": 6.5095, "lng": 3.3711},
        "dropoff": {"address": "5 Allen Avenue, Ikeja", "lat": 6.6018, "lng": 3.3515},
        "items": "Laptop bag",
        "price": price,
    }
    body.update(extra)
    return client.post("/orders", json=body, headers=auth_headers(customer))


def test_end_to_end_delivery_and_payout(client, customer, rider, rider_b, admin):
    res = create_order(client, customer)
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    order = body["order"]
    assert order["status"] == "pending"
    assert order["riderId"] is None
    assert order["financial"] is None
    assert order["price"] == 2000
    order_id = order["id"]

    # Both riders go for it; exactly one wins
    first = client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))
    second = client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider_b))
    assert first.status_code == 200
    assert first.json()["order"]["status"] == "assigned"
    assert second.status_code == 409
    assert second.json() == {"success": False, "error": "Order already assigned"}

    res = client.post(f"/orders/{order_id}/delivery/otp", headers=auth_headers(rider))
    assert res.status_code == 200
    issued = res.json()
    assert issued["order"]["status"] == "delivering"
    assert "otpCode" not in issued["order"]["delivery"]
    assert issued["expiresAt"]

    # The customer sees the code and reads it out to the rider
    seen = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()["order"]
    code = seen["delivery"]["otpCode"]
    assert code.isdigit() and 4 <= len(code) <= 6

    res = client.post(f"/orders/{order_id}/delivery/verify", json={"code": code}, headers=auth_headers(rider))
    assert res.status_code == 200
    delivered = res.json()["order"]
    assert delivered["status"] == "delivered"
    assert delivered["financial"] == {
        "grossAmount": 2000.0,
        "commissionRatePct": 10.0,
        "commissionAmount": 200.0,
        "riderNetAmount": 1800.0,
    }
    assert [t["status"] for t in delivered["timeline"]] == ["pending", "assigned", "delivering", "delivered"]

    res = client.post("/payouts/generate", headers=auth_headers(admin))
    assert res.status_code == 200
    payouts = res.json()["payouts"]
    assert len(payouts) == 1
    assert payouts[0]["riderId"] == rider.user_id
    assert payouts[0]["totals"]["riderNet"] >= 1800
    assert payouts[0]["orders"][0]["orderId"] == order_id

    payout_id = payouts[0]["id"]
    res = client.patch(f"/payouts/{payout_id}/mark-paid", headers=auth_headers(admin))
    assert res.status_code == 200
    paid = res.json()["payout"]
    assert paid["status"] == "paid"
    assert paid["paidAt"]


def test_requires_bearer_token(client):
    res = client.get("/orders/mine")
    assert res.status_code == 401
    assert res.json()["success"] is False

    res = client.get("/orders/mine", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_body_validation_is_400(client, customer):
    res = create_order(client, customer, price="lots")
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["errors"]


def test_missing_addresses_is_400(client, customer):
    res = client.post("/orders", json={"items": "Shoes", "price": 500}, headers=auth_headers(customer))
    assert res.status_code == 400
    assert res.json()["error"] == "Pickup and dropoff addresses are required"


def test_wrong_role_is_403(client, customer, rider):
    res = create_order(client, rider)
    assert res.status_code == 403
    res = client.get("/orders/available", headers=auth_headers(customer))
    assert res.status_code == 403


def test_unknown_order_is_404(client, customer):
    res = client.get("/orders/424242", headers=auth_headers(customer))
    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Order not found"}


def test_outsider_cannot_read_order(client, customer, other_customer):
    order_id = create_order(client, customer).json()["order"]["id"]
    res = client.get(f"/orders/{order_id}", headers=auth_headers(other_customer))
    assert res.status_code == 403


def test_invalid_action_is_400(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))
    res = client.patch(f"/orders/{order_id}/status", json={"action": "deliver"}, headers=auth_headers(rider))
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_manual_status_flow(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))

    for action, status in [("pickup", "picked_up"), ("start", "delivering"), ("deliver", "delivered")]:
        res = client.patch(f"/orders/{order_id}/status", json={"action": action}, headers=auth_headers(rider))
        assert res.status_code == 200
        assert res.json()["order"]["status"] == status

    assert res.json()["order"]["financial"]["riderNetAmount"] == 1800.0


def test_wrong_otp_is_400(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))
    client.post(f"/orders/{order_id}/delivery/otp", headers=auth_headers(rider))

    code = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()["order"]["delivery"]["otpCode"]
    wrong = "1" * len(code) if code != "1" * len(code) else "2" * len(code)
    res = client.post(f"/orders/{order_id}/delivery/verify", json={"code": wrong}, headers=auth_headers(rider))
    assert res.status_code == 400
    assert res.json()["error"] == "Incorrect delivery code"


def test_customer_lists_and_cancels(client, customer):
    first = create_order(client, customer).json()["order"]["id"]
    create_order(client, customer, items="Birthday cake")

    res = client.get("/orders/mine?page=1&page_size=1", headers=auth_headers(customer))
    body = res.json()
    assert len(body["orders"]) == 1
    assert body["pagination"]["total"] == 2

    res = client.get("/orders/mine?search=cake", headers=auth_headers(customer))
    assert [o["items"] for o in res.json()["orders"]] == ["Birthday cake"]

    res = client.post(f"/orders/{first}/cancel", json={"reason": "Wrong address"}, headers=auth_headers(customer))
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "cancelled"


def test_estimate(client, customer):
    res = client.post(
        "/orders/estimate",
        json={"pickup": {"address": "A"}, "dropoff": {"address": "B"}},
        headers=auth_headers(customer),
    )
    assert res.status_code == 200
    assert res.json()["price"] == 800
    assert res.json()["source"] == "minimum_fare"


def test_rider_location_shown_on_active_order(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))

    res = client.patch("/riders/location", json={"lat": 6.51, "lng": 3.37}, headers=auth_headers(rider))
    assert res.status_code == 200

    order = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()["order"]
    assert order["riderLocation"]["lat"] == 6.51
    assert order["riderLocation"]["online"] is True

    assigned = client.get("/orders/assigned", headers=auth_headers(rider)).json()["orders"]
    assert [o["id"] for o in assigned] == [order_id]


def test_delivery_proof_marks_cash_paid(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))

    res = client.patch(
        f"/orders/{order_id}/delivery",
        json={"photoUrl": "https://cdn.example.com/p.jpg", "paymentReceived": True},
        headers=auth_headers(rider),
    )
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["payment"]["status"] == "paid"
    assert order["delivery"]["photoUrl"] == "https://cdn.example.com/p.jpg"


def issue_code(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))
    client.post(f"/orders/{order_id}/delivery/otp", headers=auth_headers(rider))
    code = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()["order"]["delivery"]["otpCode"]
    return order_id, code


def test_numeric_json_code_is_accepted(client, customer, rider):
    order_id, code = issue_code(client, customer, rider)
    res = client.post(
        f"/orders/{order_id}/delivery/verify", json={"code": int(code)}, headers=auth_headers(rider),
    )
    assert res.status_code == 200
    assert res.json()["order"]["status"] == "delivered"


def test_full_width_code_is_a_wrong_code_not_a_crash(client, customer, rider):
    order_id, _ = issue_code(client, customer, rider)
    res = client.post(
        f"/orders/{order_id}/delivery/verify", json={"code": "１２３４"}, headers=auth_headers(rider),
    )
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Incorrect delivery code"}

    order = client.get(f"/orders/{order_id}", headers=auth_headers(customer)).json()["order"]
    assert order["delivery"]["otpAttempts"] == 1


def test_price_negotiation_flow(client, customer, rider):
    order_id = create_order(client, customer, price=2000).json()["order"]["id"]

    res = client.post(
        f"/orders/{order_id}/price-request",
        json={"requestedPrice": 2600, "reason": "Traffic on Third Mainland"},
        headers=auth_headers(rider),
    )
    assert res.status_code == 200
    negotiation = res.json()["order"]["priceNegotiation"]
    assert negotiation["status"] == "requested"
    assert negotiation["requestedPrice"] == 2600.0
    assert negotiation["requestedBy"] == rider.user_id

    again = client.post(f"/orders/{order_id}/price-request", json={"requestedPrice": 2700}, headers=auth_headers(rider))
    assert again.status_code == 400
    assert again.json()["error"] == "Price request already pending"

    res = client.post(
        f"/orders/{order_id}/price-request/respond", json={"accept": True}, headers=auth_headers(customer),
    )
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["price"] == 2600.0
    assert order["originalPrice"] == 2000.0
    assert order["priceNegotiation"]["status"] == "accepted"

    client.patch(f"/orders/{order_id}/accept", headers=auth_headers(rider))
    locked = client.post(f"/orders/{order_id}/price-request", json={"requestedPrice": 3000}, headers=auth_headers(rider))
    assert locked.status_code == 400


def test_price_request_needs_a_rider_and_a_positive_price(client, customer, rider):
    order_id = create_order(client, customer).json()["order"]["id"]
    url = f"/orders/{order_id}/price-request"
    assert client.post(url, json={"requestedPrice": 2500}, headers=auth_headers(customer)).status_code == 403
    res = client.post(url, json={"requestedPrice": 0}, headers=auth_headers(rider))
    assert res.status_code == 400
    assert res.json()["error"] == "Valid requested price is required"
    res = client.post(f"{url}/respond", json={"accept": True}, headers=auth_headers(customer))
    assert res.json()["error"] == "No pending price request"


def test_admin_order_listing(client, customer, other_customer, rider, admin):
    first = create_order(client, customer).json()["order"]["id"]
    create_order(client, other_customer, items="Birthday cake")
    client.patch(f"/orders/{first}/accept", headers=auth_headers(rider))

    res = client.get("/admin/orders", headers=auth_headers(admin))
    assert res.status_code == 200
    body = res.json()
    assert body["pagination"]["total"] == 2

    res = client.get("/admin/orders?status=assigned", headers=auth_headers(admin))
    orders = res.json()["orders"]
    assert [o["id"] for o in orders] == [first]
    assert orders[0]["customer"]["email"] == customer.email
    assert orders[0]["rider"]["id"] == rider.user_id

    res = client.get("/admin/orders?search=cake&page_size=10", headers=auth_headers(admin))
    assert [o["items"] for o in res.json()["orders"]] == ["Birthday cake"]

    assert client.get("/admin/orders", headers=auth_headers(customer)).status_code == 403
