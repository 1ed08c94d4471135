from laundry_service import orders as orders_module

from conftest import create_order, create_driver_record, register


def test_create_order_prices_and_schedules(client, customer):
    order = create_order(client, customer)

    assert order["totalPrice"] == 1600
    assert order["status"] == "pending"
    assert order["progress"] == 25
    assert order["customerId"] == customer["id"]
    assert order["orderNumber"].startswith("ORD-")
    assert order["deliveryDate"].startswith("2030-01-16T14:00:00")
    assert order["estimatedDelivery"] == "Tomorrow, 2:00 PM"
    assert order["location"]["address"] == "12 Mill Road"
    assert order["items"] == [{"name": "Shirts", "quantity": 4, "weight": None}]
    assert order["qrTokenVerified"] is False
    assert order["version"] == 1
    assert order["qrCodeData"].startswith(f"QUICKSPIN_{order['orderNumber']}_")
    assert order["qrCodeImage"].startswith("data:image/png;base64,")


def test_new_order_has_a_six_step_timeline(client, customer):
    order = create_order(client, customer)

    resp = client.get(f"/orders/{order['id']}", headers=customer["headers"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["order"]["id"] == order["id"]
    assert "qrToken" not in body["order"]

    steps = body["tracking"]["steps"]
    assert [s["name"] for s in steps] == [
        "Order Placed",
        "Pickup Scheduled",
        "Items Collected",
        "In Processing",
        "Ready for Delivery",
        "Delivered",
    ]
    assert [s["completed"] for s in steps] == [True, True, False, False, False, False]
    assert body["tracking"]["currentStep"] == "Pickup Scheduled"


def test_new_order_notifies_admin_and_customer(client, customer, sink):
    order = create_order(client, customer)

    assert sink.rooms("new-order") == ["admin-room"]
    assert sink.rooms("order-update") == [f"customer-{customer['id']}"]
    assert sink.of_type("new-order")[0]["data"]["order_number"] == order["orderNumber"]


def test_order_is_hidden_from_other_customers(client, customer, other_customer):
    order = create_order(client, customer)

    resp = client.get(f"/orders/{order['id']}", headers=other_customer["headers"])
    assert resp.status_code == 404
    assert "order" not in resp.json()

    mine = client.get("/orders", headers=other_customer["headers"]).json()
    assert mine["orders"] == []
    assert mine["pagination"]["total"] == 0


def test_all_orders_is_admin_only(client, admin, customer, other_customer):
    create_order(client, customer)
    create_order(client, other_customer)

    denied = client.get("/orders/all", headers=customer["headers"])
    assert denied.status_code == 403
    assert denied.json()["message"] == "Access denied"

    resp = client.get("/orders/all", headers=admin["headers"])
    assert resp.status_code == 200
    assert {o["customerId"] for o in resp.json()["orders"]} == {customer["id"], other_customer["id"]}


def test_orders_are_paginated_newest_first(client, customer):
    created = [create_order(client, customer) for _ in range(3)]

    first = client.get("/orders", params={"limit": 2}, headers=customer["headers"]).json()
    assert first["pagination"] == {
        "totalPages": 2,
        "currentPage": 1,
        "total": 3,
        "hasNext": True,
        "hasPrev": False,
    }
    assert len(first["orders"]) == 2

    second = client.get("/orders", params={"limit": 2, "page": 2}, headers=customer["headers"]).json()
    assert second["pagination"]["hasPrev"] is True
    seen = {o["id"] for o in first["orders"] + second["orders"]}
    assert seen == {o["id"] for o in created}


def test_admin_search_and_status_filter(client, admin, customer, other_customer):
    target = create_order(client, customer)
    create_order(client, other_customer)

    by_number = client.get("/orders/all", params={"search": target["orderNumber"]}, headers=admin["headers"])
    assert [o["id"] for o in by_number.json()["orders"]] == [target["id"]]

    by_name = client.get("/orders/all", params={"search": "thoko"}, headers=admin["headers"])
    assert [o["customerId"] for o in by_name.json()["orders"]] == [other_customer["id"]]

    client.patch(f"/orders/{target['id']}/status", json={"status": "confirmed"}, headers=admin["headers"])
    confirmed = client.get("/orders/all", params={"status": "confirmed"}, headers=admin["headers"])
    assert [o["id"] for o in confirmed.json()["orders"]] == [target["id"]]

    bad = client.get("/orders/all", params={"status": "lost"}, headers=admin["headers"])
    assert bad.status_code == 400

    for wildcard in ("%", "_"):
        literal = client.get("/orders/all", params={"search": wildcard}, headers=admin["headers"])
        assert literal.json()["orders"] == []


def test_delivered_completes_the_timeline(client, admin, customer):
    order = create_order(client, customer)

    resp = client.patch(f"/orders/{order['id']}/status", json={"status": "delivered"}, headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "delivered"
    assert resp.json()["progress"] == 100
    assert resp.json()["version"] == 2

    tracking = client.get(f"/tracking/{order['id']}", headers=customer["headers"]).json()
    delivered = next(s for s in tracking["steps"] if s["name"] == "Delivered")
    assert delivered["completed"] is True
    assert delivered["timestamp"] is not None
    assert tracking["currentStep"] == "Delivered"
    assert all(s["completed"] for s in tracking["steps"])

    collected = next(s for s in tracking["steps"] if s["name"] == "Items Collected")
    assert collected["description"] == "Items have been collected"


def test_progress_follows_status_unless_given(client, admin, customer):
    order = create_order(client, customer)
    url = f"/orders/{order['id']}/status"

    assert client.patch(url, json={"status": "confirmed"}, headers=admin["headers"]).json()["progress"] == 35
    resp = client.patch(url, json={"status": "in_progress", "progress": 60}, headers=admin["headers"])
    assert resp.json()["progress"] == 60

    tracking = client.get(f"/tracking/{order['id']}", headers=admin["headers"]).json()
    done = {s["name"] for s in tracking["steps"] if s["completed"]}
    assert done == {"Order Placed", "Pickup Scheduled", "Items Collected", "In Processing"}
    assert tracking["currentStep"] == "In Processing"


def test_illegal_transitions_are_conflicts(client, admin, customer):
    order = create_order(client, customer)
    url = f"/orders/{order['id']}/status"

    client.patch(url, json={"status": "in_progress"}, headers=admin["headers"])
    backwards = client.patch(url, json={"status": "confirmed"}, headers=admin["headers"])
    assert backwards.status_code == 409

    # restating the current status is fine
    assert client.patch(url, json={"status": "in_progress"}, headers=admin["headers"]).status_code == 200

    client.patch(url, json={"status": "delivered"}, headers=admin["headers"])
    reopened = client.patch(url, json={"status": "cancelled"}, headers=admin["headers"])
    assert reopened.status_code == 409


def test_customer_may_only_cancel(client, customer, other_customer):
    order = create_order(client, customer)
    url = f"/orders/{order['id']}/status"

    assert client.patch(url, json={"status": "confirmed"}, headers=customer["headers"]).status_code == 403
    assert client.patch(url, json={"status": "cancelled"}, headers=other_customer["headers"]).status_code == 404

    resp = client.patch(url, json={"status": "cancelled"}, headers=customer["headers"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["progress"] == 25


def test_empty_status_update_is_rejected(client, admin, customer):
    order = create_order(client, customer)
    resp = client.patch(f"/orders/{order['id']}/status", json={}, headers=admin["headers"])
    assert resp.status_code == 400


def test_driver_assignment_and_delivery_count(client, admin, customer, sink):
    order = create_order(client, customer)
    fleet = create_driver_record(client, admin)
    url = f"/orders/{order['id']}/status"

    missing = client.patch(url, json={"driverId": "ghost"}, headers=admin["headers"])
    assert missing.status_code == 404
    assert missing.json()["message"] == "Driver not found"

    assigned = client.patch(url, json={"driverId": fleet["id"]}, headers=admin["headers"])
    assert assigned.status_code == 200
    assert assigned.json()["driverId"] == fleet["id"]
    assert sink.rooms("order-assigned") == [f"driver-{fleet['id']}"]
    assert f"driver-{fleet['id']}" in sink.rooms("order-update")
    assert sink.rooms("order-status-updated") == ["admin-room"]

    client.patch(url, json={"status": "delivered"}, headers=admin["headers"])
    # reassignment notice is only sent once
    assert len(sink.of_type("order-assigned")) == 1

    record = client.get(f"/drivers/{fleet['id']}", headers=admin["headers"]).json()
    assert record["deliveryCount"] == 1


def test_assigned_driver_can_read_the_order(client, admin, customer, driver):
    order = create_order(client, customer)
    fleet = create_driver_record(client, admin, user_id=driver["id"])

    assert client.get(f"/orders/{order['id']}", headers=driver["headers"]).status_code == 404
    client.patch(f"/orders/{order['id']}/status", json={"driverId": fleet["id"]}, headers=admin["headers"])
    assert client.get(f"/orders/{order['id']}", headers=driver["headers"]).status_code == 200


def test_qr_can_be_fetched_again_by_its_owner(client, admin, customer, other_customer):
    order = create_order(client, customer)
    url = f"/orders/{order['id']}/qr"

    resp = client.get(url, headers=customer["headers"])
    assert resp.status_code == 200
    assert resp.json()["qrCodeData"] == order["qrCodeData"]
    assert resp.json()["qrCodeImage"].startswith("data:image/png;base64,")

    assert client.get(url, headers=admin["headers"]).status_code == 200
    assert client.get(url, headers=other_customer["headers"]).status_code == 404


def test_status_summary_by_order_number(client, customer):
    order = create_order(client, customer)

    resp = client.get(f"/orders/status/{order['orderNumber']}", headers=customer["headers"])
    assert resp.status_code == 200
    assert resp.json() == {
        "orderNumber": order["orderNumber"],
        "status": "pending",
        "progress": 25,
        "pickupVerified": False,
        "verifiedAt": None,
        "createdAt": resp.json()["createdAt"],
    }

    stranger = register(client, name="Stranger", email="stranger@quickspin.io")
    assert client.get(f"/orders/status/{order['orderNumber']}", headers=stranger["headers"]).status_code == 404
    assert client.get("/orders/status/ORD-000000000", headers=customer["headers"]).status_code == 404


def test_stale_version_is_a_conflict(client, admin, customer, monkeypatch):
    order = create_order(client, customer)
    client.patch(f"/orders/{order['id']}/status", json={"status": "confirmed"}, headers=admin["headers"])

    real_fetch = orders_module._fetch_order
    reads = []

    async def read_before_last_write(order_id):
        current = await real_fetch(order_id)
        reads.append(current["version"])
        if len(reads) == 1:
            return {**current, "version": current["version"] - 1}
        return current

    monkeypatch.setattr(orders_module, "_fetch_order", read_before_last_write)
    resp = client.patch(f"/orders/{order['id']}/status", json={"status": "in_progress"}, headers=admin["headers"])
    monkeypatch.undo()

    assert resp.status_code == 409
    assert resp.json()["message"] == "Order was modified by another request, reload and retry"

    current = client.get(f"/orders/{order['id']}", headers=customer["headers"]).json()["order"]
    assert current["status"] == "confirmed"
    assert current["version"] == 2

    tracking = client.get(f"/tracking/{order['id']}", headers=customer["headers"]).json()
    processing = next(s for s in tracking["steps"] if s["name"] == "In Processing")
    assert processing["completed"] is False
