from conftest import create_driver_record


def test_create_driver(client, admin):
    record = create_driver_record(client, admin)
    assert record["vehicle"]["plate"] == "BT 1234"
    assert record["status"] == "active"
    assert record["deliveryCount"] == 0
    assert record["isActive"] is True


def test_duplicates_are_conflicts(client, admin):
    create_driver_record(client, admin)

    same_email = client.post(
        "/drivers",
        json={
            "name": "Copy",
            "email": "fleet1@quickspin.io",
            "phone": "+265 888 999 999",
            "vehicle": {"model": "Nissan", "plate": "ZZ 1"},
        },
        headers=admin["headers"],
    )
    assert same_email.status_code == 409

    same_plate = client.post(
        "/drivers",
        json={
            "name": "Copy",
            "email": "other@quickspin.io",
            "phone": "+265 888 999 999",
            "vehicle": {"model": "Nissan", "plate": "Bt 1234"},
        },
        headers=admin["headers"],
    )
    assert same_plate.status_code == 409


def test_driver_validation(client, admin):
    resp = client.post(
        "/drivers",
        json={
            "name": "Old Van",
            "email": "old@quickspin.io",
            "phone": "call me",
            "vehicle": {"model": "Bedford", "plate": "OLD 1", "year": 1970},
        },
        headers=admin["headers"],
    )
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json()["errors"]}
    assert {"phone", "vehicle.year"} <= fields


def test_link_requires_driver_account(client, admin, customer):
    resp = client.post(
        "/drivers",
        json={
            "name": "Linked",
            "email": "linked@quickspin.io",
            "phone": "0888",
            "vehicle": {"model": "Honda", "plate": "LK 1"},
            "userId": customer["id"],
        },
        headers=admin["headers"],
    )
    assert resp.status_code == 400


def test_list_search_sort_and_status(client, admin):
    a = create_driver_record(client, admin, email="a@quickspin.io", phone="0881", plate="AA 1")
    b = create_driver_record(client, admin, email="b@quickspin.io", phone="0882", plate="BB 2")
    client.patch(f"/drivers/{b['id']}/status", json={"status": "on-delivery"}, headers=admin["headers"])
    client.put(f"/drivers/{a['id']}", json={"name": "Zed", "rating": 4.5}, headers=admin["headers"])

    page = client.get("/drivers", params={"limit": 1}, headers=admin["headers"]).json()
    assert page["pagination"]["total"] == 2
    assert page["pagination"]["totalPages"] == 2

    found = client.get("/drivers", params={"search": "bb 2"}, headers=admin["headers"]).json()
    assert [d["id"] for d in found["drivers"]] == [b["id"]]

    wildcard = client.get("/drivers", params={"search": "_"}, headers=admin["headers"]).json()
    assert wildcard["drivers"] == []
    assert wildcard["pagination"]["total"] == 0

    busy = client.get("/drivers", params={"status": "on-delivery"}, headers=admin["headers"]).json()
    assert [d["id"] for d in busy["drivers"]] == [b["id"]]

    by_name = client.get("/drivers", params={"sortBy": "name", "sortOrder": "asc"}, headers=admin["headers"]).json()
    assert [d["name"] for d in by_name["drivers"]] == ["Fleet Driver", "Zed"]

    assert client.get("/drivers", params={"sortBy": "password"}, headers=admin["headers"]).status_code == 400
    assert client.get("/drivers", params={"status": "asleep"}, headers=admin["headers"]).status_code == 400


def test_update_driver(client, admin):
    record = create_driver_record(client, admin)
    other = create_driver_record(client, admin, email="b@quickspin.io", phone="0882", plate="BB 2")

    resp = client.put(
        f"/drivers/{record['id']}",
        json={"vehicle": {"model": "Toyota Quantum", "plate": "nu 99", "year": 2021}},
        headers=admin["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["vehicle"] == {"model": "Toyota Quantum", "plate": "NU 99", "color": None, "year": 2021}

    clash = client.put(f"/drivers/{record['id']}", json={"email": "b@quickspin.io"}, headers=admin["headers"])
    assert clash.status_code == 409
    assert client.get(f"/drivers/{other['id']}", headers=admin["headers"]).json()["email"] == "b@quickspin.io"


def test_stats_and_soft_delete(client, admin):
    a = create_driver_record(client, admin, email="a@quickspin.io", phone="0881", plate="AA 1")
    b = create_driver_record(client, admin, email="b@quickspin.io", phone="0882", plate="BB 2")
    client.patch(f"/drivers/{b['id']}/status", json={"status": "offline"}, headers=admin["headers"])

    stats = client.get("/drivers/stats", headers=admin["headers"]).json()
    assert stats == {"totalDrivers": 2, "activeDrivers": 1, "totalDeliveries": 0}

    deleted = client.delete(f"/drivers/{a['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True

    assert client.get(f"/drivers/{a['id']}", headers=admin["headers"]).status_code == 404
    remaining = client.get("/drivers", headers=admin["headers"]).json()["drivers"]
    assert [d["id"] for d in remaining] == [b["id"]]
    assert client.get("/drivers/stats", headers=admin["headers"]).json()["totalDrivers"] == 1


def test_drivers_are_admin_only(client, customer, driver):
    for user in (customer, driver):
        assert client.get("/drivers", headers=user["headers"]).status_code == 403
