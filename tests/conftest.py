import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="laundry-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/test.db"
os.environ["ADMIN_EMAIL"] = "admin@quickspin.io"
os.environ["ADMIN_PASSWORD"] = "admin-secret"
os.environ["USE_AWS"] = "False"
os.environ["STORE_QR_IMAGES"] = "False"
os.environ["SEED_DEFAULT_SERVICES"] = "True"

import pytest
from fastapi.testclient import TestClient

from laundry_service.database import engine, metadata
from laundry_service.events import NotificationSink, get_notifier
from laundry_service.main import app

PICKUP = {
    "pickupDate": "2030-01-15T09:00:00",
    "pickupTimeSlot": "09:00 - 11:00",
    "location": {"address": "12 Mill Road", "lat": -13.96, "lon": 33.78},
    "specialInstructions": "Ring twice",
    "items": [{"name": "Shirts", "quantity": 4}],
}


class RecordingSink(NotificationSink):
    """Keeps every published event and passes it on to the real room sink."""

    def __init__(self, forward=None):
        self.events = []
        self.forward = forward

    async def publish(self, room, event_type, data, trace_id=None):
        self.events.append({"room": room, "type": event_type, "data": data})
        if self.forward is not None:
            await self.forward.publish(room, event_type, data, trace_id=trace_id)

    def of_type(self, event_type):
        return [e for e in self.events if e["type"] == event_type]

    def rooms(self, event_type):
        return [e["room"] for e in self.of_type(event_type)]


@pytest.fixture
def sink():
    return RecordingSink(forward=app.state.notifier)


@pytest.fixture
def client(sink):
    metadata.drop_all(engine)
    metadata.create_all(engine)
    app.dependency_overrides[get_notifier] = lambda: sink
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, name="Chikondi Banda", email="chikondi@quickspin.io", password="secret123"):
    resp = client.post(
        "/auth/register",
        json={
            "name": name,
            "email": email,
            "phoneNumber": "+265 991 000 111",
            "address": "12 Mill Road",
            "password": password,
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {"id": body["user"]["id"], "token": body["token"], "headers": auth_headers(body["token"])}


@pytest.fixture
def admin(client):
    resp = client.post("/auth/login", json={"email": "admin@quickspin.io", "password": "admin-secret"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"id": body["user"]["id"], "token": body["token"], "headers": auth_headers(body["token"])}


@pytest.fixture
def customer(client):
    return register(client)


@pytest.fixture
def other_customer(client):
    return register(client, name="Thoko Phiri", email="thoko@quickspin.io")


@pytest.fixture
def driver(client, admin):
    account = register(client, name="Mphatso Driver", email="mphatso@quickspin.io")
    resp = client.patch(f"/auth/users/{account['id']}/status", json={"role": "driver"}, headers=admin["headers"])
    assert resp.status_code == 200, resp.text
    return account


def create_driver_record(client, admin, email="fleet1@quickspin.io", phone="+265 888 000 001",
                         plate="bt 1234", user_id=None):
    payload = {
        "name": "Fleet Driver",
        "email": email,
        "phone": phone,
        "vehicle": {"model": "Toyota Hiace", "plate": plate, "color": "white", "year": 2018},
    }
    if user_id:
        payload["userId"] = user_id
    resp = client.post("/drivers", json=payload, headers=admin["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_order(client, user, services=None, **overrides):
    payload = {**PICKUP, "services": services or [{"serviceId": "wash", "quantity": 2}], **overrides}
    resp = client.post("/orders", json=payload, headers=user["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()
