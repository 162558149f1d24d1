"""
Integration tests for the REST API endpoints.

The app is built with ``create_app(session_factory=...)`` so the routes run
against the per-test SQLite database.  The rate limiter is switched off.
"""

import time
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from fleetflow.api.app import create_app
from fleetflow.api.middleware import limiter
from fleetflow.domain.enums import EntityType, EventType, VehicleStatus, VehicleType
from fleetflow.services.notifier import EventNotifier, StateChangeEvent
from tests.conftest import ACTOR_ID

HEADERS = {"X-User-Id": str(ACTOR_ID)}


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, add_vehicle, add_driver):
    """AsyncClient backed by SQLite, seeded with one van and one driver."""
    limiter.enabled = False
    await add_vehicle(max_load_kg=500, odometer_km=1000)
    await add_driver(categories=[VehicleType.VAN])

    app = create_app(session_factory=session_factory)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = True


def _trip_body(**overrides):
    body = {
        "origin": {"address": "Depot A", "lat": 51.5, "lng": -0.12},
        "destination": {"address": "Warehouse B"},
        "cargo_weight_kg": 300,
        "vehicle_id": 1,
        "driver_id": 1,
        "revenue": 150.0,
    }
    body.update(overrides)
    return body


async def _create_trip(client: AsyncClient, **overrides) -> dict:
    resp = await client.post("/api/v1/trips", json=_trip_body(**overrides), headers=HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "subscribers": 0}


@pytest.mark.asyncio
async def test_create_trip_returns_201(client: AsyncClient):
    data = await _create_trip(client)
    assert data["status"] == "draft"
    assert data["reference_code"].startswith("TRP-")
    assert data["origin"] == {"address": "Depot A", "lat": 51.5, "lng": -0.12}
    assert data["start_odometer"] == 1000


@pytest.mark.asyncio
async def test_create_requires_actor(client: AsyncClient):
    resp = await client.post("/api/v1/trips", json=_trip_body())
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_rejects_negative_cargo(client: AsyncClient):
    resp = await client.post(
        "/api/v1/trips", json=_trip_body(cargo_weight_kg=-1), headers=HEADERS
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_overweight_cargo_is_400_with_rule(client: AsyncClient):
    resp = await client.post(
        "/api/v1/trips", json=_trip_body(cargo_weight_kg=9999), headers=HEADERS
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "eligibility_rejected"
    assert body["context"]["rule"] == "capacity"
    assert "500 kg" in body["detail"]


@pytest.mark.asyncio
async def test_unknown_driver_is_404(client: AsyncClient):
    resp = await client.post(
        "/api/v1/trips", json=_trip_body(driver_id=42), headers=HEADERS
    )
    assert resp.status_code == 404
    assert resp.json()["context"] == {"entity_type": "driver", "entity_id": 42}


@pytest.mark.asyncio
async def test_full_lifecycle(client: AsyncClient):
    trip = await _create_trip(client)

    resp = await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "dispatched"
    assert resp.json()["dispatched_at"] is not None

    vehicle = (await client.get("/api/v1/vehicles/1")).json()
    assert vehicle["status"] == "on_trip"
    driver = (await client.get("/api/v1/drivers/1")).json()
    assert driver["status"] == "on_duty"
    assert driver["assigned_vehicle_id"] == 1

    resp = await client.patch(
        f"/api/v1/trips/{trip['id']}/complete",
        json={"end_odometer": 1200, "fuel_liters": 20, "fuel_cost": 36.5},
        headers=HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"

    vehicle = (await client.get("/api/v1/vehicles/1")).json()
    assert vehicle == {**vehicle, "status": "available", "odometer_km": 1200}

    expenses = (await client.get(f"/api/v1/trips/{trip['id']}/expenses")).json()
    assert len(expenses) == 1
    assert expenses[0]["cost"] == 36.5

    audit = (
        await client.get(
            "/api/v1/audit", params={"entity_type": "trip", "entity_id": trip["id"]}
        )
    ).json()
    assert audit["total"] == 3
    assert audit["items"][0]["action"] == "trip_completed"


@pytest.mark.asyncio
async def test_dispatch_completed_trip_is_409(client: AsyncClient):
    trip = await _create_trip(client)
    await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)
    await client.patch(
        f"/api/v1/trips/{trip['id']}/complete",
        json={"end_odometer": 1100},
        headers=HEADERS,
    )

    resp = await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)
    assert resp.status_code == 409
    assert resp.json()["code"] == "state_conflict"
    assert resp.json()["context"]["current"] == "completed"


@pytest.mark.asyncio
async def test_end_odometer_below_start_is_422(client: AsyncClient):
    trip = await _create_trip(client)
    await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)

    resp = await client.patch(
        f"/api/v1/trips/{trip['id']}/complete",
        json={"end_odometer": 10},
        headers=HEADERS,
    )
    assert resp.status_code == 422
    assert resp.json()["context"]["field"] == "end_odometer"
    assert resp.json()["code"] == "odometer_regression"


@pytest.mark.asyncio
async def test_cancel_dispatched_trip(client: AsyncClient):
    trip = await _create_trip(client)
    await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)

    resp = await client.patch(f"/api/v1/trips/{trip['id']}/cancel", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert (await client.get("/api/v1/vehicles/1")).json()["status"] == "available"


@pytest.mark.asyncio
async def test_cancel_already_cancelled_trip_fails(client: AsyncClient):
    trip = await _create_trip(client)
    await client.patch(f"/api/v1/trips/{trip['id']}/cancel", headers=HEADERS)
    resp = await client.patch(f"/api/v1/trips/{trip['id']}/cancel", headers=HEADERS)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_get_trip_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/trips/9999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Trip 9999 not found."


@pytest.mark.asyncio
async def test_list_trips_paginates(client: AsyncClient):
    for _ in range(3):
        await _create_trip(client)

    resp = await client.get("/api/v1/trips", params={"limit": 2, "page": 2})
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["items"]) == 1


@pytest.mark.asyncio
async def test_vehicle_status_change(client: AsyncClient):
    resp = await client.patch(
        "/api/v1/vehicles/1/status", json={"status": "in_shop"}, headers=HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_shop"

    resp = await client.post("/api/v1/trips", json=_trip_body(), headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["context"]["rule"] == "vehicle_unavailable"


@pytest.mark.asyncio
async def test_vehicle_cannot_be_set_on_trip_by_hand(client: AsyncClient):
    resp = await client.patch(
        "/api/v1/vehicles/1/status", json={"status": "on_trip"}, headers=HEADERS
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_vehicles_by_type(client: AsyncClient):
    resp = await client.get("/api/v1/vehicles", params={"type": "van"})
    assert resp.json()["total"] == 1
    resp = await client.get("/api/v1/vehicles", params={"type": "truck"})
    assert resp.json()["total"] == 0


@pytest.mark.asyncio
async def test_driver_suspension_blocks_trips(client: AsyncClient):
    resp = await client.patch(
        "/api/v1/drivers/1/status", json={"status": "suspended"}, headers=HEADERS
    )
    assert resp.status_code == 200

    resp = await client.post("/api/v1/trips", json=_trip_body(), headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["context"]["rule"] == "driver_suspended"


@pytest.mark.asyncio
async def test_log_maintenance_takes_vehicle_out_of_pool(client: AsyncClient):
    resp = await client.post(
        "/api/v1/vehicles/1/maintenance",
        json={"maintenance_type": "Oil Change", "provider": "QuickLube", "cost": 80},
        headers=HEADERS,
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["vehicle"]["status"] == "in_shop"
    assert data["maintenance"]["maintenance_type"] == "Oil Change"
    assert data["maintenance"]["created_by"] == ACTOR_ID

    resp = await client.post("/api/v1/trips", json=_trip_body(), headers=HEADERS)
    assert resp.status_code == 400
    assert resp.json()["context"]["rule"] == "vehicle_unavailable"

    resp = await client.get("/api/v1/maintenance", params={"vehicle_id": 1})
    page = resp.json()
    assert page["total"] == 1
    assert page["items"][0]["provider"] == "QuickLube"


@pytest.mark.asyncio
async def test_maintenance_on_dispatched_vehicle_is_409(client: AsyncClient):
    trip = await _create_trip(client)
    await client.patch(f"/api/v1/trips/{trip['id']}/dispatch", headers=HEADERS)

    resp = await client.post(
        "/api/v1/vehicles/1/maintenance",
        json={"maintenance_type": "Oil Change", "cost": 80},
        headers=HEADERS,
    )
    assert resp.status_code == 409
    assert resp.json()["context"]["current"] == "on_trip"
    assert "Retry-After" not in resp.headers


@pytest.mark.asyncio
async def test_maintenance_rejects_negative_cost(client: AsyncClient):
    resp = await client.post(
        "/api/v1/vehicles/1/maintenance",
        json={"maintenance_type": "Oil Change", "cost": -5},
        headers=HEADERS,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_record_and_list_fuel_expenses(client: AsyncClient):
    trip = await _create_trip(client)
    resp = await client.post(
        "/api/v1/expenses",
        json={"vehicle_id": 1, "trip_id": trip["id"], "liters": 12.5, "cost": 22.0},
        headers=HEADERS,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["created_by"] == ACTOR_ID

    resp = await client.post(
        "/api/v1/expenses", json={"vehicle_id": 1, "cost": 9.0}, headers=HEADERS
    )
    assert resp.status_code == 201

    resp = await client.get("/api/v1/expenses", params={"vehicle_id": 1})
    assert resp.json()["total"] == 2
    resp = await client.get("/api/v1/expenses", params={"trip_id": trip["id"]})
    page = resp.json()
    assert page["total"] == 1
    assert page["items"][0]["liters"] == 12.5


@pytest.mark.asyncio
async def test_expense_for_unknown_vehicle_is_404(client: AsyncClient):
    resp = await client.post(
        "/api/v1/expenses", json={"vehicle_id": 99, "cost": 9.0}, headers=HEADERS
    )
    assert resp.status_code == 404


# ── Live events (WebSocket) ───────────────────────────────────────────


def _wait_for_subscriber(notifier: EventNotifier, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while notifier.subscriber_count == 0:
        if time.monotonic() > deadline:
            raise AssertionError("WebSocket observer never subscribed")
        time.sleep(0.01)


def test_event_stream_forwards_filtered_events():
    notifier = EventNotifier()
    app = create_app(session_factory=MagicMock(), notifier=notifier)

    with TestClient(app) as client:
        with client.websocket_connect("/api/v1/events?entity_type=vehicle") as ws:
            _wait_for_subscriber(notifier)
            notifier.publish(
                StateChangeEvent(
                    EventType.TRIP_CREATED, EntityType.TRIP, 1, {"status": "draft"}
                )
            )
            notifier.publish(
                StateChangeEvent(
                    EventType.VEHICLE_UPDATE,
                    EntityType.VEHICLE,
                    3,
                    {"status": VehicleStatus.IN_SHOP},
                )
            )

            message = ws.receive_json()

    assert message["event_type"] == "vehicle:update"
    assert message["entity_id"] == 3
    assert message["new_state"] == {"status": "in_shop"}
