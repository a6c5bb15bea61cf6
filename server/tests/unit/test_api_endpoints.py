"""Integration tests for API endpoints."""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from conftest import add_booking, add_slot, auth_header
from fastapi.testclient import TestClient

from excursion_booking.models import BookingStatus, UserRole
from excursion_booking.schemas.conflict import AvailabilityUpdate, BookingConflict, ConflictType
from excursion_booking.schemas.slot import SlotAvailability


def booking_payload(excursion, slot, participants=2) -> dict:
    return {
        "excursion_id": str(excursion.id),
        "slot_id": str(slot.id),
        "participants_count": participants,
    }


@pytest.mark.asyncio
async def test_missing_token_is_rejected(test_client, excursion, slot):
    response = await test_client.post("/v1/booking/create", json=booking_payload(excursion, slot))

    assert response.status_code == 401
    data = response.json()
    assert data["status"] == 401
    assert data["success"] is False
    assert "authorization" in data["title"].lower()


@pytest.mark.asyncio
async def test_badly_signed_token_is_rejected(test_client, excursion, slot):
    headers = {"Authorization": "Bearer not-a-jwt"}

    response = await test_client.post("/v1/booking/create", json=booking_payload(excursion, slot), headers=headers)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_role_is_forbidden(test_client, operator_headers):
    response = await test_client.post("/v1/booking/confirm", json={"booking_id": str(uuid4())}, headers=operator_headers)

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_create_and_list_excursions(test_client, guide, guide_headers):
    payload = {
        "title": "Plongée à l'Anse Noire",
        "category": "nautical",
        "duration_hours": 2.5,
        "max_participants": 8,
        "price_per_person": {"amount": 6500, "currency": "EUR"},
        "difficulty_level": 2,
    }

    response = await test_client.post("/v1/excursion/create", json=payload, headers=guide_headers)

    assert response.status_code == 201
    created = response.json()
    assert created["guide_id"] == str(guide.id)
    assert created["price_per_person"] == {"amount": 6500, "currency": "EUR"}
    assert created["is_active"] is True

    response = await test_client.post("/v1/excursion/get", json={"excursion_id": created["id"]})
    assert response.status_code == 200
    assert response.json()["title"] == "Plongée à l'Anse Noire"

    response = await test_client.post("/v1/excursion/list", json={"category": "nautical"})
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [created["id"]]


@pytest.mark.asyncio
async def test_create_slot_and_list_available(test_client, excursion, guide_headers, today):
    payload = {
        "excursion_id": str(excursion.id),
        "date": (today + timedelta(days=3)).isoformat(),
        "start_time": "14:30:00",
        "max_participants": 6,
    }

    response = await test_client.post("/v1/slot/create", json=payload, headers=guide_headers)

    assert response.status_code == 201
    created = response.json()
    assert created["available_spots"] == 6
    assert created["is_available"] is True

    response = await test_client.post("/v1/slot/list-available", json={"excursion_id": str(excursion.id)})
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [created["id"]]


@pytest.mark.asyncio
async def test_booking_lifecycle(test_client, excursion, slot, client_headers, guide_headers):
    response = await test_client.post(
        "/v1/booking/validate", json=booking_payload(excursion, slot, 3)
    )
    assert response.status_code == 200
    assert response.json()["is_valid"] is True

    response = await test_client.post(
        "/v1/booking/create", json=booking_payload(excursion, slot, 3), headers=client_headers
    )
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "pending"
    assert booking["total"] == {"amount": 15000, "currency": "EUR"}
    assert booking["commission"] == {"amount": 1500, "currency": "EUR"}
    assert len(booking["code"]) == 8

    response = await test_client.post(
        "/v1/booking/confirm", json={"booking_id": booking["id"]}, headers=guide_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = await test_client.post(
        "/v1/booking/get", json={"booking_id": booking["id"]}, headers=client_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = await test_client.post("/v1/booking/list", json={}, headers=client_headers)
    assert [item["id"] for item in response.json()["items"]] == [booking["id"]]

    response = await test_client.post(
        "/v1/slot/realtime", json={"excursion_id": str(excursion.id)}
    )
    assert response.json()["slots"][0]["available_spots"] == 7

    response = await test_client.post(
        "/v1/booking/check-in", json={"code": booking["code"].lower()}, headers=guide_headers
    )
    assert response.status_code == 200
    assert response.json()["is_checked_in"] is True

    response = await test_client.post("/v1/booking/stats", json={}, headers=guide_headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 1
    assert stats["confirmed"] == 1
    assert stats["revenue"]["amount"] == 15000


@pytest.mark.asyncio
async def test_strangers_cannot_read_a_booking(test_client, excursion, slot, client_headers):
    response = await test_client.post(
        "/v1/booking/create", json=booking_payload(excursion, slot), headers=client_headers
    )
    booking_id = response.json()["id"]
    stranger = auth_header(uuid4(), [UserRole.CLIENT.value], email="intrus@example.com")

    response = await test_client.post("/v1/booking/get", json={"booking_id": booking_id}, headers=stranger)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_client_cancels_own_booking(test_client, excursion, slot, client_headers):
    response = await test_client.post(
        "/v1/booking/create", json=booking_payload(excursion, slot), headers=client_headers
    )
    booking_id = response.json()["id"]

    response = await test_client.post("/v1/booking/cancel", json={"booking_id": booking_id}, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = await test_client.post("/v1/booking/cancel", json={"booking_id": booking_id}, headers=client_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "STATE_CONFLICT"


@pytest.mark.asyncio
async def test_insufficient_spots_problem(test_client, test_session, excursion, slot, client_headers):
    await add_booking(test_session, slot, 8, status=BookingStatus.CONFIRMED)

    response = await test_client.post(
        "/v1/booking/create", json=booking_payload(excursion, slot, 3), headers=client_headers
    )

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "insufficient_spots"
    assert data["success"] is False
    assert data["error"]
    assert data["available_spots"] == 2
    assert data["requested_participants"] == 3


@pytest.mark.asyncio
async def test_validate_reports_problems_without_failing(test_client, excursion, slot):
    response = await test_client.post("/v1/booking/validate", json=booking_payload(excursion, slot, 11))

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is False
    assert data["error_code"] == "insufficient_spots"
    assert data["available_spots"] == 10


@pytest.mark.asyncio
async def test_malformed_request_lists_violations(test_client, client_headers, slot):
    payload = {"excursion_id": "not-a-uuid", "slot_id": str(slot.id), "participants_count": 2}

    response = await test_client.post("/v1/booking/create", json=payload, headers=client_headers)

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert data["success"] is False
    assert any("excursion_id" in violation["path"] for violation in data["violations"])


@pytest.mark.asyncio
async def test_reseller_cart_checkout(test_client, tour_operator, excursion, slot, operator_headers):
    item = {
        "excursion_id": str(excursion.id),
        "slot_id": str(slot.id),
        "participants_count": 2,
        "client_name": "Famille Martin",
        "client_email": "famille@example.com",
    }

    response = await test_client.post("/v1/reseller/cart/add", json=item, headers=operator_headers)
    assert response.status_code == 201

    response = await test_client.post("/v1/reseller/cart/list", json={}, headers=operator_headers)
    assert len(response.json()["items"]) == 1

    response = await test_client.post("/v1/reseller/cart/checkout", json={}, headers=operator_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["failures"] == []
    assert len(data["bookings"]) == 1
    assert data["bookings"][0]["channel"] == "reseller"
    assert data["bookings"][0]["tour_operator_id"] == str(tour_operator.id)
    assert data["total_revenue"] == {"amount": 10000, "currency": "EUR"}
    assert data["total_commission"] == {"amount": 2000, "currency": "EUR"}

    response = await test_client.post("/v1/reseller/cart/list", json={}, headers=operator_headers)
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_reseller_quote(test_client, tour_operator, operator_headers):
    response = await test_client.post(
        "/v1/reseller/quote",
        json={"price_per_person": 5000, "participants_count": 3},
        headers=operator_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["guide_share"]["amount"] == 9750
    assert data["operator_share"]["amount"] == 3000
    assert data["platform_share"]["amount"] == 2250


@pytest.mark.asyncio
async def test_reseller_routes_need_an_operator_account(test_client, client_headers):
    response = await test_client.post(
        "/v1/reseller/quote",
        json={"price_per_person": 5000, "participants_count": 3},
        headers=client_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_guides_must_scope_conflicts(test_client, excursion, guide_headers, admin_headers):
    response = await test_client.post("/v1/conflict/list", json={}, headers=guide_headers)
    assert response.status_code == 400

    response = await test_client.post(
        "/v1/conflict/list", json={"excursion_id": str(excursion.id)}, headers=guide_headers
    )
    assert response.status_code == 200
    assert response.json()["items"] == []

    response = await test_client.post("/v1/conflict/list", json={}, headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_notifications_after_booking(test_client, excursion, slot, client_headers):
    await test_client.post("/v1/booking/create", json=booking_payload(excursion, slot), headers=client_headers)

    response = await test_client.post("/v1/notification/list", json={}, headers=client_headers)

    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 1
    assert data["unread_count"] == 1

    notification_id = data["items"][0]["id"]
    response = await test_client.post(
        "/v1/notification/mark-read", json={"notification_id": notification_id}, headers=client_headers
    )
    assert response.status_code == 200
    assert response.json()["is_read"] is True


@pytest.mark.asyncio
async def test_register_guide(test_client):
    headers = auth_header(uuid4(), [UserRole.CLIENT.value], email="nadia@example.com", first_name="Nadia")

    response = await test_client.post(
        "/v1/account/register-guide",
        json={"company_name": "Nord Caraïbe Aventures", "city": "Le Carbet"},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["company_name"] == "Nord Caraïbe Aventures"
    assert data["is_verified"] is False

    response = await test_client.post("/v1/account/register-guide", json={}, headers=headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_password_reset(test_client):
    response = await test_client.post(
        "/v1/account/password-reset",
        json={"email": "marie.joseph@example.com", "reset_token": "reset-token-123"},
    )

    assert response.status_code == 200
    assert response.json() == {"sent": True}


class Handle:
    def __init__(self):
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class StreamingSync:
    """Stands in for the sync service: a snapshot, then one update and one conflict."""

    def __init__(self, snapshot, update, conflict):
        self.snapshot = snapshot
        self.update = update
        self.conflict = conflict
        self.callbacks = {}
        self.handles = []

    def _subscribe(self, kind, callback):
        self.callbacks[kind] = callback
        handle = Handle()
        self.handles.append(handle)
        return handle

    def subscribe_to_availability_updates(self, excursion_id, callback):
        return self._subscribe("availability", callback)

    def subscribe_to_booking_conflicts(self, excursion_id, callback):
        return self._subscribe("conflict", callback)

    async def get_realtime_availability(self, excursion_id):
        loop = asyncio.get_running_loop()
        loop.call_soon(self.callbacks["availability"], self.update)
        loop.call_soon(self.callbacks["conflict"], self.conflict)
        return self.snapshot


def test_availability_stream_sends_snapshot_then_changes():
    from excursion_booking.main import create_app

    excursion_id, slot_id = uuid4(), uuid4()
    now = datetime.now(timezone.utc)
    snapshot = [SlotAvailability(
        slot_id=slot_id,
        date=now.date(),
        start_time=now.time().replace(microsecond=0),
        max_participants=10,
        available_spots=10,
        is_available=True,
        computed_at=now,
    )]
    update = AvailabilityUpdate(
        slot_id=slot_id, excursion_id=excursion_id, available_spots=4, is_available=True, timestamp=now
    )
    conflict = BookingConflict(
        slot_id=slot_id,
        excursion_id=excursion_id,
        booking_id=uuid4(),
        requested_participants=5,
        available_spots=-1,
        conflict_type=ConflictType.INSUFFICIENT_SPOTS,
        message="Surbooking détecté: 1 participants en trop",
        detected_at=now,
    )
    sync = StreamingSync(snapshot, update, conflict)

    app = create_app()
    app.state.sync_service = sync
    client = TestClient(app)

    with client.websocket_connect(f"/v1/availability/stream/{excursion_id}") as websocket:
        first = websocket.receive_json()
        second = websocket.receive_json()
        third = websocket.receive_json()

    assert first["type"] == "snapshot"
    assert first["excursion_id"] == str(excursion_id)
    assert first["slots"][0]["available_spots"] == 10
    assert second["type"] == "update"
    assert second["slot"]["available_spots"] == 4
    assert third["type"] == "conflict"
    assert third["conflict"]["available_spots"] == -1
    assert all(handle.unsubscribed for handle in sync.handles)


@pytest.mark.asyncio
async def test_stopping_a_failed_forwarder_logs_the_error(monkeypatch):
    from excursion_booking.routers import availability

    logged = []
    monkeypatch.setattr(availability.logger, "error", lambda message, **kwargs: logged.append(kwargs["extra"]))

    async def failing_send():
        raise RuntimeError("socket closed")

    forwarder = asyncio.create_task(failing_send())
    await asyncio.sleep(0)

    excursion_id = uuid4()
    await availability.stop_forwarder(forwarder, excursion_id)

    assert logged == [{"excursion_id": str(excursion_id), "error": "socket closed"}]


@pytest.mark.asyncio
async def test_stopping_a_running_forwarder_cancels_it(monkeypatch):
    from excursion_booking.routers import availability

    logged = []
    monkeypatch.setattr(availability.logger, "error", lambda message, **kwargs: logged.append(message))
    forwarder = asyncio.create_task(asyncio.Event().wait())

    await availability.stop_forwarder(forwarder, uuid4())

    assert forwarder.cancelled() is True
    assert logged == []


@pytest.mark.asyncio
async def test_checkout_reports_failed_items(test_client, test_session, tour_operator, excursion, slot, operator_headers, today):
    past = await add_slot(test_session, excursion, today - timedelta(days=2))
    for target in (slot, past):
        await test_client.post(
            "/v1/reseller/cart/add",
            json={
                "excursion_id": str(excursion.id),
                "slot_id": str(target.id),
                "participants_count": 1,
                "client_name": "Famille Martin",
                "client_email": "famille@example.com",
            },
            headers=operator_headers,
        )

    response = await test_client.post("/v1/reseller/cart/checkout", json={}, headers=operator_headers)

    assert response.status_code == 200
    data = response.json()
    assert len(data["bookings"]) == 1
    assert [failure["error_code"] for failure in data["failures"]] == ["past_date"]
    assert data["failures"][0]["error"] == "Impossible de réserver pour une date passée."
