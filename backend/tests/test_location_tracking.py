"""
Integration tests for location history.
"""

import pytest

from backend.app.domain.parcels.lifecycle_service import ParcelLifecycleService
from backend.app.schemas.location import LocationCreate
from backend.app.services.location_service import LocationService
from backend.app.services.realtime import (
    ADMIN_ROOM,
    ParcelEventPublisher,
    parcel_events,
    parcel_room,
    registry,
)


class Inbox:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


@pytest.mark.asyncio
async def test_agent_records_pings_newest_first(client, agent, assigned_parcel):
    parcel_id = assigned_parcel["id"]

    for lat, address in [(23.70, "Depot"), (23.75, "Bridge"), (23.78, "Lake Road")]:
        response = await client.post(
            f"/v1/location/{parcel_id}",
            json={"latitude": lat, "longitude": 90.4, "address": address},
            headers=agent["headers"]
        )
        assert response.status_code == 201
        assert response.json()["parcel_id"] == parcel_id

    history = await client.get(f"/v1/location/{parcel_id}/history")
    latest = await client.get(f"/v1/location/{parcel_id}/latest")
    parcel = await client.get(f"/v1/parcels/track/{assigned_parcel['tracking_number']}")

    assert [loc["address"] for loc in history.json()] == ["Lake Road", "Bridge", "Depot"]
    assert latest.json()["address"] == "Lake Road"
    assert parcel.json()["current_latitude"] == 23.78


@pytest.mark.asyncio
async def test_latest_is_null_without_pings(client, booked_parcel):
    response = await client.get(f"/v1/location/{booked_parcel['id']}/latest")

    assert response.status_code == 200
    assert response.json() is None


@pytest.mark.asyncio
async def test_history_of_missing_parcel_is_404(client):
    response = await client.get("/v1/location/9999/history")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unassigned_agent_cannot_record(client, other_agent, assigned_parcel):
    response = await client.post(
        f"/v1/location/{assigned_parcel['id']}",
        json={"latitude": 1, "longitude": 1},
        headers=other_agent["headers"]
    )

    assert response.status_code == 403
    history = await client.get(f"/v1/location/{assigned_parcel['id']}/history")
    assert history.json() == []


@pytest.mark.asyncio
async def test_admin_who_is_not_assignee_is_forbidden(client, admin_headers, assigned_parcel):
    response = await client.post(
        f"/v1/location/{assigned_parcel['id']}",
        json={"latitude": 1, "longitude": 1},
        headers=admin_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_customer_cannot_record(client, customer, booked_parcel):
    response = await client.post(
        f"/v1/location/{booked_parcel['id']}",
        json={"latitude": 1, "longitude": 1},
        headers=customer["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_ping_notifies_tracking_room_only(client, agent, assigned_parcel):
    tracker, admin_inbox = Inbox(), Inbox()
    registry.subscribe(parcel_room(assigned_parcel["id"]), tracker)
    registry.subscribe(ADMIN_ROOM, admin_inbox)

    await client.post(
        f"/v1/location/{assigned_parcel['id']}",
        json={"latitude": 23.7, "longitude": 90.3},
        headers=agent["headers"]
    )
    await parcel_events.drain()

    assert [m["event"] for m in tracker.messages] == ["locationUpdate"]
    assert tracker.messages[0]["data"]["location"]["latitude"] == 23.7
    assert admin_inbox.messages == []


@pytest.mark.asyncio
async def test_history_removed_with_parcel(client, admin_headers, agent, assigned_parcel):
    await client.post(
        f"/v1/location/{assigned_parcel['id']}",
        json={"latitude": 23.7, "longitude": 90.3},
        headers=agent["headers"]
    )

    await client.delete(f"/v1/parcels/{assigned_parcel['id']}", headers=admin_headers)

    response = await client.get(f"/v1/location/{assigned_parcel['id']}/history")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_failed_history_row_leaves_position_untouched(client, db_session, agent, assigned_parcel, mocker):
    events = mocker.Mock(spec=ParcelEventPublisher)
    service = LocationService(db_session, ParcelLifecycleService(db_session, events=events))
    mocker.patch(
        "backend.app.services.location_service.Location", side_effect=ValueError("bad location row")
    )

    with pytest.raises(ValueError):
        await service.add_location(
            assigned_parcel["id"], LocationCreate(latitude=23.7, longitude=90.3), acting_user_id=agent["id"]
        )

    events.emit_location_update.assert_not_called()
    parcel = await client.get(f"/v1/parcels/track/{assigned_parcel['tracking_number']}")
    assert parcel.json()["current_latitude"] is None
