"""
Realtime Fan-out.

Room-based push notifications for parcel tracking. Rooms:
- parcel:<id>    subscribers following one parcel
- admin          admin dashboards
- customer:<id>  one customer's sessions

Delivery is best-effort: a subscriber that is gone when a message is
published simply misses it. There is no backlog or redelivery.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger("courier.realtime")

ADMIN_ROOM = "admin"


def parcel_room(parcel_id: int) -> str:
    return f"parcel:{parcel_id}"


def customer_room(customer_id: int) -> str:
    return f"customer:{customer_id}"


class Subscriber(Protocol):
    """Anything that can receive a JSON message (e.g. a WebSocket connection wrapper)."""

    async def send_json(self, data: Any) -> None:
        ...


class SubscriptionRegistry:
    """
    Explicit room membership.

    subscribe/unsubscribe are idempotent: joining a room twice or leaving
    a room you are not in is a no-op.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[Subscriber]] = defaultdict(set)

    def subscribe(self, room: str, subscriber: Subscriber) -> bool:
        """Add subscriber to room. Returns False if it was already there."""
        members = self._rooms[room]
        if subscriber in members:
            return False
        members.add(subscriber)
        return True

    def unsubscribe(self, room: str, subscriber: Subscriber) -> bool:
        """Remove subscriber from room. Returns False if it was not there."""
        members = self._rooms.get(room)
        if not members or subscriber not in members:
            return False
        members.discard(subscriber)
        if not members:
            del self._rooms[room]
        return True

    def unsubscribe_all(self, subscriber: Subscriber) -> List[str]:
        """Remove subscriber from every room (on disconnect). Returns the rooms left."""
        left = [room for room, members in self._rooms.items() if subscriber in members]
        for room in left:
            self.unsubscribe(room, subscriber)
        return left

    def subscribers(self, room: str) -> List[Subscriber]:
        return list(self._rooms.get(room, ()))

    def rooms(self) -> List[str]:
        return list(self._rooms.keys())

    async def publish(self, room: str, event: str, payload: Any) -> int:
        """
        Send {"event", "data"} to every subscriber of a room.

        A failing subscriber is logged and skipped; the others still receive
        the message. Returns the number of successful deliveries.
        """
        message = {"event": event, "data": jsonable_encoder(payload)}
        delivered = 0
        for subscriber in self.subscribers(room):
            try:
                await subscriber.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropped %s for a subscriber of %s: %s", event, room, e)
        return delivered

    def clear(self):
        self._rooms.clear()


class ParcelEventPublisher:
    """
    Emits parcel lifecycle events to their audiences.

    Emission is fire-and-forget: each publish is scheduled on the running
    event loop and never awaited by the caller, so a slow or broken
    transport cannot fail or roll back the operation that triggered it.
    """

    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry
        self._pending: Set[asyncio.Task] = set()

    def _dispatch(self, rooms: Iterable[str], event: str, payload: Dict[str, Any]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, %s not emitted", event)
            return

        for room in rooms:
            task = loop.create_task(self.registry.publish(room, event, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _audiences(parcel_id: int, customer_id: Optional[int]) -> List[str]:
        rooms = [parcel_room(parcel_id), ADMIN_ROOM]
        if customer_id:
            rooms.append(customer_room(customer_id))
        return rooms

    def emit_new_parcel(self, parcel: Dict[str, Any]):
        payload = {"parcel": parcel, "timestamp": self._now()}
        rooms = [ADMIN_ROOM]
        if parcel.get("customer_id"):
            rooms.append(customer_room(parcel["customer_id"]))
        self._dispatch(rooms, "newParcel", payload)
        logger.info("Emitted newParcel %s to admin and customer", parcel.get("id"))

    def emit_agent_assigned(self, parcel_id: int, agent: Optional[Dict[str, Any]], parcel: Dict[str, Any]):
        payload = {"parcel_id": parcel_id, "agent": agent, "timestamp": self._now()}
        self._dispatch(self._audiences(parcel_id, parcel.get("customer_id")), "agentAssigned", payload)
        logger.info("Emitted agentAssigned for parcel %s", parcel_id)

    def emit_status_update(self, parcel_id: int, status: str, parcel: Dict[str, Any]):
        payload = {"parcel_id": parcel_id, "status": status, "timestamp": self._now(), "parcel": parcel}
        self._dispatch(self._audiences(parcel_id, parcel.get("customer_id")), "statusUpdate", payload)
        logger.info("Emitted statusUpdate %s for parcel %s", status, parcel_id)

    def emit_location_update(self, parcel_id: int, latitude: float, longitude: float, address: Optional[str] = None):
        # Tracking room only; admin and customer rooms do not get location pings
        location = {"latitude": latitude, "longitude": longitude}
        if address:
            location["address"] = address
        payload = {"parcel_id": parcel_id, "location": location, "timestamp": self._now()}
        self._dispatch([parcel_room(parcel_id)], "locationUpdate", payload)
        logger.debug("Emitted locationUpdate for parcel %s", parcel_id)

    async def drain(self):
        """Wait for every scheduled publish to finish (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Process-wide instances used by the API
registry = SubscriptionRegistry()
parcel_events = ParcelEventPublisher(registry)


def get_parcel_events() -> ParcelEventPublisher:
    """FastAPI dependency for the event publisher."""
    return parcel_events
