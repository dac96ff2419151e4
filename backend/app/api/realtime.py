"""
Realtime WebSocket gateway.

Clients send {"event": <name>, "data": <id>} to join or leave rooms and
receive lifecycle events pushed by the parcel event publisher.

- joinParcel / leaveParcel: open to anyone holding a parcel id
- joinAdmin: requires an admin token (?token=...)
- joinCustomer / leaveCustomer: requires that customer's token, or an admin's
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query

from backend.app.core.jwt import decode_access_token
from backend.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from backend.app.models.enums import UserRole
from backend.app.services.realtime import ADMIN_ROOM, customer_room, parcel_room, registry

router = APIRouter(tags=["Realtime"])
logger = logging.getLogger("courier.realtime")


async def resolve_identity(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decoded JWT payload for a still-valid token, else None."""
    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None or not payload.get("user_id"):
        return None

    if await is_token_revoked(token) or await are_user_tokens_revoked(payload["user_id"]):
        return None

    return payload


class WebSocketSubscriber:
    """Registry member for one connection (Starlette websockets are not hashable)."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_json(self, data: Any) -> None:
        await self.websocket.send_json(data)


def _is_admin(identity: Optional[Dict[str, Any]]) -> bool:
    return bool(identity) and identity.get("role") == UserRole.ADMIN.value


async def _reply(websocket: WebSocket, event: str, **data):
    await websocket.send_json({"event": event, "data": data})


async def handle_message(subscriber: WebSocketSubscriber, message: Any, identity: Optional[Dict[str, Any]]):
    websocket = subscriber.websocket
    if not isinstance(message, dict):
        await _reply(websocket, "error", message="Expected a JSON object")
        return

    event = message.get("event")
    data = message.get("data")

    if event in ("joinParcel", "leaveParcel"):
        try:
            parcel_id = int(data)
        except (TypeError, ValueError):
            await _reply(websocket, "error", message="Invalid parcel id")
            return

        room = parcel_room(parcel_id)
        if event == "joinParcel":
            registry.subscribe(room, subscriber)
            logger.info("Client joined %s", room)
            await _reply(websocket, "joined", parcel_id=parcel_id, room=room)
        else:
            registry.unsubscribe(room, subscriber)
            logger.info("Client left %s", room)
            await _reply(websocket, "left", parcel_id=parcel_id, room=room)

    elif event == "joinAdmin":
        if not _is_admin(identity):
            await _reply(websocket, "error", message="Admin access required")
            return

        registry.subscribe(ADMIN_ROOM, subscriber)
        logger.info("Admin %s joined admin room", identity.get("user_id"))
        await _reply(websocket, "joined", room=ADMIN_ROOM)

    elif event in ("joinCustomer", "leaveCustomer"):
        try:
            customer_id = int(data)
        except (TypeError, ValueError):
            await _reply(websocket, "error", message="Invalid customer id")
            return

        room = customer_room(customer_id)
        if event == "leaveCustomer":
            registry.unsubscribe(room, subscriber)
            logger.info("Client left %s", room)
            await _reply(websocket, "left", customer_id=customer_id, room=room)
            return

        if not identity or not (_is_admin(identity) or identity.get("user_id") == customer_id):
            await _reply(websocket, "error", message="Not allowed to join this customer room")
            return

        registry.subscribe(room, subscriber)
        logger.info("Client joined %s", room)
        await _reply(websocket, "joined", customer_id=customer_id, room=room)

    else:
        await _reply(websocket, "error", message=f"Unknown event: {event}")


@router.websocket("/ws")
async def realtime_gateway(websocket: WebSocket, token: Optional[str] = Query(None)):
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    identity = await resolve_identity(token)
    logger.info(
        "WebSocket connected (user %s)", identity.get("user_id") if identity else "anonymous"
    )

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))

            raw = frame.get("text")
            if raw is None:
                await _reply(websocket, "error", message="Binary frames are not supported")
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                await _reply(websocket, "error", message="Invalid JSON")
                continue
            await handle_message(subscriber, message, identity)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        rooms = registry.unsubscribe_all(subscriber)
        logger.info("WebSocket closed, left %d room(s)", len(rooms))
