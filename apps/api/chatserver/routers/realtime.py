"""Realtime WebSocket endpoint."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..services.relay import Relay
from .deps import get_relay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, relay: Relay = Depends(get_relay)) -> None:
    """Carry ``{"type", "payload"}`` frames between one client and the relay.

    Frames are handled one at a time, so events from a single connection are
    processed in arrival order.
    """

    await websocket.accept()
    connection = relay.connect(websocket.send_json)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            await relay.handle(connection.connection_id, _decode(frame, connection.connection_id))
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(connection.connection_id)


def _decode(frame: dict[str, Any], connection_id: str) -> Any:
    """Parse a text or binary frame as JSON; anything unreadable becomes ``None``."""

    raw = frame.get("text")
    if raw is None:
        raw = frame.get("bytes")
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Non-JSON frame from %s", connection_id)
        return None
