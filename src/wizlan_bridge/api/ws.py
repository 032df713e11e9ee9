"""WebSocket endpoint: device snapshot on connect, live events, keepalive."""
from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter
from starlette.websockets import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

# Keepalive constants
PING_INTERVAL_SECONDS = 30
MAX_MISSED_PONGS = 3


class WebSocketClient:
    """Represents a connected WebSocket client."""

    def __init__(self, ws: WebSocket):
        self.ws = ws
        self.last_pong: float = time.time()
        self.missed_pongs: int = 0

    async def send_event(self, seq: int, event_type: str, payload: dict) -> bool:
        """Send an event to the client. Returns False if send fails."""
        try:
            await self.ws.send_json({
                "type": "event",
                "seq": seq,
                "event_type": event_type,
                "payload": payload,
            })
            return True
        except Exception:
            return False


# Module-level set of connected clients
_connected_clients: set[WebSocketClient] = set()


async def broadcast_event(seq: int, event_type: str, payload: dict) -> None:
    """Broadcast an event to all connected WebSocket clients."""
    disconnected = []
    for client in list(_connected_clients):
        success = await client.send_event(seq, event_type, payload)
        if not success:
            disconnected.append(client)
    for client in disconnected:
        _connected_clients.discard(client)


async def _send_snapshot(ws: WebSocket) -> None:
    from wizlan_bridge.api.deps import get_engine

    provider = ws.app.dependency_overrides.get(get_engine, get_engine)
    engine = await provider()
    await ws.send_json({
        "type": "snapshot",
        "devices": [snapshot.to_dict() for snapshot in engine.devices()],
    })


async def _keepalive_loop(client: WebSocketClient) -> None:
    """Send pings every PING_INTERVAL_SECONDS. Close after MAX_MISSED_PONGS."""
    while True:
        await asyncio.sleep(PING_INTERVAL_SECONDS)
        try:
            await client.ws.send_json({"type": "ping"})
            client.missed_pongs += 1
            if client.missed_pongs >= MAX_MISSED_PONGS:
                await client.ws.close()
                return
        except Exception:
            return


@router.websocket("/ws/events")
async def ws_events(ws: WebSocket):
    """WebSocket endpoint for real-time device events.

    Protocol:
    1. Client connects
    2. Server sends {"type":"snapshot","devices":[...]}
    3. Live event streaming begins
    4. Keepalive: server pings every 30s, client pongs, 3 missed = close
    """
    await ws.accept()

    client = WebSocketClient(ws)
    _connected_clients.add(client)
    keepalive_task = asyncio.create_task(_keepalive_loop(client))

    try:
        await _send_snapshot(ws)

        while True:
            try:
                raw = await ws.receive_json()
            except WebSocketDisconnect:
                break

            if isinstance(raw, dict) and raw.get("type") == "pong":
                client.missed_pongs = 0
                client.last_pong = time.time()

            # Other message types are silently ignored
    finally:
        keepalive_task.cancel()
        _connected_clients.discard(client)
