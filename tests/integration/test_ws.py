"""Integration tests for WebSocket endpoint: snapshot, live events, keepalive."""
import asyncio

from wizlan_bridge.api import ws as ws_module
from wizlan_bridge.api.ws import broadcast_event


class TestWebSocketSnapshot:
    """WS /ws/events -- initial device snapshot."""

    def test_snapshot_empty(self, client):
        with client.websocket_connect("/ws/events") as ws:
            msg = ws.receive_json()
            assert msg == {"type": "snapshot", "devices": []}

    def test_snapshot_lists_devices(self, client, rgb_bulb):
        with client.websocket_connect("/ws/events") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "snapshot"
            (device,) = msg["devices"]
            assert device["hardware_id"] == rgb_bulb
            assert device["state"]["dimming"] == 100


class TestWebSocketLiveEvents:
    """Live event streaming.

    These tests call broadcast_event directly to avoid timing issues between
    the async EventBus subscriber scheduling and the synchronous TestClient.
    """

    def _receive_event(self, ws, max_attempts=5):
        """Receive the next event message, skipping any ping frames."""
        for _ in range(max_attempts):
            msg = ws.receive_json()
            if msg["type"] == "ping":
                ws.send_json({"type": "pong"})
                continue
            return msg
        raise RuntimeError("Did not receive event within max_attempts")

    def test_live_event_published_to_ws(self, client, event_bus):
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()  # snapshot

            payload = {"hardware_id": "a8bb50aabb01", "changes": {"dimming": 40}}
            seq = event_bus.publish("device.state_changed", payload)
            asyncio.run(broadcast_event(seq, "device.state_changed", payload))

            msg = self._receive_event(ws)
            assert msg == {
                "type": "event",
                "seq": seq,
                "event_type": "device.state_changed",
                "payload": payload,
            }

    def test_multiple_live_events_sequential(self, client, event_bus):
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()  # snapshot

            for i in range(3):
                seq = event_bus.publish("device.state_changed", {"n": i})
                asyncio.run(broadcast_event(seq, "device.state_changed", {"n": i}))

            seqs = [self._receive_event(ws)["seq"] for _ in range(3)]
            assert seqs == [1, 2, 3]


class TestWebSocketKeepalive:
    """Keepalive: ping/pong protocol."""

    def test_client_pong_is_accepted(self, client):
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()  # snapshot
            # Client sends an unsolicited pong -- server should not crash
            ws.send_json({"type": "pong"})


class TestWebSocketDisconnectBehavior:
    """Clean disconnect behavior."""

    def test_client_disconnect_cleans_up(self, client):
        with client.websocket_connect("/ws/events") as ws:
            ws.receive_json()  # snapshot
            assert ws_module._connected_clients
        # Connection is closed -- broadcasting should not raise
        asyncio.run(broadcast_event(1, "device.discovered", {}))
