# tests/integration/conftest.py
import json
from typing import Any

import pytest

from wizlan_bridge.engine import DiscoveryEngine
from wizlan_bridge.events.bus import EventBus
from wizlan_bridge.network.interfaces import NetworkIdentity
from wizlan_bridge.transport.udp import SocketRole


RGB_BULB_MAC = "a8bb50aabb01"
RGB_BULB_IP = "192.168.1.50"
OUTLET_MAC = "a8bb50aabb02"
OUTLET_IP = "192.168.1.51"


class FakeTransport:
    """Records outbound datagrams instead of touching the network."""

    def __init__(self) -> None:
        self.sent: list[tuple[dict[str, Any], str | None]] = []
        self.running = False
        self.on_datagram = None
        self.on_broadcast_bound = None

    def set_handlers(self, on_datagram=None, on_broadcast_bound=None) -> None:
        self.on_datagram = on_datagram
        self.on_broadcast_bound = on_broadcast_bound

    async def start(self) -> None:
        self.running = True
        if self.on_broadcast_bound is not None:
            self.on_broadcast_bound()

    def stop(self) -> None:
        self.running = False

    def send(self, payload: dict[str, Any], destination: str | None = None) -> None:
        self.sent.append((payload, destination))

    def methods(self) -> list[str]:
        return [payload["method"] for payload, _ in self.sent]


def datagram(method: str, payload: dict[str, Any], key: str = "result") -> bytes:
    return json.dumps({"method": method, key: payload}).encode()


def discover(
    engine: DiscoveryEngine,
    mac: str,
    address: str,
    module_name: str,
    state: dict[str, Any] | None = None,
) -> None:
    """Walk a device through registration, getSystemConfig and getPilot."""
    engine.handle_datagram(
        datagram("registration", {"mac": mac}, key="params"), address, SocketRole.LISTEN,
    )
    engine.handle_datagram(
        datagram("getSystemConfig", {"mac": mac, "moduleName": module_name, "fwVersion": "1.25.0"}),
        address,
        SocketRole.BROADCAST,
    )
    pilot = {"mac": mac, "rssi": -60, "src": "", "state": True, "dimming": 100}
    pilot.update(state or {})
    engine.handle_datagram(datagram("getPilot", pilot), address, SocketRole.BROADCAST)


@pytest.fixture
def identity() -> NetworkIdentity:
    return NetworkIdentity(address="192.168.1.10", hardware_id="F0DEADBEEF01")


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def engine(identity, event_bus, transport) -> DiscoveryEngine:
    return DiscoveryEngine(identity, event_bus=event_bus, transport=transport)


@pytest.fixture
def bridge_config() -> dict:
    """Return a test bridge configuration dict."""
    return {
        "network": {"bind_to": None, "listen_port": 38900, "broadcast_port": 38899},
        "api": {"enabled": True, "host": "127.0.0.1", "port": 8480},
        "logging": {"level": "INFO"},
    }


@pytest.fixture
def app(engine, event_bus, bridge_config):
    """Create a FastAPI app with dependency overrides for testing."""
    from wizlan_bridge.app import create_app
    from wizlan_bridge.api.deps import get_config, get_engine, get_event_bus

    application = create_app(bridge_config)

    async def override_engine():
        return engine

    async def override_event_bus():
        return event_bus

    async def override_config():
        return bridge_config

    application.dependency_overrides[get_engine] = override_engine
    application.dependency_overrides[get_event_bus] = override_event_bus
    application.dependency_overrides[get_config] = override_config
    return application


@pytest.fixture
def client(app):
    """Create a TestClient for the app."""
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture
def rgb_bulb(engine, transport) -> str:
    discover(
        engine,
        RGB_BULB_MAC,
        RGB_BULB_IP,
        "ESP01_SHRGB1C_31",
        {"r": 255, "g": 0, "b": 0, "w": 0, "temp": None},
    )
    transport.sent.clear()
    return RGB_BULB_MAC


@pytest.fixture
def outlet(engine, transport) -> str:
    discover(engine, OUTLET_MAC, OUTLET_IP, "ESP10_SOCKET_06")
    transport.sent.clear()
    return OUTLET_MAC
