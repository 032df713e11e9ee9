"""Discovery and state-sync engine for WiZ devices.

Every inbound datagram advances a small per-device handshake:

1. ``registration`` from an unknown device: ask it for ``getSystemConfig``.
2. ``getSystemConfig`` reply carrying ``moduleName``: create the device
   record, derive its capability profile, ask for ``getPilot``.
3. ``getPilot`` reply or unsolicited ``syncPilot``: the first one marks the
   device synced and publishes ``device.discovered``; later ones publish
   ``device.state_changed`` when any attribute differs.

All of this runs on the event loop thread inside ``datagram_received``, so
the device map is never touched concurrently. Malformed or unexpected
datagrams are logged and dropped; nothing here raises to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from wizlan_bridge.color import RGBW
from wizlan_bridge.devices.diff import compute_changes, strip_noise
from wizlan_bridge.devices.models import DeviceSnapshot, DiscoveredDevice, HandshakeState
from wizlan_bridge.devices.profiles import classify_module
from wizlan_bridge.events.bus import EventBus
from wizlan_bridge.events.types import EventType
from wizlan_bridge.network.interfaces import NetworkIdentity
from wizlan_bridge.transport.heartbeat import REGISTRATION_INTERVAL, RegistrationHeartbeat
from wizlan_bridge.transport.udp import SocketRole, UdpTransport

logger = logging.getLogger(__name__)

STATE_REPORT_METHODS = frozenset({"syncPilot", "getPilot"})


class DiscoveryEngine:
    """Tracks WiZ devices on the LAN and forwards commands to them.

    Parameters
    ----------
    identity:
        The interface identity chosen at startup.
    event_bus:
        Bus that receives ``device.discovered`` and ``device.state_changed``.
        A private bus is created when omitted.
    transport:
        UDP transport. Built with protocol defaults when omitted.
    heartbeat:
        Registration heartbeat. Built on *transport* when omitted.
    registration_interval:
        Heartbeat interval used when the heartbeat is built here.
    """

    def __init__(
        self,
        identity: NetworkIdentity,
        event_bus: EventBus | None = None,
        transport: UdpTransport | None = None,
        heartbeat: RegistrationHeartbeat | None = None,
        registration_interval: float = REGISTRATION_INTERVAL,
    ) -> None:
        self._identity = identity
        self._bus = event_bus or EventBus()
        self._transport = transport or UdpTransport(identity)
        self._heartbeat = heartbeat or RegistrationHeartbeat(
            self._transport, identity, interval=registration_interval,
        )
        self._transport.set_handlers(
            on_datagram=self.handle_datagram,
            on_broadcast_bound=self._heartbeat.announce,
        )
        self._devices: dict[str, DiscoveredDevice] = {}
        self.ended = asyncio.Event()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def identity(self) -> NetworkIdentity:
        return self._identity

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def running(self) -> bool:
        return self._transport.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, clear: bool = False) -> DiscoveryEngine:
        """Open the sockets and start announcing.

        With ``clear=True`` previously discovered devices and all event
        subscriptions are discarded first.
        """
        if clear:
            self._reset()

        self.ended.clear()
        await self._transport.start()
        self._heartbeat.start()
        logger.info(
            "Discovery started on %s (%s)",
            self._identity.address,
            self._identity.hardware_id,
        )
        return self

    def stop(self) -> DiscoveryEngine:
        """Close the sockets and stop the heartbeat. Device state is kept."""
        self._heartbeat.stop()
        self._transport.stop()
        return self

    async def end(self) -> None:
        """Stop, then discard all device state and subscriptions."""
        self.stop()
        # Let callbacks already scheduled for this tick run first.
        await asyncio.sleep(0)
        self._reset()
        logger.info("Ended.")
        self.ended.set()

    def _reset(self) -> None:
        self._bus.clear()
        self._devices.clear()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_state(self, hardware_id: str, params: dict[str, Any]) -> None:
        """Send a ``setPilot`` with *params* to a known device.

        Unknown devices are ignored.
        """
        device = self._devices.get(hardware_id)
        if device is None or not device.address:
            logger.debug("Ignoring setState for unknown device %s", hardware_id)
            return

        self._transport.send(
            {
                "method": "setPilot",
                "env": "pro",
                "params": {"src": "mb", **params},
            },
            device.address,
        )

    def get_state(self, hardware_id: str) -> dict[str, Any] | None:
        """Return a copy of the last reported state, or None if never synced."""
        device = self._devices.get(hardware_id)
        if device is None or device.last_state is None:
            return None
        return dict(device.last_state)

    def get_rgbw(self, hardware_id: str) -> RGBW | None:
        """Return the last reported RGBW channels, if the device reported any."""
        device = self._devices.get(hardware_id)
        if device is None or device.last_state is None:
            return None
        state = device.last_state
        if not all(channel in state for channel in ("r", "g", "b")):
            return None
        return RGBW(state["r"], state["g"], state["b"], state.get("w") or 0)

    def get_device(self, hardware_id: str) -> DeviceSnapshot | None:
        device = self._devices.get(hardware_id)
        return device.snapshot() if device is not None else None

    def devices(self) -> list[DeviceSnapshot]:
        return [device.snapshot() for device in self._devices.values()]

    # ------------------------------------------------------------------
    # Inbound datagrams
    # ------------------------------------------------------------------

    def handle_datagram(self, data: bytes, address: str, role: SocketRole) -> None:
        """Parse one datagram and advance the sender's handshake."""
        try:
            message = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Failed to parse JSON from UDP message from %s", address)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object UDP message from %s", address)
            return

        method = message.get("method")
        payload = message.get("result") or message.get("params")
        if not isinstance(payload, dict):
            payload = None
        mac = payload.get("mac") if payload else None
        if mac is not None and not isinstance(mac, str):
            logger.warning("Dropping %s from %s with non-string mac %r", method, address, mac)
            return
        device = self._devices.get(mac) if mac else None

        if device is None:
            if method == "registration":
                self._request_config(address)
            elif method == "getSystemConfig":
                self._register_device(mac, payload, address)
            else:
                logger.debug("Ignoring %s from unregistered peer %s", method, address)
            return

        device.address = address
        if method in STATE_REPORT_METHODS:
            self._sync_state(device, payload)
        else:
            logger.debug("Ignoring %s from %s", method, device.hardware_id)

    def _request_config(self, address: str) -> None:
        self._transport.send({"method": "getSystemConfig", "params": {}}, address)

    def _register_device(
        self,
        mac: str | None,
        payload: dict[str, Any] | None,
        address: str,
    ) -> None:
        module_name = payload.get("moduleName") if payload else None
        if not mac or not isinstance(module_name, str) or not module_name:
            logger.warning("Dropping getSystemConfig from %s without mac/moduleName", address)
            return

        device = DiscoveredDevice(
            hardware_id=mac,
            address=address,
            module_name=module_name,
            firmware_version=payload.get("fwVersion"),
            profile=classify_module(module_name),
        )
        self._devices[mac] = device
        logger.info(
            "Found %s (%s) at %s, fw %s",
            device.profile.name or module_name,
            mac,
            address,
            device.firmware_version,
        )
        self._transport.send({"method": "getPilot", "params": {}}, address)

    def _sync_state(self, device: DiscoveredDevice, payload: dict[str, Any] | None) -> None:
        if not payload:
            return
        state = strip_noise(payload)

        if not device.is_synced:
            device.last_state = state
            device.handshake_state = HandshakeState.SYNCED
            self._bus.publish(
                EventType.DEVICE_DISCOVERED,
                {"hardware_id": device.hardware_id, "device": device.snapshot().to_dict()},
                source_id=device.hardware_id,
            )
            return

        changes = compute_changes(device.last_state or {}, state)
        if changes is None:
            return
        device.last_state = state
        self._bus.publish(
            EventType.DEVICE_STATE_CHANGED,
            {
                "hardware_id": device.hardware_id,
                "changes": changes,
                "state": dict(state),
            },
            source_id=device.hardware_id,
        )
