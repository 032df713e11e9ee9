"""Registration heartbeat -- re-announces this controller on a fixed timer.

Bulbs only push ``syncPilot`` reports to controllers they have seen a
``registration`` from, and they forget registrations when they reboot. The
heartbeat broadcasts one every ``interval`` seconds so that bulbs which
missed the startup announcement, or dropped it, pick us up again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from wizlan_bridge.network.interfaces import NetworkIdentity
from wizlan_bridge.transport.udp import UdpTransport

logger = logging.getLogger(__name__)

REGISTRATION_INTERVAL = 24.0


def registration_message(identity: NetworkIdentity, register: bool = True) -> dict[str, Any]:
    """Build the ``registration`` broadcast payload."""
    return {
        "method": "registration",
        "params": {
            "register": register,
            "phoneMac": identity.hardware_id,
            "phoneIp": identity.address,
        },
    }


class RegistrationHeartbeat:
    """Periodic ``registration`` broadcast tied to the engine lifecycle.

    Parameters
    ----------
    transport:
        Transport to broadcast through. Nothing is sent unless it is running.
    identity:
        Hardware id and address to announce.
    interval:
        Seconds between announcements. Fixed, no jitter.
    """

    def __init__(
        self,
        transport: UdpTransport,
        identity: NetworkIdentity,
        interval: float = REGISTRATION_INTERVAL,
    ) -> None:
        self._transport = transport
        self._identity = identity
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self._shutdown = asyncio.Event()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def announce(self, register: bool = True) -> None:
        """Broadcast one registration now, if the transport is running."""
        if not self._transport.running:
            return
        self._transport.send(registration_message(self._identity, register))

    def start(self) -> None:
        if self.is_running:
            return
        self._shutdown.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.debug("Registration heartbeat started (interval=%.0fs)", self._interval)

    def stop(self) -> None:
        self._shutdown.set()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                self.announce()
            except Exception:
                logger.exception("Registration broadcast failed")
