"""UDP transport for the WiZ LAN protocol.

Two sockets are kept open side by side:

* LISTEN (38900) receives the bulbs' unsolicited ``syncPilot`` reports and
  registration traffic.
* BROADCAST (38899) is the source port for every outbound datagram, unicast
  or broadcast. Bulbs listen on the same port number, and direct replies to
  our requests come back to it, so it is read from as well.

Each role recovers on its own: a port already in use is retried after
``addr_in_use_retry_delay`` seconds, an unexpected close after
``reopen_delay`` seconds while the transport is running.
"""

from __future__ import annotations

import asyncio
import errno
import json
import logging
import socket
from enum import StrEnum
from typing import Any, Callable

from wizlan_bridge.network.interfaces import NetworkIdentity

logger = logging.getLogger(__name__)

LISTEN_PORT = 38900
BROADCAST_PORT = 38899
DEVICE_PORT = 38899
BROADCAST_ADDRESS = "255.255.255.255"

ADDR_IN_USE_RETRY_DELAY = 15.0
REOPEN_DELAY = 1.0
BIND_POLL_INTERVAL = 1.0

MAX_DATAGRAM_SIZE = 4096


class SocketRole(StrEnum):
    """Which of the two transport sockets a datagram or event belongs to."""

    LISTEN = "listen"
    BROADCAST = "broadcast"


DatagramHandler = Callable[[bytes, str, SocketRole], None]


class _RoleProtocol(asyncio.DatagramProtocol):
    """Routes asyncio datagram callbacks for one socket back to the transport."""

    def __init__(self, owner: UdpTransport, role: SocketRole) -> None:
        self.owner = owner
        self.role = role
        self.transport: asyncio.DatagramTransport | None = None
        # Set once the owner closes the socket on purpose.
        self.detached = False

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        self.owner._on_bound(self.role, self)

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if self.detached:
            return
        self.owner._on_datagram(self.role, data, addr)

    def error_received(self, exc: Exception) -> None:
        if self.detached:
            return
        self.owner._on_error(self.role, exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if self.detached:
            return
        self.owner._on_connection_lost(self.role)


class UdpTransport:
    """Owns the LISTEN and BROADCAST sockets and their recovery policy.

    Parameters
    ----------
    identity:
        This process's network identity. Datagrams whose source address
        equals ``identity.address`` are our own broadcasts echoed back and
        are dropped.
    listen_port:
        Port of the LISTEN socket.
    broadcast_port:
        Port of the BROADCAST socket (source port of all sends).
    device_port:
        Destination port of all sends.
    broadcast_address:
        Destination address used when ``send`` is given no destination.
    addr_in_use_retry_delay:
        Seconds before retrying a socket whose port was in use.
    reopen_delay:
        Seconds before reopening a socket that closed unexpectedly.
    bind_poll_interval:
        Seconds between checks in ``wait_bound``.
    """

    def __init__(
        self,
        identity: NetworkIdentity,
        listen_port: int = LISTEN_PORT,
        broadcast_port: int = BROADCAST_PORT,
        device_port: int = DEVICE_PORT,
        broadcast_address: str = BROADCAST_ADDRESS,
        addr_in_use_retry_delay: float = ADDR_IN_USE_RETRY_DELAY,
        reopen_delay: float = REOPEN_DELAY,
        bind_poll_interval: float = BIND_POLL_INTERVAL,
    ) -> None:
        self._identity = identity
        self._ports = {
            SocketRole.LISTEN: listen_port,
            SocketRole.BROADCAST: broadcast_port,
        }
        self._device_port = device_port
        self._broadcast_address = broadcast_address
        self._addr_in_use_retry_delay = addr_in_use_retry_delay
        self._reopen_delay = reopen_delay
        self._bind_poll_interval = bind_poll_interval

        self._protocols: dict[SocketRole, _RoleProtocol] = {}
        self._retries: dict[SocketRole, asyncio.TimerHandle] = {}
        self._open_tasks: set[asyncio.Task] = set()
        self._running = False

        self._on_datagram_handler: DatagramHandler | None = None
        self._on_broadcast_bound_handler: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def set_handlers(
        self,
        on_datagram: DatagramHandler | None = None,
        on_broadcast_bound: Callable[[], None] | None = None,
    ) -> None:
        """Attach the inbound datagram handler and the BROADCAST-bound hook."""
        self._on_datagram_handler = on_datagram
        self._on_broadcast_bound_handler = on_broadcast_bound

    @property
    def running(self) -> bool:
        return self._running

    def is_open(self, role: SocketRole) -> bool:
        return role in self._protocols

    def local_address(self, role: SocketRole) -> tuple[str, int] | None:
        """Return the bound ``(host, port)`` of a socket, or None."""
        protocol = self._protocols.get(role)
        if protocol is None or protocol.transport is None:
            return None
        return protocol.transport.get_extra_info("sockname")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open LISTEN, wait until it is bound, then open BROADCAST."""
        self._running = True
        await self.open(SocketRole.LISTEN)
        await self.wait_bound(SocketRole.LISTEN)
        await self.open(SocketRole.BROADCAST)

    def stop(self) -> None:
        """Close both sockets. No reconnects happen after this."""
        self._running = False
        self.close(SocketRole.BROADCAST)
        self.close(SocketRole.LISTEN)

    async def open(self, role: SocketRole) -> bool:
        """Create and bind the socket for *role*. Returns True once bound.

        A failed bind is routed through the error handler, which schedules
        the retry; it is never raised.
        """
        self.close(role)
        port = self._ports[role]

        try:
            sock = self._bind(role, port)
        except OSError as err:
            self._on_error(role, err)
            return False

        loop = asyncio.get_running_loop()
        protocol = _RoleProtocol(self, role)
        self._protocols[role] = protocol
        try:
            await loop.create_datagram_endpoint(lambda: protocol, sock=sock)
        except OSError as err:
            sock.close()
            self._on_error(role, err)
            return False
        return True

    def close(self, role: SocketRole) -> None:
        """Release the socket for *role* and drop any pending retry. Idempotent."""
        retry = self._retries.pop(role, None)
        if retry is not None:
            retry.cancel()

        protocol = self._protocols.pop(role, None)
        if protocol is None:
            return
        protocol.detached = True
        if protocol.transport is not None:
            protocol.transport.close()

    async def wait_bound(self, role: SocketRole) -> tuple[str, int]:
        """Poll until the socket for *role* reports a local address."""
        while True:
            address = self.local_address(role)
            if address:
                return address
            await asyncio.sleep(self._bind_poll_interval)

    def _bind(self, role: SocketRole, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if role is SocketRole.BROADCAST:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            sock.bind(("", port))
        except OSError:
            sock.close()
            raise
        return sock

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, payload: dict[str, Any], destination: str | None = None) -> None:
        """Send *payload* as compact JSON from the BROADCAST socket.

        With no *destination* the datagram goes to the broadcast address.
        """
        protocol = self._protocols.get(SocketRole.BROADCAST)
        if protocol is None or protocol.transport is None:
            logger.error("No socket to send.")
            return

        message = json.dumps(payload, separators=(",", ":"))
        if destination:
            logger.debug("Sending UDP to %s > %s", destination, message)
        else:
            logger.debug("Broadcasting UDP > %s", message)

        protocol.transport.sendto(
            message.encode("utf-8"),
            (destination or self._broadcast_address, self._device_port),
        )

    # ------------------------------------------------------------------
    # Socket callbacks
    # ------------------------------------------------------------------

    def _on_bound(self, role: SocketRole, protocol: _RoleProtocol) -> None:
        logger.debug("Socket created on port %d", self._ports[role])
        if role is SocketRole.BROADCAST and self._on_broadcast_bound_handler is not None:
            self._on_broadcast_bound_handler()

    def _on_datagram(self, role: SocketRole, data: bytes, addr: tuple[str, int]) -> None:
        address = addr[0]
        if address == self._identity.address:
            return
        logger.debug("UDP from %s:%d > %r", address, self._ports[role], data)
        if self._on_datagram_handler is not None:
            self._on_datagram_handler(data, address, role)

    def _on_error(self, role: SocketRole, exc: Exception) -> None:
        port = self._ports[role]
        self.close(role)

        if isinstance(exc, OSError) and exc.errno == errno.EADDRINUSE:
            logger.error(
                "Port %d is in use. Will retry in %g seconds.",
                port,
                self._addr_in_use_retry_delay,
            )
            self._schedule_open(role, self._addr_in_use_retry_delay)
            return

        logger.error("Port %d failed: %s", port, exc, exc_info=exc)
        self._reopen_if_running(role)

    def _on_connection_lost(self, role: SocketRole) -> None:
        self.close(role)
        logger.warning(
            "Port %d closed.%s",
            self._ports[role],
            " Restarting..." if self._running else "",
        )
        self._reopen_if_running(role)

    def _reopen_if_running(self, role: SocketRole) -> None:
        if self._running:
            self._schedule_open(role, self._reopen_delay)

    def _schedule_open(self, role: SocketRole, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._retries[role] = loop.call_later(delay, self._retry_open, role)

    def _retry_open(self, role: SocketRole) -> None:
        self._retries.pop(role, None)
        if not self._running:
            return
        task = asyncio.ensure_future(self.open(role))
        self._open_tasks.add(task)
        task.add_done_callback(self._open_tasks.discard)
