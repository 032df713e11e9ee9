"""Local network interface selection.

The WiZ registration handshake identifies the controller by an IPv4 address
and a MAC address ("phoneIp"/"phoneMac"). Both are taken from one local
interface, chosen once at startup.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
from dataclasses import dataclass

import psutil

from wizlan_bridge.errors import NoInterfaceError

logger = logging.getLogger(__name__)

_MAC_DELIMITERS = re.compile(r"[:\-.]+")
_EMPTY_MAC = "000000000000"


@dataclass(frozen=True)
class NetworkIdentity:
    """Address and hardware id this process announces itself with."""

    address: str
    hardware_id: str


@dataclass(frozen=True)
class InterfaceCandidate:
    """A usable IPv4 interface."""

    name: str
    address: str
    hardware_id: str

    @property
    def identity(self) -> NetworkIdentity:
        return NetworkIdentity(address=self.address, hardware_id=self.hardware_id)


def normalize_hardware_id(mac: str | None) -> str:
    """Uppercase a MAC address and strip its delimiters."""
    if not mac:
        return _EMPTY_MAC
    return _MAC_DELIMITERS.sub("", mac).upper()


def _is_loopback(address: str) -> bool:
    try:
        return ipaddress.IPv4Address(address).is_loopback
    except ValueError:
        return True


def list_interfaces() -> list[InterfaceCandidate]:
    """Return every non-loopback IPv4 interface in enumeration order."""
    candidates: list[InterfaceCandidate] = []
    for name, addrs in psutil.net_if_addrs().items():
        mac = next((a.address for a in addrs if a.family == psutil.AF_LINK), None)
        for addr in addrs:
            if addr.family != socket.AF_INET or _is_loopback(addr.address):
                continue
            candidates.append(
                InterfaceCandidate(
                    name=name,
                    address=addr.address,
                    hardware_id=normalize_hardware_id(mac),
                )
            )
    return candidates


def select_identity(preferred_address: str | None = None) -> NetworkIdentity:
    """Pick the interface whose address and MAC identify this process.

    Parameters
    ----------
    preferred_address:
        Optional IPv4 address to pin to (the ``bindTo`` setting). When it
        matches no interface the first candidate is used.

    Raises
    ------
    NoInterfaceError
        No non-loopback IPv4 interface exists.
    """
    candidates = list_interfaces()
    if not candidates:
        raise NoInterfaceError("No non-loopback IPv4 network interface found")

    chosen = candidates[0]
    if preferred_address:
        match = next((c for c in candidates if c.address == preferred_address), None)
        if match is not None:
            chosen = match
        else:
            logger.warning(
                "Configured bind address %s not found on any interface, using %s (%s)",
                preferred_address,
                chosen.address,
                chosen.name,
            )

    logger.info(
        "Initialized on network: %s (%s) via %s",
        chosen.address,
        chosen.hardware_id,
        chosen.name,
    )
    return chosen.identity
