"""Data models for discovered WiZ devices."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class HandshakeState(StrEnum):
    """Progress of a device through registration -> config -> state sync.

    ``UNREGISTERED`` is never stored: a device without a record is
    unregistered by definition.
    """

    UNREGISTERED = "unregistered"
    CONFIG_FETCHED = "config_fetched"
    SYNCED = "synced"


class Feature(StrEnum):
    """Capabilities a device profile can advertise."""

    ON_OFF = "on_off"
    LEVEL = "level"
    HUE_SATURATION = "hue_saturation"
    COLOR_TEMPERATURE = "color_temperature"


@dataclass(frozen=True)
class CapabilityProfile:
    """Display name and feature set derived from a module name."""

    name: str | None = None
    features: frozenset[Feature] = frozenset()

    def supports(self, feature: Feature) -> bool:
        return feature in self.features


@dataclass(frozen=True)
class DeviceSnapshot:
    """Read-only copy of a device handed to collaborators."""

    hardware_id: str
    address: str
    module_name: str
    firmware_version: str | None
    name: str | None
    features: tuple[Feature, ...]
    handshake_state: HandshakeState
    state: dict[str, Any] | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hardware_id": self.hardware_id,
            "address": self.address,
            "module_name": self.module_name,
            "firmware_version": self.firmware_version,
            "name": self.name,
            "features": [f.value for f in self.features],
            "handshake_state": self.handshake_state.value,
            "state": copy.deepcopy(self.state),
        }


@dataclass
class DiscoveredDevice:
    """Engine-owned record for one physical device, keyed by hardware id.

    ``last_state`` stays ``None`` until the first state report arrives and
    is replaced wholesale by every later report.
    """

    hardware_id: str
    address: str
    module_name: str
    firmware_version: str | None
    profile: CapabilityProfile
    handshake_state: HandshakeState = HandshakeState.CONFIG_FETCHED
    last_state: dict[str, Any] | None = field(default=None)

    @property
    def is_synced(self) -> bool:
        return self.handshake_state is HandshakeState.SYNCED

    def snapshot(self) -> DeviceSnapshot:
        return DeviceSnapshot(
            hardware_id=self.hardware_id,
            address=self.address,
            module_name=self.module_name,
            firmware_version=self.firmware_version,
            name=self.profile.name,
            features=tuple(sorted(self.profile.features)),
            handshake_state=self.handshake_state,
            state=copy.deepcopy(self.last_state),
        )
