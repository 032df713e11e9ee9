"""Per-device command front end over the discovery engine."""

from __future__ import annotations

import logging
from typing import Any

from wizlan_bridge.bridge import translate
from wizlan_bridge.devices.models import DeviceSnapshot, Feature
from wizlan_bridge.engine import DiscoveryEngine
from wizlan_bridge.errors import UnknownDeviceError, UnsupportedFeatureError

logger = logging.getLogger(__name__)


class LightController:
    """Issues generalized light commands to one device.

    Each command checks the device's capability profile, builds the
    ``setPilot`` parameters and hands them to the engine. The parameters
    sent are returned.

    Parameters
    ----------
    engine:
        Engine the device was discovered by.
    hardware_id:
        Hardware id of the target device.
    """

    def __init__(self, engine: DiscoveryEngine, hardware_id: str) -> None:
        self._engine = engine
        self._hardware_id = hardware_id

    @property
    def hardware_id(self) -> str:
        return self._hardware_id

    def device(self) -> DeviceSnapshot:
        snapshot = self._engine.get_device(self._hardware_id)
        if snapshot is None:
            raise UnknownDeviceError(self._hardware_id)
        return snapshot

    def require(self, feature: Feature) -> None:
        snapshot = self.device()
        if feature not in snapshot.features:
            raise UnsupportedFeatureError(
                f"{snapshot.name or snapshot.module_name} does not support {feature.value}"
            )

    def send(self, params: dict[str, Any]) -> dict[str, Any]:
        self.device()
        self._engine.set_state(self._hardware_id, params)
        return params

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def turn_on(self) -> dict[str, Any]:
        self.require(Feature.ON_OFF)
        return self.send(translate.turn_on())

    def turn_off(self) -> dict[str, Any]:
        self.require(Feature.ON_OFF)
        return self.send(translate.turn_off())

    def move_to_level(self, level: int) -> dict[str, Any]:
        self.require(Feature.LEVEL)
        return self.send(translate.move_to_level(level))

    def move_to_level_with_on_off(self, level: int) -> dict[str, Any]:
        self.require(Feature.LEVEL)
        return self.send(translate.move_to_level_with_on_off(level))

    def move_to_hue_and_saturation(self, hue: int, saturation: int) -> dict[str, Any]:
        self.require(Feature.HUE_SATURATION)
        return self.send(translate.move_to_hue_and_saturation(hue, saturation))

    def move_to_hue(self, hue: int) -> dict[str, Any]:
        self.require(Feature.HUE_SATURATION)
        current = self._engine.get_rgbw(self._hardware_id)
        return self.send(translate.move_to_hue(hue, current))

    def move_to_saturation(self, saturation: int) -> dict[str, Any]:
        self.require(Feature.HUE_SATURATION)
        current = self._engine.get_rgbw(self._hardware_id)
        return self.send(translate.move_to_saturation(saturation, current))

    def move_to_color_temperature(self, mireds: int) -> dict[str, Any]:
        self.require(Feature.COLOR_TEMPERATURE)
        return self.send(translate.move_to_color_temperature(mireds))

    def apply(
        self,
        on: bool | None = None,
        level: int | None = None,
        hue: int | None = None,
        saturation: int | None = None,
        color_temperature_mireds: int | None = None,
    ) -> dict[str, Any]:
        """Combine several generalized changes into one ``setPilot``.

        Color wins over color temperature when both are given, and an
        explicit ``on`` overrides the on/off implied by the other fields.
        """
        current = self._engine.get_rgbw(self._hardware_id)
        params: dict[str, Any] = {}

        if color_temperature_mireds is not None:
            self.require(Feature.COLOR_TEMPERATURE)
            params.update(translate.move_to_color_temperature(color_temperature_mireds))

        if hue is not None or saturation is not None:
            self.require(Feature.HUE_SATURATION)
            params.pop("temp", None)
            if hue is not None and saturation is not None:
                params.update(translate.move_to_hue_and_saturation(hue, saturation))
            elif hue is not None:
                params.update(translate.move_to_hue(hue, current))
            else:
                params.update(translate.move_to_saturation(saturation, current))

        if level is not None:
            self.require(Feature.LEVEL)
            params.update(translate.move_to_level_with_on_off(level))

        if on is not None:
            self.require(Feature.ON_OFF)
            params["state"] = on

        if not params:
            return params
        return self.send(params)
