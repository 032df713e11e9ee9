"""Translation between WiZ pilot attributes and a generalized light model.

The generalized model is the one smart-home bridges expect:

* ``on_off``: bool
* ``current_level``: 0-254
* ``current_hue`` / ``current_saturation``: 0-254
* ``color_temperature_mireds``: 147-500

Functions named after commands (``move_to_*``) return the ``setPilot``
parameters that carry out that command on a bulb.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from wizlan_bridge.color import RGBW, hs_to_rgbw, rgbw_to_hs

LEVEL_MAX = 254

MIN_MIREDS = 147
MAX_MIREDS = 500
# Range the bulbs accept for ``temp``.
MIN_KELVIN = 2200
MAX_KELVIN = 6500


@dataclass
class GeneralizedState:
    """Light state in bridge terms. Fields absent from the source stay None."""

    on_off: bool | None = None
    current_level: int | None = None
    color_temperature_mireds: int | None = None
    current_hue: int | None = None
    current_saturation: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def _round(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def kelvin_to_mireds(kelvin: float) -> int:
    if kelvin <= 0:
        return MAX_MIREDS
    return _clamp(_round(1e6 / kelvin), MIN_MIREDS, MAX_MIREDS)


def mireds_to_kelvin(mireds: float) -> int:
    if mireds <= 0:
        return MAX_KELVIN
    return _clamp(_round(1e6 / mireds), MIN_KELVIN, MAX_KELVIN)


def level_to_percent(level: float) -> int:
    return _round(100 * level / LEVEL_MAX)


def translate_state(wiz_state: dict[str, Any]) -> GeneralizedState:
    """Map a (possibly partial) pilot state onto the generalized model."""
    result = GeneralizedState()

    if "state" in wiz_state:
        result.on_off = bool(wiz_state["state"])

    if "dimming" in wiz_state and wiz_state["dimming"] is not None:
        result.current_level = _round(LEVEL_MAX * wiz_state["dimming"] / 100)

    if "temp" in wiz_state and wiz_state["temp"] is not None:
        result.color_temperature_mireds = kelvin_to_mireds(wiz_state["temp"])

    if all(wiz_state.get(channel) is not None for channel in ("r", "g", "b")):
        hs = rgbw_to_hs(
            wiz_state["r"], wiz_state["g"], wiz_state["b"], wiz_state.get("w") or 0,
        )
        result.current_hue = hs.hue
        result.current_saturation = hs.saturation

    return result


# ---------------------------------------------------------------------------
# Command builders
# ---------------------------------------------------------------------------

def turn_on() -> dict[str, Any]:
    return {"state": True}


def turn_off() -> dict[str, Any]:
    return {"state": False}


def move_to_level(level: int) -> dict[str, Any]:
    return {"dimming": level_to_percent(level)}


def move_to_level_with_on_off(level: int) -> dict[str, Any]:
    percent = level_to_percent(level)
    return {"state": percent > 0, "dimming": percent}


def _color_params(rgbw: RGBW) -> dict[str, Any]:
    return {"state": True, "r": rgbw.r, "g": rgbw.g, "b": rgbw.b, "w": rgbw.w}


def move_to_hue_and_saturation(hue: int, saturation: int) -> dict[str, Any]:
    return _color_params(hs_to_rgbw(hue, saturation))


def move_to_hue(hue: int, current: RGBW | None = None) -> dict[str, Any]:
    """Change hue, keeping the saturation implied by the current RGBW."""
    saturation = rgbw_to_hs(*current).saturation if current is not None else 0
    return _color_params(hs_to_rgbw(hue, saturation))


def move_to_saturation(saturation: int, current: RGBW | None = None) -> dict[str, Any]:
    """Change saturation, keeping the hue implied by the current RGBW."""
    hue = rgbw_to_hs(*current).hue if current is not None else 0
    return _color_params(hs_to_rgbw(hue, saturation))


def move_to_color_temperature(mireds: int) -> dict[str, Any]:
    return {"state": True, "temp": mireds_to_kelvin(mireds)}
