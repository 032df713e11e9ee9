"""Pilot-state cleanup and change detection."""

from __future__ import annotations

from typing import Any

# Fields a bulb adds to every pilot report that are not light state.
NOISE_FIELDS = ("mac", "rssi", "src", "sceneId", "mqttCd", "ts")

COLOR_CHANNELS = ("r", "g", "b", "w")


def _differs(old: Any, new: Any) -> bool:
    # bool is an int subclass; true and 1 are different JSON values.
    return isinstance(old, bool) != isinstance(new, bool) or old != new


def strip_noise(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *payload* without protocol bookkeeping fields."""
    return {key: value for key, value in payload.items() if key not in NOISE_FIELDS}


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
) -> dict[str, Any] | None:
    """Return the attributes of *new* that differ from *old*, or None.

    Values compare by JSON equality, so ``1`` and ``true`` differ while
    ``1`` and ``1.0`` do not. Keys that vanished from *new* are not
    reported. RGBW channels only make sense together, so a change in any
    one of them reports all four with their values from *new*.
    """
    changes = {
        key: value
        for key, value in new.items()
        if key not in old or _differs(old[key], value)
    }
    if not changes:
        return None

    if any(channel in changes for channel in COLOR_CHANNELS):
        for channel in COLOR_CHANNELS:
            changes[channel] = new.get(channel)

    return changes
