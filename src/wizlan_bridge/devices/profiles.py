"""Capability profiles keyed on WiZ module names.

Module names look like ``ESP01_SHRGB1C_31`` or ``ESP10_SOCKET_06``; the
product family is a substring of the name. Rules are checked in order and the
first match wins, so more specific fragments must come first.
"""

from __future__ import annotations

import logging

from wizlan_bridge.devices.models import CapabilityProfile, Feature

logger = logging.getLogger(__name__)

_COLOR_FEATURES = frozenset({
    Feature.ON_OFF,
    Feature.LEVEL,
    Feature.HUE_SATURATION,
    Feature.COLOR_TEMPERATURE,
})

PROFILE_RULES: tuple[tuple[str, CapabilityProfile], ...] = (
    ("SHRGB", CapabilityProfile("WiZ RGB Bulb", _COLOR_FEATURES)),
    ("MHWRGB", CapabilityProfile("WiZ LED Strip", _COLOR_FEATURES)),
    ("DHRGB", CapabilityProfile("WiZ Floor Lamp", _COLOR_FEATURES)),
    ("SHTW", CapabilityProfile(
        "WiZ Tunable White Bulb",
        frozenset({Feature.ON_OFF, Feature.LEVEL, Feature.COLOR_TEMPERATURE}),
    )),
    ("SHDW", CapabilityProfile(
        "WiZ Dimmable White Bulb",
        frozenset({Feature.ON_OFF, Feature.LEVEL}),
    )),
    ("SOCKET", CapabilityProfile("WiZ Outlet", frozenset({Feature.ON_OFF}))),
)

UNKNOWN_PROFILE = CapabilityProfile()


def classify_module(module_name: str) -> CapabilityProfile:
    """Return the capability profile for *module_name*."""
    for fragment, profile in PROFILE_RULES:
        if fragment in module_name:
            return profile
    logger.debug("Unrecognized module name %r, no features", module_name)
    return UNKNOWN_PROFILE
