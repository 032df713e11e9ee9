"""Conversion between the generalized hue/saturation model and WiZ RGBW.

The bridging side speaks hue and saturation in ``[0, 254]``. WiZ bulbs take
separate red, green, blue and warm-white channel values in ``[0, 255]``. The
saturation axis is folded onto HSL lightness: full saturation is lightness 50,
zero saturation is lightness 100, and the upper part of that range is carried
by the white LED channel.

``hs_to_rgbw`` and ``rgbw_to_hs`` are not exact inverses. Above the near-white
threshold the white channel is pinned at its maximum and the hue information
is folded into a dim RGB mix, so information is lost on the way out. This is
how the bulbs render pastel colors, not a rounding bug.
"""

from __future__ import annotations

import math
from typing import NamedTuple

HS_MAX = 254
CHANNEL_MAX = 255

# Lightness above which a color is rendered by the white LED.
NEAR_WHITE_LIGHTNESS = 72.5
# White channel level at the near-white threshold.
WHITE_CHANNEL_FULL = 140
# Span of lightness covered by the white channel (50 -> 72.5).
WHITE_LIGHTNESS_SPAN = 22.5


class RGBW(NamedTuple):
    r: int
    g: int
    b: int
    w: int


class HueSaturation(NamedTuple):
    hue: int
    saturation: int


def _round_half_up(value: float) -> int:
    """Round halves away from zero for positive input (JavaScript semantics)."""
    return math.floor(value + 0.5)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _hue_to_channel(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1
    if t > 1:
        t -= 1
    if t < 1 / 6:
        return p + (q - p) * 6 * t
    if t < 1 / 2:
        return q
    if t < 2 / 3:
        return p + (q - p) * (2 / 3 - t) * 6
    return p


def hsl_to_rgb(h: float, s: float, l: float) -> tuple[int, int, int]:
    """Standard HSL -> RGB. ``h`` in degrees, ``s`` and ``l`` in percent."""
    h /= 360
    s /= 100
    l /= 100

    if s == 0:
        r = g = b = l
    else:
        q = l * (1 + s) if l < 0.5 else l + s - l * s
        p = 2 * l - q
        r = _hue_to_channel(p, q, h + 1 / 3)
        g = _hue_to_channel(p, q, h)
        b = _hue_to_channel(p, q, h - 1 / 3)

    return (
        int(_clamp(_round_half_up(r * CHANNEL_MAX), 0, CHANNEL_MAX)),
        int(_clamp(_round_half_up(g * CHANNEL_MAX), 0, CHANNEL_MAX)),
        int(_clamp(_round_half_up(b * CHANNEL_MAX), 0, CHANNEL_MAX)),
    )


def rgb_to_hsl(r: float, g: float, b: float) -> tuple[float, float, float]:
    """Standard RGB -> HSL. Returns hue in degrees, saturation and lightness in percent."""
    r /= CHANNEL_MAX
    g /= CHANNEL_MAX
    b /= CHANNEL_MAX

    high = max(r, g, b)
    low = min(r, g, b)
    l = (high + low) / 2

    if high == low:
        h = s = 0.0
    else:
        d = high - low
        s = d / (2 - high - low) if l > 0.5 else d / (high + low)
        if high == r:
            h = (g - b) / d + (6 if g < b else 0)
        elif high == g:
            h = (b - r) / d + 2
        else:
            h = (r - g) / d + 4
        h /= 6

    return h * 360, s * 100, l * 100


def _hs_to_hsl(hue: float, saturation: float) -> tuple[float, float, float]:
    return (
        _clamp(360 * hue / HS_MAX, 0, 360),
        100.0,
        100 - _clamp(saturation, 0, HS_MAX) / HS_MAX * 50,
    )


def _hsl_to_hs(h: float, l: float) -> HueSaturation:
    return HueSaturation(
        hue=int(_clamp(_round_half_up(HS_MAX * h / 360), 0, HS_MAX)),
        saturation=_round_half_up((100 - _clamp(l, 50, 100)) / 50 * HS_MAX),
    )


def hs_to_rgbw(hue: float, saturation: float) -> RGBW:
    """Convert a ``[0, 254]`` hue/saturation pair to WiZ RGBW channels."""
    h, s, l = _hs_to_hsl(hue, saturation)

    if l > NEAR_WHITE_LIGHTNESS:
        # Raw hue, not degrees.
        r, g, b = hsl_to_rgb(hue, s, 100 - l)
        return RGBW(r, g, b, WHITE_CHANNEL_FULL)

    w = _round_half_up((l - 50) / WHITE_LIGHTNESS_SPAN * WHITE_CHANNEL_FULL)
    r, g, b = hsl_to_rgb(h, s, l)
    return RGBW(r, g, b, int(_clamp(w, 0, CHANNEL_MAX)))


def rgbw_to_hs(r: float, g: float, b: float, w: float = 0) -> HueSaturation:
    """Convert WiZ RGBW channels back to a ``[0, 254]`` hue/saturation pair."""
    h, _s, l = rgb_to_hsl(r, g, b)
    if w < WHITE_CHANNEL_FULL:
        adjusted_lightness = 50 + w / WHITE_CHANNEL_FULL * WHITE_LIGHTNESS_SPAN
    else:
        adjusted_lightness = 100 - l
    return _hsl_to_hs(h, adjusted_lightness)
