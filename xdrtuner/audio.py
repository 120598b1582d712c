"""Presentation helpers for the volume and squelch controls."""

from __future__ import annotations

import math
from enum import Enum

VOLUME_MIN = 0.0
VOLUME_MAX = 100.0
VOLUME_STEP = 2.5

SQUELCH_MIN = -1.0
SQUELCH_MAX = 100.0
SQUELCH_STEP = 0.5

VOLUME_ICONS = (
    "audio-volume-muted-symbolic",
    "audio-volume-high-symbolic",
    "audio-volume-low-symbolic",
    "audio-volume-medium-symbolic",
)


class SquelchIcon(Enum):
    """Icon shown on the squelch control."""

    OFF = "xdr-gtk-squelch-off"
    STEREO = "xdr-gtk-squelch-st"
    ON = "xdr-gtk-squelch-on"


def _round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def volume_percent(value: float, lower: float = VOLUME_MIN, upper: float = VOLUME_MAX) -> int:
    """Return the volume as a percentage of the control's range."""
    return math.trunc(100.0 * value / (upper - lower) + 0.5)


def volume_tooltip(value: float) -> str:
    """Return the tooltip text for the volume control."""
    return f"Volume: {volume_percent(value)}%"


def volume_text(value: float) -> str:
    """Return the label shown in the volume popup."""
    return str(_round(value))


def volume_toggle(value: float) -> float:
    """Return the volume after a right click: mute if audible, else full."""
    return 0.0 if value > 0 else VOLUME_MAX


def squelch_text(value: float) -> str:
    """Return the plain squelch value: the level, or "ST" for stereo squelch."""
    level = _round(value)
    return str(level) if level >= 0 else "ST"


def squelch_markup(value: float) -> str:
    """Return the markup for the label shown in the squelch popup."""
    level = _round(value)
    if level >= 0:
        return str(level)
    return '<span color="red"><b>ST</b></span>'


def squelch_tooltip(value: float) -> str:
    """Return the tooltip text for the squelch control."""
    level = _round(value)
    if level >= 0:
        return f"Squelch: {level} dBf"
    return "Squelch: stereo"


def squelch_icon(value: float) -> SquelchIcon:
    """Return the icon matching a squelch value."""
    level = _round(value)
    if level < 0:
        return SquelchIcon.STEREO
    if level == 0:
        return SquelchIcon.OFF
    return SquelchIcon.ON