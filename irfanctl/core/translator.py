"""Maps intent changes onto the fan remote's discrete buttons."""

from __future__ import annotations

from irfanctl.core.catalog import FAN_HIGH, FAN_LOW, FAN_MED, FAN_OFF
from irfanctl.core.model import IntentState
from irfanctl.core.settings import SpeedTiers


def speed_tier(speed: int, tiers: SpeedTiers = SpeedTiers()) -> str:
    if speed < tiers.medium:
        return FAN_LOW
    if speed < tiers.high:
        return FAN_MED
    return FAN_HIGH


def select_waveform(
    current: IntentState,
    previous: IntentState,
    tiers: SpeedTiers = SpeedTiers(),
) -> str | None:
    """Return the signal that moves the fan from ``previous`` to ``current``, if any."""
    if current.on != previous.on:
        return speed_tier(current.speed, tiers) if current.on else FAN_OFF
    if current.on and current.speed != previous.speed:
        return speed_tier(current.speed, tiers)
    return None
