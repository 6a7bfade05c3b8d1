"""Core data models shared by the link, transmission, and coalescing layers."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from irfanctl.core.errors import CatalogError, IrfanctlError


@dataclass(frozen=True)
class WaveformDescriptor:
    name: str
    frequency_hz: int
    duty_cycle_percent: float
    samples: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.name:
            raise CatalogError("Waveform name must not be empty")
        if isinstance(self.frequency_hz, bool) or not isinstance(self.frequency_hz, int) or self.frequency_hz <= 0:
            raise CatalogError(f"{self.name}: frequency must be a positive integer")
        if not 0.0 <= float(self.duty_cycle_percent) <= 100.0:
            raise CatalogError(f"{self.name}: duty cycle must be within 0-100 percent")
        if any(isinstance(s, bool) or not isinstance(s, int) or s < 0 for s in self.samples):
            raise CatalogError(f"{self.name}: samples must be non-negative integers")


class IntentField(str, enum.Enum):
    ON = "on"
    SPEED = "speed"


@dataclass(frozen=True)
class IntentState:
    on: bool = False
    speed: int = 0

    def as_dict(self) -> dict[str, bool | int]:
        return {IntentField.ON.value: self.on, IntentField.SPEED.value: self.speed}


class LinkStatus(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class TransmitOutcome:
    """Result of sending one waveform as a sequence of fragments.

    `failed_fragment` is 1-based and set only when a fragment write was rejected.
    """

    waveform: str
    total_fragments: int
    sent_fragments: int
    failed_fragment: int | None = None
    error: IrfanctlError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def progress(self) -> str:
        done = self.failed_fragment if self.failed_fragment is not None else self.sent_fragments
        return f"{done}/{self.total_fragments}"


@dataclass(frozen=True)
class SerialPortInfo:
    device: str
    description: str
