"""Read-only catalog of IR waveforms keyed by signal name."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from irfanctl.core.errors import CatalogError
from irfanctl.core.model import WaveformDescriptor

FAN_OFF = "Fan_off"
FAN_LOW = "Fan_low"
FAN_MED = "Fan_med"
FAN_HIGH = "Fan_high"
REQUIRED_SIGNALS = (FAN_OFF, FAN_LOW, FAN_MED, FAN_HIGH)


class WaveformCatalog(Mapping[str, WaveformDescriptor]):
    def __init__(
        self,
        waveforms: Iterable[WaveformDescriptor],
        *,
        required: Iterable[str] = REQUIRED_SIGNALS,
    ) -> None:
        entries: dict[str, WaveformDescriptor] = {}
        for waveform in waveforms:
            if waveform.name in entries:
                raise CatalogError(f"Duplicate waveform '{waveform.name}'")
            entries[waveform.name] = waveform

        missing = [name for name in required if name not in entries]
        if missing:
            raise CatalogError(f"Waveform catalog is missing required signal(s): {', '.join(missing)}")
        self._entries = MappingProxyType(entries)

    def __getitem__(self, name: str) -> WaveformDescriptor:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def require(self, name: str) -> WaveformDescriptor:
        waveform = self._entries.get(name)
        if waveform is None:
            available = ", ".join(sorted(self._entries))
            raise CatalogError(f"Unknown signal '{name}'. Available: {available}")
        return waveform

    def sorted(self) -> list[WaveformDescriptor]:
        return sorted(self._entries.values(), key=lambda w: w.name)
