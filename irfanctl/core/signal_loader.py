"""Parser for line-oriented IR signal files.

Each signal is a block starting with ``name:`` followed by ``frequency:``,
``duty_cycle:`` (a 0-1 fraction) and ``data:`` lines. Any other line, such as
the ``Filetype:``/``Version:`` header, ``type:`` or ``#`` comments, is ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from irfanctl.core.catalog import REQUIRED_SIGNALS, WaveformCatalog
from irfanctl.core.errors import CatalogError
from irfanctl.core.model import WaveformDescriptor

LOGGER = logging.getLogger(__name__)


def _split_field(line: str) -> tuple[str, str]:
    key, _, value = line.partition(":")
    return key.strip(), value.strip()


def _parse_int(value: str, *, context: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise CatalogError(f"{context} must be an integer, got '{value}'") from exc


def _build_descriptor(block: dict[str, Any], *, source: str) -> WaveformDescriptor:
    name = block["name"]
    for key in ("frequency", "duty_cycle", "data"):
        if key not in block:
            raise CatalogError(f"Signal '{name}' in {source} is missing '{key}:'")

    frequency = _parse_int(block["frequency"], context=f"{name}.frequency")
    try:
        duty_cycle = round(float(block["duty_cycle"]) * 100, 2)
    except ValueError as exc:
        raise CatalogError(f"{name}.duty_cycle must be a number, got '{block['duty_cycle']}'") from exc
    samples = tuple(
        _parse_int(token, context=f"{name}.data") for token in block["data"].split()
    )
    return WaveformDescriptor(
        name=name,
        frequency_hz=frequency,
        duty_cycle_percent=duty_cycle,
        samples=samples,
    )


def parse_signals(text: str, *, source: str = "<string>") -> list[WaveformDescriptor]:
    waveforms: list[WaveformDescriptor] = []
    block: dict[str, Any] | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, value = _split_field(line)
        if key == "name":
            if block is not None:
                waveforms.append(_build_descriptor(block, source=source))
            if not value:
                raise CatalogError(f"Empty signal name in {source}")
            block = {"name": value}
        elif block is not None and key in {"frequency", "duty_cycle", "data"}:
            block[key] = value

    if block is not None:
        waveforms.append(_build_descriptor(block, source=source))
    return waveforms


def load_catalog(path: Path, *, required: Iterable[str] = REQUIRED_SIGNALS) -> WaveformCatalog:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"Could not read signal file {path}: {exc}") from exc

    waveforms = parse_signals(text, source=str(path))
    LOGGER.debug("Loaded %d signal(s) from %s", len(waveforms), path)
    return WaveformCatalog(waveforms, required=required)
