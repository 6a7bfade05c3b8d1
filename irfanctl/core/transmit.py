"""Chunked transmission of raw IR waveforms over the serial link."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Protocol

from irfanctl.core.errors import LinkNotReadyError, TransportWriteError
from irfanctl.core.model import TransmitOutcome, WaveformDescriptor
from irfanctl.core.settings import DEFAULT_MAX_FRAGMENT_SAMPLES, DEFAULT_PACING_MS

LOGGER = logging.getLogger(__name__)
LINE_TERMINATOR = "\r\n"


class Link(Protocol):
    def is_ready(self) -> bool: ...

    async def write(self, data: bytes) -> None: ...


def chunk_samples(
    samples: Sequence[int],
    size: int = DEFAULT_MAX_FRAGMENT_SAMPLES,
) -> list[tuple[int, ...]]:
    if size <= 0:
        raise ValueError("fragment size must be positive")
    return [tuple(samples[i : i + size]) for i in range(0, len(samples), size)]


def fragment_count(waveform: WaveformDescriptor, fragment_size: int = DEFAULT_MAX_FRAGMENT_SAMPLES) -> int:
    return math.ceil(len(waveform.samples) / fragment_size)


def format_duty_cycle(duty_cycle_percent: float) -> str:
    # At most two decimals, no trailing zeros: 33.0 -> "33", 12.5 -> "12.5".
    return f"{round(float(duty_cycle_percent), 2):g}"


def format_fragment(waveform: WaveformDescriptor, fragment: Sequence[int]) -> bytes:
    samples = " ".join(str(sample) for sample in fragment)
    line = (
        f"ir tx RAW F:{waveform.frequency_hz} "
        f"DC:{format_duty_cycle(waveform.duty_cycle_percent)} {samples}{LINE_TERMINATOR}"
    )
    return line.encode("ascii")


async def send_waveform(
    waveform: WaveformDescriptor,
    link: Link,
    *,
    fragment_size: int = DEFAULT_MAX_FRAGMENT_SAMPLES,
    pacing_s: float = DEFAULT_PACING_MS / 1000,
) -> TransmitOutcome:
    """Write every fragment of ``waveform`` in order, pausing after each write.

    The first rejected write stops the transmission; the outcome records the
    failing fragment. Nothing is written when the link is not ready.
    """
    fragments = chunk_samples(waveform.samples, fragment_size)
    total = len(fragments)
    if not link.is_ready():
        LOGGER.warning("Serial port is not open. Cannot send IR signal %s", waveform.name)
        return TransmitOutcome(
            waveform=waveform.name,
            total_fragments=total,
            sent_fragments=0,
            error=LinkNotReadyError("Serial link is not ready"),
        )

    LOGGER.debug("Sending IR signal %s in %d fragment(s)", waveform.name, total)
    for index, fragment in enumerate(fragments, start=1):
        try:
            await link.write(format_fragment(waveform, fragment))
        except (TransportWriteError, LinkNotReadyError) as exc:
            LOGGER.error(
                "Failed to send fragment %d/%d of IR signal %s: %s",
                index,
                total,
                waveform.name,
                exc,
            )
            return TransmitOutcome(
                waveform=waveform.name,
                total_fragments=total,
                sent_fragments=index - 1,
                failed_fragment=index,
                error=TransportWriteError(str(exc), fragment=index, total=total),
            )
        await asyncio.sleep(pacing_s)

    return TransmitOutcome(waveform=waveform.name, total_fragments=total, sent_fragments=total)
