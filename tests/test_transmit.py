from __future__ import annotations

import asyncio
import math

import pytest

from irfanctl.core.errors import LinkNotReadyError, TransportWriteError
from irfanctl.core.model import WaveformDescriptor
from irfanctl.core.transmit import chunk_samples, format_duty_cycle, format_fragment, send_waveform


class FakeLink:
    def __init__(self, *, ready: bool = True, fail_at: int | None = None) -> None:
        self.ready = ready
        self.fail_at = fail_at
        self.attempts = 0
        self.writes: list[bytes] = []

    def is_ready(self) -> bool:
        return self.ready

    async def write(self, data: bytes) -> None:
        self.attempts += 1
        if self.attempts == self.fail_at:
            raise TransportWriteError("write rejected")
        self.writes.append(data)


def _waveform(count: int) -> WaveformDescriptor:
    return WaveformDescriptor(
        name="Fan_low",
        frequency_hz=38000,
        duty_cycle_percent=33.0,
        samples=tuple(range(100, 100 + count)),
    )


@pytest.mark.parametrize("length", [0, 1, 63, 64, 65, 128, 200])
def test_chunking_preserves_order_and_count(length: int) -> None:
    samples = list(range(length))
    fragments = chunk_samples(samples, 64)

    assert len(fragments) == math.ceil(length / 64)
    assert all(len(fragment) <= 64 for fragment in fragments)
    assert [s for fragment in fragments for s in fragment] == samples


def test_fragment_wire_format() -> None:
    waveform = WaveformDescriptor(name="Fan_off", frequency_hz=38000, duty_cycle_percent=33.0, samples=(1, 2, 3))
    assert format_fragment(waveform, (1289, 422, 1285)) == b"ir tx RAW F:38000 DC:33 1289 422 1285\r\n"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(33.0, "33"), (50.5, "50.5"), (33.333333, "33.33"), (100.0, "100"), (0.0, "0")],
)
def test_duty_cycle_has_at_most_two_decimals(value: float, expected: str) -> None:
    assert format_duty_cycle(value) == expected


def test_send_writes_every_fragment_in_order() -> None:
    link = FakeLink()
    waveform = _waveform(150)

    outcome = asyncio.run(send_waveform(waveform, link, fragment_size=64, pacing_s=0))

    assert outcome.ok
    assert outcome.progress == "3/3"
    assert len(link.writes) == 3
    sent = [int(tok) for line in link.writes for tok in line.decode("ascii").split()[5:]]
    assert sent == list(waveform.samples)
    assert all(line.startswith(b"ir tx RAW F:38000 DC:33 ") for line in link.writes)


def test_not_ready_link_writes_nothing() -> None:
    link = FakeLink(ready=False)

    outcome = asyncio.run(send_waveform(_waveform(100), link, pacing_s=0))

    assert not outcome.ok
    assert isinstance(outcome.error, LinkNotReadyError)
    assert outcome.sent_fragments == 0
    assert link.attempts == 0


def test_failed_fragment_aborts_the_rest() -> None:
    link = FakeLink(fail_at=2)

    outcome = asyncio.run(send_waveform(_waveform(150), link, fragment_size=64, pacing_s=0))

    assert not outcome.ok
    assert outcome.failed_fragment == 2
    assert outcome.progress == "2/3"
    assert isinstance(outcome.error, TransportWriteError)
    assert outcome.error.fragment == 2
    assert outcome.error.total == 3
    assert link.attempts == 2
    assert len(link.writes) == 1


def test_pacing_delay_follows_each_write(monkeypatch: pytest.MonkeyPatch) -> None:
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("irfanctl.core.transmit.asyncio.sleep", fake_sleep)
    asyncio.run(send_waveform(_waveform(130), FakeLink(), fragment_size=64))

    assert delays == [0.1, 0.1, 0.1]


def test_empty_waveform_sends_nothing() -> None:
    link = FakeLink()
    outcome = asyncio.run(send_waveform(_waveform(0), link, pacing_s=0))
    assert outcome.ok
    assert outcome.total_fragments == 0
    assert link.writes == []
