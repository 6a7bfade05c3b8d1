from __future__ import annotations

import asyncio

import pytest

from irfanctl.api import Client, CommunicationFailure, IntentState, LinkStatus, Settings, WaveformCatalog, WaveformDescriptor
from irfanctl.transports.base import ConnectionLostCallback


class FakeConnection:
    def __init__(self) -> None:
        self.open = True
        self.writes: list[bytes] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def write(self, data: bytes) -> None:
        self.writes.append(data)

    def detach(self) -> None:
        pass

    def close(self) -> None:
        self.open = False


def _catalog() -> WaveformCatalog:
    return WaveformCatalog(
        WaveformDescriptor(name=name, frequency_hz=38000, duty_cycle_percent=50.0, samples=(500, 500))
        for name in ("Fan_off", "Fan_low", "Fan_med", "Fan_high")
    )


def test_public_client_round_trip() -> None:
    connection = FakeConnection()

    async def factory(port: str, baud_rate: int, on_lost: ConnectionLostCallback) -> FakeConnection:
        return connection

    async def scenario() -> IntentState:
        settings = Settings(port="/dev/ttyACM0", debounce_ms=10, pacing_ms=0)
        async with Client(settings, catalog=_catalog(), transport_factory=factory) as client:
            assert client.link_status is LinkStatus.OPEN
            client.set_on(True)
            client.set_speed(75)
            assert client.is_on()
            assert client.speed() == 75
            await client.settle()
            intent = client.intent
        assert client.link_status is LinkStatus.CLOSED
        return intent

    assert asyncio.run(scenario()) == IntentState(on=True, speed=75)
    assert connection.writes == [b"ir tx RAW F:38000 DC:50 500 500\r\n"]


def test_public_client_signals_sorted() -> None:
    client = Client(Settings(port="/dev/ttyACM0"), catalog=_catalog())
    assert [w.name for w in client.signals()] == ["Fan_high", "Fan_low", "Fan_med", "Fan_off"]


def test_public_client_requires_open_link() -> None:
    client = Client(Settings(port="/dev/ttyACM0"), catalog=_catalog())
    with pytest.raises(CommunicationFailure):
        client.is_on()
