from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from irfanctl.core.catalog import WaveformCatalog
from irfanctl.core.errors import CatalogError, CommunicationFailure, IntentValueError, TransportOpenError
from irfanctl.core.model import IntentState, LinkStatus, WaveformDescriptor
from irfanctl.core.service import FanService
from irfanctl.core.settings import Settings
from irfanctl.core.state_store import MemoryStateStore, YamlStateStore
from irfanctl.transports.base import ConnectionLostCallback

SETTINGS = Settings(port="/dev/ttyACM0", debounce_ms=20, pacing_ms=0, reconnect_interval_ms=20)


class FakeConnection:
    def __init__(self, on_lost: ConnectionLostCallback) -> None:
        self.on_lost: ConnectionLostCallback | None = on_lost
        self.open = True
        self.writes: list[bytes] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def write(self, data: bytes) -> None:
        self.writes.append(data)

    def detach(self) -> None:
        self.on_lost = None

    def close(self) -> None:
        self.open = False


class FakeFactory:
    def __init__(self, *, available: bool = True) -> None:
        self.available = available
        self.connections: list[FakeConnection] = []

    async def __call__(self, port: str, baud_rate: int, on_lost: ConnectionLostCallback) -> FakeConnection:
        if not self.available:
            raise TransportOpenError(f"Could not open serial port {port}")
        connection = FakeConnection(on_lost)
        self.connections.append(connection)
        return connection


def _catalog() -> WaveformCatalog:
    return WaveformCatalog(
        WaveformDescriptor(name=name, frequency_hz=38000, duty_cycle_percent=33.0, samples=tuple(range(size)))
        for name, size in (("Fan_off", 10), ("Fan_low", 70), ("Fan_med", 20), ("Fan_high", 30))
    )


def _service(factory: FakeFactory, **kwargs) -> FanService:
    return FanService(SETTINGS, catalog=_catalog(), transport_factory=factory, **kwargs)


def test_turn_on_sends_speed_tier_over_serial() -> None:
    factory = FakeFactory()

    async def scenario() -> FanService:
        service = _service(factory)
        assert await service.start()
        service.set_speed(30)
        service.set_on(True)
        assert service.get_on() is True
        assert service.get_speed() == 30
        await service.settle()
        await service.stop()
        return service

    service = asyncio.run(scenario())
    writes = factory.connections[0].writes
    assert len(writes) == 2  # Fan_low has 70 samples -> two fragments
    assert writes[0].startswith(b"ir tx RAW F:38000 DC:33 0 1 2 ")
    assert writes[1] == b"ir tx RAW F:38000 DC:33 64 65 66 67 68 69\r\n"
    assert service.last_outcome is not None
    assert service.last_outcome.waveform == "Fan_low"
    assert service.link_status is LinkStatus.CLOSED


def test_accessors_fail_without_link() -> None:
    factory = FakeFactory(available=False)

    async def scenario() -> None:
        service = _service(factory)
        assert not await service.start()
        with pytest.raises(CommunicationFailure):
            service.get_on()
        with pytest.raises(CommunicationFailure):
            service.get_speed()
        with pytest.raises(CommunicationFailure):
            service.set_on(True)
        with pytest.raises(CommunicationFailure):
            service.set_speed(50)
        assert service.intent == IntentState()
        await service.stop()

    asyncio.run(scenario())


def test_invalid_values_rejected() -> None:
    async def scenario() -> None:
        service = _service(FakeFactory())
        await service.start()
        with pytest.raises(IntentValueError):
            service.set_speed(101)
        with pytest.raises(IntentValueError):
            service.set_speed(True)
        with pytest.raises(IntentValueError):
            service.set_on(1)  # type: ignore[arg-type]
        await service.stop()

    asyncio.run(scenario())


def test_state_is_restored_and_persisted(tmp_path: Path) -> None:
    store = YamlStateStore(tmp_path / "fan.yaml")
    store.save(IntentState(on=True, speed=60))
    factory = FakeFactory()

    async def scenario() -> None:
        service = _service(factory, state_store=store)
        await service.start()
        assert service.get_on() is True
        assert service.get_speed() == 60
        # Same as restored state: nothing to send.
        service.set_speed(60)
        await service.settle()
        assert factory.connections[0].writes == []

        service.set_on(False)
        await service.settle()
        await service.stop()

    asyncio.run(scenario())
    assert store.load() == IntentState(on=False, speed=60)
    assert factory.connections[0].writes[0].startswith(b"ir tx RAW F:38000 DC:33 0 1 2")


def test_send_signal_by_name() -> None:
    factory = FakeFactory()

    async def scenario() -> None:
        service = _service(factory)
        await service.start()
        outcome = await service.send_signal("Fan_high")
        assert outcome.ok
        assert outcome.progress == "1/1"
        with pytest.raises(CatalogError):
            await service.send_signal("Light_toggle")
        await service.stop()

    asyncio.run(scenario())


def test_link_events_reach_listeners() -> None:
    statuses: list[LinkStatus] = []

    async def scenario() -> None:
        service = _service(FakeFactory())
        service.add_link_listener(statuses.append)
        await service.start()
        await service.stop()

    asyncio.run(scenario())
    assert statuses[:2] == [LinkStatus.OPENING, LinkStatus.OPEN]
    assert statuses[-1] is LinkStatus.CLOSED


def test_signals_file_required_without_catalog() -> None:
    with pytest.raises(CatalogError):
        FanService(SETTINGS, state_store=MemoryStateStore())


def test_list_signals_sorted() -> None:
    service = _service(FakeFactory())
    assert [w.name for w in service.list_signals()] == ["Fan_high", "Fan_low", "Fan_med", "Fan_off"]
