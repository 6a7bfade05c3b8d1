"""Stable public API for building tooling on top of irfanctl.

This module is the supported integration surface for third-party callers, for
example an accessory bridge that exposes the fan to a smart-home platform.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from irfanctl.core.catalog import REQUIRED_SIGNALS, WaveformCatalog
from irfanctl.core.errors import (
    CatalogError,
    CommunicationFailure,
    ConfigError,
    IntentValueError,
    IrfanctlError,
    LinkError,
    LinkNotReadyError,
    TransportOpenError,
    TransportWriteError,
)
from irfanctl.core.model import (
    IntentField,
    IntentState,
    LinkStatus,
    SerialPortInfo,
    TransmitOutcome,
    WaveformDescriptor,
)
from irfanctl.core.service import FanService
from irfanctl.core.settings import Settings, SpeedTiers, load_settings
from irfanctl.core.state_store import StateSink
from irfanctl.transports.base import SerialConnection, TransportFactory

__all__ = [
    "IrfanctlError",
    "CatalogError",
    "CommunicationFailure",
    "ConfigError",
    "IntentValueError",
    "LinkError",
    "LinkNotReadyError",
    "TransportOpenError",
    "TransportWriteError",
    "IntentField",
    "IntentState",
    "LinkStatus",
    "SerialPortInfo",
    "TransmitOutcome",
    "WaveformDescriptor",
    "WaveformCatalog",
    "REQUIRED_SIGNALS",
    "Settings",
    "SpeedTiers",
    "StateSink",
    "SerialConnection",
    "TransportFactory",
    "Client",
]


class Client:
    """Public client for one infrared fan.

    A `Client` wraps signal loading, serial link supervision and debounced
    intent handling behind a stable API. Use it as an async context manager so
    the link is opened and closed for you.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        config_path: Path | None = None,
        catalog: WaveformCatalog | None = None,
        state_store: StateSink | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        if settings is None:
            settings = load_settings(config_path)
        self._service = FanService(
            settings,
            catalog=catalog,
            state_store=state_store,
            transport_factory=transport_factory,
        )

    async def __aenter__(self) -> Client:
        await self._service.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._service.stop()

    @property
    def link_status(self) -> LinkStatus:
        return self._service.link_status

    @property
    def intent(self) -> IntentState:
        return self._service.coalescer.current

    def signals(self) -> list[WaveformDescriptor]:
        return self._service.list_signals()

    def is_on(self) -> bool:
        return self._service.get_on()

    def speed(self) -> int:
        return self._service.get_speed()

    def set_on(self, value: bool) -> None:
        self._service.set_on(value)

    def set_speed(self, value: int) -> None:
        self._service.set_speed(value)

    async def settle(self) -> None:
        await self._service.settle()

    async def send_signal(self, name: str) -> TransmitOutcome:
        return await self._service.send_signal(name)
