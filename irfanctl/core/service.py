"""Service layer used by the CLI and accessory integrations."""

from __future__ import annotations

import logging
from collections.abc import Callable

from irfanctl.core.catalog import WaveformCatalog
from irfanctl.core.coalescer import UpdateCoalescer
from irfanctl.core.errors import CatalogError, CommunicationFailure, IntentValueError
from irfanctl.core.link import LinkListener, LinkManager
from irfanctl.core.model import IntentField, IntentState, LinkStatus, TransmitOutcome, WaveformDescriptor
from irfanctl.core.settings import Settings
from irfanctl.core.signal_loader import load_catalog
from irfanctl.core.state_store import MemoryStateStore, StateSink, YamlStateStore
from irfanctl.core.transmit import send_waveform
from irfanctl.transports.base import TransportFactory

LOGGER = logging.getLogger(__name__)


class FanService:
    """One infrared fan: its signal catalog, serial link and intent record."""

    def __init__(
        self,
        settings: Settings,
        *,
        catalog: WaveformCatalog | None = None,
        state_store: StateSink | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.settings = settings
        if catalog is None:
            if settings.signals_file is None:
                raise CatalogError("No signal file configured. Set 'signals_file' or pass --signals-file.")
            catalog = load_catalog(settings.signals_file)
        self.catalog = catalog

        if state_store is None:
            state_store = YamlStateStore(settings.state_file) if settings.state_file else MemoryStateStore()
        self.state_store = state_store

        self.link = LinkManager(
            settings.port,
            settings.baud_rate,
            reconnect_interval_s=settings.reconnect_interval_ms / 1000,
            transport_factory=transport_factory,
        )
        restored = state_store.load()
        if restored is not None:
            LOGGER.debug("Restored fan state %s", restored)
        self.coalescer = UpdateCoalescer(
            catalog,
            self.link,
            state_store,
            settings,
            initial=restored,
        )

    @property
    def link_status(self) -> LinkStatus:
        return self.link.status

    @property
    def intent(self) -> IntentState:
        return self.coalescer.current

    @property
    def last_outcome(self) -> TransmitOutcome | None:
        return self.coalescer.last_outcome

    def add_link_listener(self, listener: LinkListener) -> Callable[[], None]:
        return self.link.add_listener(listener)

    async def start(self) -> bool:
        return await self.link.open()

    async def stop(self) -> None:
        self.coalescer.cancel_pending()
        await self.coalescer.drain()
        await self.link.close()

    async def settle(self) -> None:
        await self.coalescer.drain()

    def list_signals(self) -> list[WaveformDescriptor]:
        return self.catalog.sorted()

    def get_on(self) -> bool:
        self._ensure_ready()
        return self.coalescer.current.on

    def get_speed(self) -> int:
        self._ensure_ready()
        return self.coalescer.current.speed

    def set_on(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise IntentValueError(f"On must be a boolean, got {value!r}")
        self._ensure_ready()
        LOGGER.debug("Set On -> %s", value)
        self.coalescer.apply_update(IntentField.ON, value)

    def set_speed(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise IntentValueError(f"Speed must be an integer between 0 and 100, got {value!r}")
        self._ensure_ready()
        LOGGER.debug("Set Speed -> %s", value)
        self.coalescer.apply_update(IntentField.SPEED, value)

    async def send_signal(self, name: str) -> TransmitOutcome:
        waveform = self.catalog.require(name)
        return await send_waveform(
            waveform,
            self.link,
            fragment_size=self.settings.max_fragment_samples,
            pacing_s=self.settings.pacing_ms / 1000,
        )

    def _ensure_ready(self) -> None:
        if not self.link.is_ready():
            raise CommunicationFailure(
                f"Serial link to {self.link.port or '<unset>'} is {self.link.status.value}"
            )
