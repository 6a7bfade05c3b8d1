"""Debounced coalescing of intent updates into device commands.

Each field has at most one pending debounce task; a newer update to the same
field cancels it. When a task fires it persists the merged intent, asks the
translator for a signal and transmits it. Dispatches never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace

from irfanctl.core.catalog import WaveformCatalog
from irfanctl.core.errors import IrfanctlError
from irfanctl.core.model import IntentField, IntentState, TransmitOutcome
from irfanctl.core.settings import Settings
from irfanctl.core.state_store import StateSink
from irfanctl.core.transmit import Link, send_waveform
from irfanctl.core.translator import select_waveform

LOGGER = logging.getLogger(__name__)


class UpdateCoalescer:
    def __init__(
        self,
        catalog: WaveformCatalog,
        link: Link,
        state_sink: StateSink,
        settings: Settings,
        *,
        initial: IntentState | None = None,
    ) -> None:
        self._catalog = catalog
        self._link = link
        self._sink = state_sink
        self._settings = settings
        self._current = initial or IntentState()
        self._previous = self._current
        self._timers: dict[IntentField, asyncio.Task[None]] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._dispatch_lock = asyncio.Lock()
        self.last_outcome: TransmitOutcome | None = None

    @property
    def current(self) -> IntentState:
        return self._current

    @property
    def previous(self) -> IntentState:
        return self._previous

    @property
    def pending_fields(self) -> frozenset[IntentField]:
        return frozenset(self._timers)

    def apply_update(self, field: IntentField, value: bool | int) -> None:
        self._current = replace(self._current, **{field.value: value})

        pending = self._timers.pop(field, None)
        if pending is not None:
            pending.cancel()
        task = asyncio.get_running_loop().create_task(self._debounce(field))
        self._timers[field] = task
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def drain(self) -> None:
        """Wait until no debounce task is pending and no dispatch is running."""
        while self._inflight:
            results = await asyncio.gather(*list(self._inflight), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                    LOGGER.error("Fan update failed: %s", result, exc_info=result)

    def cancel_pending(self) -> None:
        for task in self._timers.values():
            task.cancel()
        self._timers.clear()

    async def _debounce(self, field: IntentField) -> None:
        await asyncio.sleep(self._settings.debounce_ms / 1000)
        # Past this point the task is no longer cancellable by newer updates.
        if self._timers.get(field) is asyncio.current_task():
            del self._timers[field]
        await self._settle()

    async def _settle(self) -> None:
        async with self._dispatch_lock:
            snapshot = self._current
            self._persist(snapshot)
            name = select_waveform(snapshot, self._previous, self._settings.speed_tiers)
            try:
                if name is not None:
                    await self._dispatch(name)
            finally:
                self._previous = snapshot

    async def _dispatch(self, name: str) -> None:
        waveform = self._catalog.get(name)
        if waveform is None:
            LOGGER.error("Signal %s is not in the catalog; nothing sent", name)
            return
        outcome = await send_waveform(
            waveform,
            self._link,
            fragment_size=self._settings.max_fragment_samples,
            pacing_s=self._settings.pacing_ms / 1000,
        )
        self.last_outcome = outcome
        if outcome.ok:
            LOGGER.debug("Sent %s (%s fragments)", name, outcome.progress)
        else:
            LOGGER.warning("Dispatch of %s incomplete (%s): %s", name, outcome.progress, outcome.error)

    def _persist(self, state: IntentState) -> None:
        try:
            self._sink.save(state)
        except (OSError, IrfanctlError) as exc:
            LOGGER.warning("Could not persist fan state: %s", exc)
