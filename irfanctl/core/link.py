"""Serial link ownership and reconnect supervision.

The manager is the only component that opens, writes to, or closes the serial
port. Readiness is exposed through ``is_ready()``; state changes are delivered
to listeners registered with ``add_listener``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from irfanctl.core.errors import LinkNotReadyError, TransportOpenError, TransportWriteError
from irfanctl.core.model import LinkStatus
from irfanctl.core.settings import DEFAULT_BAUD_RATE, DEFAULT_RECONNECT_INTERVAL_MS
from irfanctl.transports.base import SerialConnection, TransportFactory

LOGGER = logging.getLogger(__name__)

LinkListener = Callable[[LinkStatus], None]


def _default_factory() -> TransportFactory:
    from irfanctl.transports.serial_port import open_serial_port

    return open_serial_port


class LinkManager:
    def __init__(
        self,
        port: str | None = None,
        baud_rate: int = DEFAULT_BAUD_RATE,
        *,
        reconnect_interval_s: float = DEFAULT_RECONNECT_INTERVAL_MS / 1000,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._port = port
        self._baud_rate = baud_rate
        self._reconnect_interval_s = reconnect_interval_s
        self._factory = transport_factory or _default_factory()
        self._status = LinkStatus.CLOSED
        self._connection: SerialConnection | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task[bool] | None = None
        self._listeners: list[LinkListener] = []
        self._shutdown = False
        self._open_lock = asyncio.Lock()
        # Bumped on every open attempt; callbacks from older attempts are ignored.
        self._generation = 0

    @property
    def status(self) -> LinkStatus:
        return self._status

    @property
    def port(self) -> str | None:
        return self._port

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def add_listener(self, listener: LinkListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def is_ready(self) -> bool:
        return (
            self._status is LinkStatus.OPEN
            and self._connection is not None
            and self._connection.is_open
        )

    async def open(self, port: str | None = None, baud_rate: int | None = None) -> bool:
        """Open the port, returning whether the link is ready.

        Concurrent calls are serialized; each one replaces the connection the
        previous one produced. A failed attempt leaves the link closed with a
        reconnect scheduled.
        """
        if port is not None:
            self._port = port
        if baud_rate is not None:
            self._baud_rate = baud_rate
        if self._port is None:
            raise TransportOpenError("No serial port configured")

        self._shutdown = False
        async with self._open_lock:
            return await self._open()

    async def _reopen(self) -> bool:
        async with self._open_lock:
            if self._shutdown:
                return False
            if self.is_ready():
                return True
            return await self._open()

    async def _open(self) -> bool:
        self._teardown()
        self._generation += 1
        generation = self._generation
        self._set_status(LinkStatus.OPENING)
        try:
            connection = await self._factory(
                self._port,
                self._baud_rate,
                lambda exc: self._on_connection_lost(generation, exc),
            )
        except TransportOpenError as exc:
            LOGGER.error("Failed to open serial port: %s", exc)
            self._set_status(LinkStatus.CLOSED)
            self._schedule_reconnect()
            return False
        except Exception:
            LOGGER.exception("Unexpected error opening serial port %s", self._port)
            self._set_status(LinkStatus.CLOSED)
            self._schedule_reconnect()
            return False

        if self._shutdown:
            connection.detach()
            connection.close()
            return False

        if not connection.is_open:
            connection.detach()
            LOGGER.error("Serial port %s closed while opening", self._port)
            self._set_status(LinkStatus.CLOSED)
            self._schedule_reconnect()
            return False

        self._connection = connection
        self._cancel_reconnect()
        self._set_status(LinkStatus.OPEN)
        LOGGER.info("Serial port %s opened at %d baud", self._port, self._baud_rate)
        return True

    async def write(self, data: bytes) -> None:
        connection = self._connection
        if connection is None or not self.is_ready():
            raise LinkNotReadyError(f"Serial link is {self._status.value}")
        try:
            await connection.write(data)
        except TransportWriteError as exc:
            if connection is self._connection and not connection.is_open:
                self._handle_lost(connection, exc)
            raise

    async def close(self) -> None:
        """Close the port and stop reconnect supervision."""
        self._shutdown = True
        self._cancel_reconnect()
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None
        if self._connection is not None:
            self._set_status(LinkStatus.CLOSING)
            self._teardown()
        self._set_status(LinkStatus.CLOSED)

    def _teardown(self) -> None:
        connection = self._connection
        self._connection = None
        if connection is None:
            return
        connection.detach()
        if connection.is_open:
            connection.close()

    def _on_connection_lost(self, generation: int, exc: Exception | None) -> None:
        if generation != self._generation:
            LOGGER.debug("Ignoring event from a replaced serial connection: %s", exc)
            return
        if self._connection is not None:
            self._handle_lost(self._connection, exc)

    def _handle_lost(self, connection: SerialConnection, exc: Exception | None) -> None:
        if exc is not None:
            LOGGER.error("Serial port error: %s", exc)
        else:
            LOGGER.warning("Serial port closed")
        connection.detach()
        if connection.is_open:
            connection.close()
        self._connection = None
        self._set_status(LinkStatus.CLOSED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._shutdown or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._reconnect_interval_s, self._reconnect)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if self._shutdown:
            return
        LOGGER.info("Attempting to reconnect to serial port %s...", self._port)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reopen())

    def _set_status(self, status: LinkStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            listener(status)
