"""Serial transport implementation using pyserial-asyncio streams."""

from __future__ import annotations

import asyncio
import logging

import serial
import serial_asyncio
from serial.tools import list_ports

from irfanctl.core.errors import TransportOpenError, TransportWriteError
from irfanctl.core.model import SerialPortInfo
from irfanctl.transports.base import ConnectionLostCallback

LOGGER = logging.getLogger(__name__)
_READ_CHUNK = 1024


class SerialPortConnection:
    """An open serial port.

    A background reader drains whatever the device echoes back so its output
    buffer never stalls; end-of-stream or a read error is reported once
    through the connection-lost callback.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        on_lost: ConnectionLostCallback,
        *,
        name: str,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._on_lost: ConnectionLostCallback | None = on_lost
        self._name = name
        self._closed = False
        self._reader_task = asyncio.create_task(self._read_loop(), name=f"irfanctl-reader-{name}")

    @property
    def is_open(self) -> bool:
        return not self._closed and not self._writer.is_closing()

    async def write(self, data: bytes) -> None:
        if not self.is_open:
            raise TransportWriteError(f"Serial port {self._name} is closed")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (OSError, serial.SerialException) as exc:
            raise TransportWriteError(f"Serial write to {self._name} failed: {exc}") from exc

    def detach(self) -> None:
        self._on_lost = None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._reader_task.cancel()
        self._writer.close()

    async def _read_loop(self) -> None:
        error: Exception | None = None
        try:
            while True:
                data = await self._reader.read(_READ_CHUNK)
                if not data:
                    break
                LOGGER.debug("Device output on %s: %r", self._name, data)
        except asyncio.CancelledError:
            return
        except (OSError, serial.SerialException) as exc:
            error = exc

        self._closed = True
        callback = self._on_lost
        self._on_lost = None
        if callback is not None:
            callback(error)


async def open_serial_port(
    port: str,
    baud_rate: int,
    on_lost: ConnectionLostCallback,
) -> SerialPortConnection:
    try:
        reader, writer = await serial_asyncio.open_serial_connection(url=port, baudrate=baud_rate)
    except (OSError, ValueError, serial.SerialException) as exc:
        # pyserial raises ValueError for malformed port URLs and settings.
        raise TransportOpenError(f"Could not open serial port {port}: {exc}") from exc
    return SerialPortConnection(reader, writer, on_lost, name=port)


def available_ports() -> list[SerialPortInfo]:
    return sorted(
        (SerialPortInfo(device=p.device, description=p.description or "") for p in list_ports.comports()),
        key=lambda info: info.device,
    )
