"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

ConnectionLostCallback = Callable[[Exception | None], None]


class SerialConnection(Protocol):
    @property
    def is_open(self) -> bool:
        """Whether the underlying port is still usable."""

    async def write(self, data: bytes) -> None:
        """Write data and wait until the transport has accepted it."""

    def detach(self) -> None:
        """Drop the connection-lost listener so no further events are delivered."""

    def close(self) -> None:
        """Close the port."""


class TransportFactory(Protocol):
    def __call__(
        self,
        port: str,
        baud_rate: int,
        on_lost: ConnectionLostCallback,
    ) -> Awaitable[SerialConnection]:
        """Open a port and report unsolicited closes or errors through on_lost."""
