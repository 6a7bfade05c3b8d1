"""Domain-specific errors for irfanctl."""

from __future__ import annotations


class IrfanctlError(Exception):
    """Base error for irfanctl."""


class ConfigError(IrfanctlError):
    """Raised when the configuration file or values are invalid."""


class CatalogError(IrfanctlError):
    """Raised when waveform definitions are malformed or a required signal is missing."""


class IntentValueError(IrfanctlError):
    """Raised when an intent update carries a value outside its domain."""


class LinkError(IrfanctlError):
    """Base serial link error."""


class LinkNotReadyError(LinkError):
    """Raised when the serial link is not open."""


class CommunicationFailure(LinkNotReadyError):
    """Raised to accessory callers when a command is attempted with no ready link."""


class TransportOpenError(LinkError):
    """Raised when the serial port cannot be opened."""


class TransportWriteError(LinkError):
    """Raised when the transport rejects a write."""

    def __init__(self, message: str, *, fragment: int | None = None, total: int | None = None) -> None:
        super().__init__(message)
        self.fragment = fragment
        self.total = total
