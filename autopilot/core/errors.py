"""Error taxonomy for the trading loop."""

from typing import Any


class AutopilotError(Exception):
    """Base class for all errors raised by the trading loop."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ConfigError(AutopilotError):
    """Invalid or missing configuration. Fatal, startup only."""


class NetworkError(AutopilotError):
    """Transient failure talking to an external HTTP or RPC service."""


class RouteError(AutopilotError):
    """No usable swap route could be obtained."""


class SubmissionError(AutopilotError):
    """A swap transaction could not be built, signed, sent or confirmed."""


class StorageError(AutopilotError):
    """I/O failure in the persistence layer."""


class DuplicateKeyError(StorageError):
    """A row with the same primary key already exists."""
