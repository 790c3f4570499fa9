"""hydra-cli error types."""

from __future__ import annotations


class HydraCLIError(RuntimeError):
    """Base hydra-cli error."""


class RegistryUnavailableError(HydraCLIError):
    """Registry store could not be reached or selected."""


class RegistryRequestError(RegistryUnavailableError):
    """A lookup on a specific registry key failed."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class TransportError(HydraCLIError):
    """Outbound message or API request could not be delivered."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MessageFileError(ValueError):
    """Raised when a message or payload file cannot be loaded."""
