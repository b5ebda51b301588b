"""Domain exception hierarchy for the multi-provider chat application."""

from __future__ import annotations

from collections.abc import Iterable


class FiestaChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class TransportError(FiestaChatError):
    """Raised when an HTTP request still fails after the retry policy is exhausted.

    ``status`` carries the HTTP status code for non-success responses and is
    ``None`` for network-level failures (DNS, connect, timeouts), in which
    case ``network`` is true.
    """

    def __init__(
        self, message: str, *, status: int | None = None, network: bool = False
    ) -> None:
        super().__init__(message)
        self.status = status
        self.network = network

    @classmethod
    def for_status(cls, status: int) -> TransportError:
        return cls(f"HTTP error! status: {status}", status=status)

    @classmethod
    def for_network(cls, detail: str) -> TransportError:
        return cls(f"Network error: {detail}", network=True)


class ProviderError(FiestaChatError):
    """Raised when a provider answers with an unexpected response shape."""

    def __init__(self, message: str, *, reason: str = "malformed") -> None:
        super().__init__(message)
        self.reason = reason


class TurnValidationError(FiestaChatError):
    """Raised before dispatch when a turn cannot be started."""


class MissingCredentialError(TurnValidationError):
    """Raised when one or more active panes lack a provider credential."""

    def __init__(self, providers: Iterable[str]) -> None:
        self.providers = sorted(set(providers))
        super().__init__(
            "Missing API key for: " + ", ".join(self.providers)
        )


class EmptyPromptError(TurnValidationError):
    """Raised when a turn carries neither text nor an image."""


class TurnCancelledError(FiestaChatError):
    """Raised inside pane work that belongs to a cancelled turn."""


class UnknownModelError(FiestaChatError):
    """Raised when a model id is not part of the catalog."""


class ConfigValidationError(FiestaChatError):
    """Raised when configuration cannot be validated safely."""


class AttachmentError(FiestaChatError):
    """Raised when an image file cannot be attached to a prompt."""
