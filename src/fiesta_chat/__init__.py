"""Top-level package for fiesta-chat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import FiestaChatApp
    from .config import ensure_config_dir, load_config
    from .conversation import ConversationStore, Message
    from .credentials import CredentialStore
    from .exceptions import (
        ConfigValidationError,
        FiestaChatError,
        MissingCredentialError,
        ProviderError,
        TransportError,
    )
    from .models import MODEL_CATALOG, ImagePayload, ModelDescriptor, ModelKind
    from .orchestrator import RequestOrchestrator
    from .state import StateManager, TurnState
    from .transport import RetryingTransport, RetryPolicy

__all__ = [
    "ConfigValidationError",
    "ConversationStore",
    "CredentialStore",
    "FiestaChatApp",
    "FiestaChatError",
    "ImagePayload",
    "MODEL_CATALOG",
    "Message",
    "MissingCredentialError",
    "ModelDescriptor",
    "ModelKind",
    "ProviderError",
    "RequestOrchestrator",
    "RetryPolicy",
    "RetryingTransport",
    "StateManager",
    "TransportError",
    "TurnState",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the core stays importable without the TUI stack."""
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {
        "ConfigValidationError",
        "FiestaChatError",
        "MissingCredentialError",
        "ProviderError",
        "TransportError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"MODEL_CATALOG", "ImagePayload", "ModelDescriptor", "ModelKind"}:
        from . import models

        return getattr(models, name)
    if name in {"ConversationStore", "Message"}:
        from . import conversation

        return getattr(conversation, name)
    if name == "CredentialStore":
        from .credentials import CredentialStore

        return CredentialStore
    if name in {"RetryPolicy", "RetryingTransport"}:
        from . import transport

        return getattr(transport, name)
    if name in {"StateManager", "TurnState"}:
        from .state import StateManager, TurnState

        return {"StateManager": StateManager, "TurnState": TurnState}[name]
    if name == "RequestOrchestrator":
        from .orchestrator import RequestOrchestrator

        return RequestOrchestrator
    if name == "FiestaChatApp":
        from .app import FiestaChatApp

        return FiestaChatApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
