"""In-memory credential provider keyed by provider name."""

from __future__ import annotations

from collections.abc import Mapping
import os
from typing import Protocol

ENV_PREFIX = "FIESTA_"
ENV_SUFFIX = "_API_KEY"


class CredentialProvider(Protocol):
    """Source of opaque provider credentials."""

    def get_credential(self, provider: str) -> str | None: ...


def env_var_name(provider: str) -> str:
    return f"{ENV_PREFIX}{provider.upper()}{ENV_SUFFIX}"


class CredentialStore:
    """Session-local credentials; nothing is written to disk."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._keys: dict[str, str] = {}
        for provider, key in (initial or {}).items():
            self.set_credential(provider, key)

    @classmethod
    def from_sources(
        cls,
        configured: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
        providers: list[str] | None = None,
    ) -> CredentialStore:
        """Seed from config values, letting ``FIESTA_<PROVIDER>_API_KEY`` win."""
        store = cls(configured)
        env = os.environ if environ is None else environ
        for provider in providers or []:
            value = env.get(env_var_name(provider), "")
            if value.strip():
                store.set_credential(provider, value)
        return store

    def get_credential(self, provider: str) -> str | None:
        return self._keys.get(provider.strip().lower())

    def set_credential(self, provider: str, key: str | None) -> None:
        """Store ``key`` for ``provider``; a blank key removes the entry."""
        name = provider.strip().lower()
        normalized = (key or "").strip()
        if normalized:
            self._keys[name] = normalized
        else:
            self._keys.pop(name, None)

    def __repr__(self) -> str:
        return f"CredentialStore(providers={sorted(self._keys)!r})"
