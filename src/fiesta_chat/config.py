"""Configuration loading and validation for the multi-pane chat TUI."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .adapters import DEFAULT_BASE_URL
from .exceptions import ConfigValidationError
from .models import MODEL_CATALOG, provider_names

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "fiesta-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_KNOWN_MODEL_IDS = {model.id for model in MODEL_CATALOG}


def _required_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata and pane layout options."""

    model_config = ConfigDict(populate_by_name=True)
    title: str = "Open Fiesta"
    window_class: str = Field(default="fiesta-chat", alias="class")
    max_panes: int = Field(default=5, ge=1, le=5)
    default_panes: list[str] = Field(default_factory=lambda: ["gemini-pro-vision"])

    @field_validator("title", "window_class", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _required_string(value)

    @field_validator("default_panes", mode="before")
    @classmethod
    def _validate_default_panes(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("default_panes must be a list of model ids.")
        normalized: list[str] = []
        for item in value:
            candidate = _required_string(item)
            if candidate not in _KNOWN_MODEL_IDS:
                raise ValueError(f"Unknown model id {candidate!r} in default_panes.")
            if candidate not in normalized:
                normalized.append(candidate)
        return normalized

    @model_validator(mode="after")
    def _trim_default_panes(self) -> AppConfig:
        self.default_panes = self.default_panes[: self.max_panes]
        return self


class RetryConfig(BaseModel):
    """Backoff policy applied to every provider request."""

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    backoff_factor: float = Field(default=2.0, ge=1.0, le=10.0)
    timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)


class StreamConfig(BaseModel):
    """Pacing used to reveal text replies word by word."""

    enabled: bool = True
    min_delay_seconds: float = Field(default=0.05, ge=0.0, le=5.0)
    max_delay_seconds: float = Field(default=0.10, ge=0.0, le=5.0)

    @model_validator(mode="after")
    def _validate_delay_range(self) -> StreamConfig:
        if self.max_delay_seconds < self.min_delay_seconds:
            raise ValueError("max_delay_seconds must not be below min_delay_seconds.")
        return self


class ProviderConfig(BaseModel):
    """Endpoint settings for one provider.

    A provider without a ``base_url`` has no endpoint of its own; its models
    are served by the endpoint of the provider that hosts them.
    """

    base_url: str | None = None

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str | None:
        if value is None:
            return None
        normalized = _required_string(value).rstrip("/")
        parsed = urlparse(normalized)
        if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
            raise ValueError("base_url must be an http(s) URL with a hostname.")
        return normalized


def _default_provider(name: str) -> ProviderConfig:
    if name == "google":
        return ProviderConfig(base_url=DEFAULT_BASE_URL)
    return ProviderConfig()


def _default_providers() -> dict[str, ProviderConfig]:
    return {name: _default_provider(name) for name in provider_names()}


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/fiesta-chat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class KeybindsConfig(BaseModel):
    """Keyboard action mapping."""

    send_message: str = "ctrl+enter"
    new_conversation: str = "ctrl+n"
    quit: str = "ctrl+q"
    toggle_web_search: str = "ctrl+w"
    manage_keys: str = "ctrl+k"
    remove_pane: str = "ctrl+d"
    interrupt_turn: str = "escape"

    @field_validator("*", mode="before")
    @classmethod
    def _validate_keybind(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Keybind must be a string.")
        return value.strip()


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    retry: RetryConfig = RetryConfig()
    stream: StreamConfig = StreamConfig()
    providers: dict[str, ProviderConfig] = Field(default_factory=_default_providers)
    credentials: dict[str, str] = Field(default_factory=dict)
    logging: LoggingConfig = LoggingConfig()
    keybinds: KeybindsConfig = KeybindsConfig()

    @field_validator("credentials", mode="before")
    @classmethod
    def _validate_credentials(cls, value: Any) -> dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("credentials must be a table of provider -> key.")
        keys: dict[str, str] = {}
        for provider, key in value.items():
            if not isinstance(provider, str) or not isinstance(key, str):
                raise ValueError("credentials entries must be strings.")
            if key.strip():
                keys[provider.strip().lower()] = key.strip()
        return keys

    @model_validator(mode="after")
    def _fill_missing_providers(self) -> Config:
        for name in provider_names():
            self.providers.setdefault(name, _default_provider(name))
        return self


DEFAULT_CONFIG: dict[str, Any] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, Any]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (
            Exception
        ) as exc:  # noqa: BLE001 - we must not crash on invalid user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else _safe_default_config()
    )
    return _validate_config(merged)
