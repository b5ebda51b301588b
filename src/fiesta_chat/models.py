"""Static model catalog and image payload types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .exceptions import UnknownModelError

TEXT_UPSTREAM_MODEL = "gemini-2.5-flash-preview-05-20"
IMAGE_UPSTREAM_MODEL = "imagen-3.0-generate-002"


class ModelKind(str, Enum):
    """Capability a model exposes to the orchestrator."""

    TEXT = "text"
    IMAGE = "image"
    CODE = "code"


@dataclass(frozen=True)
class ModelDescriptor:
    """Immutable description of one selectable model."""

    id: str
    display_name: str
    kind: ModelKind
    provider: str
    upstream_model: str
    # Provider whose endpoint serves the model while its own provider has no
    # endpoint configured.
    hosted_by: str | None = None

    @property
    def uses_placeholder(self) -> bool:
        """Text and image replies live in the conversation log; code does not."""
        return self.kind in {ModelKind.TEXT, ModelKind.IMAGE}

    @property
    def default_host(self) -> str:
        return self.hosted_by or self.provider


@dataclass(frozen=True)
class ImagePayload:
    """Base64-encoded image carried by prompts and image replies."""

    data: str
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @classmethod
    def from_data_url(cls, data_url: str) -> ImagePayload:
        """Parse ``data:<mime>;base64,<data>``; a bare base64 string is taken as PNG."""
        header, sep, data = data_url.partition(",")
        if not sep:
            return cls(data=data_url.strip())
        mime_type = "image/png"
        if header.startswith("data:"):
            mime_type = header[len("data:") :].split(";", 1)[0] or mime_type
        return cls(data=data.strip(), mime_type=mime_type)


def _openrouter_text(model_id: str, display_name: str) -> ModelDescriptor:
    return ModelDescriptor(
        model_id, display_name, ModelKind.TEXT, "openrouter", TEXT_UPSTREAM_MODEL,
        hosted_by="google",
    )


MODEL_CATALOG: tuple[ModelDescriptor, ...] = (
    ModelDescriptor(
        "gemini-pro-vision", "Gemini Pro (Vision)", ModelKind.TEXT, "google",
        TEXT_UPSTREAM_MODEL,
    ),
    _openrouter_text("llama-3-8b", "Llama 3.3"),
    _openrouter_text("qwen-7b", "Qwen"),
    _openrouter_text("mistral-7b", "Mistral 7B"),
    _openrouter_text("reka-flash", "Reka Flash"),
    _openrouter_text("deepseek-r1", "DeepSeek R1"),
    ModelDescriptor(
        "imagen-gen", "Imagen (Image Generation)", ModelKind.IMAGE, "google",
        IMAGE_UPSTREAM_MODEL,
    ),
    ModelDescriptor(
        "code-playground", "Code Playground", ModelKind.CODE, "google",
        TEXT_UPSTREAM_MODEL,
    ),
)

_CATALOG_BY_ID: dict[str, ModelDescriptor] = {model.id: model for model in MODEL_CATALOG}


def get_model(model_id: str) -> ModelDescriptor:
    """Return the catalog entry for ``model_id``."""
    try:
        return _CATALOG_BY_ID[model_id]
    except KeyError:
        raise UnknownModelError(f"Unknown model {model_id!r}.") from None


def provider_names() -> list[str]:
    """Return every provider referenced by the catalog, in first-seen order."""
    names: list[str] = []
    for model in MODEL_CATALOG:
        if model.provider not in names:
            names.append(model.provider)
    return names
