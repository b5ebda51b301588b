"""Provider adapters that turn a prompt into one text, code, or image result."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Protocol

from .exceptions import ProviderError
from .models import ImagePayload, ModelDescriptor, ModelKind
from .transport import RetryingTransport

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
WEB_SEARCH_TAG = "(with web search) "
CODE_PROMPT_TEMPLATE = (
    "Generate a complete and well-commented code snippet based on the following "
    "request: {prompt}. The code should be fully functional. Only return the "
    "code block, no extra text."
)


@dataclass(frozen=True)
class GenerationResult:
    """Domain result of a single provider call."""

    text: str = ""
    image: ImagePayload | None = None


class ProviderAdapter(Protocol):
    """Capability shared by every provider variant."""

    kind: ModelKind

    async def generate(
        self, prompt: str, image: ImagePayload | None = None
    ) -> GenerationResult: ...


def _dig(data: Any, *path: str | int) -> Any:
    """Follow ``path`` through nested dicts/lists, returning ``None`` on any miss."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
    return current


class _EndpointAdapter:
    """Shared endpoint and credential handling for the Gemini-style API."""

    method = "generateContent"

    def __init__(
        self,
        transport: RetryingTransport,
        model: str,
        credential: str,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._transport = transport
        self.model = model
        self._credential = credential
        self._base_url = base_url.rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/models/{self.model}:{self.method}"

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        LOGGER.debug(
            "adapter.request",
            extra={"event": "adapter.request", "model": self.model, "method": self.method},
        )
        return await self._transport.send(
            self.endpoint, body, headers={"x-goog-api-key": self._credential}
        )


class TextAdapter(_EndpointAdapter):
    """Text generation with an optional inlined image."""

    kind = ModelKind.TEXT

    def __init__(
        self,
        transport: RetryingTransport,
        model: str,
        credential: str,
        base_url: str = DEFAULT_BASE_URL,
        web_search: bool = False,
    ) -> None:
        super().__init__(transport, model, credential, base_url)
        self.web_search = web_search

    def build_prompt(self, prompt: str) -> str:
        return f"{WEB_SEARCH_TAG}{prompt}" if self.web_search else prompt

    def build_payload(
        self, prompt: str, image: ImagePayload | None = None
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": self.build_prompt(prompt)}]
        if image is not None:
            parts.append(
                {"inlineData": {"mimeType": image.mime_type, "data": image.data}}
            )
        return {"contents": [{"role": "user", "parts": parts}]}

    @staticmethod
    def extract_text(response: dict[str, Any]) -> str:
        text = _dig(response, "candidates", 0, "content", "parts", 0, "text")
        if not isinstance(text, str):
            raise ProviderError("Response did not contain candidate text.")
        return text

    async def generate(
        self, prompt: str, image: ImagePayload | None = None
    ) -> GenerationResult:
        response = await self._post(self.build_payload(prompt, image))
        return GenerationResult(text=self.extract_text(response))


class CodeAdapter(TextAdapter):
    """Text generation constrained to a single self-contained code block."""

    kind = ModelKind.CODE

    def build_prompt(self, prompt: str) -> str:
        return CODE_PROMPT_TEMPLATE.format(prompt=prompt)

    async def generate(
        self, prompt: str, image: ImagePayload | None = None
    ) -> GenerationResult:
        # Attached images are not forwarded to the code model.
        response = await self._post(self.build_payload(prompt))
        return GenerationResult(text=self.extract_text(response))


class ImageAdapter(_EndpointAdapter):
    """Single-sample image generation."""

    kind = ModelKind.IMAGE
    method = "predict"

    @staticmethod
    def build_payload(prompt: str) -> dict[str, Any]:
        return {"instances": [{"prompt": prompt}], "parameters": {"sampleCount": 1}}

    @staticmethod
    def extract_image(response: dict[str, Any]) -> ImagePayload:
        data = _dig(response, "predictions", 0, "bytesBase64Encoded")
        if not isinstance(data, str) or not data:
            raise ProviderError("Response did not contain an encoded image.")
        mime_type = _dig(response, "predictions", 0, "mimeType")
        return ImagePayload(
            data=data,
            mime_type=mime_type if isinstance(mime_type, str) else "image/png",
        )

    async def generate(
        self, prompt: str, image: ImagePayload | None = None
    ) -> GenerationResult:
        response = await self._post(self.build_payload(prompt))
        return GenerationResult(image=self.extract_image(response))


def build_adapter(
    model: ModelDescriptor,
    transport: RetryingTransport,
    credential: str,
    base_url: str = DEFAULT_BASE_URL,
    web_search: bool = False,
) -> ProviderAdapter:
    """Return the adapter variant matching ``model.kind``."""
    if model.kind is ModelKind.IMAGE:
        return ImageAdapter(transport, model.upstream_model, credential, base_url)
    if model.kind is ModelKind.CODE:
        return CodeAdapter(transport, model.upstream_model, credential, base_url)
    return TextAdapter(
        transport, model.upstream_model, credential, base_url, web_search=web_search
    )
