"""Tests for provider request construction and response extraction."""

from __future__ import annotations

import json
import unittest

import httpx

from fiesta_chat.adapters import (
    CODE_PROMPT_TEMPLATE,
    DEFAULT_BASE_URL,
    CodeAdapter,
    ImageAdapter,
    TextAdapter,
    build_adapter,
)
from fiesta_chat.exceptions import ProviderError
from fiesta_chat.models import (
    IMAGE_UPSTREAM_MODEL,
    TEXT_UPSTREAM_MODEL,
    ImagePayload,
    get_model,
)
from fiesta_chat.transport import RetryingTransport, RetryPolicy


def _text_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class CapturingHandler:
    """MockTransport handler that records requests and replies with a fixed body."""

    def __init__(self, body: dict) -> None:
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json=self.body)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


class PayloadTests(unittest.TestCase):
    """Validate request bodies without touching the network."""

    def setUp(self) -> None:
        self.transport = RetryingTransport(RetryPolicy(max_retries=0))

    def test_text_payload_without_image(self) -> None:
        adapter = TextAdapter(self.transport, TEXT_UPSTREAM_MODEL, "key")
        self.assertEqual(
            adapter.build_payload("hello"),
            {"contents": [{"role": "user", "parts": [{"text": "hello"}]}]},
        )

    def test_text_payload_inlines_image(self) -> None:
        adapter = TextAdapter(self.transport, TEXT_UPSTREAM_MODEL, "key")
        payload = adapter.build_payload(
            "what is this?", ImagePayload(data="QUJD", mime_type="image/jpeg")
        )
        parts = payload["contents"][0]["parts"]
        self.assertEqual(parts[0], {"text": "what is this?"})
        self.assertEqual(
            parts[1], {"inlineData": {"mimeType": "image/jpeg", "data": "QUJD"}}
        )

    def test_web_search_tags_prompt(self) -> None:
        adapter = TextAdapter(
            self.transport, TEXT_UPSTREAM_MODEL, "key", web_search=True
        )
        payload = adapter.build_payload("latest news")
        self.assertEqual(
            payload["contents"][0]["parts"][0]["text"], "(with web search) latest news"
        )

    def test_code_prompt_uses_template(self) -> None:
        adapter = CodeAdapter(self.transport, TEXT_UPSTREAM_MODEL, "key")
        self.assertEqual(
            adapter.build_prompt("fizzbuzz"),
            CODE_PROMPT_TEMPLATE.format(prompt="fizzbuzz"),
        )
        self.assertIn("fizzbuzz", adapter.build_prompt("fizzbuzz"))

    def test_image_payload_requests_single_sample(self) -> None:
        self.assertEqual(
            ImageAdapter.build_payload("a red fox"),
            {"instances": [{"prompt": "a red fox"}], "parameters": {"sampleCount": 1}},
        )

    def test_endpoints_follow_model_and_method(self) -> None:
        text = TextAdapter(self.transport, "m1", "key", base_url="https://x.test/v1/")
        image = ImageAdapter(self.transport, "m2", "key", base_url="https://x.test/v1")
        self.assertEqual(text.endpoint, "https://x.test/v1/models/m1:generateContent")
        self.assertEqual(image.endpoint, "https://x.test/v1/models/m2:predict")


class ExtractionTests(unittest.TestCase):
    """Validate response paths and malformed-shape handling."""

    def test_extract_text(self) -> None:
        self.assertEqual(TextAdapter.extract_text(_text_response("hi")), "hi")

    def test_extract_text_malformed_shapes(self) -> None:
        for body in (
            {},
            {"candidates": []},
            {"candidates": [{"content": {}}]},
            {"candidates": [{"content": {"parts": [{}]}}]},
            {"candidates": [{"content": {"parts": [{"text": 5}]}}]},
            {"candidates": "nope"},
        ):
            with self.subTest(body=body):
                with self.assertRaises(ProviderError) as ctx:
                    TextAdapter.extract_text(body)
                self.assertEqual(ctx.exception.reason, "malformed")

    def test_extract_image_defaults_to_png(self) -> None:
        image = ImageAdapter.extract_image(
            {"predictions": [{"bytesBase64Encoded": "iVBOR"}]}
        )
        self.assertEqual(image, ImagePayload(data="iVBOR", mime_type="image/png"))
        self.assertEqual(image.data_url, "data:image/png;base64,iVBOR")

    def test_extract_image_keeps_reported_mime_type(self) -> None:
        image = ImageAdapter.extract_image(
            {"predictions": [{"bytesBase64Encoded": "abc", "mimeType": "image/webp"}]}
        )
        self.assertEqual(image.mime_type, "image/webp")

    def test_extract_image_missing_data(self) -> None:
        for body in ({}, {"predictions": []}, {"predictions": [{"bytesBase64Encoded": ""}]}):
            with self.subTest(body=body):
                with self.assertRaises(ProviderError):
                    ImageAdapter.extract_image(body)


class GenerateTests(unittest.IsolatedAsyncioTestCase):
    """Validate full adapter calls over a mocked HTTP transport."""

    async def test_text_generate_sends_credential_header(self) -> None:
        handler = CapturingHandler(_text_response("Hello there"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transport = RetryingTransport(RetryPolicy(max_retries=0), client=client)
            adapter = build_adapter(get_model("gemini-pro-vision"), transport, "secret")
            result = await adapter.generate("hi")

        self.assertEqual(result.text, "Hello there")
        self.assertIsNone(result.image)
        request = handler.requests[0]
        self.assertEqual(request.headers["x-goog-api-key"], "secret")
        self.assertNotIn("secret", str(request.url))
        self.assertEqual(
            str(request.url),
            f"{DEFAULT_BASE_URL}/models/{TEXT_UPSTREAM_MODEL}:generateContent",
        )

    async def test_code_generate_drops_attached_image(self) -> None:
        handler = CapturingHandler(_text_response("```python\nprint(1)\n```"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transport = RetryingTransport(RetryPolicy(max_retries=0), client=client)
            adapter = build_adapter(get_model("code-playground"), transport, "k")
            result = await adapter.generate("print one", ImagePayload(data="QUJD"))

        self.assertIn("print(1)", result.text)
        parts = handler.last_json["contents"][0]["parts"]
        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0]["text"], CODE_PROMPT_TEMPLATE.format(prompt="print one"))

    async def test_image_generate_returns_payload(self) -> None:
        handler = CapturingHandler({"predictions": [{"bytesBase64Encoded": "Zm94"}]})
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transport = RetryingTransport(RetryPolicy(max_retries=0), client=client)
            adapter = build_adapter(get_model("imagen-gen"), transport, "k")
            result = await adapter.generate("a fox")

        self.assertEqual(result.image, ImagePayload(data="Zm94"))
        self.assertEqual(result.text, "")
        self.assertTrue(
            str(handler.requests[0].url).endswith(f"{IMAGE_UPSTREAM_MODEL}:predict")
        )
        self.assertEqual(handler.last_json["instances"], [{"prompt": "a fox"}])

    async def test_build_adapter_selects_variant_by_kind(self) -> None:
        transport = RetryingTransport()
        self.assertIsInstance(
            build_adapter(get_model("imagen-gen"), transport, "k"), ImageAdapter
        )
        self.assertIsInstance(
            build_adapter(get_model("code-playground"), transport, "k"), CodeAdapter
        )
        text = build_adapter(get_model("qwen-7b"), transport, "k", web_search=True)
        self.assertIs(type(text), TextAdapter)
        self.assertTrue(text.web_search)
        await transport.aclose()


if __name__ == "__main__":
    unittest.main()
