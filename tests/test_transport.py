"""Tests for the retrying JSON transport."""

from __future__ import annotations

import json
import unittest

import httpx

from fiesta_chat.exceptions import ProviderError, TransportError
from fiesta_chat.transport import RetryingTransport, RetryPolicy

ENDPOINT = "https://provider.test/v1beta/models/m:generateContent"


class SleepRecorder:
    """Injected sleep that records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _transport(
    handler, policy: RetryPolicy, sleep: SleepRecorder
) -> tuple[RetryingTransport, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RetryingTransport(policy, client=client, sleep=sleep), client


class RetryingTransportTests(unittest.IsolatedAsyncioTestCase):
    """Validate retry bound, backoff schedule and response decoding."""

    async def test_persistent_failure_makes_bounded_attempts(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        sleep = SleepRecorder()
        policy = RetryPolicy(max_retries=3, initial_delay=1.0, backoff_factor=2.0)
        transport, client = _transport(handler, policy, sleep)
        async with client:
            with self.assertRaises(TransportError) as ctx:
                await transport.send(ENDPOINT, {"q": 1})

        self.assertEqual(len(calls), 4)
        self.assertEqual(sleep.delays, [1.0, 2.0, 4.0])
        self.assertEqual(sum(sleep.delays), policy.total_wait())
        self.assertEqual(ctx.exception.status, 500)
        self.assertFalse(ctx.exception.network)
        self.assertEqual(str(ctx.exception), "HTTP error! status: 500")

    async def test_recovers_after_transient_failures(self) -> None:
        statuses = [503, 429, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            status = statuses.pop(0)
            if status != 200:
                return httpx.Response(status)
            return httpx.Response(200, json={"ok": True})

        sleep = SleepRecorder()
        transport, client = _transport(
            handler, RetryPolicy(max_retries=3, initial_delay=0.5), sleep
        )
        async with client:
            payload = await transport.send(ENDPOINT, {})

        self.assertEqual(payload, {"ok": True})
        self.assertEqual(sleep.delays, [0.5, 1.0])

    async def test_network_error_is_mapped_and_not_retried_without_budget(
        self,
    ) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        sleep = SleepRecorder()
        transport, client = _transport(handler, RetryPolicy(max_retries=0), sleep)
        async with client:
            with self.assertRaises(TransportError) as ctx:
                await transport.send(ENDPOINT, {})

        self.assertEqual(calls, 1)
        self.assertEqual(sleep.delays, [])
        self.assertTrue(ctx.exception.network)
        self.assertIsNone(ctx.exception.status)
        self.assertIn("connection refused", str(ctx.exception))

    async def test_invalid_json_body_raises_provider_error_without_retry(
        self,
    ) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, content=b"<html>not json</html>")

        sleep = SleepRecorder()
        transport, client = _transport(handler, RetryPolicy(max_retries=3), sleep)
        async with client:
            with self.assertRaises(ProviderError):
                await transport.send(ENDPOINT, {})
        self.assertEqual(calls, 1)
        self.assertEqual(sleep.delays, [])

    async def test_non_object_json_body_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[1, 2, 3])

        transport, client = _transport(handler, RetryPolicy(), SleepRecorder())
        async with client:
            with self.assertRaises(ProviderError):
                await transport.send(ENDPOINT, {})

    async def test_sends_json_body_and_merges_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        transport, client = _transport(handler, RetryPolicy(), SleepRecorder())
        async with client:
            await transport.send(ENDPOINT, {"a": "b"}, headers={"x-test": "1"})

        request = seen[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), ENDPOINT)
        self.assertEqual(request.headers["content-type"], "application/json")
        self.assertEqual(request.headers["x-test"], "1")
        self.assertEqual(json.loads(request.content), {"a": "b"})

    async def test_retry_log_event_emitted(self) -> None:
        statuses = [500, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0), json={})

        transport, client = _transport(
            handler, RetryPolicy(max_retries=1), SleepRecorder()
        )
        async with client:
            with self.assertLogs("fiesta_chat.transport", level="WARNING") as logs:
                await transport.send(ENDPOINT, {})

        self.assertTrue(any("transport.request.retry" in line for line in logs.output))
        self.assertEqual(logs.records[0].status, 500)

    async def test_per_call_policy_overrides_default(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(502)

        sleep = SleepRecorder()
        transport, client = _transport(handler, RetryPolicy(max_retries=5), sleep)
        async with client:
            with self.assertRaises(TransportError):
                await transport.send(
                    ENDPOINT, {}, policy=RetryPolicy(max_retries=1, initial_delay=3.0)
                )
        self.assertEqual(calls, 2)
        self.assertEqual(sleep.delays, [3.0])

    async def test_aclose_leaves_injected_client_open(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        transport = RetryingTransport(client=client)
        await transport.aclose()
        self.assertFalse(client.is_closed)
        await client.aclose()

    async def test_aclose_closes_owned_client(self) -> None:
        transport = RetryingTransport(RetryPolicy(timeout=5.0))
        client = transport._get_client()
        await transport.aclose()
        self.assertTrue(client.is_closed)


class RetryPolicyTests(unittest.TestCase):
    """Validate policy construction from the retry config section."""

    def test_from_config_reads_retry_section(self) -> None:
        policy = RetryPolicy.from_config(
            {
                "max_retries": 5,
                "initial_delay_seconds": 0.25,
                "backoff_factor": 3.0,
                "timeout_seconds": 10.0,
            }
        )
        self.assertEqual(policy, RetryPolicy(5, 0.25, 3.0, 10.0))

    def test_from_config_defaults(self) -> None:
        self.assertEqual(RetryPolicy.from_config({}), RetryPolicy())

    def test_total_wait_sums_geometric_delays(self) -> None:
        self.assertEqual(RetryPolicy().total_wait(), 7.0)
        self.assertEqual(RetryPolicy(max_retries=0).total_wait(), 0)


if __name__ == "__main__":
    unittest.main()
