"""JSON-over-HTTP transport with bounded exponential-backoff retry."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import json
import logging
from typing import Any

import httpx

from .exceptions import ProviderError, TransportError

LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry and timeout settings for a single logical request."""

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    timeout: float = 60.0

    @classmethod
    def from_config(cls, retry_config: dict[str, Any]) -> RetryPolicy:
        return cls(
            max_retries=int(retry_config.get("max_retries", cls.max_retries)),
            initial_delay=float(
                retry_config.get("initial_delay_seconds", cls.initial_delay)
            ),
            backoff_factor=float(
                retry_config.get("backoff_factor", cls.backoff_factor)
            ),
            timeout=float(retry_config.get("timeout_seconds", cls.timeout)),
        )

    def total_wait(self) -> float:
        """Return the summed sleep time when every attempt fails."""
        return sum(
            self.initial_delay * self.backoff_factor**attempt
            for attempt in range(max(0, self.max_retries))
        )


class RetryingTransport:
    """POST JSON bodies and retry non-success responses and network failures."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.policy.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _attempt(
        self,
        endpoint: str,
        body: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        try:
            response = await self._get_client().post(
                endpoint, json=body, headers=headers, timeout=timeout
            )
        except httpx.RequestError as exc:
            raise TransportError.for_network(
                str(exc) or exc.__class__.__name__
            ) from exc
        if not response.is_success:
            raise TransportError.for_status(response.status_code)
        return response

    async def send(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        policy: RetryPolicy | None = None,
    ) -> dict[str, Any]:
        """Send ``body`` to ``endpoint`` and return the decoded JSON object.

        Performs at most ``max_retries + 1`` attempts. Between attempts the
        delay starts at ``initial_delay`` and is multiplied by
        ``backoff_factor`` after every wait. The last failure is re-raised.
        """
        active = policy or self.policy
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        retries_left = max(0, active.max_retries)
        delay = active.initial_delay
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._attempt(
                    endpoint, body, request_headers, active.timeout
                )
                break
            except TransportError as exc:
                if retries_left <= 0:
                    LOGGER.warning(
                        "transport.request.failed",
                        extra={
                            "event": "transport.request.failed",
                            "attempts": attempt,
                            "status": exc.status,
                        },
                    )
                    raise
                LOGGER.warning(
                    "transport.request.retry",
                    extra={
                        "event": "transport.request.retry",
                        "attempt": attempt,
                        "status": exc.status,
                        "delay_seconds": delay,
                    },
                )
                await self._sleep(delay)
                retries_left -= 1
                delay *= active.backoff_factor

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProviderError("Response body is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Response body is not a JSON object.")
        return payload
