"""Presentation pacing for replies that arrive all at once."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
import random
from typing import Any, Protocol

from .exceptions import TurnCancelledError


class CancellationToken:
    """Per-turn cancellation flag shared by every pane task of that turn."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelledError("Turn was cancelled.")

    async def wait(self) -> None:
        await self._event.wait()


class PacingStrategy(Protocol):
    """Turns a full reply into a sequence of growing prefixes."""

    def emulate(
        self, full_text: str, token: CancellationToken | None = None
    ) -> AsyncIterator[str]: ...


class WordPacer:
    """Emit one more space-separated word per step with a random pause.

    For a text of ``k`` words the emulator yields exactly ``k`` strictly
    growing prefixes; the last one is ``full_text`` plus one trailing space.
    """

    def __init__(
        self,
        min_delay: float = 0.05,
        max_delay: float = 0.10,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_delay < min_delay:
            raise ValueError("max_delay must be greater than or equal to min_delay.")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._rng = rng or random.Random()
        self._sleep = sleep

    def next_delay(self) -> float:
        span = self.max_delay - self.min_delay
        return self.min_delay + self._rng.random() * span

    async def emulate(
        self, full_text: str, token: CancellationToken | None = None
    ) -> AsyncIterator[str]:
        generated = ""
        for word in full_text.split(" "):
            if token is not None:
                token.raise_if_cancelled()
            generated += word + " "
            yield generated
            await self._sleep(self.next_delay())


class ImmediatePacer:
    """Emit the full reply in a single step."""

    async def emulate(
        self, full_text: str, token: CancellationToken | None = None
    ) -> AsyncIterator[str]:
        if token is not None:
            token.raise_if_cancelled()
        yield full_text


def build_pacer(stream_config: dict[str, Any]) -> PacingStrategy:
    """Return the pacer selected by the ``stream`` config section."""
    if not stream_config.get("enabled", True):
        return ImmediatePacer()
    return WordPacer(
        min_delay=float(stream_config.get("min_delay_seconds", 0.05)),
        max_delay=float(stream_config.get("max_delay_seconds", 0.10)),
    )
