"""Turn lifecycle state shared by the orchestrator and the UI."""

from __future__ import annotations

import asyncio
from enum import Enum


class TurnState(str, Enum):
    """Phases of one fan-out turn."""

    IDLE = "IDLE"
    DISPATCHING = "DISPATCHING"
    AWAITING_ALL = "AWAITING_ALL"
    SETTLED = "SETTLED"


_BUSY_STATES = frozenset({TurnState.DISPATCHING, TurnState.AWAITING_ALL})


class StateManager:
    """Hold the current turn state; every change happens under one lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def busy(self) -> bool:
        """True from dispatch until the barrier releases."""
        return self._state in _BUSY_STATES

    async def transition_to(self, new_state: TurnState) -> TurnState:
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: TurnState,
        new_state: TurnState,
    ) -> bool:
        """Move to ``new_state`` only from ``expected_state``; report whether it did."""
        async with self._lock:
            if self._state is not expected_state:
                return False
            self._state = new_state
            return True
