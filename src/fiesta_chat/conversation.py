"""Shared append/patch conversation log and code slot."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from typing import Literal

from .models import ImagePayload

LOGGER = logging.getLogger(__name__)

USER_SENDER = "user"

MessageStatus = Literal["pending", "streaming", "done", "error", "cancelled"]
StoreEventKind = Literal["append", "patch", "remove", "code", "clear"]

_PATCHABLE_FIELDS = frozenset({"text", "image", "status"})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """One entry of the conversation log.

    User messages carry no id because they are never patched.
    """

    sender: str
    text: str = ""
    image: ImagePayload | None = None
    id: str | None = None
    status: MessageStatus = "done"
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def is_user(self) -> bool:
        return self.sender == USER_SENDER

    def visible_in(self, pane_id: str) -> bool:
        return self.is_user or self.sender == pane_id


@dataclass(frozen=True)
class StoreEvent:
    """Notification delivered to subscribers after each mutation."""

    kind: StoreEventKind
    message_id: str | None = None
    sender: str | None = None


StoreListener = Callable[[StoreEvent], None]


class ConversationStore:
    """Insertion-ordered message log shared by every pane.

    Every mutation runs to completion without suspending, so concurrent pane
    tasks on one event loop can never observe a half-applied write.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._code = ""
        self._code_failed = False
        self._listeners: list[StoreListener] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def code(self) -> str:
        """Current content of the shared code pane."""
        return self._code

    @property
    def code_failed(self) -> bool:
        """True when the code slot holds an error report instead of a reply."""
        return self._code_failed

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def messages_for_pane(self, pane_id: str) -> list[Message]:
        return [message for message in self._messages if message.visible_in(pane_id)]

    def get(self, message_id: str) -> Message | None:
        position = self._index.get(message_id)
        return None if position is None else self._messages[position]

    def append(self, message: Message) -> None:
        if message.id is not None:
            if message.id in self._index:
                raise ValueError(f"Duplicate message id {message.id!r}.")
            self._index[message.id] = len(self._messages)
        self._messages.append(message)
        self._notify(StoreEvent("append", message.id, message.sender))

    def patch(self, message_id: str, **fields: object) -> bool:
        """Replace the given fields of one message; unknown ids are ignored."""
        unknown = set(fields) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")
        position = self._index.get(message_id)
        if position is None:
            LOGGER.debug(
                "store.patch.missing",
                extra={"event": "store.patch.missing", "message_id": message_id},
            )
            return False
        current = self._messages[position]
        self._messages[position] = replace(current, **fields)  # type: ignore[arg-type]
        self._notify(StoreEvent("patch", message_id, current.sender))
        return True

    def remove_sender(self, sender: str) -> int:
        """Drop every message from ``sender`` and return how many were removed."""
        kept = [message for message in self._messages if message.sender != sender]
        removed = len(self._messages) - len(kept)
        if removed:
            self._messages = kept
            self._reindex()
            self._notify(StoreEvent("remove", sender=sender))
        return removed

    def set_code(self, text: str, *, failed: bool = False) -> None:
        self._code = text
        self._code_failed = failed
        self._notify(StoreEvent("code"))

    def clear(self) -> None:
        """Reset the log and the code slot."""
        self._messages = []
        self._index = {}
        self._code = ""
        self._code_failed = False
        self._notify(StoreEvent("clear"))

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def _reindex(self) -> None:
        self._index = {
            message.id: position
            for position, message in enumerate(self._messages)
            if message.id is not None
        }

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - a broken view must not break writers.
                LOGGER.exception(
                    "store.listener.failed",
                    extra={"event": "store.listener.failed", "kind": event.kind},
                )
