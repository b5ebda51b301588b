"""Fan-out of one user turn across every active pane."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
from typing import Any
import uuid

import structlog

from .adapters import DEFAULT_BASE_URL, ProviderAdapter, build_adapter
from .conversation import USER_SENDER, ConversationStore, Message
from .credentials import CredentialProvider, CredentialStore
from .exceptions import (
    EmptyPromptError,
    MissingCredentialError,
    TurnCancelledError,
)
from .models import ImagePayload, ModelDescriptor, ModelKind, get_model, provider_names
from .panes import DEFAULT_MAX_PANES, PaneSet
from .state import StateManager, TurnState
from .streaming import CancellationToken, PacingStrategy, WordPacer, build_pacer
from .task_manager import TaskManager
from .transport import RetryingTransport, RetryPolicy

LOGGER = logging.getLogger(__name__)

IMAGE_DONE_TEXT = "Image generated successfully."
ERROR_PREFIX = "Error: "


@dataclass
class Turn:
    """Work triggered by one submission, bound to the panes active at that time."""

    turn_id: str
    prompt: str
    image: ImagePayload | None
    pane_ids: tuple[str, ...]
    token: CancellationToken = field(default_factory=CancellationToken)
    placeholders: dict[str, str] = field(default_factory=dict)
    results: dict[str, str] = field(default_factory=dict)
    tasks: TaskManager = field(default_factory=TaskManager)


@dataclass(frozen=True)
class TurnOutcome:
    """Terminal status of every pane of a settled turn."""

    turn_id: str
    results: dict[str, str]

    @property
    def succeeded(self) -> list[str]:
        return [pane for pane, status in self.results.items() if status == "done"]

    @property
    def failed(self) -> list[str]:
        return [pane for pane, status in self.results.items() if status == "error"]


class RequestOrchestrator:
    """Coordinate provider calls for each turn and write results into the store.

    A submission while an earlier turn is still running cancels that turn
    first; patches from cancelled pane tasks never reach the store.
    """

    def __init__(
        self,
        store: ConversationStore,
        credentials: CredentialProvider,
        transport: RetryingTransport,
        pacer: PacingStrategy | None = None,
        provider_urls: Mapping[str, str] | None = None,
        panes: PaneSet | None = None,
        web_search: bool = False,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.transport = transport
        self.pacer: PacingStrategy = pacer or WordPacer()
        self.provider_urls = dict(provider_urls or {})
        self._panes = panes if panes is not None else PaneSet()
        self.web_search = web_search
        self._state = StateManager()
        self._active_turn: Turn | None = None

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        store: ConversationStore | None = None,
        credentials: CredentialProvider | None = None,
        transport: RetryingTransport | None = None,
    ) -> RequestOrchestrator:
        app_config = config.get("app", {})
        return cls(
            store=store or ConversationStore(),
            credentials=credentials
            or CredentialStore.from_sources(
                config.get("credentials", {}), providers=provider_names()
            ),
            transport=transport
            or RetryingTransport(RetryPolicy.from_config(config.get("retry", {}))),
            pacer=build_pacer(config.get("stream", {})),
            provider_urls={
                name: section["base_url"]
                for name, section in config.get("providers", {}).items()
                if section.get("base_url")
            },
            panes=PaneSet(
                app_config.get("default_panes", []),
                max_panes=int(app_config.get("max_panes", DEFAULT_MAX_PANES)),
            ),
        )

    @property
    def panes(self) -> tuple[str, ...]:
        return self._panes.ids

    @property
    def max_panes(self) -> int:
        return self._panes.max_panes

    @property
    def state(self) -> TurnState:
        return self._state.state

    @property
    def busy(self) -> bool:
        """Coarse turn-level flag: true from dispatch until every pane settles."""
        return self._state.busy

    @property
    def active_turn(self) -> Turn | None:
        return self._active_turn

    def add_pane(self, model_id: str) -> bool:
        added = self._panes.add(model_id)
        if added:
            LOGGER.info(
                "orchestrator.pane.added",
                extra={"event": "orchestrator.pane.added", "pane": model_id},
            )
        return added

    def remove_pane(self, model_id: str) -> bool:
        """Drop a pane together with its history and any in-flight work."""
        removed = self._panes.remove(model_id)
        turn = self._active_turn
        if turn is not None:
            task = turn.tasks.get(model_id)
            if task is not None and not task.done():
                task.cancel()
        pruned = self.store.remove_sender(model_id)
        if removed and get_model(model_id).kind is ModelKind.CODE:
            self.store.set_code("")
        if removed:
            LOGGER.info(
                "orchestrator.pane.removed",
                extra={
                    "event": "orchestrator.pane.removed",
                    "pane": model_id,
                    "pruned_messages": pruned,
                },
            )
        return removed

    def host_for(self, model: ModelDescriptor) -> str:
        """Return the provider whose endpoint and credential serve ``model``.

        A model uses its own provider once that provider has an endpoint
        configured; until then it rides the endpoint of its host, and only the
        host's credential is sent there.
        """
        if model.provider in self.provider_urls:
            return model.provider
        return model.default_host

    def missing_credentials(self, pane_ids: list[str] | None = None) -> list[str]:
        """Return the providers of the given (default: active) panes lacking a key.

        A pane needs a key for its own provider and for the provider hosting it.
        """
        missing: list[str] = []
        for pane_id in pane_ids if pane_ids is not None else self.panes:
            model = get_model(pane_id)
            for provider in (model.provider, self.host_for(model)):
                if provider in missing or self.credentials.get_credential(provider):
                    continue
                missing.append(provider)
        return missing

    async def submit(self, text: str, image: ImagePayload | None = None) -> TurnOutcome:
        """Run one turn across all active panes and wait until every pane settles.

        Raises ``EmptyPromptError`` or ``MissingCredentialError`` before
        anything is written to the store.
        """
        prompt = text.strip()
        if not prompt and image is None:
            raise EmptyPromptError("Cannot send an empty message.")
        missing = self.missing_credentials()
        if missing:
            LOGGER.warning(
                "orchestrator.turn.missing_credentials",
                extra={
                    "event": "orchestrator.turn.missing_credentials",
                    "providers": missing,
                },
            )
            raise MissingCredentialError(missing)

        while not await self._state.transition_if(TurnState.IDLE, TurnState.DISPATCHING):
            await self.cancel_active_turn()

        models = self._panes.models()
        turn = Turn(
            turn_id=uuid.uuid4().hex,
            prompt=prompt,
            image=image,
            pane_ids=tuple(model.id for model in models),
        )
        self._active_turn = turn
        LOGGER.info(
            "orchestrator.turn.start",
            extra={
                "event": "orchestrator.turn.start",
                "turn_id": turn.turn_id,
                "panes": list(turn.pane_ids),
                "has_image": image is not None,
            },
        )

        self.store.append(Message(sender=USER_SENDER, text=prompt, image=image))
        for model in models:
            if model.uses_placeholder:
                message_id = f"{model.id}-{uuid.uuid4().hex}"
                turn.placeholders[model.id] = message_id
                self.store.append(
                    Message(sender=model.id, id=message_id, status="pending")
                )
        for model in models:
            turn.tasks.spawn(model.id, self._run_pane(turn, model))

        await self._state.transition_to(TurnState.AWAITING_ALL)
        try:
            await turn.tasks.await_all()
        finally:
            if self._active_turn is turn:
                self._active_turn = None
                await self._state.transition_to(TurnState.SETTLED)
                await self._state.transition_to(TurnState.IDLE)

        # Tasks cancelled before their first step never record a result.
        for pane_id in turn.pane_ids:
            turn.results.setdefault(pane_id, "cancelled")
        outcome = TurnOutcome(turn_id=turn.turn_id, results=dict(turn.results))
        LOGGER.info(
            "orchestrator.turn.settled",
            extra={
                "event": "orchestrator.turn.settled",
                "turn_id": turn.turn_id,
                "results": outcome.results,
            },
        )
        return outcome

    async def cancel_active_turn(self) -> bool:
        """Cancel the in-flight turn, if any, and mark its open placeholders."""
        turn = self._active_turn
        if turn is None:
            return False
        self._active_turn = None
        turn.token.cancel()
        await self._state.transition_to(TurnState.IDLE)
        await turn.tasks.cancel_all()
        for pane_id in turn.pane_ids:
            turn.results.setdefault(pane_id, "cancelled")
        for message_id in turn.placeholders.values():
            message = self.store.get(message_id)
            if message is not None and message.status in {"pending", "streaming"}:
                self.store.patch(message_id, status="cancelled")
        LOGGER.info(
            "orchestrator.turn.cancelled",
            extra={"event": "orchestrator.turn.cancelled", "turn_id": turn.turn_id},
        )
        return True

    async def aclose(self) -> None:
        await self.cancel_active_turn()
        await self.transport.aclose()

    def _adapter_for(self, model: ModelDescriptor) -> ProviderAdapter:
        host = self.host_for(model)
        return build_adapter(
            model,
            self.transport,
            credential=self.credentials.get_credential(host) or "",
            base_url=self.provider_urls.get(host, DEFAULT_BASE_URL),
            web_search=self.web_search,
        )

    async def _run_pane(self, turn: Turn, model: ModelDescriptor) -> None:
        with structlog.contextvars.bound_contextvars(
            turn_id=turn.turn_id, pane=model.id
        ):
            await self._run_pane_once(turn, model)

    async def _run_pane_once(self, turn: Turn, model: ModelDescriptor) -> None:
        message_id = turn.placeholders.get(model.id)
        try:
            adapter = self._adapter_for(model)
            image = turn.image if model.kind is ModelKind.TEXT else None
            result = await adapter.generate(turn.prompt, image)
            turn.token.raise_if_cancelled()
            if model.kind is ModelKind.TEXT and message_id is not None:
                async for prefix in self.pacer.emulate(result.text, turn.token):
                    self.store.patch(message_id, text=prefix, status="streaming")
                turn.token.raise_if_cancelled()
                # The last emission carries a trailing space; the settled text
                # is the reply exactly as the provider returned it.
                self.store.patch(message_id, text=result.text, status="done")
            elif model.kind is ModelKind.IMAGE and message_id is not None:
                self.store.patch(
                    message_id, text=IMAGE_DONE_TEXT, image=result.image, status="done"
                )
            elif model.kind is ModelKind.CODE and model.id in self._panes:
                self.store.set_code(result.text)
            turn.results[model.id] = "done"
        except TurnCancelledError:
            turn.results[model.id] = "cancelled"
        except asyncio.CancelledError:
            turn.results[model.id] = "cancelled"
            LOGGER.info(
                "orchestrator.pane.cancelled",
                extra={"event": "orchestrator.pane.cancelled"},
            )
            raise
        except Exception as exc:  # noqa: BLE001 - failures stay local to their pane.
            turn.results[model.id] = "error"
            LOGGER.warning(
                "orchestrator.pane.failed",
                extra={
                    "event": "orchestrator.pane.failed",
                    "error_type": exc.__class__.__name__,
                },
            )
            if turn.token.cancelled:
                return
            error_text = f"{ERROR_PREFIX}{exc}"
            if model.kind is ModelKind.CODE:
                if model.id in self._panes:
                    self.store.set_code(error_text, failed=True)
            elif message_id is not None:
                self.store.patch(message_id, text=error_text, status="error")
