"""Main Textual application: one prompt fanned out to several model panes."""

from __future__ import annotations

import logging
from pathlib import Path
import sys
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Footer, Header, Input, OptionList, Static

from .attachments import load_image_attachment
from .config import load_config
from .conversation import USER_SENDER, ConversationStore, StoreEvent
from .credentials import CredentialStore
from .exceptions import (
    AttachmentError,
    MissingCredentialError,
    TurnValidationError,
)
from .logging_utils import configure_logging
from .models import MODEL_CATALOG, ImagePayload, ModelKind, get_model, provider_names
from .orchestrator import RequestOrchestrator
from .screens import ApiKeyScreen, ImageAttachScreen
from .task_manager import TaskManager
from .transport import RetryingTransport
from .widgets.input_box import InputBox
from .widgets.pane_view import PaneView

LOGGER = logging.getLogger(__name__)


class FiestaChatApp(App[None]):
    """Side-by-side chat with several models answering the same prompt."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        height: 1fr;
    }

    Header {
        border-bottom: solid $panel;
        background: $surface;
    }

    Footer {
        border-top: solid $panel;
        background: $surface;
    }

    #sidebar {
        width: 32;
        border-right: solid $panel;
        background: $surface;
    }

    #sidebar-title {
        padding: 1;
        text-style: bold;
    }

    #model_catalog {
        height: 1fr;
    }

    #panes {
        width: 1fr;
    }

    #empty_hint {
        width: 1fr;
        padding: 2;
        color: $text-muted;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #message_input {
        width: 1fr;
    }

    InputBox Button {
        margin-left: 1;
        min-width: 10;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "send_message": "Send",
        "new_conversation": "New Chat",
        "quit": "Quit",
        "toggle_web_search": "Web Search",
        "manage_keys": "API Keys",
        "remove_pane": "Remove Pane",
        "interrupt_turn": "Interrupt",
    }

    def __init__(
        self,
        config_path: Path | None = None,
        transport: RetryingTransport | None = None,
    ) -> None:
        self.config = load_config(config_path)
        self.window_title = str(self.config["app"]["title"])
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )
        self.store = ConversationStore()
        self.credentials = CredentialStore.from_sources(
            self.config.get("credentials", {}), providers=provider_names()
        )
        self.orchestrator = RequestOrchestrator.from_config(
            self.config,
            store=self.store,
            credentials=self.credentials,
            transport=transport,
        )
        self._pending_image: ImagePayload | None = None
        self._task_manager = TaskManager()
        self._turn_counter = 0
        self._unsubscribe: Any = None
        self._binding_specs = self._binding_specs_from_config(self.config)
        super().__init__()

    @classmethod
    def _binding_specs_from_config(
        cls, config: dict[str, dict[str, Any]]
    ) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name in cls.DEFAULT_ACTION_DESCRIPTIONS:
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(
                    Binding(
                        key=binding_key.strip(),
                        action=action_name,
                        description=cls.DEFAULT_ACTION_DESCRIPTIONS[action_name],
                        show=True,
                    )
                )
        return bindings

    def compose(self) -> ComposeResult:
        """Compose app widgets."""
        yield Header(name=self.window_title)
        with Horizontal(id="app-root"):
            with Vertical(id="sidebar"):
                yield Static("Models", id="sidebar-title")
                yield OptionList(
                    *(
                        f"{model.display_name} ({model.kind.value})"
                        for model in MODEL_CATALOG
                    ),
                    id="model_catalog",
                )
            with Horizontal(id="panes"):
                yield Static(
                    "Pick a model on the left to open a pane.", id="empty_hint"
                )
                for pane_id in self.orchestrator.panes:
                    yield PaneView(get_model(pane_id), id=self._pane_dom_id(pane_id))
        yield InputBox(id="input_box")
        yield Footer()

    async def on_mount(self) -> None:
        """Register runtime keybindings and start listening to the store."""
        self.title = self.window_title
        for binding in self._binding_specs:
            self.bind(
                binding.key,
                binding.action,
                description=binding.description,
                show=binding.show,
                key_display=binding.key_display,
            )
        self._unsubscribe = self.store.subscribe(self._on_store_event)
        self._refresh_panes()
        self._set_status("Ready")
        self.query_one("#message_input", Input).focus()

    @staticmethod
    def _pane_dom_id(pane_id: str) -> str:
        return f"pane-{pane_id}"

    def _set_status(self, text: str) -> None:
        web = "on" if self.orchestrator.web_search else "off"
        image = "  |  image attached" if self._pending_image is not None else ""
        self.sub_title = (
            f"{text}  |  panes {len(self.orchestrator.panes)}/"
            f"{self.orchestrator.max_panes}  |  web search {web}{image}"
        )

    def _pane_views(self) -> list[PaneView]:
        return list(self.query(PaneView))

    def _refresh_pane(self, view: PaneView) -> None:
        if view.model.kind is ModelKind.CODE:
            view.show_code(self.store.code, self.store.code_failed)
        else:
            view.show_messages(
                self.store.messages_for_pane(view.model.id), self.orchestrator.busy
            )

    def _refresh_panes(self) -> None:
        views = self._pane_views()
        for view in views:
            self._refresh_pane(view)
        self.query_one("#empty_hint", Static).display = not views

    def _on_store_event(self, event: StoreEvent) -> None:
        if event.kind == "patch" and event.sender not in {None, USER_SENDER}:
            for view in self._pane_views():
                if view.model.id == event.sender:
                    self._refresh_pane(view)
            return
        self._refresh_panes()

    async def on_option_list_option_selected(
        self, event: OptionList.OptionSelected
    ) -> None:
        if event.option_list.id != "model_catalog":
            return
        index = event.option_index
        if not 0 <= index < len(MODEL_CATALOG):
            return
        await self._add_pane(MODEL_CATALOG[index].id)

    async def _add_pane(self, model_id: str) -> None:
        if model_id in self.orchestrator.panes:
            self._set_status(f"{get_model(model_id).display_name} is already open.")
            return
        if not self.orchestrator.add_pane(model_id):
            self._set_status(
                f"Pane limit reached ({self.orchestrator.max_panes}). "
                "Remove a pane first."
            )
            return
        view = PaneView(get_model(model_id), id=self._pane_dom_id(model_id))
        await self.query_one("#panes", Horizontal).mount(view)
        self._refresh_panes()
        self._set_status(f"Added {view.model.display_name}")

    async def _remove_pane(self, pane_id: str) -> None:
        if not self.orchestrator.remove_pane(pane_id):
            return
        for view in self._pane_views():
            if view.model.id == pane_id:
                await view.remove()
        self._refresh_panes()
        self._set_status(f"Removed {get_model(pane_id).display_name}")

    async def on_pane_view_remove_requested(
        self, message: PaneView.RemoveRequested
    ) -> None:
        await self._remove_pane(message.pane_id)

    async def action_remove_pane(self) -> None:
        """Remove the focused pane, or the most recently added one."""
        views = self._pane_views()
        if not views:
            self._set_status("No pane to remove.")
            return
        target = views[-1]
        focused = self.focused
        for view in views:
            if focused is not None and focused in view.walk_children():
                target = view
                break
        await self._remove_pane(target.model.id)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle send button clicks."""
        if event.button.id == "send_button":
            await self.send_user_message()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "message_input":
            await self.send_user_message()

    async def action_send_message(self) -> None:
        """Action invoked by keybinding for sending a message."""
        await self.send_user_message()

    async def send_user_message(self) -> None:
        """Validate the composed prompt and start a turn in the background."""
        input_widget = self.query_one("#message_input", Input)
        prompt = input_widget.value.strip()
        image = self._pending_image
        if not prompt and image is None:
            self._set_status("Cannot send an empty message.")
            return
        if not self.orchestrator.panes:
            self._set_status("Open at least one pane before sending.")
            return
        missing = self.orchestrator.missing_credentials()
        if missing:
            self._open_key_screen(missing)
            return

        input_widget.value = ""
        self._pending_image = None
        self._turn_counter += 1
        self._task_manager.spawn(
            f"turn-{self._turn_counter}", self._run_turn(prompt, image)
        )

    async def _run_turn(self, prompt: str, image: ImagePayload | None) -> None:
        self._set_status("Waiting for replies...")
        try:
            outcome = await self.orchestrator.submit(prompt, image)
        except MissingCredentialError as exc:
            self._open_key_screen(exc.providers)
            return
        except TurnValidationError as exc:
            self._set_status(str(exc))
            return
        self._refresh_panes()
        if self.orchestrator.busy:
            return
        if outcome.failed:
            names = ", ".join(get_model(pane).display_name for pane in outcome.failed)
            self._set_status(f"Failed: {names}")
        elif outcome.succeeded:
            self._set_status("Ready")
        else:
            self._set_status("Turn cancelled")

    async def action_interrupt_turn(self) -> None:
        """Cancel the in-flight turn across every pane."""
        if not await self.orchestrator.cancel_active_turn():
            self._set_status("No turn to interrupt.")
            return
        self._refresh_panes()
        self._set_status("Turn cancelled")

    async def action_new_conversation(self) -> None:
        """Cancel any running turn and clear the shared history."""
        await self.orchestrator.cancel_active_turn()
        self.store.clear()
        self._pending_image = None
        self._set_status("New conversation")

    def action_toggle_web_search(self) -> None:
        self.orchestrator.web_search = not self.orchestrator.web_search
        self.query_one(InputBox).set_web_search(self.orchestrator.web_search)
        self._set_status("Web search toggled")

    def on_input_box_web_search_toggled(
        self, _message: InputBox.WebSearchToggled
    ) -> None:
        self.action_toggle_web_search()

    def action_manage_keys(self) -> None:
        self._open_key_screen(self.orchestrator.missing_credentials())

    def on_input_box_keys_requested(self, _message: InputBox.KeysRequested) -> None:
        self.action_manage_keys()

    def _open_key_screen(self, missing: list[str]) -> None:
        if missing:
            self._set_status("Missing API key for: " + ", ".join(missing))
        self.push_screen(
            ApiKeyScreen(provider_names(), missing=missing),
            callback=self._on_keys_dismissed,
        )

    def _on_keys_dismissed(self, keys: dict[str, str] | None) -> None:
        if not keys:
            self._set_status("API keys unchanged.")
            return
        for provider, key in keys.items():
            self.credentials.set_credential(provider, key)
        LOGGER.info(
            "app.credentials.updated",
            extra={"event": "app.credentials.updated", "providers": sorted(keys)},
        )
        self._set_status("API keys saved. Press Send to continue.")

    def on_input_box_attach_requested(
        self, _message: InputBox.AttachRequested
    ) -> None:
        self.push_screen(ImageAttachScreen(), callback=self._on_image_attach_dismissed)

    def _on_image_attach_dismissed(self, path: str | None) -> None:
        if path is None:
            return
        if not path:
            self._pending_image = None
            self._set_status("Image cleared")
            return
        try:
            self._pending_image = load_image_attachment(path)
        except AttachmentError as exc:
            self._set_status(str(exc))
            return
        self._set_status(f"Image attached: {Path(path).name}")

    async def on_unmount(self) -> None:
        """Cancel and await all background work during shutdown."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.orchestrator.aclose()
        await self._task_manager.cancel_all()

    async def action_quit(self) -> None:
        """Exit the app."""
        self.exit()
