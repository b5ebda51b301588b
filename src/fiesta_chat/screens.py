"""Modal screens for API keys and image attachment."""

from __future__ import annotations

from typing import Any

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static


class ApiKeyScreen(ModalScreen[dict[str, str] | None]):
    """Collect one API key per provider; dismisses with the non-empty entries."""

    CSS = """
    ApiKeyScreen {
        align: center middle;
    }

    #keys-dialog {
        width: 70;
        height: auto;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #keys-title {
        padding-bottom: 1;
        text-style: bold;
    }

    .keys-label {
        padding-top: 1;
    }

    #keys-actions {
        height: 3;
        align: right middle;
        margin-top: 1;
    }

    #keys-actions Button {
        margin-left: 1;
    }
    """

    def __init__(self, providers: list[str], missing: list[str] | None = None) -> None:
        super().__init__()
        self._providers = list(providers)
        self._missing = set(missing or [])

    def compose(self) -> ComposeResult:
        with Container(id="keys-dialog"):
            title = "API keys"
            if self._missing:
                title = f"Missing API key for: {', '.join(sorted(self._missing))}"
            yield Static(title, id="keys-title")
            for provider in self._providers:
                marker = " (required)" if provider in self._missing else ""
                yield Static(f"{provider}{marker}", classes="keys-label")
                yield Input(
                    placeholder=f"{provider} API key",
                    password=True,
                    id=f"key-{provider}",
                )
            with Horizontal(id="keys-actions"):
                yield Button("Cancel", id="keys-cancel", variant="default")
                yield Button("Save", id="keys-save", variant="primary")

    def on_mount(self) -> None:
        first = next(iter(sorted(self._missing)), None) or next(
            iter(self._providers), None
        )
        if first is not None:
            self.query_one(f"#key-{first}", Input).focus()

    def collected_keys(self) -> dict[str, str]:
        keys: dict[str, str] = {}
        for provider in self._providers:
            value = self.query_one(f"#key-{provider}", Input).value.strip()
            if value:
                keys[provider] = value
        return keys

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "keys-save":
            event.stop()
            self.dismiss(self.collected_keys())
        elif event.button.id == "keys-cancel":
            event.stop()
            self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(self.collected_keys())

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)


class ImageAttachScreen(ModalScreen[str | None]):
    """Modal for collecting an image path to send with the next prompt."""

    CSS = """
    ImageAttachScreen {
        align: center middle;
    }

    #image-attach-dialog {
        width: 60;
        padding: 1 3;
        border: round $panel;
        background: $surface;
    }

    #image-attach-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #image-attach-input {
        width: 100%;
        margin: 1 0;
    }

    #image-attach-help {
        padding-top: 1;
        text-align: center;
    }
    """

    def compose(self) -> ComposeResult:
        with Container(id="image-attach-dialog"):
            yield Static("Attach image to the next prompt", id="image-attach-title")
            yield Input(
                placeholder="Path to a PNG, JPEG, GIF or WebP file",
                id="image-attach-input",
            )
            yield Static(
                "Enter to attach | Empty + Enter clears | Esc to cancel",
                id="image-attach-help",
            )

    def on_mount(self) -> None:
        self.query_one("#image-attach-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "image-attach-input":
            return
        value = event.value.strip()
        self.dismiss(value)

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        if str(getattr(event, "key", "")).lower() == "escape":
            self.dismiss(None)
