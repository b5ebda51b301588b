"""Input row containing message field, send button, and turn toggles."""

from __future__ import annotations

from textual.containers import Horizontal
from textual.message import Message
from textual.widgets import Button, Input


class InputBox(Horizontal):
    """Input region with message field, image attach, web search and key buttons."""

    class AttachRequested(Message):
        """Posted when the user clicks the image attach button."""

    class WebSearchToggled(Message):
        """Posted when the user clicks the web search button."""

    class KeysRequested(Message):
        """Posted when the user clicks the API keys button."""

    def compose(self):  # type: ignore[override]
        yield Input(
            placeholder="Type your message... (sent to every open pane)",
            id="message_input",
        )
        yield Button("Image", id="attach_button", variant="default")
        yield Button("Web search", id="web_search_button", variant="default")
        yield Button("Keys", id="keys_button", variant="default")
        yield Button("Send", id="send_button", variant="success")

    def set_web_search(self, enabled: bool) -> None:
        button = self.query_one("#web_search_button", Button)
        button.variant = "primary" if enabled else "default"
        button.label = "Web search: on" if enabled else "Web search"

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Forward toggle button clicks as messages; Send bubbles to the app."""
        if event.button.id == "attach_button":
            event.stop()
            self.post_message(self.AttachRequested())
        elif event.button.id == "web_search_button":
            event.stop()
            self.post_message(self.WebSearchToggled())
        elif event.button.id == "keys_button":
            event.stop()
            self.post_message(self.KeysRequested())
