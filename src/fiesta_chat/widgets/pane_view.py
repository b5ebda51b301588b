"""Column widget rendering one pane's filtered message thread."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from rich.console import Group
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message as TextualMessage
from textual.widgets import Button, Label, Static

from ..conversation import Message
from ..models import ModelDescriptor, ModelKind
from .code_pane import CodePaneBody

TYPING_MARKER = "Typing..."


def render_message(message: Message, model_name: str) -> Text:
    """Build the rich text block for one conversation entry."""
    sender = "You" if message.is_user else model_name
    block = Text()
    block.append(f"{sender}\n", style="bold")
    if message.text:
        style = "red" if message.status == "error" else ""
        block.append(message.text.rstrip(), style=style)
    elif message.status == "pending":
        block.append("…", style="dim")
    if message.image is not None:
        size_kb = len(message.image.data) * 3 // 4 // 1024
        block.append(f"\n[{message.image.mime_type} image, {size_kb} KiB]", style="italic")
    if message.status == "cancelled":
        block.append("\n(cancelled)", style="dim italic")
    return block


class PaneView(Vertical):
    """Header with remove button above a scrollable message list."""

    DEFAULT_CSS = """
    PaneView {
        width: 1fr;
        border-right: solid $panel;
    }
    PaneView > .pane-header {
        height: 3;
        padding: 0 1;
        background: $surface;
    }
    PaneView .pane-title {
        width: 1fr;
        text-style: bold;
        padding-top: 1;
    }
    PaneView > VerticalScroll {
        height: 1fr;
        padding: 0 1;
    }
    """

    class RemoveRequested(TextualMessage):
        """Posted when the pane's remove button is pressed."""

        def __init__(self, pane_id: str) -> None:
            super().__init__()
            self.pane_id = pane_id

    def __init__(self, model: ModelDescriptor, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model = model
        self._body: Static | None = None
        self._code: CodePaneBody | None = None
        self._scroll: VerticalScroll | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(classes="pane-header"):
            yield Label(self.model.display_name, classes="pane-title")
            yield Button("✕", classes="pane-remove", variant="default")
        with VerticalScroll() as scroll:
            self._scroll = scroll
            if self.model.kind is ModelKind.CODE:
                self._code = CodePaneBody()
                yield self._code
            else:
                self._body = Static("", classes="pane-body")
                yield self._body

    def show_code(self, text: str, failed: bool = False) -> None:
        if self._code is not None:
            self._code.show_code(text, failed)

    def show_messages(self, messages: Sequence[Message], busy: bool) -> None:
        if self._body is None:
            return
        blocks: list[Text] = [
            render_message(message, self.model.display_name) for message in messages
        ]
        if busy:
            blocks.append(Text(TYPING_MARKER, style="dim"))
        self._body.update(Group(*blocks))
        if self._scroll is not None:
            self._scroll.scroll_end(animate=False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.has_class("pane-remove"):
            event.stop()
            self.post_message(self.RemoveRequested(self.model.id))
