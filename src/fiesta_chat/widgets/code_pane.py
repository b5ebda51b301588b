"""Pane that renders the shared code slot with syntax highlighting."""

from __future__ import annotations

import re
from typing import Any

from rich.syntax import Syntax
from rich.text import Text
from textual.widgets import Static

_FENCE_RE = re.compile(
    r"```(?P<lang>[^\n`]*)\n(?P<code>.*?)```",
    re.DOTALL,
)

DEFAULT_LANGUAGE = "python"


def extract_code(text: str) -> tuple[str, str]:
    """Return ``(code, language)`` from the first fenced block, or the raw text."""
    match = _FENCE_RE.search(text)
    if match is None:
        return text, DEFAULT_LANGUAGE
    lang = match.group("lang").strip() or DEFAULT_LANGUAGE
    return match.group("code"), lang


def render_code(text: str, failed: bool = False) -> Text | Syntax:
    """Highlight a code reply; error reports and the empty slot stay plain text."""
    if not text:
        return Text("No code yet.", style="dim")
    if failed:
        return Text(text, style="red")
    code, language = extract_code(text)
    return Syntax(code.rstrip(), language, word_wrap=True)


class CodePaneBody(Static):
    """Syntax-highlighted view of the latest code reply."""

    DEFAULT_CSS = """
    CodePaneBody {
        height: auto;
        padding: 1;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__("", **kwargs)
        self.code_text = ""

    def show_code(self, text: str, failed: bool = False) -> None:
        self.code_text = text
        self.update(render_code(text, failed))
