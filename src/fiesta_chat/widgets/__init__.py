"""Widget exports for fiesta_chat UI."""

from .code_pane import CodePaneBody
from .input_box import InputBox
from .pane_view import PaneView

__all__ = ["CodePaneBody", "InputBox", "PaneView"]
