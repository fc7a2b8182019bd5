from typing import Callable, List, Optional

from loguru import logger
from sync_progress_client.models import ButtonState

LOADING_MARKER = " …"


class ButtonControl:
    """In-memory stand-in for a clickable control that triggers a job"""

    def __init__(self, label: str, width: int = 120):
        self.label = label
        self.width = width
        self.min_width: Optional[int] = None
        self.disabled = False
        self.loading = False
        self.primary = False

    def snapshot(self) -> ButtonState:
        return ButtonState(
            disabled=self.disabled, original_label=self.label, original_width=self.width
        )

    def mark_loading(self, state: ButtonState) -> None:
        # Pin the width so the label change does not shift the layout
        self.min_width = state.original_width
        self.disabled = True
        self.loading = True
        self.label = state.original_label + LOADING_MARKER

    def show_result(self, message: str) -> None:
        self.loading = False
        self.primary = True
        self.label = message

    def restore(self, state: ButtonState) -> None:
        self.loading = False
        self.primary = False
        self.disabled = False
        self.label = state.original_label
        self.min_width = None


class ProgressIndicator:
    """The single shared progress region"""

    def __init__(self):
        self.visible = False
        self.percent = 0
        self.text = ""
        self.logger = logger

    def show(self, percent: int, text: str) -> None:
        self.visible = True
        self.percent = percent
        self.text = text
        self.logger.debug(f"Progress {percent}%: {text}")

    def hide(self) -> None:
        self.visible = False


class AlertLog:
    """Collects blocking alerts; forwards them to an optional sink"""

    def __init__(self, sink: Optional[Callable[[str], None]] = None):
        self.messages: List[str] = []
        self.sink = sink

    def __call__(self, message: str) -> None:
        logger.warning(f"Alert: {message}")
        self.messages.append(message)
        if self.sink is not None:
            self.sink(message)
