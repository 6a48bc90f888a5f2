from typing import Dict, Literal, Tuple, override

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from utils.messages import QuitRequestedMessage

Tone = Literal["default", "positive", "warning", "error"]
Variant = Literal["primary", "default", "success", "warning", "error"]


class DialogModal(ModalScreen[bool]):
    """
    Yes/no confirmation box. Dismisses with True for the primary button.
    """

    VARIANT_MAP: Dict[Tone, Tuple[Variant, Variant]] = {
        "default": ("primary", "default"),
        "positive": ("success", "default"),
        "warning": ("warning", "default"),
        "error": ("error", "primary"),
    }

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Tone = "default",
    ):
        super().__init__()
        self.caption = caption
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        primary, secondary = DialogModal.VARIANT_MAP[self.tone]
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            with Horizontal(id="dialog"):
                if self.secondary_text:
                    yield Button(self.secondary_text, variant=secondary, id="btn-secondary")
                yield Button(self.primary_text, variant=primary, id="btn-primary")

    def on_mount(self):
        # destructive prompts focus the safe choice
        if self.secondary_text and self.tone == "error":
            self.query_one("#btn-secondary").focus()
        else:
            self.query_one("#btn-primary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn-primary")


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    @override
    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.app.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)
