from typing import Dict, Literal, Optional, Tuple

from textual import on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from utils.messages import QuitRequestedMessage

Tone = Literal["default", "positive", "warning", "error"]


class DialogModal(ModalScreen[bool]):
    """
    Yes/no dialog; dismisses with True for the primary button.
    """

    VARIANT_MAP: Dict[str, Tuple[str, str]] = {
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
        # destructive dialogs focus the safe choice
        if self.secondary_text and self.tone == "error":
            self.query_one("#btn-secondary").focus()
        else:
            self.query_one("#btn-primary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn-primary")


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)


class ReasonPromptModal(ModalScreen[Optional[str]]):
    """
    Confirmation with an optional free-text reason.
    Dismisses with the reason ("" when left blank), or None when aborted.
    """

    def __init__(self, caption: str, confirm_text: str = "Confirm") -> None:
        super().__init__()
        self.caption = caption
        self.confirm_text = confirm_text

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            yield Input(placeholder="Reason (optional)", id="input-reason")
            with Horizontal(id="dialog"):
                yield Button("Back", id="btn-secondary")
                yield Button(self.confirm_text, variant="error", id="btn-primary")

    def on_mount(self) -> None:
        self.query_one("#input-reason").focus()

    @on(Button.Pressed, "#btn-primary")
    def handle_confirm(self) -> None:
        self.dismiss(self.query_one("#input-reason", Input).value.strip())

    @on(Button.Pressed, "#btn-secondary")
    def handle_back(self) -> None:
        self.dismiss(None)
