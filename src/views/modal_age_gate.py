from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Label

CAPTIONS = {
    "en": ("You must be 20 or older to visit this shop.", "I am 20 or older", "Leave"),
    "sv": ("Du måste ha fyllt 20 år för att besöka butiken.", "Jag har fyllt 20", "Lämna"),
}


class AgeGateModal(ModalScreen[bool]):
    """
    Shown until the visitor confirms their age once; the answer is remembered
    in local storage. Dismisses with True when confirmed.
    """

    def compose(self) -> ComposeResult:
        caption, confirm, leave = CAPTIONS[self.app.state.preferences.language]
        with Container(id="div-dialog"):
            yield Label(caption, id="caption")
            with Horizontal(id="dialog"):
                yield Button(leave, id="btn-leave")
                yield Button(confirm, variant="primary", id="btn-confirm")
                yield Button("EN / SV", id="btn-language")

    def on_mount(self) -> None:
        self.query_one("#btn-confirm").focus()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-confirm":
            self.app.state.preferences.confirm_age()
            self.dismiss(True)
        elif event.button.id == "btn-leave":
            self.dismiss(False)
        else:
            prefs = self.app.state.preferences
            prefs.language = "sv" if prefs.language == "en" else "en"
            await self.recompose()
