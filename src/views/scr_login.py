from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from db.models import UserAccount, UserStatus
from shop import auth
from shop.errors import ValidationError
from views.modal_dialog import DialogModal

STATUS_NOTICES = {
    UserStatus.PENDING: "Your account is awaiting approval. You can browse, but not order yet.",
    UserStatus.REJECTED: "Your account application was rejected.",
    UserStatus.BLOCKED: "Your account is blocked. Contact us for details.",
}


class LoginScreen(ModalScreen[UserAccount]):
    """
    Sign in or sign up by email.
    Dismisses with the signed-in account, or None when going back.
    """

    def compose(self) -> ComposeResult:
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Sign in", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-login-pwd")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Back", id="btn-back")
                        yield Button("Sign in", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label(f"Password (at least {auth.MIN_PASSWORD_LENGTH} characters)")
                    yield Input(placeholder="*********", password=True, id="input-reg-pwd")
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(None)
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        user = await self.app.state.sign_in(email, pwd)
        if user is None:
            self.notify("Invalid email or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        self.notify(f"Hello {user.email}!")
        if user.status in STATUS_NOTICES:
            await self.app.push_screen_wait(DialogModal(STATUS_NOTICES[user.status]))
        self.dismiss(user)

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value

        try:
            await auth.sign_up(self.app.state.db, email, pwd)
        except ValidationError as e:
            self.notify(str(e), severity="error")
            return

        await self.app.push_screen_wait(
            DialogModal("Registration successful. An administrator will review your account.")
        )

        self.query_one(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = pwd
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.dismiss(None)
