from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Account", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Sign in", id="btn-login", variant="primary")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def refresh_info(self) -> None:
        """Re-render account info and the menu for whoever is signed in now."""
        self.init_mode = self.app.current_mode
        state = self.app.state
        user = state.user

        if user is None:
            rows = [["Signed in", "no"], ["Cart", f"{state.cart.get_total_items()} items"]]
            modes = self.app.PUBLIC_MODES
        elif user.is_admin:
            rows = [["Email", user.email], ["Role", "Administrator"]]
            modes = self.app.ADMIN_MODES
        else:
            rows = [
                ["Email", user.email],
                ["Status", user.status.value.title()],
                ["Cart", f"{state.cart.get_total_items()} items"],
            ]
            modes = self.app.CUSTOMER_MODES

        await self.query_one(Markdown).update(generate_markdown_table(None, rows, ["l", "l"]))
        self.query_one("#btn-login").display = user is None
        self.query_one("#btn-logout").display = user is not None

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-login")
    def handle_login(self):
        self.app.sign_in_flow()

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        for item in self.query_one("#list-menu").children:
            item.highlighted = bool(item.id) and item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Mestej",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure title/subtitle and whether the sidebar is shown
        """
        self.app.title = "Mestej Vingård"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                self.sub_title = self.app.MODE_TITLES.get(k, header_sub_title)

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    async def handle_sidebar_refresh(self):
        for sidebar in self.query(Sidebar):
            await sidebar.refresh_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
