from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.logger import get_logger
from utils.messages import QuitRequestedMessage, UserLogoutMessage
from utils.state import GlobalState
from views.modal_age_gate import AgeGateModal
from views.scr_admin_dashboard import AdminDashboardScreen
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_admin_products import AdminProductsScreen
from views.scr_admin_users import AdminUsersScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_my_orders import MyOrdersScreen

_logger = get_logger(__name__)


class MestejApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "my_orders": MyOrdersScreen,
        "admin_dashboard": AdminDashboardScreen,
        "admin_users": AdminUsersScreen,
        "admin_orders": AdminOrdersScreen,
        "admin_products": AdminProductsScreen,
    }

    PUBLIC_MODES = {"catalog": "Shop", "cart": "Cart"}
    CUSTOMER_MODES = {"catalog": "Shop", "cart": "Cart", "my_orders": "My Orders"}
    ADMIN_MODES = {
        "admin_dashboard": "Dashboard",
        "admin_users": "Accounts",
        "admin_orders": "Orders",
        "admin_products": "Products",
    }
    MODE_TITLES = {**PUBLIC_MODES, **CUSTOMER_MODES, **ADMIN_MODES}

    CSS_PATH = "styles/app.tcss"

    state: GlobalState

    def __init__(self, state: GlobalState = None):
        super().__init__()
        self.state = state or GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    async def handle_user_logout(self):
        self.state.sign_out()
        self.notify("Logout successful.")
        await self.show_mode("catalog")

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work
    async def sign_in_flow(self):
        user = await self.push_screen_wait(LoginScreen())
        if user is None:
            return
        await self.show_mode("admin_dashboard" if self.state.is_admin else "catalog")

    async def show_mode(self, mode: str):
        if self.current_mode == mode:
            # same mode: the screen will not resume, refresh it by hand
            await self.screen.handle_sidebar_refresh()
        else:
            await self.switch_mode(mode)

    @work
    async def main_flow(self):
        await self.state.bootstrap()
        if not self.state.preferences.age_verified:
            if not await self.push_screen_wait(AgeGateModal()):
                _logger.info("Age confirmation declined, exiting")
                self.exit()
                return
        await self.switch_mode("catalog")


def run():
    MestejApp().run()


if __name__ == "__main__":
    run()
