from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.messages import ModeSwitchedMessage, QuitRequestedMessage, UserLogoutMessage
from utils.state import AuthSession
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_admin_products import AdminProductsScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen


class WarungApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "admin_products": AdminProductsScreen,
        "admin_orders": AdminOrdersScreen,
    }

    CUSTOMER_MODES = {
        "catalog": "Katalog",
        "cart": "Keranjang",
        "orders": "Riwayat Pesanan",
    }
    ADMIN_MODES = {
        "admin_products": "Kelola Produk",
        "admin_orders": "Kelola Pesanan",
    }

    CSS_PATH = "views/styles.tcss"

    state: AuthSession

    def __init__(self):
        super().__init__()
        self.state = AuthSession()

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
    def handle_user_logout(self):
        self.state.sign_out()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.state.sign_out()
        self.exit()

    @work
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())
        target = "admin_orders" if self.state.is_admin else "catalog"
        self.post_message(ModeSwitchedMessage(self.current_mode, target))
        await self.switch_mode(target)


def run() -> None:
    WarungApp().run()


if __name__ == "__main__":
    run()
