from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, Rule

from db.carts import cart_total, clear_cart, list_cart_items, remove_item, set_quantity
from db.models import CartItem
from utils.messages import CartChangedMessage, ModeSwitchedMessage, NewOrderMessage
from utils.pure import format_price
from views.base_screen import BaseScreen, guarded
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


class CartScreen(BaseScreen):
    """
    Cart lines with quantity controls, removal and checkout.
    """

    def __init__(self) -> None:
        super().__init__()
        self._items: List[CartItem] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield DataTable(id="table-cart")
        yield Label("Total: Rp 0", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("-", id="btn-sub-qty")
            yield Button("+", id="btn-add-qty")
            yield Button("Remove", id="btn-remove", variant="warning")
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Produk", "Harga", "Jumlah", "Stok", "Subtotal")
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True, group="cart")  # concurrent reloads would interleave rows
    async def handle_cart_change(self):
        ok, items = await guarded(self, list_cart_items(self.app.state), "Gagal memuat keranjang")
        if not ok:
            return
        self._items = items

        table = self.query_one(DataTable)
        cursor = table.cursor_row
        table.clear()
        for item in items:
            table.add_row(
                item.product_name,
                format_price(item.product_price),
                item.quantity,
                item.product_stock,
                format_price(item.subtotal),
                key=item.id,
            )
        if items:
            table.move_cursor(row=min(cursor, len(items) - 1))
        self.query_one("#label-cart-total", Label).update(
            f"Total: {format_price(cart_total(items))}"
        )

    def _selected_item(self) -> CartItem | None:
        table = self.query_one(DataTable)
        if not self._items or table.row_count == 0:
            self.app.notify("Keranjang kosong", severity="warning")
            return None
        return self._items[table.cursor_row]

    async def _change_qty(self, delta: int) -> None:
        item = self._selected_item()
        if item is None:
            return
        ok, _ = await guarded(
            self,
            set_quantity(self.app.state, item.id, item.quantity + delta),
            "Gagal update jumlah",
        )
        if ok:
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-add-qty")
    async def handle_add_qty(self) -> None:
        await self._change_qty(1)

    @on(Button.Pressed, "#btn-sub-qty")
    async def handle_sub_qty(self) -> None:
        await self._change_qty(-1)

    @on(Button.Pressed, "#btn-remove")
    @work()
    async def handle_remove_item(self):
        item = self._selected_item()
        if item is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Remove {item.product_name} from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return
        ok, _ = await guarded(self, remove_item(self.app.state, item.id), "Gagal menghapus item")
        if ok:
            self.notify("Item dihapus")
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not self._items:
            self.app.notify("Keranjang kosong", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            ok, _ = await guarded(self, clear_cart(self.app.state))
            if ok:
                self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        if not self._items:
            self.app.notify("Keranjang kosong", severity="warning")
            return

        if await self.app.push_screen_wait(CheckoutModal(self._items)):
            self.app.post_message(NewOrderMessage())
        self.post_message(CartChangedMessage())
