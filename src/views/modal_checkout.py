import uuid
from typing import List

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, MarkdownViewer, TextArea

from db.auth import get_profile
from db.carts import cart_total
from db.checkout import checkout
from db.models import CartItem
from utils.pure import format_price, generate_markdown_table
from views.base_screen import guarded
from views.modal_dialog import DialogModal


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary plus shipping address.
    Returns True when an order was placed, False otherwise.
    """

    def __init__(self, items: List[CartItem]):
        super().__init__()
        self._items = items
        # reused on retry so a repeated submit cannot create a second order
        self._checkout_key = str(uuid.uuid4())

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("Alamat Pengiriman")
            yield TextArea(id="input-address")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        rows = [
            [it.product_name, format_price(it.product_price), it.quantity, format_price(it.subtotal)]
            for it in self._items
        ]
        md = generate_markdown_table(
            ["Produk", "Harga", "Jumlah", "Subtotal"], rows, ["l", "r", "c", "r"]
        )
        md += f"\n\n**Total:** {format_price(cart_total(self._items))}"
        await self.query_one(MarkdownViewer).document.update("### Ringkasan Pesanan\n\n" + md)

        ok, profile = await guarded(self, get_profile(self.app.state))
        if ok and profile and profile.address:
            self.query_one("#input-address", TextArea).text = profile.address
        self.query_one("#input-address").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        address_input = self.query_one("#input-address", TextArea)
        address = address_input.text.strip()
        if not address:
            address_input.focus()
            self.notify("Silakan isi alamat pengiriman", severity="error")
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        ok, order = await guarded(
            self,
            checkout(self.app.state, address, checkout_key=self._checkout_key),
            "Gagal membuat pesanan",
        )
        if not ok:
            return
        self.app.notify(f"Pesanan berhasil dibuat! Nomor pesanan: {order.order_number}")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
