from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.carts import add_to_cart
from db.catalog import get_product_by_slug
from db.models import Product
from utils.messages import CartChangedMessage
from utils.pure import format_price, generate_markdown_table
from views.base_screen import guarded


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail plus add-to-cart.
    Returns True if the cart changed, False if not.
    """

    order_qty = reactive(1)

    def __init__(self, slug: str) -> None:
        super().__init__()
        self._slug = slug
        self._prod: Product | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical():
                yield Label("Jumlah")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        ok, self._prod = await guarded(self, get_product_by_slug(self._slug))
        if not ok or self._prod is None:
            self.app.notify("Produk tidak ditemukan", severity="error")
            self.dismiss(False)
            return
        prod = self._prod

        table_rows = [
            ["Kategori", prod.category_name or "-"],
            ["Harga", format_price(prod.price)],
            ["Stok", prod.stock],
            ["Dosis", prod.dosage or "-"],
            ["Deskripsi", prod.description or "-"],
        ]
        md_table_str = generate_markdown_table(["Attribute", "Value"], table_rows, ["l", "l"])
        await self.query_one(MarkdownViewer).document.update(
            f"### {prod.name}\n\n" + md_table_str
        )

        if prod.stock < 1:
            order_btn = self.query_one("#btn-addcart", Button)
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty", Input).validators = [
            Number(minimum=1, maximum=max(prod.stock, 1))
        ]
        self.query_one("#input-order-qty").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
            and message.value
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._prod.stock
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        ok, item = await guarded(
            self,
            add_to_cart(self.app.state, self._prod.id, self.order_qty),
            "Gagal menambahkan ke keranjang",
        )
        if not ok:
            return
        self.app.notify(f"{item.product_name} ditambahkan ke keranjang (x{item.quantity})")
        self.app.post_message(CartChangedMessage())
        self.dismiss(True)
