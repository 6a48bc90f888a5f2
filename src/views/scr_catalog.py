from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import DataTable, Input, Select

import db.catalog
from utils.messages import CartChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen, guarded
from views.modal_prod_detail import ProdDetailModal


class CatalogScreen(BaseScreen):
    """
    Storefront: in-stock products, filtered by category and name, popular first.
    """

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    def __init__(self):
        super().__init__()
        self._category_id: Optional[str] = None
        self._query = ""

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-filters"):
            yield Input(id="input-search", placeholder="Cari obat...")
            yield Select([], prompt="Semua kategori", id="select-category")
        yield DataTable(id="table-products")

    async def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Nama", "Kategori", "Harga", "Stok", "Populer")

        ok, categories = await guarded(
            self, db.catalog.list_categories(), "Gagal memuat kategori"
        )
        if ok:
            self.query_one(Select).set_options(
                (f"{c.icon or ''} {c.name}".strip(), c.id) for c in categories
            )
        self.query_one("#input-search").focus()
        self.refresh_products()

    @on(Input.Changed, "#input-search")
    def handle_search(self, message: Input.Changed) -> None:
        self._query = message.value
        self.refresh_products()

    @on(Select.Changed, "#select-category")
    def handle_category(self, message: Select.Changed) -> None:
        # the blank option carries a non-str sentinel value
        self._category_id = message.value if isinstance(message.value, str) else None
        self.refresh_products()

    @on(ScreenResume)
    @on(CartChangedMessage)
    def handle_resume(self) -> None:
        self.refresh_products()

    @on(DataTable.RowSelected, "#table-products")
    @work()
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        if await self.app.push_screen_wait(ProdDetailModal(event.row_key.value)):
            self.app.post_message(CartChangedMessage())

    @work(exclusive=True, group="catalog")
    async def refresh_products(self) -> None:
        ok, products = await guarded(
            self,
            db.catalog.list_products(self._category_id, self._query),
            "Gagal memuat produk",
        )
        if not ok:
            return
        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.name,
                p.category_name or "-",
                format_price(p.price),
                p.stock,
                "★" if p.is_popular else "",
                key=p.slug,
            )
