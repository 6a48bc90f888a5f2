from __future__ import annotations

from datetime import date
from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, Checkbox, DataTable, Input, Label, Markdown, Select

import db.admin
import db.catalog
from db.models import Product
from utils.pure import format_price, generate_markdown_table
from views.base_screen import BaseScreen, guarded
from views.modal_dialog import DialogModal

FORM_INPUTS = ("name", "slug", "price", "stock", "dosage", "description", "barcode", "expiry")
EXPIRY_WINDOW_DAYS = 30


class AdminProductsScreen(BaseScreen):
    """
    Admin product CRUD. Selecting a row loads it into the form for editing;
    "New" clears the form for a fresh product. Submitting a barcode loads the
    matching product. Also creates categories and lists stock close to expiry.
    """

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}
        self._editing_id: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-products")
            yield Label("Tambah Produk", id="label-form-title")
            with Horizontal(id="hort-form-1"):
                yield Input(placeholder="Nama Produk", id="input-name")
                yield Input(placeholder="slug (opsional)", id="input-slug")
                yield Select([], prompt="Kategori", id="select-category")
            with Horizontal(id="hort-form-2"):
                yield Input(
                    placeholder="Harga", id="input-price", type="integer",
                    validators=[Number(minimum=0)],
                )
                yield Input(
                    placeholder="Stok", id="input-stock", type="integer",
                    validators=[Number(minimum=0)],
                )
                yield Input(placeholder="Dosis", id="input-dosage")
                yield Input(placeholder="Barcode", id="input-barcode")
                yield Input(placeholder="Kadaluarsa (YYYY-MM-DD)", id="input-expiry")
                yield Checkbox("Populer", id="check-popular")
            yield Input(placeholder="Deskripsi", id="input-description")
            with Horizontal(id="hort-controls"):
                yield Button("New", id="btn-new")
                yield Button("Delete", id="btn-delete", variant="error")
                yield Button("Save", id="btn-save", variant="success")
                yield Input(placeholder="Kategori baru", id="input-category")
                yield Button("Tambah Kategori", id="btn-category")
                yield Button("Stok Kadaluarsa", id="btn-expiring", variant="warning")
            yield Markdown("", id="md-expiring")

    async def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Nama", "Kategori", "Harga", "Stok", "Kadaluarsa")
        await self.load_categories()
        self.load_products()

    async def load_categories(self) -> None:
        ok, categories = await guarded(self, db.catalog.list_categories())
        if ok:
            self.query_one(Select).set_options((c.name, c.id) for c in categories)

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self.load_products()

    @work(exclusive=True, group="admin-products")
    async def load_products(self) -> None:
        ok, products = await guarded(self, db.admin.list_products(self.app.state))
        if not ok:
            return
        self._products = {p.id: p for p in products}
        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.name,
                p.category_name or "-",
                format_price(p.price),
                p.stock,
                p.expiry_date.isoformat() if p.expiry_date else "-",
                key=p.id,
            )

    @on(DataTable.RowSelected, "#table-products")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        prod = self._products.get(event.row_key.value)
        if prod is not None:
            self._fill_form(prod)

    @on(Input.Submitted, "#input-barcode")
    @work(exclusive=True)
    async def handle_barcode(self, message: Input.Submitted) -> None:
        barcode = message.value.strip()
        if not barcode:
            return
        ok, prod = await guarded(self, db.catalog.get_product_by_barcode(barcode))
        if not ok:
            return
        if prod is None:
            self.notify(f"Barcode {barcode} belum terdaftar.", severity="warning")
            return
        self._fill_form(prod)

    def _fill_form(self, prod: Product) -> None:
        self._editing_id = prod.id
        values = {
            "name": prod.name,
            "slug": prod.slug,
            "price": str(int(prod.price)),
            "stock": str(prod.stock),
            "dosage": prod.dosage or "",
            "description": prod.description or "",
            "barcode": prod.barcode or "",
            "expiry": prod.expiry_date.isoformat() if prod.expiry_date else "",
        }
        for k, v in values.items():
            self.query_one(f"#input-{k}", Input).value = v
        select = self.query_one(Select)
        if prod.category_id:
            select.value = prod.category_id
        else:
            select.clear()
        self.query_one(Checkbox).value = prod.is_popular
        self.query_one("#label-form-title", Label).update(f"Edit Produk: {prod.name}")

    @on(Button.Pressed, "#btn-new")
    def reset_form(self) -> None:
        self._editing_id = None
        for k in FORM_INPUTS:
            self.query_one(f"#input-{k}", Input).value = ""
        self.query_one(Select).clear()
        self.query_one(Checkbox).value = False
        self.query_one("#label-form-title", Label).update("Tambah Produk")

    def _read_form(self) -> Optional[dict]:
        values = {k: self.query_one(f"#input-{k}", Input).value.strip() for k in FORM_INPUTS}
        if not values["name"] or not values["price"] or not values["stock"]:
            self.notify("Nama, harga dan stok wajib diisi.", severity="error")
            return None
        category = self.query_one(Select).value
        return {
            "name": values["name"],
            "slug": values["slug"],
            "price": values["price"],
            "stock": values["stock"],
            "category_id": category if isinstance(category, str) else None,
            "dosage": values["dosage"] or None,
            "description": values["description"] or None,
            "barcode": values["barcode"] or None,
            "expiry_date": values["expiry"] or None,
            "is_popular": self.query_one(Checkbox).value,
        }

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        form = self._read_form()
        if form is None:
            return
        if self._editing_id:
            ok, prod = await guarded(
                self,
                db.admin.update_product(self.app.state, self._editing_id, **form),
                "Gagal update produk",
            )
            message = "Produk berhasil diupdate"
        else:
            slug = form.pop("slug") or None
            ok, prod = await guarded(
                self,
                db.admin.create_product(self.app.state, slug=slug, **form),
                "Gagal menambah produk",
            )
            message = "Produk berhasil ditambahkan"
        if not ok:
            return
        self.notify(message)
        self.reset_form()
        self.load_products()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        if not self._editing_id:
            self.notify("Pilih produk terlebih dahulu.", severity="warning")
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                "Yakin ingin menghapus produk ini?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            return
        ok, _ = await guarded(
            self, db.admin.delete_product(self.app.state, self._editing_id),
            "Gagal menghapus produk",
        )
        if ok:
            self.notify("Produk berhasil dihapus")
            self.reset_form()
            self.load_products()

    @on(Button.Pressed, "#btn-category")
    @work(exclusive=True)
    async def handle_new_category(self) -> None:
        name_input = self.query_one("#input-category", Input)
        ok, category = await guarded(
            self,
            db.admin.create_category(self.app.state, name_input.value),
            "Gagal menambah kategori",
        )
        if not ok:
            return
        name_input.value = ""
        await self.load_categories()
        self.query_one(Select).value = category.id
        self.notify(f"Kategori {category.name} ditambahkan")

    @on(Button.Pressed, "#btn-expiring")
    @work(exclusive=True, group="expiring")
    async def handle_expiring(self) -> None:
        today = date.today()
        ok, products = await guarded(
            self,
            db.admin.list_expiring_products(self.app.state, today, EXPIRY_WINDOW_DAYS),
        )
        if not ok:
            return
        if not products:
            md = f"Tidak ada produk kadaluarsa dalam {EXPIRY_WINDOW_DAYS} hari."
        else:
            rows = [
                [
                    p.name,
                    p.expiry_date.isoformat(),
                    "Kadaluarsa" if p.expiry_date < today else f"{(p.expiry_date - today).days} hari",
                    p.stock,
                ]
                for p in products
            ]
            md = generate_markdown_table(
                ["Produk", "Kadaluarsa", "Sisa", "Stok"], rows, ["l", "c", "r", "r"]
            )
        await self.query_one("#md-expiring", Markdown).update(
            f"### Stok Kadaluarsa ({EXPIRY_WINDOW_DAYS} hari)\n\n" + md
        )
