from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, MarkdownViewer

import db.orders
from db.models import Order
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import format_date, format_price, status_label
from views.base_screen import BaseScreen, guarded

INVOICE_DIR = "invoices"


def order_markdown(order: Order) -> str:
    header = (
        f"### {order.order_number}\n"
        f"Tanggal: {format_date(order.created_at)}  \n"
        f"Status: **{status_label(order.status)}**\n\n"
    )
    rows = ["| Produk | Jumlah | Harga | Subtotal |", "|:---|---:|---:|---:|"]
    for item in order.items:
        rows.append(
            f"| {item.product_name} | {item.quantity} | "
            f"{format_price(item.product_price)} | {format_price(item.subtotal)} |"
        )
    footer = (
        f"\n\n**Total:** {format_price(order.total_amount)}\n\n"
        f"**Alamat Pengiriman:**  \n{order.shipping_address}"
    )
    return header + "\n".join(rows) + footer


class OrdersScreen(BaseScreen):
    """
    Order history of the signed-in user, newest first, with invoice download.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Download Invoice", id="btn-invoice", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("No. Pesanan", "Tanggal", "Status", "Total")
        self.load_orders()

    @on(Button.Pressed, "#btn-refresh")
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self):
        self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        ok, orders = await guarded(self, db.orders.list_orders(self.app.state), "Gagal memuat pesanan")
        if not ok:
            return
        self._orders = {o.id: o for o in orders}
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.order_number,
                format_date(o.created_at),
                status_label(o.status),
                format_price(o.total_amount),
                key=o.id,
            )
        self._render_detail(orders)

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        order = self._orders.get(event.row_key.value)
        self._render_detail([order] if order else [])

    def _render_detail(self, orders: List[Order]) -> None:
        md = order_markdown(orders[0]) if orders else "### Belum ada pesanan"
        self.query_one("#md-order-detail", MarkdownViewer).document.update(md)

    def _current_order(self) -> Order | None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._orders.get(row_key.value)

    @on(Button.Pressed, "#btn-invoice")
    def handle_invoice(self) -> None:
        order = self._current_order()
        if order is None:
            self.notify("Belum ada pesanan", severity="warning")
            return
        try:
            path = db.orders.save_invoice(order, INVOICE_DIR)
        except OSError:
            self.notify("Gagal menyimpan invoice", severity="error")
            return
        self.notify(f"Invoice disimpan ke {path}")
