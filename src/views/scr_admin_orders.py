from datetime import date, timedelta
from typing import Dict

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Markdown, Select

import db.admin
import db.reports
from db.models import ORDER_STATUSES, Order
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import format_date, format_price, generate_markdown_table, status_label
from views.base_screen import BaseScreen, guarded


REPORT_HISTORY_DAYS = 7


class AdminOrdersScreen(BaseScreen):
    """
    All orders with a status selector, plus today's sales report and the
    reports stored for the past week.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-orders")
            with Horizontal(id="hort-controls"):
                yield Select(
                    ((s.capitalize(), s) for s in ORDER_STATUSES),
                    prompt="Status",
                    id="select-status",
                )
                yield Button("Update Status", id="btn-status", variant="primary")
                yield Button("Laporan Hari Ini", id="btn-report")
            yield Markdown("", id="md-report")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("No. Pesanan", "Total", "Tanggal", "Status")
        self.load_orders()

    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self) -> None:
        self.load_orders()

    @work(exclusive=True, group="admin-orders")
    async def load_orders(self) -> None:
        ok, orders = await guarded(self, db.admin.list_orders(self.app.state))
        if not ok:
            return
        self._orders = {o.id: o for o in orders}
        table = self.query_one(DataTable)
        cursor = table.cursor_row
        table.clear()
        for o in orders:
            table.add_row(
                o.order_number,
                format_price(o.total_amount),
                format_date(o.created_at),
                status_label(o.status),
                key=o.id,
            )
        if orders:
            table.move_cursor(row=min(cursor, len(orders) - 1))

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        order = self._orders.get(event.row_key.value)
        if order is not None:
            self.query_one(Select).value = order.status

    @on(Button.Pressed, "#btn-status")
    @work(exclusive=True)
    async def handle_update_status(self) -> None:
        table = self.query_one(DataTable)
        status = self.query_one(Select).value
        if table.row_count == 0 or not isinstance(status, str):
            self.notify("Pilih pesanan dan status.", severity="warning")
            return
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        ok, order = await guarded(
            self,
            db.admin.update_order_status(self.app.state, row_key.value, status),
            "Gagal update status",
        )
        if ok:
            self.notify(f"Status {order.order_number}: {status_label(order.status)}")
            self.load_orders()

    @on(Button.Pressed, "#btn-report")
    @work(exclusive=True, group="report")
    async def handle_report(self) -> None:
        today = date.today()
        ok, report = await guarded(
            self, db.reports.generate_daily_report(self.app.state, today)
        )
        if not ok:
            return
        md = (
            f"### Laporan Penjualan {format_date(today)}\n\n"
            f"- Total Pesanan: {report.total_orders}\n"
            f"- Total Pendapatan: {format_price(report.total_revenue)}\n"
            f"- Item Terjual: {report.total_items_sold}\n"
        )
        ok, history = await guarded(
            self,
            db.reports.list_sales_reports(
                self.app.state, today - timedelta(days=REPORT_HISTORY_DAYS - 1), today
            ),
        )
        if ok and history:
            rows = [
                [format_date(r.report_date), r.total_orders, format_price(r.total_revenue), r.total_items_sold]
                for r in history
            ]
            md += f"\n#### {REPORT_HISTORY_DAYS} Hari Terakhir\n\n" + generate_markdown_table(
                ["Tanggal", "Pesanan", "Pendapatan", "Item"], rows, ["l", "r", "r", "r"]
            )
        await self.query_one("#md-report", Markdown).update(md)
