from __future__ import annotations

from datetime import date
from typing import List, Optional

from db import models
from db.database import connect, new_id, now_iso, transaction
from utils.logger import get_logger

_logger = get_logger(__name__)


def _row_to_report(row) -> models.SalesReport:
    return models.SalesReport(
        id=row["id"],
        report_date=date.fromisoformat(row["report_date"]),
        total_orders=int(row["total_orders"]),
        total_revenue=float(row["total_revenue"]),
        total_items_sold=int(row["total_items_sold"]),
    )


async def generate_daily_report(session, report_date: date) -> models.SalesReport:
    """
    Aggregate the non-cancelled orders placed on report_date and store the
    result, replacing any earlier report for that day.
    """
    session.require_admin()
    day = report_date.isoformat()
    async with transaction() as conn:
        cur = await conn.execute(
            """
            SELECT COUNT(*) AS total_orders,
                   COALESCE(SUM(total_amount), 0.0) AS total_revenue
            FROM orders
            WHERE substr(created_at, 1, 10) = ? AND status != 'cancelled';
            """,
            (day,),
        )
        totals = await cur.fetchone()
        await cur.close()
        cur = await conn.execute(
            """
            SELECT COALESCE(SUM(oi.quantity), 0) AS items_sold
            FROM order_items oi
            JOIN orders o ON o.id = oi.order_id
            WHERE substr(o.created_at, 1, 10) = ? AND o.status != 'cancelled';
            """,
            (day,),
        )
        items = await cur.fetchone()
        await cur.close()

        report = models.SalesReport(
            id=new_id(),
            report_date=report_date,
            total_orders=int(totals["total_orders"]),
            total_revenue=round(float(totals["total_revenue"]), 2),
            total_items_sold=int(items["items_sold"]),
        )
        # one report per day
        await conn.execute("DELETE FROM sales_reports WHERE report_date = ?;", (day,))
        await conn.execute(
            """
            INSERT INTO sales_reports(id, report_date, total_orders, total_revenue,
                                      total_items_sold, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (report.id, day, report.total_orders, report.total_revenue,
             report.total_items_sold, now_iso(), now_iso()),
        )
    _logger.info(
        f"Sales report {day}: {report.total_orders} orders, revenue {report.total_revenue:.2f}"
    )
    return report


async def list_sales_reports(
    session, start: Optional[date] = None, end: Optional[date] = None
) -> List[models.SalesReport]:
    """Stored reports between start and end (inclusive), oldest first."""
    session.require_admin()
    conds, params = [], []
    if start:
        conds.append("report_date >= ?")
        params.append(start.isoformat())
    if end:
        conds.append("report_date <= ?")
        params.append(end.isoformat())
    where_clause = ("WHERE " + " AND ".join(conds)) if conds else ""
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT id, report_date, total_orders, total_revenue, total_items_sold
            FROM sales_reports
            {where_clause}
            ORDER BY report_date;
            """,
            tuple(params),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_report(r) for r in rows]
