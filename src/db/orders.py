from __future__ import annotations

import os
from datetime import datetime
from typing import List, Optional

import aiosqlite

from db import models
from db.database import connect
from db.errors import RecordNotFound
from utils.pure import invoice_filename, render_invoice

ORDER_COLUMNS = """
    id, user_id, order_number, total_amount, status, payment_method,
    shipping_address, checkout_key, created_at, updated_at
"""


def _row_to_item(row) -> models.OrderItem:
    return models.OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        product_name=row["product_name"],
        product_price=float(row["product_price"]),
        quantity=int(row["quantity"]),
        subtotal=float(row["subtotal"]),
    )


def _row_to_order(row, items: List[models.OrderItem]) -> models.Order:
    return models.Order(
        id=row["id"],
        user_id=row["user_id"],
        order_number=row["order_number"],
        total_amount=float(row["total_amount"]),
        status=row["status"],
        payment_method=row["payment_method"],
        shipping_address=row["shipping_address"],
        checkout_key=row["checkout_key"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        items=items,
    )


async def _attach_items(conn: aiosqlite.Connection, rows) -> List[models.Order]:
    """Load the lines of every order row in one query and nest them."""
    if not rows:
        return []
    ids = [r["id"] for r in rows]
    placeholders = ", ".join("?" * len(ids))
    cur = await conn.execute(
        f"""
        SELECT id, order_id, product_id, product_name, product_price, quantity, subtotal
        FROM order_items
        WHERE order_id IN ({placeholders})
        ORDER BY created_at, rowid;
        """,
        tuple(ids),
    )
    item_rows = await cur.fetchall()
    await cur.close()
    by_order = {oid: [] for oid in ids}
    for ir in item_rows:
        by_order[ir["order_id"]].append(_row_to_item(ir))
    return [_row_to_order(r, by_order[r["id"]]) for r in rows]


async def fetch_order(conn: aiosqlite.Connection, order_id: str) -> Optional[models.Order]:
    """Load one order with its items on an already open connection. No access check."""
    cur = await conn.execute(
        f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?;", (order_id,)
    )
    row = await cur.fetchone()
    await cur.close()
    if not row:
        return None
    return (await _attach_items(conn, [row]))[0]


async def fetch_orders(
    conn: aiosqlite.Connection, user_id: Optional[str] = None
) -> List[models.Order]:
    """Orders newest first, restricted to one owner when user_id is given."""
    where = "WHERE user_id = ?" if user_id else ""
    cur = await conn.execute(
        f"""
        SELECT {ORDER_COLUMNS}
        FROM orders
        {where}
        ORDER BY created_at DESC, order_number DESC;
        """,
        (user_id,) if user_id else (),
    )
    rows = await cur.fetchall()
    await cur.close()
    return await _attach_items(conn, rows)


# ---------------------------
# Order History
# ---------------------------


async def list_orders(session) -> List[models.Order]:
    """The session user's orders in reverse chronological order, with items."""
    uid = session.require_user()
    async with connect() as conn:
        return await fetch_orders(conn, uid)


async def get_order(session, order_id: str) -> models.Order:
    """Return one order; only its owner or an admin may see it."""
    uid = session.require_user()
    async with connect() as conn:
        order = await fetch_order(conn, order_id)
    if order is None or (order.user_id != uid and not session.is_admin):
        raise RecordNotFound("Order not found.")
    return order


def save_invoice(order: models.Order, directory: str = ".") -> str:
    """Write the invoice text to Invoice-<order_number>.txt and return its path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, invoice_filename(order))
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_invoice(order))
    return path
