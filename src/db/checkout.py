from __future__ import annotations

import time
from datetime import datetime
from typing import Optional

import aiosqlite

from db import models
from db.database import new_id, now_iso, transaction
from db.errors import EmptyCartError, InsufficientStock, ValidationError
from db.orders import fetch_order
from utils.logger import get_logger

_logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "WM"


async def _generate_order_number(conn: aiosqlite.Connection) -> str:
    """'WM' + millisecond timestamp, bumped until unused."""
    stamp = int(time.time() * 1000)
    while True:
        order_number = f"{ORDER_NUMBER_PREFIX}{stamp}"
        cur = await conn.execute(
            "SELECT 1 FROM orders WHERE order_number = ?;", (order_number,)
        )
        exists = await cur.fetchone()
        await cur.close()
        if not exists:
            return order_number
        stamp += 1


async def checkout(
    session,
    shipping_address: str,
    payment_method: str = "cash",
    checkout_key: Optional[str] = None,
    when: Optional[datetime] = None,
) -> models.Order:
    """
    Turn the session user's cart into an order.

    Inside a single transaction: insert the order (status 'pending'), insert a
    snapshot line per cart item, decrement each product's stock only if enough
    is left, then empty the cart. Any failure rolls back every step.

    Passing the same checkout_key again returns the order created the first
    time instead of creating a new one.
    """
    uid = session.require_user()
    address = (shipping_address or "").strip()
    if not address:
        raise ValidationError("Shipping address is required.")

    async with transaction() as conn:
        if checkout_key:
            cur = await conn.execute(
                "SELECT id FROM orders WHERE user_id = ? AND checkout_key = ?;",
                (uid, checkout_key),
            )
            prior = await cur.fetchone()
            await cur.close()
            if prior:
                _logger.info(f"Checkout key {checkout_key} already used, returning order")
                return await fetch_order(conn, prior["id"])

        cur = await conn.execute(
            """
            SELECT ci.product_id, ci.quantity, p.name, p.price, p.stock, ca.id AS cart_id
            FROM carts ca
            JOIN cart_items ci ON ci.cart_id = ca.id
            JOIN products p ON p.id = ci.product_id
            WHERE ca.user_id = ?
            ORDER BY ci.created_at, ci.id;
            """,
            (uid,),
        )
        lines = await cur.fetchall()
        await cur.close()
        if not lines:
            raise EmptyCartError("Cart is empty.")
        cart_id = lines[0]["cart_id"]

        # 1) order header
        subtotals = [round(float(ln["price"]) * int(ln["quantity"]), 2) for ln in lines]
        total = round(sum(subtotals), 2)
        order_id = new_id()
        order_number = await _generate_order_number(conn)
        ts = now_iso(when)
        await conn.execute(
            """
            INSERT INTO orders(id, user_id, order_number, total_amount, status,
                               payment_method, shipping_address, checkout_key,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, 'pending', ?, ?, ?, ?, ?);
            """,
            (order_id, uid, order_number, total, payment_method, address,
             checkout_key, ts, ts),
        )

        # 2) snapshot lines
        await conn.executemany(
            """
            INSERT INTO order_items(id, order_id, product_id, product_name,
                                    product_price, quantity, subtotal, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (new_id(), order_id, ln["product_id"], ln["name"], float(ln["price"]),
                 int(ln["quantity"]), sub, ts)
                for ln, sub in zip(lines, subtotals)
            ],
        )

        # 3) conditional stock decrement
        for ln in lines:
            qty = int(ln["quantity"])
            cur = await conn.execute(
                "UPDATE products SET stock = stock - ?, updated_at = ? WHERE id = ? AND stock >= ?;",
                (qty, ts, ln["product_id"], qty),
            )
            if cur.rowcount == 0:
                await cur.close()
                _logger.warning(
                    f"Checkout for {uid} aborted: {ln['name']} has {ln['stock']} left, {qty} requested"
                )
                raise InsufficientStock(ln["name"], qty, int(ln["stock"]))
            await cur.close()

        # 4) empty the cart, keep the cart row
        await conn.execute("DELETE FROM cart_items WHERE cart_id = ?;", (cart_id,))

        order = await fetch_order(conn, order_id)

    _logger.info(
        f"Order {order.order_number} placed: {len(order.items)} item(s), total {order.total_amount:.2f}"
    )
    return order
