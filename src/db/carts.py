from __future__ import annotations

from typing import Iterable, List, Optional

from db import models
from db.database import connect, new_id, now_iso
from db.errors import InsufficientStock, RecordNotFound, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

CART_ITEM_SELECT = """
    SELECT ci.id, ci.cart_id, ci.product_id, ci.quantity,
           p.name AS product_name, p.price AS product_price,
           p.stock AS product_stock, p.image_url AS product_image_url
    FROM cart_items ci
    JOIN carts ca ON ca.id = ci.cart_id
    JOIN products p ON p.id = ci.product_id
"""


def row_to_cart_item(row) -> models.CartItem:
    return models.CartItem(
        id=row["id"],
        cart_id=row["cart_id"],
        product_id=row["product_id"],
        quantity=int(row["quantity"]),
        product_name=row["product_name"],
        product_price=float(row["product_price"]),
        product_stock=int(row["product_stock"]),
        product_image_url=row["product_image_url"],
    )


def cart_total(items: Iterable[models.CartItem]) -> float:
    """Sum of price x quantity over the given cart lines."""
    return round(sum(item.subtotal for item in items), 2)


async def _get_owned_item(conn, uid: str, item_id: str) -> models.CartItem:
    cur = await conn.execute(
        CART_ITEM_SELECT + "WHERE ci.id = ? AND ca.user_id = ?;", (item_id, uid)
    )
    row = await cur.fetchone()
    await cur.close()
    # another user's item is indistinguishable from a missing one
    if not row:
        raise RecordNotFound("Cart item not found.")
    return row_to_cart_item(row)


# ---------------------------
# Cart
# ---------------------------


async def get_cart(session) -> Optional[models.Cart]:
    """Return the session user's cart, or None if it was never created."""
    uid = session.require_user()
    async with connect() as conn:
        cur = await conn.execute("SELECT id, user_id FROM carts WHERE user_id = ?;", (uid,))
        row = await cur.fetchone()
        await cur.close()
    return models.Cart(id=row["id"], user_id=row["user_id"]) if row else None


async def get_or_create_cart(session) -> models.Cart:
    uid = session.require_user()
    async with connect() as conn:
        await conn.execute(
            "INSERT OR IGNORE INTO carts(id, user_id, created_at, updated_at) VALUES (?, ?, ?, ?);",
            (new_id(), uid, now_iso(), now_iso()),
        )
        await conn.commit()
        cur = await conn.execute("SELECT id, user_id FROM carts WHERE user_id = ?;", (uid,))
        row = await cur.fetchone()
        await cur.close()
    return models.Cart(id=row["id"], user_id=row["user_id"])


async def list_cart_items(session) -> List[models.CartItem]:
    """Cart lines of the session user joined with current product data."""
    uid = session.require_user()
    async with connect() as conn:
        cur = await conn.execute(
            CART_ITEM_SELECT + "WHERE ca.user_id = ? ORDER BY ci.created_at, ci.id;",
            (uid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_cart_item(r) for r in rows]


# ---------------------------
# Cart Items
# ---------------------------


async def add_to_cart(session, product_id: str, quantity: int = 1) -> models.CartItem:
    """
    Add a product to the session user's cart, creating the cart on first use.
    If the product is already in the cart its quantity is incremented.
    The resulting quantity is capped at the product's current stock; a line
    that already holds all remaining stock is left as is and InsufficientStock
    is raised.
    """
    uid = session.require_user()
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    cart = await get_or_create_cart(session)

    async with connect() as conn:
        cur = await conn.execute(
            "SELECT name, stock FROM products WHERE id = ?;", (product_id,)
        )
        prod = await cur.fetchone()
        await cur.close()
        if not prod:
            raise RecordNotFound("Product not found.")
        stock = int(prod["stock"])
        if stock <= 0:
            raise InsufficientStock(prod["name"], quantity, stock)

        cur = await conn.execute(
            "SELECT id, quantity FROM cart_items WHERE cart_id = ? AND product_id = ?;",
            (cart.id, product_id),
        )
        existing = await cur.fetchone()
        await cur.close()

        if existing:
            item_id = existing["id"]
            held = int(existing["quantity"])
            # never shrink a line the customer already holds
            if held >= stock:
                raise InsufficientStock(prod["name"], held + quantity, stock)
            new_qty = min(held + quantity, stock)
            await conn.execute(
                "UPDATE cart_items SET quantity = ? WHERE id = ?;", (new_qty, item_id)
            )
        else:
            item_id = new_id()
            await conn.execute(
                "INSERT INTO cart_items(id, cart_id, product_id, quantity, created_at) VALUES (?, ?, ?, ?, ?);",
                (item_id, cart.id, product_id, min(quantity, stock), now_iso()),
            )
        await conn.execute(
            "UPDATE carts SET updated_at = ? WHERE id = ?;", (now_iso(), cart.id)
        )
        await conn.commit()
        item = await _get_owned_item(conn, uid, item_id)

    _logger.debug(f"Cart {cart.id}: {item.product_name} x{item.quantity}")
    return item


async def set_quantity(session, item_id: str, quantity: int) -> models.CartItem:
    """Set a cart line's quantity. Values below 1 or above stock leave it unchanged."""
    uid = session.require_user()
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    async with connect() as conn:
        item = await _get_owned_item(conn, uid, item_id)
        if quantity > item.product_stock:
            raise InsufficientStock(item.product_name, quantity, item.product_stock)
        await conn.execute(
            "UPDATE cart_items SET quantity = ? WHERE id = ?;", (quantity, item_id)
        )
        await conn.commit()
        return await _get_owned_item(conn, uid, item_id)


async def remove_item(session, item_id: str) -> None:
    """Remove a single line from the session user's cart."""
    uid = session.require_user()
    async with connect() as conn:
        await _get_owned_item(conn, uid, item_id)
        await conn.execute("DELETE FROM cart_items WHERE id = ?;", (item_id,))
        await conn.commit()


async def clear_cart(session) -> None:
    """Remove all items; the cart row itself is kept."""
    uid = session.require_user()
    async with connect() as conn:
        await conn.execute(
            "DELETE FROM cart_items WHERE cart_id IN (SELECT id FROM carts WHERE user_id = ?);",
            (uid,),
        )
        await conn.commit()
