from __future__ import annotations

import math
import sqlite3
from datetime import date, timedelta
from typing import List, Optional

from db import models
from db.catalog import PRODUCT_COLUMNS, PRODUCT_FROM, get_product, row_to_product
from db.database import connect, new_id, now_iso
from db.errors import DuplicateRecord, RecordNotFound, ValidationError
from db.orders import fetch_order, fetch_orders
from utils.logger import get_logger
from utils.pure import slugify

_logger = get_logger(__name__)

PRODUCT_FIELDS = (
    "name",
    "slug",
    "description",
    "price",
    "stock",
    "category_id",
    "image_url",
    "dosage",
    "is_popular",
    "barcode",
    "expiry_date",
    "stock_entry_date",
)


def _translate_integrity(e: sqlite3.IntegrityError) -> Exception:
    msg = str(e)
    if "UNIQUE" in msg:
        return DuplicateRecord(msg)
    return ValidationError(msg)


def _to_number(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} must be a number.") from e
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a number.")
    return number


def _clean_product_fields(fields: dict) -> dict:
    unknown = set(fields) - set(PRODUCT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Product name is required.")
    if "price" in fields:
        # whole rupiah only, so order totals add up exactly
        price = _to_number(fields["price"], "Price")
        if price < 0:
            raise ValidationError("Price cannot be negative.")
        if not price.is_integer():
            raise ValidationError("Price must be a whole rupiah amount.")
        fields["price"] = price
    if "stock" in fields:
        stock = _to_number(fields["stock"], "Stock")
        if stock < 0:
            raise ValidationError("Stock cannot be negative.")
        if not stock.is_integer():
            raise ValidationError("Stock must be a whole number.")
        fields["stock"] = int(stock)
    if "is_popular" in fields:
        fields["is_popular"] = 1 if fields["is_popular"] else 0
    for k in ("expiry_date", "stock_entry_date"):
        value = fields.get(k)
        if isinstance(value, str) and value:
            try:
                value = date.fromisoformat(value)
            except ValueError as e:
                raise ValidationError(f"{k} must be a YYYY-MM-DD date.") from e
        if isinstance(value, date):
            fields[k] = value.isoformat()
        elif k in fields:
            fields[k] = None
    return fields


# ---------------------------
# Products
# ---------------------------


async def list_products(session) -> List[models.Product]:
    """Every product, in stock or not, ordered by name."""
    session.require_admin()
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {PRODUCT_COLUMNS} {PRODUCT_FROM} ORDER BY p.name;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_product(r) for r in rows]


async def create_product(
    session,
    name: str,
    price: float,
    stock: int,
    slug: Optional[str] = None,
    **extra,
) -> models.Product:
    """
    Insert a product. When no slug is given it is derived from the name;
    an existing slug makes the insert fail with DuplicateRecord.
    """
    session.require_admin()
    fields = _clean_product_fields(
        {"name": name, "price": price, "stock": stock, **extra}
    )
    fields["name"] = fields["name"].strip()
    fields["slug"] = slug or slugify(fields["name"])

    pid = new_id()
    ts = now_iso()
    cols = ["id", *fields, "created_at", "updated_at"]
    async with connect() as conn:
        try:
            await conn.execute(
                f"INSERT INTO products({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))});",
                (pid, *fields.values(), ts, ts),
            )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity(e) from e
        await conn.commit()
    _logger.info(f"Product created: {fields['name']} ({fields['slug']})")
    return await get_product(pid)


async def update_product(session, product_id: str, **changes) -> models.Product:
    """
    Update only the given columns. An empty slug alongside a name re-derives
    the slug from the name.
    """
    session.require_admin()
    fields = _clean_product_fields(dict(changes))
    if "slug" in fields and not fields["slug"]:
        if "name" not in fields:
            raise ValidationError("Slug cannot be empty.")
        fields["slug"] = slugify(fields["name"])
    if not fields:
        prod = await get_product(product_id)
        if prod is None:
            raise RecordNotFound("Product not found.")
        return prod

    assignments = ", ".join(f"{k} = ?" for k in fields)
    async with connect() as conn:
        try:
            cur = await conn.execute(
                f"UPDATE products SET {assignments}, updated_at = ? WHERE id = ?;",
                (*fields.values(), now_iso(), product_id),
            )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity(e) from e
        updated = cur.rowcount
        await cur.close()
        await conn.commit()
    if not updated:
        raise RecordNotFound("Product not found.")
    _logger.info(f"Product {product_id} updated: {', '.join(fields)}")
    return await get_product(product_id)


async def delete_product(session, product_id: str) -> None:
    """Delete a product. Cart lines go with it; order lines keep their snapshot."""
    session.require_admin()
    async with connect() as conn:
        cur = await conn.execute("DELETE FROM products WHERE id = ?;", (product_id,))
        deleted = cur.rowcount
        await cur.close()
        await conn.commit()
    if not deleted:
        raise RecordNotFound("Product not found.")
    _logger.info(f"Product {product_id} deleted")


async def list_expiring_products(
    session, as_of: date, within_days: int = 30
) -> List[models.Product]:
    """Products whose expiry date falls on or before as_of + within_days."""
    session.require_admin()
    limit = (as_of + timedelta(days=within_days)).isoformat()
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {PRODUCT_COLUMNS} {PRODUCT_FROM}
            WHERE p.expiry_date IS NOT NULL AND p.expiry_date <= ?
            ORDER BY p.expiry_date, p.name;
            """,
            (limit,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_product(r) for r in rows]


# ---------------------------
# Categories
# ---------------------------


async def create_category(
    session, name: str, slug: Optional[str] = None, icon: Optional[str] = None
) -> models.Category:
    session.require_admin()
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required.")
    cat = models.Category(id=new_id(), name=name, slug=slug or slugify(name), icon=icon)
    async with connect() as conn:
        try:
            await conn.execute(
                "INSERT INTO categories(id, name, slug, icon) VALUES (?, ?, ?, ?);",
                (cat.id, cat.name, cat.slug, cat.icon),
            )
        except sqlite3.IntegrityError as e:
            raise _translate_integrity(e) from e
        await conn.commit()
    return cat


# ---------------------------
# Orders
# ---------------------------


async def list_orders(session) -> List[models.Order]:
    """All customers' orders, newest first."""
    session.require_admin()
    async with connect() as conn:
        return await fetch_orders(conn)


async def update_order_status(session, order_id: str, status: str) -> models.Order:
    """
    Set an order's status to any of the known values. Transitions are not
    restricted, so an admin can also move an order backwards.
    """
    session.require_admin()
    if status not in models.ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    async with connect() as conn:
        before = await fetch_order(conn, order_id)
        if before is None:
            raise RecordNotFound("Order not found.")
        await conn.execute(
            "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?;",
            (status, now_iso(), order_id),
        )
        await conn.commit()
        order = await fetch_order(conn, order_id)
    _logger.info(f"Order {order.order_number}: {before.status} -> {status}")
    return order
