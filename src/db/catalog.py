from __future__ import annotations

from datetime import date
from typing import List, Optional

from db import models
from db.database import connect

PRODUCT_COLUMNS = """
    p.id, p.name, p.slug, p.description, p.price, p.stock, p.category_id,
    p.image_url, p.dosage, p.is_popular, p.barcode, p.expiry_date,
    p.stock_entry_date, c.name AS category_name
"""

PRODUCT_FROM = "FROM products p LEFT JOIN categories c ON c.id = p.category_id"


def _to_date(val) -> Optional[date]:
    try:
        return date.fromisoformat(val)
    except (TypeError, ValueError):
        return None


def row_to_product(row) -> models.Product:
    return models.Product(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        price=float(row["price"]),
        stock=int(row["stock"]),
        category_id=row["category_id"],
        image_url=row["image_url"],
        dosage=row["dosage"],
        is_popular=bool(row["is_popular"]),
        barcode=row["barcode"],
        expiry_date=_to_date(row["expiry_date"]),
        stock_entry_date=_to_date(row["stock_entry_date"]),
        category_name=row["category_name"],
    )


# ---------------------------
# Categories
# ---------------------------


async def list_categories() -> List[models.Category]:
    """All categories ordered by name."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, name, slug, icon FROM categories ORDER BY name;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.Category(id=r["id"], name=r["name"], slug=r["slug"], icon=r["icon"])
        for r in rows
    ]


# ---------------------------
# Products
# ---------------------------


async def list_products(
    category_id: Optional[str] = None,
    search: Optional[str] = None,
) -> List[models.Product]:
    """
    Storefront listing: only products with stock > 0, optionally restricted to
    one category and to names containing the search text exactly as given
    (case-insensitive, Unicode case folding).
    Popular products first, then by name.
    """
    conds = ["p.stock > 0"]
    params: List[str] = []
    if category_id:
        conds.append("p.category_id = ?")
        params.append(category_id)
    if search:
        # matched as typed, whitespace included
        conds.append("instr(casefold(p.name), ?) > 0")
        params.append(search.casefold())

    where_clause = " AND ".join(conds)
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}
            {PRODUCT_FROM}
            WHERE {where_clause}
            ORDER BY p.is_popular DESC, p.name ASC;
            """,
            tuple(params),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_product(r) for r in rows]


async def _get_product_by(column: str, value) -> Optional[models.Product]:
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {PRODUCT_COLUMNS} {PRODUCT_FROM} WHERE p.{column} = ?;",
            (value,),
        )
        row = await cur.fetchone()
        await cur.close()
    return row_to_product(row) if row else None


async def get_product(product_id: str) -> Optional[models.Product]:
    """Fetch a product by id, regardless of stock."""
    return await _get_product_by("id", product_id)


async def get_product_by_slug(slug: str) -> Optional[models.Product]:
    return await _get_product_by("slug", slug)


async def get_product_by_barcode(barcode: str) -> Optional[models.Product]:
    return await _get_product_by("barcode", barcode)
