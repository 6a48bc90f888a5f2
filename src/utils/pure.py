import re
from datetime import datetime
from typing import List, Literal, Optional

STATUS_LABELS = {
    "pending": "Menunggu Pembayaran",
    "paid": "Dibayar",
    "processing": "Diproses",
    "shipped": "Dikirim",
    "completed": "Selesai",
    "cancelled": "Dibatalkan",
}


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    # If no headers, take the first row as header and remove it from rows
    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [list(map(str, row)) for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(map(str, row)) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def format_price(amount: float) -> str:
    """Indonesian rupiah, dot as thousands separator: 16000 -> 'Rp 16.000'."""
    amount = round(float(amount), 2)
    whole = int(abs(amount))
    frac = round(abs(amount) - whole, 2)
    text = f"{whole:,}".replace(",", ".")
    if frac:
        text += "," + f"{frac:.2f}"[2:].rstrip("0")
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {text}"


def format_date(when: datetime) -> str:
    return f"{when.day}/{when.month}/{when.year}"


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def slugify(name: str) -> str:
    """'Vitamin C 1000mg' -> 'vitamin-c-1000mg'. Uniqueness is not checked."""
    return re.sub(r"\s+", "-", (name or "").strip().lower())


def invoice_filename(order) -> str:
    return f"Invoice-{order.order_number}.txt"


def render_invoice(order) -> str:
    """
    Plain-text invoice for an already fetched order.
    Depends only on the order record, so the output is stable across calls.
    """
    rule = "=" * 33
    thin = "-" * 33
    lines = [
        rule,
        "      WARUNG MADURA",
        "   Apotek Online Terpercaya",
        rule,
        f"Invoice: {order.order_number}",
        f"Tanggal: {format_date(order.created_at)}",
        thin,
        "",
        "ITEM PESANAN:",
    ]
    for idx, item in enumerate(order.items, start=1):
        lines += [
            "",
            f"{idx}. {item.product_name}",
            f"   {item.quantity} x {format_price(item.product_price)}"
            f" = {format_price(item.subtotal)}",
        ]
    lines += [
        "",
        thin,
        f"TOTAL: {format_price(order.total_amount)}",
        thin,
        "",
        "Alamat Pengiriman:",
        order.shipping_address,
        "",
        f"Status: {status_label(order.status)}",
        "",
        "Terima kasih telah berbelanja",
        "di Warung Madura!",
        rule,
    ]
    return "\n".join(lines)
