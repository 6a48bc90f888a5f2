# provide dataclass models

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple

ORDER_STATUSES: Tuple[str, ...] = (
    "pending",
    "paid",
    "processing",
    "shipped",
    "completed",
    "cancelled",
)

ROLES: Tuple[str, ...] = ("admin", "user")


@dataclass(frozen=True)
class User:
    id: str
    email: str


@dataclass(frozen=True)
class Profile:
    id: str
    full_name: Optional[str]
    phone: Optional[str]
    address: Optional[str]


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    slug: str
    icon: Optional[str]


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    slug: str
    description: Optional[str]
    price: float
    stock: int
    category_id: Optional[str]
    image_url: Optional[str]
    dosage: Optional[str]
    is_popular: bool
    barcode: Optional[str] = None
    expiry_date: Optional[date] = None
    stock_entry_date: Optional[date] = None
    category_name: Optional[str] = None  # joined from categories


@dataclass(frozen=True)
class Cart:
    id: str
    user_id: str


@dataclass(frozen=True)
class CartItem:
    id: str
    cart_id: str
    product_id: str
    quantity: int
    # joined product columns
    product_name: str
    product_price: float
    product_stock: int
    product_image_url: Optional[str] = None

    @property
    def subtotal(self) -> float:
        return round(self.product_price * self.quantity, 2)


@dataclass(frozen=True)
class OrderItem:
    id: str
    order_id: str
    product_id: Optional[str]
    product_name: str
    product_price: float  # unit price at time of order
    quantity: int
    subtotal: float


@dataclass(frozen=True)
class Order:
    id: str
    user_id: str
    order_number: str
    total_amount: float
    status: str
    payment_method: Optional[str]
    shipping_address: str
    created_at: datetime
    updated_at: datetime
    checkout_key: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)


@dataclass(frozen=True)
class SalesReport:
    id: str
    report_date: date
    total_orders: int
    total_revenue: float
    total_items_sold: int
