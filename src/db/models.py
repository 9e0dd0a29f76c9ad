# provide dataclass models

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class OrderStatus(str, Enum):
    PLACED = "placed"
    PAID = "paid"
    CANCELLED = "cancelled"
    FULFILLED = "fulfilled"


class ProductType(str, Enum):
    WINE = "wine"
    LIQUOR = "liquor"
    MERCHANDISE = "merchandise"


class Availability(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


DEFAULT_CURRENCY = "SEK"


@dataclass(frozen=True)
class UserAccount:
    id: str
    email: str
    role: UserRole
    status: UserStatus
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class Supplier:
    id: str
    name: str
    country: Optional[str]


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: Optional[str]
    product_type: ProductType
    supplier_id: Optional[str]
    image_url: Optional[str]
    abv: Optional[float]
    volume_ml: Optional[int]
    stock_quantity: int
    availability: Availability
    created_at: Optional[datetime]


@dataclass(frozen=True)
class ProductPrice:
    id: str
    product_id: str
    price: float
    currency: str
    valid_from: datetime
    valid_to: Optional[datetime]


@dataclass(frozen=True)
class ProductWithPrice(Product):
    price: Optional[float]  # None means "price on request"
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class CartItem:
    product: ProductWithPrice
    quantity: int


@dataclass(frozen=True)
class Order:
    id: str
    order_number: Optional[str]
    user_id: str
    status: OrderStatus
    total_amount: float
    currency: str
    delivery_addr: Dict[str, Any]
    cancel_reason: Optional[str]
    created_at: datetime
    fulfilled_at: Optional[datetime]


@dataclass(frozen=True)
class OrderItem:
    id: str
    order_id: str
    product_id: Optional[str]  # NULL once the product is hard-deleted
    product_name_snapshot: str
    quantity: int
    unit_price: float  # unit price at time of order
    line_total: float


@dataclass(frozen=True)
class OrderSummary:
    order: Order
    user_email: Optional[str]
    item_count: int


@dataclass(frozen=True)
class AdminActivity:
    id: str
    admin_id: str
    action: str
    resource_type: Optional[str]
    resource_id: Optional[str]
    metadata: Dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class RecentActivity:
    activity: AdminActivity
    admin_email: Optional[str]


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: float = 0.0
    pending_orders: int = 0
    pending_users: int = 0
    total_products: int = 0
    approved_users: int = 0
    recent_orders: int = 0


@dataclass
class ProductDraft:
    """Attributes accepted when an admin creates a product."""

    name: str
    product_type: ProductType
    description: Optional[str] = None
    supplier_id: Optional[str] = None
    image_url: Optional[str] = None
    abv: Optional[float] = None
    volume_ml: Optional[int] = None
    stock_quantity: int = 0
    availability: Availability = Availability.IN_STOCK
