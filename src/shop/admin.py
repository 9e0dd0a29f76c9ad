"""
Admin back-office operations.

Mutations return an OperationResult instead of raising, so screens can show
``result.error`` directly. ``result.kind`` separates business-rule rejections
(not found, invalid transition, unauthorized, validation) from transport
failures of the database itself.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Awaitable, List, Mapping, Optional, Tuple

from db import crud, procedures
from db.database import Database, utcnow
from db.models import (
    DEFAULT_CURRENCY,
    DashboardStats,
    Order,
    OrderItem,
    OrderStatus,
    OrderSummary,
    ProductDraft,
    ProductWithPrice,
    RecentActivity,
    Supplier,
    UserAccount,
    UserStatus,
)
from shop.catalog import with_price
from shop.errors import ErrorKind, OperationResult, ShopError
from utils.logger import get_logger

_logger = get_logger(__name__)


async def _call(label: str, call: Awaitable[Any]) -> Tuple[OperationResult, Any]:
    try:
        value = await call
    except ShopError as e:
        _logger.warning(f"{label} rejected: {e}")
        return OperationResult.fail(e.kind, str(e)), None
    except (sqlite3.Error, OSError) as e:
        _logger.error(f"{label} failed: {e}")
        return OperationResult.fail(ErrorKind.TRANSPORT, str(e) or "Database error"), None
    return OperationResult.ok(), value


async def _run(label: str, call: Awaitable[Any]) -> OperationResult:
    result, _ = await _call(label, call)
    return result


# ---------------------------
# Users
# ---------------------------


async def fetch_all_users(
    db: Database, status: Optional[UserStatus] = None
) -> List[UserAccount]:
    return await crud.list_users(db, status)


async def approve_user(db: Database, admin_id: str, user_id: str) -> OperationResult:
    return await _run("approve_user", procedures.approve_user(db, admin_id, user_id))


async def reject_user(
    db: Database, admin_id: str, user_id: str, reason: Optional[str] = None
) -> OperationResult:
    return await _run("reject_user", procedures.reject_user(db, admin_id, user_id, reason or None))


async def block_user(
    db: Database, admin_id: str, user_id: str, reason: Optional[str] = None
) -> OperationResult:
    return await _run("block_user", procedures.block_user(db, admin_id, user_id, reason or None))


async def unblock_user(db: Database, admin_id: str, user_id: str) -> OperationResult:
    return await _run("unblock_user", procedures.unblock_user(db, admin_id, user_id))


# ---------------------------
# Orders
# ---------------------------


async def fetch_all_orders(db: Database, status: Optional[str] = None) -> List[OrderSummary]:
    """All orders newest first; ``status`` of None or "all" means no filter."""
    if status in (None, "all"):
        return await crud.list_orders(db)
    return await crud.list_orders(db, OrderStatus(status))


async def fetch_order_by_id(
    db: Database, order_id: str
) -> Tuple[Optional[Order], List[OrderItem]]:
    return await crud.get_order_detail(db, order_id)


async def fulfill_order(db: Database, admin_id: str, order_id: str) -> OperationResult:
    return await _run("fulfill_order", procedures.fulfill_order(db, admin_id, order_id))


async def cancel_order(
    db: Database, admin_id: str, order_id: str, reason: Optional[str] = None
) -> OperationResult:
    return await _run(
        "cancel_order", procedures.cancel_order(db, admin_id, order_id, reason or None)
    )


# ---------------------------
# Products
# ---------------------------


async def fetch_all_products(db: Database) -> List[ProductWithPrice]:
    """Every product, newest first, with its open-ended price row if any."""
    products = await crud.list_products(db, newest_first=True)
    prices = await crud.list_prices(db, (p.id for p in products))
    result = []
    for p in products:
        current = next((r for r in prices.get(p.id, []) if r.valid_to is None), None)
        result.append(with_price(p, current))
    return result


async def fetch_suppliers(db: Database) -> List[Supplier]:
    return await crud.list_suppliers(db)


async def create_product(
    db: Database,
    admin_id: str,
    draft: ProductDraft,
    price: Optional[float] = None,
    currency: str = DEFAULT_CURRENCY,
) -> Tuple[OperationResult, Optional[str]]:
    """Returns (result, new product id)."""
    result, product = await _call(
        "create_product", procedures.create_product(db, admin_id, draft, price, currency)
    )
    return result, (product.id if product else None)


async def update_product(
    db: Database,
    admin_id: str,
    product_id: str,
    updates: Mapping[str, Any],
    new_price: Optional[float] = None,
    currency: str = DEFAULT_CURRENCY,
) -> OperationResult:
    return await _run(
        "update_product",
        procedures.update_product(db, admin_id, product_id, updates, new_price, currency),
    )


async def delete_product(
    db: Database, admin_id: str, product_id: str, hard_delete: bool = False
) -> OperationResult:
    return await _run(
        "delete_product", procedures.delete_product(db, admin_id, product_id, hard_delete)
    )


# ---------------------------
# Dashboard
# ---------------------------


async def get_dashboard_stats(db: Database) -> DashboardStats:
    return await crud.dashboard_stats(db, utcnow())


async def get_recent_activity(db: Database, limit: int = 10) -> List[RecentActivity]:
    return await crud.recent_activity(db, limit)
