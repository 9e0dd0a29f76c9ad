# server-side procedures: role-checked mutations that write their own audit entry
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import aiosqlite

from db import models
from db.crud import get_product, row_to_product
from db.database import Database, new_id, to_db, to_json, utcnow
from shop.errors import InvalidTransitionError, NotFoundError, UnauthorizedError, ValidationError
from shop.lifecycle import OrderAction, UserAction, next_order_status, next_user_status
from utils.logger import get_logger

_logger = get_logger(__name__)

UPDATABLE_PRODUCT_FIELDS = frozenset(
    {
        "name",
        "description",
        "product_type",
        "supplier_id",
        "image_url",
        "abv",
        "volume_ml",
        "stock_quantity",
        "availability",
    }
)


# ---------------------------
# Helpers
# ---------------------------


async def _require_admin(conn: aiosqlite.Connection, admin_id: str) -> None:
    cur = await conn.execute("SELECT role, status FROM users WHERE id = ?;", (admin_id,))
    row = await cur.fetchone()
    await cur.close()
    if (
        not row
        or row["role"] != models.UserRole.ADMIN.value
        or row["status"] != models.UserStatus.APPROVED.value
    ):
        raise UnauthorizedError("Unauthorized: Admin access only")


async def _append_activity(
    conn: aiosqlite.Connection,
    admin_id: str,
    action: str,
    resource_type: Optional[str],
    resource_id: Optional[str],
    metadata: Optional[Mapping[str, Any]],
    when: datetime,
) -> str:
    aid = new_id()
    await conn.execute(
        """
        INSERT INTO admin_activity_logs(id, admin_id, action, resource_type, resource_id,
                                        metadata, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?);
        """,
        (aid, admin_id, action, resource_type, resource_id, to_json(dict(metadata or {})), to_db(when)),
    )
    return aid


async def _audit(
    conn: aiosqlite.Connection,
    admin_id: str,
    action: str,
    resource_type: str,
    resource_id: str,
    metadata: Mapping[str, Any],
    when: datetime,
) -> None:
    """
    Write the audit entry inside the caller's transaction.
    A failed insert is rolled back to the savepoint and logged; the mutation still commits.
    """
    await conn.execute("SAVEPOINT audit;")
    try:
        await _append_activity(conn, admin_id, action, resource_type, resource_id, metadata, when)
    except sqlite3.Error as e:
        await conn.execute("ROLLBACK TO SAVEPOINT audit;")
        _logger.error(f"Failed to log admin activity {action} on {resource_type} {resource_id}: {e}")
    await conn.execute("RELEASE SAVEPOINT audit;")


# ---------------------------
# Activity log
# ---------------------------


async def log_admin_activity(
    db: Database,
    admin_id: str,
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> str:
    """Append a standalone audit entry and return its id."""
    async with db.connect() as conn:
        await _require_admin(conn, admin_id)
        aid = await _append_activity(
            conn, admin_id, action, resource_type, resource_id, metadata, utcnow()
        )
        await conn.commit()
    return aid


# ---------------------------
# Account approval
# ---------------------------


async def _transition_user(
    db: Database,
    admin_id: str,
    user_id: str,
    action: UserAction,
    metadata: Optional[Dict[str, Any]] = None,
) -> models.UserStatus:
    now = utcnow()
    async with db.connect() as conn:
        await _require_admin(conn, admin_id)
        cur = await conn.execute("SELECT status FROM users WHERE id = ?;", (user_id,))
        row = await cur.fetchone()
        await cur.close()
        if not row:
            raise NotFoundError("User not found")

        current = models.UserStatus(row["status"])
        target = next_user_status(current, action)

        sets = {"status": target.value, "updated_at": to_db(now)}
        if target == models.UserStatus.APPROVED:
            sets["approved_by"] = admin_id
            sets["approved_at"] = to_db(now)
        assignments = ", ".join(f"{k} = ?" for k in sets)
        res = await conn.execute(
            f"UPDATE users SET {assignments} WHERE id = ? AND status = ?;",
            (*sets.values(), user_id, current.value),
        )
        if res.rowcount != 1:
            raise InvalidTransitionError("User status changed before the update was applied")

        await _audit(
            conn,
            admin_id,
            f"{action.value}_user",
            "user",
            user_id,
            {"from_status": current.value, "to_status": target.value, **(metadata or {})},
            now,
        )
        await conn.commit()

    _logger.info(f"User {user_id}: {current.value} -> {target.value} by {admin_id}")
    return target


async def approve_user(db: Database, admin_id: str, user_id: str) -> models.UserStatus:
    return await _transition_user(db, admin_id, user_id, UserAction.APPROVE)


async def reject_user(
    db: Database, admin_id: str, user_id: str, reason: Optional[str] = None
) -> models.UserStatus:
    return await _transition_user(db, admin_id, user_id, UserAction.REJECT, {"reason": reason})


async def block_user(
    db: Database, admin_id: str, user_id: str, reason: Optional[str] = None
) -> models.UserStatus:
    return await _transition_user(db, admin_id, user_id, UserAction.BLOCK, {"reason": reason})


async def unblock_user(db: Database, admin_id: str, user_id: str) -> models.UserStatus:
    return await _transition_user(db, admin_id, user_id, UserAction.UNBLOCK)


# ---------------------------
# Order fulfillment
# ---------------------------


async def _transition_order(
    db: Database,
    admin_id: Optional[str],
    order_id: str,
    action: OrderAction,
    reason: Optional[str] = None,
) -> models.OrderStatus:
    now = utcnow()
    async with db.connect() as conn:
        if admin_id is not None:
            await _require_admin(conn, admin_id)
        cur = await conn.execute("SELECT status FROM orders WHERE id = ?;", (order_id,))
        row = await cur.fetchone()
        await cur.close()
        if not row:
            raise NotFoundError("Order not found")

        current = models.OrderStatus(row["status"])
        target = next_order_status(current, action)

        sets: Dict[str, Any] = {"status": target.value}
        if target == models.OrderStatus.FULFILLED:
            sets["fulfilled_at"] = to_db(now)
        if target == models.OrderStatus.CANCELLED:
            sets["cancel_reason"] = reason
        assignments = ", ".join(f"{k} = ?" for k in sets)
        res = await conn.execute(
            f"UPDATE orders SET {assignments} WHERE id = ? AND status = ?;",
            (*sets.values(), order_id, current.value),
        )
        if res.rowcount != 1:
            raise InvalidTransitionError("Order status changed before the update was applied")

        if admin_id is not None:
            metadata: Dict[str, Any] = {"from_status": current.value, "to_status": target.value}
            if action == OrderAction.CANCEL:
                metadata["reason"] = reason
            await _audit(conn, admin_id, f"{action.value}_order", "order", order_id, metadata, now)
        await conn.commit()

    _logger.info(f"Order {order_id}: {current.value} -> {target.value}")
    return target


async def fulfill_order(db: Database, admin_id: str, order_id: str) -> models.OrderStatus:
    return await _transition_order(db, admin_id, order_id, OrderAction.FULFILL)


async def cancel_order(
    db: Database, admin_id: str, order_id: str, reason: Optional[str] = None
) -> models.OrderStatus:
    return await _transition_order(db, admin_id, order_id, OrderAction.CANCEL, reason)


async def mark_order_paid(db: Database, order_id: str) -> models.OrderStatus:
    """Payment confirmation hook; placed -> paid. Not an admin action, so not audited."""
    return await _transition_order(db, None, order_id, OrderAction.PAY)


# ---------------------------
# Product management
# ---------------------------


def _coerce_product_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - UPDATABLE_PRODUCT_FIELDS
    if unknown:
        raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")
    out = dict(fields)
    try:
        if "product_type" in out:
            out["product_type"] = models.ProductType(out["product_type"]).value
        if "availability" in out:
            out["availability"] = models.Availability(out["availability"]).value
    except ValueError as e:
        raise ValidationError(str(e)) from None
    if "name" in out and not (out["name"] or "").strip():
        raise ValidationError("Product name cannot be empty")
    if "stock_quantity" in out:
        try:
            out["stock_quantity"] = int(out["stock_quantity"])
        except (TypeError, ValueError):
            raise ValidationError("Stock quantity must be a whole number") from None
        if out["stock_quantity"] < 0:
            raise ValidationError("Stock quantity cannot be negative")
    return out


def _check_price(price: Optional[float]) -> None:
    if price is not None and price < 0:
        raise ValidationError("Price cannot be negative")


async def _insert_price(
    conn: aiosqlite.Connection, product_id: str, price: float, currency: str, when: datetime
) -> None:
    await conn.execute(
        """
        INSERT INTO product_prices(id, product_id, price, currency, valid_from, valid_to)
        VALUES (?, ?, ?, ?, ?, NULL);
        """,
        (new_id(), product_id, float(price), currency, to_db(when)),
    )


async def create_product(
    db: Database,
    admin_id: str,
    draft: models.ProductDraft,
    price: Optional[float] = None,
    currency: str = models.DEFAULT_CURRENCY,
) -> models.Product:
    """Insert a product and, when given, its first price row."""
    fields = _coerce_product_fields(
        {
            "name": draft.name,
            "description": draft.description,
            "product_type": draft.product_type,
            "supplier_id": draft.supplier_id,
            "image_url": draft.image_url,
            "abv": draft.abv,
            "volume_ml": draft.volume_ml,
            "stock_quantity": draft.stock_quantity,
            "availability": draft.availability,
        }
    )
    _check_price(price)
    now = utcnow()
    pid = new_id()
    async with db.connect() as conn:
        await _require_admin(conn, admin_id)
        cols = ["id", *fields.keys(), "created_at"]
        await conn.execute(
            f"INSERT INTO products({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))});",
            (pid, *fields.values(), to_db(now)),
        )
        if price is not None:
            await _insert_price(conn, pid, price, currency, now)
        await _audit(
            conn,
            admin_id,
            "created_product",
            "product",
            pid,
            {"product_name": fields["name"], "product_type": fields["product_type"], "price": price},
            now,
        )
        await conn.commit()

    _logger.info(f"Product {fields['name']} ({pid}) created by {admin_id}")
    return await get_product(db, pid)


async def update_product(
    db: Database,
    admin_id: str,
    product_id: str,
    updates: Mapping[str, Any],
    new_price: Optional[float] = None,
    currency: str = models.DEFAULT_CURRENCY,
) -> models.Product:
    """
    Apply attribute updates; with ``new_price`` the current price row is closed
    and a new one opened, so price history is kept.
    """
    fields = _coerce_product_fields(updates)
    _check_price(new_price)
    now = utcnow()
    async with db.connect() as conn:
        await _require_admin(conn, admin_id)
        cur = await conn.execute("SELECT 1 FROM products WHERE id = ?;", (product_id,))
        exists = await cur.fetchone()
        await cur.close()
        if not exists:
            raise NotFoundError("Product not found")

        if fields:
            assignments = ", ".join(f"{k} = ?" for k in fields)
            await conn.execute(
                f"UPDATE products SET {assignments} WHERE id = ?;",
                (*fields.values(), product_id),
            )
        if new_price is not None:
            await conn.execute(
                """
                UPDATE product_prices
                SET valid_to = ?
                WHERE product_id = ? AND valid_to IS NULL;
                """,
                (to_db(now), product_id),
            )
            await _insert_price(conn, product_id, new_price, currency, now)

        await _audit(
            conn,
            admin_id,
            "updated_product",
            "product",
            product_id,
            {"updates": fields, "new_price": new_price},
            now,
        )
        await conn.commit()

        cur = await conn.execute("SELECT * FROM products WHERE id = ?;", (product_id,))
        row = await cur.fetchone()
        await cur.close()
    return row_to_product(row)


async def delete_product(
    db: Database, admin_id: str, product_id: str, hard_delete: bool = False
) -> None:
    """
    Soft delete marks the product out of stock; hard delete removes it and its
    prices. Order items keep their name/price snapshot either way.
    """
    now = utcnow()
    async with db.connect() as conn:
        await _require_admin(conn, admin_id)
        if hard_delete:
            res = await conn.execute("DELETE FROM products WHERE id = ?;", (product_id,))
        else:
            res = await conn.execute(
                "UPDATE products SET availability = ? WHERE id = ?;",
                (models.Availability.OUT_OF_STOCK.value, product_id),
            )
        if res.rowcount != 1:
            raise NotFoundError("Product not found")
        await _audit(
            conn,
            admin_id,
            "deleted_product" if hard_delete else "soft_deleted_product",
            "product",
            product_id,
            {},
            now,
        )
        await conn.commit()
    _logger.info(f"Product {product_id} {'deleted' if hard_delete else 'soft-deleted'} by {admin_id}")
