# src/db/crud.py
from __future__ import annotations

from datetime import datetime, timedelta
from sqlite3 import Row
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from db import models
from db.database import Database, from_db, from_json, new_id, to_db, to_json, utcnow
from utils.logger import get_logger

_logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "MES"

_USER_COLS = "id, email, role, status, approved_by, approved_at, created_at"
_PRODUCT_COLS = (
    "id, name, description, product_type, supplier_id, image_url, abv, volume_ml, "
    "stock_quantity, availability, created_at"
)
_PRICE_COLS = "id, product_id, price, currency, valid_from, valid_to"
_ORDER_COLS = (
    "id, order_number, user_id, status, total_amount, currency, delivery_addr, "
    "cancel_reason, created_at, fulfilled_at"
)
_ITEM_COLS = (
    "id, order_id, product_id, product_name_snapshot, quantity, unit_price, line_total"
)
_ACTIVITY_COLS = "id, admin_id, action, resource_type, resource_id, metadata, created_at"


# ---------------------------
# Row mapping
# ---------------------------


def row_to_user(row: Row) -> models.UserAccount:
    return models.UserAccount(
        id=row["id"],
        email=row["email"],
        role=models.UserRole(row["role"]),
        status=models.UserStatus(row["status"]),
        approved_by=row["approved_by"],
        approved_at=from_db(row["approved_at"]),
        created_at=from_db(row["created_at"]),
    )


def row_to_product(row: Row) -> models.Product:
    return models.Product(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        product_type=models.ProductType(row["product_type"]),
        supplier_id=row["supplier_id"],
        image_url=row["image_url"],
        abv=row["abv"],
        volume_ml=row["volume_ml"],
        stock_quantity=int(row["stock_quantity"]),
        availability=models.Availability(row["availability"]),
        created_at=from_db(row["created_at"]),
    )


def row_to_price(row: Row) -> models.ProductPrice:
    return models.ProductPrice(
        id=row["id"],
        product_id=row["product_id"],
        price=float(row["price"]),
        currency=row["currency"],
        valid_from=from_db(row["valid_from"]),
        valid_to=from_db(row["valid_to"]),
    )


def row_to_order(row: Row) -> models.Order:
    return models.Order(
        id=row["id"],
        order_number=row["order_number"],
        user_id=row["user_id"],
        status=models.OrderStatus(row["status"]),
        total_amount=float(row["total_amount"]),
        currency=row["currency"],
        delivery_addr=from_json(row["delivery_addr"]) or {},
        cancel_reason=row["cancel_reason"],
        created_at=from_db(row["created_at"]),
        fulfilled_at=from_db(row["fulfilled_at"]),
    )


def row_to_item(row: Row) -> models.OrderItem:
    return models.OrderItem(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        product_name_snapshot=row["product_name_snapshot"],
        quantity=int(row["quantity"]),
        unit_price=float(row["unit_price"]),
        line_total=float(row["line_total"]),
    )


def row_to_activity(row: Row) -> models.AdminActivity:
    return models.AdminActivity(
        id=row["id"],
        admin_id=row["admin_id"],
        action=row["action"],
        resource_type=row["resource_type"],
        resource_id=row["resource_id"],
        metadata=from_json(row["metadata"]) or {},
        created_at=from_db(row["created_at"]),
    )


# ---------------------------
# Users
# ---------------------------


async def email_available(db: Database, email: str) -> bool:
    """True if no account is registered with the given email (case-insensitive)."""
    async with db.connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE LOWER(email) = LOWER(?) LIMIT 1;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def create_user(
    db: Database,
    email: str,
    password_hash: str,
    role: models.UserRole = models.UserRole.USER,
    status: models.UserStatus = models.UserStatus.PENDING,
) -> models.UserAccount:
    """Insert a new account; new sign-ups start as pending users."""
    uid = new_id()
    now = to_db(utcnow())
    async with db.connect() as conn:
        await conn.execute(
            """
            INSERT INTO users(id, email, password_hash, role, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (uid, email, password_hash, role.value, status.value, now, now),
        )
        await conn.commit()
    _logger.info(f"Created {role.value} account {email} ({status.value})")
    return await get_user(db, uid)


async def get_user(db: Database, user_id: str) -> Optional[models.UserAccount]:
    async with db.connect() as conn:
        cur = await conn.execute(
            f"SELECT {_USER_COLS} FROM users WHERE id = ?;", (user_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return row_to_user(row) if row else None


async def get_user_by_email(db: Database, email: str) -> Optional[models.UserAccount]:
    async with db.connect() as conn:
        cur = await conn.execute(
            f"SELECT {_USER_COLS} FROM users WHERE LOWER(email) = LOWER(?);", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
    return row_to_user(row) if row else None


async def get_credentials(db: Database, email: str) -> Optional[Tuple[str, str]]:
    """Return (user id, password hash) for an email, or None."""
    async with db.connect() as conn:
        cur = await conn.execute(
            "SELECT id, password_hash FROM users WHERE LOWER(email) = LOWER(?);",
            (email,),
        )
        row = await cur.fetchone()
        await cur.close()
    return (row["id"], row["password_hash"]) if row else None


async def list_users(
    db: Database, status: Optional[models.UserStatus] = None
) -> List[models.UserAccount]:
    """All accounts, newest first, optionally filtered by status."""
    sql = f"SELECT {_USER_COLS} FROM users"
    params: Tuple[Any, ...] = ()
    if status is not None:
        sql += " WHERE status = ?"
        params = (models.UserStatus(status).value,)
    sql += " ORDER BY created_at DESC;"
    async with db.connect() as conn:
        cur = await conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_user(r) for r in rows]


# ---------------------------
# Catalog
# ---------------------------


async def list_suppliers(db: Database) -> List[models.Supplier]:
    async with db.connect() as conn:
        cur = await conn.execute("SELECT id, name, country FROM suppliers ORDER BY name;")
        rows = await cur.fetchall()
        await cur.close()
    return [models.Supplier(id=r["id"], name=r["name"], country=r["country"]) for r in rows]


async def list_products(
    db: Database,
    product_type: Optional[models.ProductType] = None,
    only_available: bool = False,
    newest_first: bool = False,
) -> List[models.Product]:
    """
    Products ordered by name (or by creation time, newest first).
    Filters are optional and combine with AND.
    """
    conds: List[str] = []
    params: List[Any] = []
    if product_type is not None:
        conds.append("product_type = ?")
        params.append(models.ProductType(product_type).value)
    if only_available:
        conds.append("availability = ?")
        params.append(models.Availability.IN_STOCK.value)

    sql = f"SELECT {_PRODUCT_COLS} FROM products"
    if conds:
        sql += " WHERE " + " AND ".join(conds)
    sql += " ORDER BY created_at DESC;" if newest_first else " ORDER BY name;"

    async with db.connect() as conn:
        cur = await conn.execute(sql, tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_product(r) for r in rows]


async def get_product(db: Database, product_id: str) -> Optional[models.Product]:
    async with db.connect() as conn:
        cur = await conn.execute(
            f"SELECT {_PRODUCT_COLS} FROM products WHERE id = ?;", (product_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return row_to_product(row) if row else None


async def list_prices(
    db: Database, product_ids: Iterable[str]
) -> Dict[str, List[models.ProductPrice]]:
    """Every price row (history included) for the given products, keyed by product id."""
    ids = list(product_ids)
    result: Dict[str, List[models.ProductPrice]] = {pid: [] for pid in ids}
    if not ids:
        return result
    placeholders = ", ".join("?" * len(ids))
    async with db.connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {_PRICE_COLS}
            FROM product_prices
            WHERE product_id IN ({placeholders})
            ORDER BY valid_from DESC;
            """,
            tuple(ids),
        )
        rows = await cur.fetchall()
        await cur.close()
    for row in rows:
        price = row_to_price(row)
        result.setdefault(price.product_id, []).append(price)
    return result


# ---------------------------
# Orders
# ---------------------------


async def _next_order_number(conn, when: datetime) -> str:
    prefix = f"{ORDER_NUMBER_PREFIX}-{when:%Y%m%d}-"
    cur = await conn.execute(
        "SELECT COUNT(*) FROM orders WHERE order_number LIKE ?;", (prefix + "%",)
    )
    count = (await cur.fetchone())[0]
    await cur.close()
    return f"{prefix}{count + 1:04d}"


async def create_order(
    db: Database,
    user_id: str,
    lines: Sequence[Tuple[str, str, int, float]],
    delivery_addr: Dict[str, Any],
    currency: str,
    when: Optional[datetime] = None,
) -> models.Order:
    """
    Create a placed order from (product_id, name, qty, unit_price) lines.

    Names and prices are stored as snapshots on the order items, and stock is
    decremented (never below zero). Everything happens in one transaction.
    """
    when = when or utcnow()
    oid = new_id()
    total = round(sum(qty * price for _, _, qty, price in lines), 2)

    async with db.connect() as conn:
        order_number = await _next_order_number(conn, when)
        await conn.execute(
            """
            INSERT INTO orders(id, order_number, user_id, status, total_amount, currency,
                               delivery_addr, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                oid,
                order_number,
                user_id,
                models.OrderStatus.PLACED.value,
                total,
                currency,
                to_json(delivery_addr),
                to_db(when),
            ),
        )
        for pid, name, qty, price in lines:
            await conn.execute(
                f"""
                INSERT INTO order_items({_ITEM_COLS})
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (new_id(), oid, pid, name, qty, price, round(qty * price, 2)),
            )
            await conn.execute(
                """
                UPDATE products
                SET stock_quantity = MAX(stock_quantity - ?, 0)
                WHERE id = ?;
                """,
                (qty, pid),
            )
        await conn.commit()

    _logger.info(f"Order {order_number} placed by {user_id}: {total:.2f} {currency}")
    order, _ = await get_order_detail(db, oid)
    return order


async def get_order(db: Database, order_id: str) -> Optional[models.Order]:
    async with db.connect() as conn:
        cur = await conn.execute(
            f"SELECT {_ORDER_COLS} FROM orders WHERE id = ?;", (order_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    return row_to_order(row) if row else None


async def get_order_detail(
    db: Database, order_id: str
) -> Tuple[Optional[models.Order], List[models.OrderItem]]:
    """
    Return (order, items) for a specific order, or (None, []) if it does not exist.
    """
    async with db.connect() as conn:
        cur = await conn.execute(
            f"SELECT {_ORDER_COLS} FROM orders WHERE id = ?;", (order_id,)
        )
        order_row = await cur.fetchone()
        await cur.close()
        if not order_row:
            return None, []
        cur = await conn.execute(
            f"SELECT {_ITEM_COLS} FROM order_items WHERE order_id = ? ORDER BY rowid;",
            (order_id,),
        )
        item_rows = await cur.fetchall()
        await cur.close()
    return row_to_order(order_row), [row_to_item(r) for r in item_rows]


async def list_orders(
    db: Database,
    status: Optional[models.OrderStatus] = None,
    user_id: Optional[str] = None,
) -> List[models.OrderSummary]:
    """Orders newest first with owner email and item count."""
    conds: List[str] = []
    params: List[Any] = []
    if status is not None:
        conds.append("o.status = ?")
        params.append(models.OrderStatus(status).value)
    if user_id is not None:
        conds.append("o.user_id = ?")
        params.append(user_id)
    where = ("WHERE " + " AND ".join(conds)) if conds else ""

    cols = ", ".join(f"o.{c.strip()}" for c in _ORDER_COLS.split(","))
    async with db.connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {cols},
                   u.email AS user_email,
                   (SELECT COUNT(*) FROM order_items i WHERE i.order_id = o.id) AS item_count
            FROM orders o
            JOIN users u ON u.id = o.user_id
            {where}
            ORDER BY o.created_at DESC;
            """,
            tuple(params),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.OrderSummary(
            order=row_to_order(r), user_email=r["user_email"], item_count=int(r["item_count"])
        )
        for r in rows
    ]


# ---------------------------
# Audit trail & dashboard
# ---------------------------


async def list_activity(
    db: Database, resource_id: Optional[str] = None, limit: int = 50
) -> List[models.AdminActivity]:
    """Audit entries newest first, optionally only those touching one resource."""
    sql = f"SELECT {_ACTIVITY_COLS} FROM admin_activity_logs"
    params: List[Any] = []
    if resource_id is not None:
        sql += " WHERE resource_id = ?"
        params.append(resource_id)
    sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?;"
    params.append(limit)
    async with db.connect() as conn:
        cur = await conn.execute(sql, tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return [row_to_activity(r) for r in rows]


async def recent_activity(db: Database, limit: int = 10) -> List[models.RecentActivity]:
    cols = ", ".join(f"a.{c.strip()}" for c in _ACTIVITY_COLS.split(","))
    async with db.connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {cols}, u.email AS admin_email
            FROM admin_activity_logs a
            LEFT JOIN users u ON u.id = a.admin_id
            ORDER BY a.created_at DESC, a.rowid DESC
            LIMIT ?;
            """,
            (limit,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.RecentActivity(activity=row_to_activity(r), admin_email=r["admin_email"])
        for r in rows
    ]


async def dashboard_stats(
    db: Database, as_of: Optional[datetime] = None, recent_days: int = 7
) -> models.DashboardStats:
    """
    Summary figures for the admin dashboard.
    Revenue counts paid and fulfilled orders; "pending" orders are placed or paid.
    """
    as_of = as_of or utcnow()
    since = to_db(as_of - timedelta(days=recent_days))
    async with db.connect() as conn:
        cur = await conn.execute(
            """
            SELECT
                (SELECT COALESCE(SUM(total_amount), 0.0) FROM orders
                  WHERE status IN ('paid', 'fulfilled'))                  AS total_revenue,
                (SELECT COUNT(*) FROM orders WHERE status IN ('placed', 'paid')) AS pending_orders,
                (SELECT COUNT(*) FROM users WHERE status = 'pending')     AS pending_users,
                (SELECT COUNT(*) FROM products)                           AS total_products,
                (SELECT COUNT(*) FROM users WHERE status = 'approved')    AS approved_users,
                (SELECT COUNT(*) FROM orders WHERE created_at >= ?)       AS recent_orders;
            """,
            (since,),
        )
        row = await cur.fetchone()
        await cur.close()
    return models.DashboardStats(
        total_revenue=float(row["total_revenue"] or 0.0),
        pending_orders=int(row["pending_orders"] or 0),
        pending_users=int(row["pending_users"] or 0),
        total_products=int(row["total_products"] or 0),
        approved_users=int(row["approved_users"] or 0),
        recent_orders=int(row["recent_orders"] or 0),
    )
