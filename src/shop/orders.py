from typing import Any, Dict, List

from db import crud
from db.database import Database, utcnow
from db.models import Availability, Order, OrderSummary, UserStatus
from shop.cart import Cart
from shop.catalog import fetch_product_by_id
from shop.errors import NotFoundError, UnauthorizedError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("recipient", "street", "postal_code", "city")


def _validate_address(delivery_addr: Dict[str, Any]) -> Dict[str, Any]:
    missing = [k for k in REQUIRED_ADDRESS_FIELDS if not str(delivery_addr.get(k) or "").strip()]
    if missing:
        raise ValidationError(f"Delivery address is missing: {', '.join(missing)}")
    addr = {k: str(v).strip() for k, v in delivery_addr.items() if v is not None}
    addr.setdefault("country", "SE")
    return addr


async def place_order(
    db: Database, user_id: str, cart: Cart, delivery_addr: Dict[str, Any]
) -> Order:
    """
    Turn the cart into a placed order and clear it.

    Only approved customers may order. Prices are re-read from the catalog at
    order time and snapshotted on the order items; carts holding a
    price-on-request or unavailable item are refused.
    """
    user = await crud.get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.status != UserStatus.APPROVED:
        raise UnauthorizedError(f"Account is {user.status.value}; only approved accounts can order")
    if not len(cart):
        raise ValidationError("Cart is empty")
    addr = _validate_address(delivery_addr)

    now = utcnow()
    lines = []
    currencies = set()
    for item in cart:
        product = await fetch_product_by_id(db, item.product.id, now)
        if product is None or product.availability != Availability.IN_STOCK:
            raise ValidationError(f"{item.product.name} is no longer available")
        if product.price is None:
            raise ValidationError(f"{product.name} is price on request and cannot be ordered online")
        lines.append((product.id, product.name, item.quantity, product.price))
        currencies.add(product.currency)
    if len(currencies) != 1:
        raise ValidationError("Cart mixes currencies")

    order = await crud.create_order(db, user_id, lines, addr, currencies.pop(), now)
    cart.clear_cart()
    return order


async def list_user_orders(db: Database, user_id: str) -> List[OrderSummary]:
    return await crud.list_orders(db, user_id=user_id)
