"""
Catalog read path: products merged with their current price.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from db import crud
from db.database import Database, as_utc, utcnow
from db.models import DEFAULT_CURRENCY, Product, ProductPrice, ProductType, ProductWithPrice
from utils.logger import get_logger

_logger = get_logger(__name__)


def select_current_price(
    prices: Iterable[ProductPrice], now: datetime
) -> Optional[ProductPrice]:
    """
    Pick the price row valid at ``now``: valid_from <= now and (valid_to is None
    or valid_to >= now), latest valid_from first. When a price was just replaced
    the closed and the new row share the boundary instant; the open-ended row wins.
    """
    now = as_utc(now)
    valid = [
        p
        for p in prices
        if p.valid_from is not None
        and p.valid_from <= now
        and (p.valid_to is None or p.valid_to >= now)
    ]
    if not valid:
        return None
    return max(valid, key=lambda p: (p.valid_from, p.valid_to is None))


def with_price(product: Product, price: Optional[ProductPrice]) -> ProductWithPrice:
    return ProductWithPrice(
        **{f: getattr(product, f) for f in Product.__dataclass_fields__},
        price=price.price if price else None,
        currency=price.currency if price else DEFAULT_CURRENCY,
    )


async def fetch_products(
    db: Database,
    product_type: Optional[ProductType] = None,
    only_available: bool = True,
    now: Optional[datetime] = None,
) -> List[ProductWithPrice]:
    """Products ordered by name, each with the price valid at ``now`` (None = on request)."""
    now = now or utcnow()
    products = await crud.list_products(db, product_type, only_available)
    if not products:
        _logger.debug("No products matched the catalog query")
        return []
    prices = await crud.list_prices(db, (p.id for p in products))
    result = [with_price(p, select_current_price(prices.get(p.id, []), now)) for p in products]
    _logger.debug(f"Fetched {len(result)} products with prices")
    return result


async def fetch_product_by_id(
    db: Database, product_id: str, now: Optional[datetime] = None
) -> Optional[ProductWithPrice]:
    product = await crud.get_product(db, product_id)
    if product is None:
        return None
    prices = await crud.list_prices(db, [product_id])
    return with_price(product, select_current_price(prices[product_id], now or utcnow()))
