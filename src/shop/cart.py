from __future__ import annotations

import dataclasses
import json
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from db.models import Availability, CartItem, DEFAULT_CURRENCY, ProductType, ProductWithPrice
from shop.storage import LocalStorage
from utils.logger import get_logger

_logger = get_logger(__name__)

CART_STORAGE_KEY = "mestej_cart"


def product_to_dict(product: ProductWithPrice) -> Dict[str, Any]:
    data = dataclasses.asdict(product)
    data["product_type"] = product.product_type.value
    data["availability"] = product.availability.value
    data["created_at"] = product.created_at.isoformat() if product.created_at else None
    return data


def product_from_dict(data: Dict[str, Any]) -> ProductWithPrice:
    """Rebuild a product snapshot; raises KeyError/ValueError/TypeError when malformed."""
    created_at = data.get("created_at")
    price = data.get("price")
    return ProductWithPrice(
        id=str(data["id"]),
        name=str(data["name"]),
        description=data.get("description"),
        product_type=ProductType(data["product_type"]),
        supplier_id=data.get("supplier_id"),
        image_url=data.get("image_url"),
        abv=data.get("abv"),
        volume_ml=data.get("volume_ml"),
        stock_quantity=int(data.get("stock_quantity") or 0),
        availability=Availability(data.get("availability", Availability.IN_STOCK.value)),
        created_at=datetime.fromisoformat(created_at) if created_at else None,
        price=None if price is None else float(price),
        currency=data.get("currency") or DEFAULT_CURRENCY,
    )


def _valid_quantity(qty: Any) -> bool:
    return isinstance(qty, int) and not isinstance(qty, bool) and qty > 0


class Cart:
    """
    The shopper's selection, one entry per product id.

    Every mutation is written to local storage; the in-memory items stay
    authoritative when storage fails.
    """

    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        key: str = CART_STORAGE_KEY,
        autoload: bool = True,
    ) -> None:
        self._storage = storage
        self._key = key
        self._items: List[CartItem] = []
        if autoload:
            self.load()

    # ---------- persistence ----------

    def load(self) -> None:
        """Rehydrate from storage, silently dropping malformed entries."""
        if self._storage is None:
            return
        try:
            raw = self._storage.get_item(self._key)
            if not raw:
                return
            entries = json.loads(raw)
        except (OSError, ValueError) as e:
            _logger.error(f"Error loading cart from storage: {e}")
            return
        if not isinstance(entries, list):
            _logger.error("Error loading cart from storage: expected a list")
            return

        items: List[CartItem] = []
        seen: set[str] = set()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            product = entry.get("product")
            qty = entry.get("quantity")
            if not isinstance(product, dict) or not product.get("id") or not _valid_quantity(qty):
                continue
            try:
                snapshot = product_from_dict(product)
            except (KeyError, ValueError, TypeError) as e:
                _logger.debug(f"Dropping malformed cart entry {product.get('id')}: {e}")
                continue
            if snapshot.id in seen:
                continue
            seen.add(snapshot.id)
            items.append(CartItem(product=snapshot, quantity=qty))
        self._items = items

    def _save(self) -> None:
        if self._storage is None:
            return
        payload = json.dumps(
            [{"product": product_to_dict(i.product), "quantity": i.quantity} for i in self._items]
        )
        try:
            self._storage.set_item(self._key, payload)
        except (OSError, ValueError) as e:
            _logger.error(f"Error saving cart to storage: {e}")

    # ---------- mutations ----------

    def add_item(self, product: ProductWithPrice, quantity: int = 1) -> None:
        for idx, item in enumerate(self._items):
            if item.product.id == product.id:
                self._items[idx] = dataclasses.replace(item, quantity=item.quantity + quantity)
                break
        else:
            self._items.append(CartItem(product=product, quantity=quantity))
        self._save()

    def remove_item(self, product_id: str) -> None:
        self._items = [i for i in self._items if i.product.id != product_id]
        self._save()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(product_id)
            return
        self._items = [
            dataclasses.replace(i, quantity=quantity) if i.product.id == product_id else i
            for i in self._items
        ]
        self._save()

    def clear_cart(self) -> None:
        self._items = []
        if self._storage is None:
            return
        try:
            self._storage.remove_item(self._key)
        except (OSError, ValueError) as e:
            _logger.error(f"Error clearing cart from storage: {e}")

    # ---------- queries ----------

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    def __iter__(self) -> Iterator[CartItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def get_item_quantity(self, product_id: str) -> int:
        for item in self._items:
            if item.product.id == product_id:
                return item.quantity
        return 0

    def get_total_items(self) -> int:
        return sum(i.quantity for i in self._items)

    def get_subtotal(self) -> float:
        """Sum of price * quantity; price-on-request items count as 0."""
        return sum((i.product.price or 0) * i.quantity for i in self._items)

    def has_price_on_request(self) -> bool:
        """True when the subtotal leaves out at least one unpriced item."""
        return any(i.product.price is None for i in self._items)
