"""
Shopping cart with durable-storage mirroring.

The cart owns its line items; storage only mirrors them. Every successful
mutation is written through to storage, and totals are always derived from
the line items rather than stored.
"""
import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterator, List, Optional

from logging_config import get_logger, sanitize_string_for_logging
from money import Number, round_money, to_decimal

CART_STORAGE_KEY = "jockblock-cart"

default_logger = get_logger(__name__)


class CartError(ValueError):
    """Base class for rejected cart operations."""

    message = "Invalid cart operation"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class InvalidQuantity(CartError):
    message = "Quantity must be at least 1"


class InvalidPrice(CartError):
    message = "Price must be positive"


class NegativeQuantity(CartError):
    message = "Quantity cannot be negative"


class MalformedCartData(ValueError):
    """Stored cart state could not be understood."""


@dataclass
class CartLineItem:
    """One product in the cart."""
    id: str
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        """Stored/serialized shape: {"id", "quantity", "price"}."""
        return {
            "id": self.id,
            "quantity": self.quantity,
            "price": float(self.unit_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLineItem":
        """Build from stored data, rejecting anything a cart could not hold."""
        if not isinstance(data, dict):
            raise MalformedCartData(f"line item is not an object: {data!r}")
        item_id = data.get("id")
        quantity = data.get("quantity")
        if not isinstance(item_id, str):
            raise MalformedCartData(f"bad id: {item_id!r}")
        if not _is_int(quantity) or quantity < 1:
            raise MalformedCartData(f"bad quantity for {item_id}: {quantity!r}")
        try:
            price = to_decimal(data.get("price"))
        except ValueError as e:
            raise MalformedCartData(f"bad price for {item_id}: {e}") from None
        if price <= 0:
            raise MalformedCartData(f"bad price for {item_id}: {price}")
        return cls(id=item_id, quantity=quantity, unit_price=price)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Cart:
    """
    Cart of line items keyed by product id, in insertion order.

    State is loaded from `storage` under `storage_key` when the cart is
    constructed. Unreadable state is logged, kept on `load_error`, and the
    cart starts empty instead.

    Not safe for concurrent use. Two carts sharing a storage key will
    overwrite each other.
    """

    def __init__(self, storage, storage_key: str = CART_STORAGE_KEY,
                 logger: Optional[logging.Logger] = None):
        self._storage = storage
        self._storage_key = storage_key
        self._logger = logger or default_logger
        self._items: List[CartLineItem] = []
        self.load_error: Optional[Exception] = None
        self._load()

    # -- persistence -------------------------------------------------------

    def _load(self) -> None:
        try:
            raw = self._storage.get(self._storage_key)
            if raw is None:
                return
            self._items = self._parse(raw)
        except (ValueError, TypeError, OSError, RecursionError) as e:
            # json.JSONDecodeError and MalformedCartData are ValueErrors;
            # deeply nested documents raise RecursionError
            self.load_error = e
            self._items = []
            self._logger.warning(
                "Failed to load cart from storage key %s, starting empty: %s",
                self._storage_key,
                sanitize_string_for_logging(e, max_length=200),
            )

    @staticmethod
    def _parse(raw: str) -> List[CartLineItem]:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise MalformedCartData("cart document is not an object")
        stored_items = data.get("items", [])
        if not isinstance(stored_items, list):
            raise MalformedCartData("items is not a list")

        items = [CartLineItem.from_dict(entry) for entry in stored_items]
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise MalformedCartData("duplicate line item ids")
        return items

    def _save(self) -> None:
        payload = json.dumps({"items": [item.to_dict() for item in self._items]})
        try:
            self._storage.set(self._storage_key, payload)
        except (OSError, RuntimeError) as e:
            self._logger.error("Failed to save cart to storage: %s", e, exc_info=True)

    # -- mutations ---------------------------------------------------------

    def add_item(self, item_id: str, quantity: int, unit_price: Number) -> None:
        """
        Add `quantity` of a product.

        Adding a product that is already in the cart only bumps its quantity;
        the price recorded on the first add is kept.
        """
        if not _is_int(quantity) or quantity < 1:
            raise InvalidQuantity()
        try:
            price = to_decimal(unit_price)
        except ValueError:
            raise InvalidPrice() from None
        if price <= 0:
            raise InvalidPrice()

        existing = self._find(item_id)
        if existing is not None:
            existing.quantity += quantity
        else:
            self._items.append(CartLineItem(id=item_id, quantity=quantity, unit_price=price))
        self._save()

    def remove_item(self, item_id: str) -> None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[index]
                self._save()
                return

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """Set the quantity of a product already in the cart. Zero removes it."""
        if not _is_int(quantity) or quantity < 0:
            raise NegativeQuantity()
        if quantity == 0:
            self.remove_item(item_id)
            return

        item = self._find(item_id)
        if item is not None:
            item.quantity = quantity
            self._save()

    def clear(self) -> None:
        """Empty the cart and delete its stored record."""
        self._items = []
        try:
            self._storage.remove(self._storage_key)
        except (OSError, RuntimeError) as e:
            self._logger.error("Failed to remove cart from storage: %s", e, exc_info=True)

    # -- queries -----------------------------------------------------------

    def _find(self, item_id: str) -> Optional[CartLineItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def get_item(self, item_id: str) -> Optional[CartLineItem]:
        """Copy of the line item for `item_id`, or None."""
        item = self._find(item_id)
        return replace(item) if item is not None else None

    def get_total(self) -> Decimal:
        return round_money(sum((item.line_total for item in self._items), Decimal("0")))

    def get_item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def is_empty(self) -> bool:
        return not self._items

    @property
    def items(self) -> List[CartLineItem]:
        return [replace(item) for item in self._items]

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self._items],
            "total": float(self.get_total()),
            "item_count": self.get_item_count(),
        }

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartLineItem]:
        return iter(self.items)

    def __repr__(self) -> str:
        return f"<Cart items={len(self._items)} total={self.get_total()}>"
