"""
Tests for Cart
"""
import json
import logging
from decimal import Decimal

import pytest

from cart import (
    CART_STORAGE_KEY,
    Cart,
    CartLineItem,
    InvalidPrice,
    InvalidQuantity,
    MalformedCartData,
    NegativeQuantity,
)
from storage import MemoryStorage


@pytest.fixture
def cart(storage):
    return Cart(storage)


def stored(storage):
    return json.loads(storage.get(CART_STORAGE_KEY))


class TestInitialization:

    def test_starts_empty(self, cart):
        assert cart.items == []
        assert cart.is_empty()
        assert cart.load_error is None

    def test_loads_existing_cart(self):
        storage = MemoryStorage({
            CART_STORAGE_KEY: json.dumps({"items": [{"id": "jockblock-100ml", "quantity": 2, "price": 19.99}]})
        })
        cart = Cart(storage)

        assert len(cart) == 1
        assert cart.get_item("jockblock-100ml").quantity == 2
        assert cart.get_item("jockblock-100ml").unit_price == Decimal("19.99")

    def test_custom_storage_key(self, storage):
        cart = Cart(storage, storage_key="other-cart")
        cart.add_item("a", 1, 1)

        assert "other-cart" in storage
        assert CART_STORAGE_KEY not in storage

    @pytest.mark.parametrize("raw", [
        "not json{",
        "[]",
        '{"items": "nope"}',
        '{"items": [{"id": "a", "quantity": 0, "price": 1}]}',
        '{"items": [{"id": "a", "quantity": 1, "price": -1}]}',
        '{"items": [{"id": "a", "quantity": "1", "price": 1}]}',
        '{"items": [{"quantity": 1, "price": 1}]}',
        '{"items": [{"id": "a", "quantity": 1, "price": 1}, {"id": "a", "quantity": 2, "price": 1}]}',
        pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
    ])
    def test_malformed_storage_starts_empty(self, raw, caplog):
        storage = MemoryStorage({CART_STORAGE_KEY: raw})

        with caplog.at_level(logging.WARNING, logger="cart"):
            cart = Cart(storage)

        assert cart.is_empty()
        assert cart.load_error is not None
        assert "Failed to load cart" in caplog.text

    def test_injected_logger_receives_load_failure(self):
        logger = logging.getLogger("test.cart.diagnostics")
        records = []

        class Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = Collect()
        logger.addHandler(handler)
        try:
            Cart(MemoryStorage({CART_STORAGE_KEY: "{broken"}), logger=logger)
        finally:
            logger.removeHandler(handler)

        assert len(records) == 1
        assert records[0].levelno == logging.WARNING

    def test_storage_read_failure_starts_empty(self, caplog):
        class UnreadableStorage(MemoryStorage):
            def get(self, key):
                raise OSError("storage unavailable")

        with caplog.at_level(logging.WARNING, logger="cart"):
            cart = Cart(UnreadableStorage())

        assert cart.is_empty()
        assert isinstance(cart.load_error, OSError)
        assert "Failed to load cart" in caplog.text

    def test_missing_items_key_is_empty_cart(self):
        cart = Cart(MemoryStorage({CART_STORAGE_KEY: "{}"}))
        assert cart.is_empty()
        assert cart.load_error is None


class TestAddItem:

    def test_adds_new_item(self, cart):
        cart.add_item("jockblock-100ml", 1, 19.99)

        assert cart.items == [CartLineItem(id="jockblock-100ml", quantity=1, unit_price=Decimal("19.99"))]

    def test_increments_existing_item(self, cart):
        cart.add_item("jockblock-100ml", 1, 19.99)
        cart.add_item("jockblock-100ml", 2, 19.99)

        assert len(cart) == 1
        assert cart.get_item("jockblock-100ml").quantity == 3

    def test_repeat_add_keeps_first_price(self, cart):
        cart.add_item("jockblock-100ml", 1, 19.99)
        cart.add_item("jockblock-100ml", 1, 24.99)

        assert cart.get_item("jockblock-100ml").unit_price == Decimal("19.99")
        assert cart.get_total() == Decimal("39.98")

    def test_different_items_keep_insertion_order(self, cart):
        cart.add_item("b", 1, 1)
        cart.add_item("a", 1, 1)
        cart.add_item("b", 1, 1)

        assert [item.id for item in cart] == ["b", "a"]

    def test_persists(self, cart, storage):
        cart.add_item("jockblock-100ml", 1, 19.99)

        assert stored(storage) == {"items": [{"id": "jockblock-100ml", "quantity": 1, "price": 19.99}]}

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_rejects_invalid_quantity(self, cart, storage, quantity):
        with pytest.raises(InvalidQuantity, match="Quantity must be at least 1"):
            cart.add_item("jockblock-100ml", quantity, 19.99)
        assert CART_STORAGE_KEY not in storage

    @pytest.mark.parametrize("price", [0, -5, "abc", None])
    def test_rejects_invalid_price(self, cart, price):
        with pytest.raises(InvalidPrice, match="Price must be positive"):
            cart.add_item("jockblock-100ml", 1, price)
        assert cart.is_empty()

    def test_errors_are_value_errors(self, cart):
        with pytest.raises(ValueError):
            cart.add_item("x", 0, 1)


class TestRemoveItem:

    def test_removes_item(self, cart, storage):
        cart.add_item("a", 1, 1)
        cart.add_item("b", 1, 1)
        cart.remove_item("a")

        assert [item.id for item in cart] == ["b"]
        assert [i["id"] for i in stored(storage)["items"]] == ["b"]

    def test_absent_item_is_noop(self, cart, storage):
        cart.remove_item("missing")

        assert cart.is_empty()
        assert CART_STORAGE_KEY not in storage

    def test_remove_twice_same_as_once(self, cart, storage):
        cart.add_item("a", 2, 3)
        cart.add_item("b", 1, 1)
        cart.remove_item("a")
        once = (cart.to_dict(), storage.get(CART_STORAGE_KEY))
        cart.remove_item("a")

        assert (cart.to_dict(), storage.get(CART_STORAGE_KEY)) == once


class TestUpdateQuantity:

    def test_sets_quantity(self, cart, storage):
        cart.add_item("a", 1, 5)
        cart.update_quantity("a", 4)

        assert cart.get_item("a").quantity == 4
        assert stored(storage)["items"][0]["quantity"] == 4

    def test_zero_removes(self, cart):
        cart.add_item("a", 1, 5)
        cart.update_quantity("a", 0)

        assert cart.get_item("a") is None
        assert cart.is_empty()

    def test_zero_matches_remove_item(self, storage):
        via_update = Cart(storage)
        via_update.add_item("a", 1, 5)
        via_update.add_item("b", 1, 2)
        via_update.update_quantity("a", 0)

        other = MemoryStorage()
        via_remove = Cart(other)
        via_remove.add_item("a", 1, 5)
        via_remove.add_item("b", 1, 2)
        via_remove.remove_item("a")

        assert via_update.to_dict() == via_remove.to_dict()
        assert storage.get(CART_STORAGE_KEY) == other.get(CART_STORAGE_KEY)

    def test_rejects_negative(self, cart):
        cart.add_item("a", 1, 5)
        with pytest.raises(NegativeQuantity, match="Quantity cannot be negative"):
            cart.update_quantity("a", -1)
        assert cart.get_item("a").quantity == 1

    def test_unknown_item_is_noop(self, cart, storage):
        cart.update_quantity("missing", 3)

        assert cart.is_empty()
        assert CART_STORAGE_KEY not in storage


class TestTotals:

    def test_empty_cart(self, cart):
        assert cart.get_total() == 0
        assert cart.get_item_count() == 0

    def test_total_and_count(self, cart):
        cart.add_item("a", 2, 19.99)
        cart.add_item("b", 1, 29.99)

        assert cart.get_total() == Decimal("69.97")
        assert cart.get_item_count() == 3

    def test_no_float_artifacts(self, cart):
        cart.add_item("a", 1, 0.1)
        cart.add_item("b", 1, 0.2)

        assert cart.get_total() == Decimal("0.30")
        assert cart.to_dict()["total"] == 0.3

    def test_total_rounds_half_up_to_cents(self, cart):
        cart.add_item("a", 1, Decimal("0.005"))
        assert cart.get_total() == Decimal("0.01")

    def test_totals_independent_of_call_order(self):
        ops = [("a", 2, 1.25), ("b", 3, 0.7), ("a", 1, 1.25), ("c", 5, 10.01)]
        first = Cart(MemoryStorage())
        second = Cart(MemoryStorage())
        for op in ops:
            first.add_item(*op)
        for op in reversed(ops):
            second.add_item(*op)

        assert first.get_total() == second.get_total() == Decimal("55.90")
        assert first.get_item_count() == second.get_item_count() == 11


class TestQueries:

    def test_get_item_missing_returns_none(self, cart):
        assert cart.get_item("nope") is None

    def test_get_item_returns_copy(self, cart):
        cart.add_item("a", 1, 5)
        item = cart.get_item("a")
        item.quantity = 99

        assert cart.get_item("a").quantity == 1

    def test_to_dict(self, cart):
        cart.add_item("a", 2, 19.99)

        assert cart.to_dict() == {
            "items": [{"id": "a", "quantity": 2, "price": 19.99}],
            "total": 39.98,
            "item_count": 2,
        }

    def test_to_dict_is_a_snapshot(self, cart):
        cart.add_item("a", 2, 19.99)
        data = cart.to_dict()
        data["items"][0]["quantity"] = 50
        data["items"].append({"id": "b", "quantity": 1, "price": 1})

        assert cart.get_item_count() == 2
        assert len(cart) == 1


class TestPersistence:

    def test_round_trip(self, storage):
        cart = Cart(storage)
        cart.add_item("a", 2, 19.99)
        cart.add_item("b", 1, 0.5)

        reloaded = Cart(storage)
        assert reloaded.items == cart.items
        assert reloaded.get_total() == cart.get_total()

    def test_clear_removes_storage_key(self, cart, storage):
        cart.add_item("a", 1, 5)
        cart.clear()

        assert cart.is_empty()
        assert CART_STORAGE_KEY not in storage
        fresh = Cart(storage)
        assert fresh.is_empty()
        assert fresh.load_error is None

    def test_save_failure_is_logged(self, caplog):
        class BrokenStorage(MemoryStorage):
            def set(self, key, value):
                raise OSError("quota exceeded")

        cart = Cart(BrokenStorage())
        with caplog.at_level(logging.ERROR, logger="cart"):
            cart.add_item("a", 1, 5)

        assert cart.get_item_count() == 1
        assert "Failed to save cart" in caplog.text

    def test_clear_failure_is_logged(self, caplog):
        class StickyStorage(MemoryStorage):
            def remove(self, key):
                raise OSError("read-only")

        cart = Cart(StickyStorage())
        cart.add_item("a", 1, 5)
        with caplog.at_level(logging.ERROR, logger="cart"):
            cart.clear()

        assert cart.is_empty()
        assert "Failed to remove cart" in caplog.text


class TestCartLineItem:

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(MalformedCartData):
            CartLineItem.from_dict(["a", 1, 2])

    def test_line_total(self):
        item = CartLineItem(id="a", quantity=3, unit_price=Decimal("1.10"))
        assert item.line_total == Decimal("3.30")
