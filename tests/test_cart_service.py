"""Cart use cases and the reservations they hold."""

from decimal import Decimal

import pytest

from marketcore.data.models import CartItemModel, CartModel
from marketcore.domain.errors import (
    CartItemNotFound,
    InsufficientStock,
    InvalidSelection,
    ProductNotFound,
    ValidationError,
)
from marketcore.repos.cart_repo import CartRepo
from marketcore.services.cart_service import CartService
from marketcore.services.stock_ledger import StockLedger


def _reserved(db, sku_id):
    return StockLedger(db).repo.get_sku(sku_id).reserved_stock


class TestAddItem:
    def test_add_reserves_stock(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)

        item = svc.add_item(user_id=1, product_id=product.id, sku_id=sku.id, quantity=3)

        assert item["quantity"] == 3
        assert item["price"] == Decimal("18000")
        assert _reserved(db, sku.id) == 3

    def test_adding_same_selection_merges_lines(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)

        first = svc.add_item(1, product.id, sku.id, 2)
        second = svc.add_item(1, product.id, sku.id, 3)

        assert first["cart_item_id"] == second["cart_item_id"]
        assert second["quantity"] == 5
        assert _reserved(db, sku.id) == 5
        assert len(svc.get_cart(1)["items"]) == 1

    def test_line_may_take_all_remaining_stock(self, db, make_sku_product):
        product, sku = make_sku_product(total=5)
        svc = CartService(db)

        svc.add_item(1, product.id, sku.id, 3)
        svc.add_item(1, product.id, sku.id, 2)

        assert _reserved(db, sku.id) == 5

    def test_insufficient_stock_leaves_nothing_behind(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)

        with pytest.raises(InsufficientStock):
            svc.add_item(1, product.id, sku.id, 11)

        assert _reserved(db, sku.id) == 0
        assert svc.get_cart(1)["items"] == []

    def test_single_product_does_not_reserve(self, db, make_product):
        product = make_product(stock=3, price="5000")
        svc = CartService(db)

        item = svc.add_item(1, product.id, None, 2)
        assert item["sku_id"] is None

        with pytest.raises(InsufficientStock):
            svc.add_item(1, product.id, None, 2)

    def test_selection_rules(self, db, make_product, make_sku_product):
        single = make_product()
        option, sku = make_sku_product()
        svc = CartService(db)

        with pytest.raises(InvalidSelection):
            svc.add_item(1, single.id, sku.id, 1)
        with pytest.raises(InvalidSelection):
            svc.add_item(1, option.id, None, 1)
        with pytest.raises(ProductNotFound):
            svc.add_item(1, 9999, None, 1)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_quantity_must_be_positive(self, db, make_sku_product, quantity):
        product, sku = make_sku_product()
        with pytest.raises(ValidationError):
            CartService(db).add_item(1, product.id, sku.id, quantity)


class TestAddItems:
    def test_partial_success(self, db, make_sku_product):
        product, sku = make_sku_product(total=3)
        svc = CartService(db)

        results = svc.add_items(
            user_id=1,
            product_id=product.id,
            selections=[
                {"sku_id": sku.id, "quantity": 2},
                {"sku_id": sku.id, "quantity": 5},
                {"sku_id": sku.id, "quantity": 1},
            ],
        )

        assert [r["ok"] for r in results] == [True, False, True]
        assert results[1]["error"].startswith("InsufficientStock")
        assert _reserved(db, sku.id) == 3


class TestUpdateQuantity:
    def test_increase_and_decrease_move_reservation_by_delta(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)
        item = svc.add_item(1, product.id, sku.id, 2)

        svc.update_quantity(item["cart_item_id"], 7, user_id=1)
        assert _reserved(db, sku.id) == 7

        svc.update_quantity(item["cart_item_id"], 1, user_id=1)
        assert _reserved(db, sku.id) == 1

    def test_increase_beyond_stock(self, db, make_sku_product):
        product, sku = make_sku_product(total=5)
        svc = CartService(db)
        item = svc.add_item(1, product.id, sku.id, 2)

        with pytest.raises(InsufficientStock):
            svc.update_quantity(item["cart_item_id"], 6)
        assert _reserved(db, sku.id) == 2

    def test_other_users_item(self, db, make_sku_product):
        product, sku = make_sku_product()
        svc = CartService(db)
        item = svc.add_item(1, product.id, sku.id, 1)

        with pytest.raises(PermissionError):
            svc.update_quantity(item["cart_item_id"], 2, user_id=2)

    def test_missing_item(self, db):
        with pytest.raises(CartItemNotFound):
            CartService(db).update_quantity(404, 1)


class TestRemoveAndClear:
    def test_remove_releases(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)
        item = svc.add_item(1, product.id, sku.id, 4)

        svc.remove_item(item["cart_item_id"], user_id=1)

        assert _reserved(db, sku.id) == 0
        assert svc.get_cart(1)["items"] == []

    def test_clear_keeps_reservations_by_default(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)
        svc.add_item(1, product.id, sku.id, 4)

        assert svc.clear(1) == 1
        assert _reserved(db, sku.id) == 4

    def test_clear_can_release(self, db, make_sku_product):
        product, sku = make_sku_product(total=10)
        svc = CartService(db)
        svc.add_item(1, product.id, sku.id, 4)

        assert svc.clear(1, release_reservations=True) == 1
        assert _reserved(db, sku.id) == 0

    def test_clear_without_cart(self, db):
        assert CartService(db).clear(77) == 0


class TestGetCart:
    def test_empty_view(self, db):
        cart = CartService(db).get_cart(5)
        assert cart["cart_id"] is None
        assert cart["items"] == []
        assert cart["total"] == Decimal("0.00")

    def test_totals_and_price_change(self, db, make_sku_product):
        product, sku = make_sku_product(total=10, price="18000")
        svc = CartService(db)
        svc.add_item(1, product.id, sku.id, 2)

        sku.sale_price = Decimal("20000")
        db.commit()

        cart = svc.get_cart(1)
        line = cart["items"][0]
        assert line["stock_available"] is True
        assert line["price_changed"] is True
        assert line["current_price"] == Decimal("20000")
        assert line["line_total"] == Decimal("36000")
        assert cart["total"] == Decimal("36000")


class TestCartCreation:
    def test_first_add_after_losing_creation_race(self, db, make_sku_product, monkeypatch):
        product, sku = make_sku_product(total=10)
        # another request created the cart between our lookup and our insert
        existing = CartModel(user_id=1)
        db.add(existing)
        db.commit()
        monkeypatch.setattr(CartRepo, "get_cart_by_user", lambda self, user_id: None)

        item = CartService(db).add_item(1, product.id, sku.id, 2)

        line = db.get(CartItemModel, item["cart_item_id"])
        assert line.cart_id == existing.id
        assert db.query(CartModel).filter(CartModel.user_id == 1).count() == 1
        assert _reserved(db, sku.id) == 2

    def test_repeated_creation_returns_same_cart(self, db):
        repo = CartRepo(db)
        first = repo.get_or_create_cart(7)
        second = repo.get_or_create_cart(7)
        assert first.id == second.id
        assert first.created_at is not None
