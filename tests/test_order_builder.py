"""Building orders from the cart and from a direct selection."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from marketcore.data.models import UserCouponModel
from marketcore.domain.errors import (
    AddressNotFound,
    CouponExpired,
    CouponNotOwned,
    CouponNotStarted,
    EmptyCart,
    InsufficientStock,
    MinOrderAmountNotMet,
    OrderNotFound,
    ValidationError,
)
from marketcore.services.cart_service import CartService
from marketcore.services.order_service import OrderService
from marketcore.services.stock_ledger import StockLedger


@pytest.fixture()
def orders(db, order_numbers):
    return OrderService(db, order_numbers=order_numbers)


def _sku(db, sku_id):
    return StockLedger(db).repo.get_sku(sku_id)


class TestCreateFromCart:
    def test_coupon_order_amounts(self, db, orders, make_sku_product, make_address, make_coupon, grant_coupon):
        product, sku = make_sku_product(total=10, price="18000")
        address = make_address(user_id=1)
        coupon = make_coupon(amount="2000", min_order="10000")
        grant = grant_coupon(coupon, user_id=1)
        CartService(db).add_item(1, product.id, sku.id, 2)

        order = orders.create_from_cart(1, address.id, "CARD", coupon_id=coupon.id, memo="Leave at door")

        assert order["total_amount"] == Decimal("36000")
        assert order["discount_amount"] == Decimal("2000")
        assert order["delivery_fee"] == Decimal("0")
        assert order["final_amount"] == Decimal("34000")
        assert (order["order_status"], order["payment_status"]) == ("PENDING", "PENDING")
        assert order["recipient"] == "Kim Minji"
        assert order["delivery_memo"] == "Leave at door"
        assert order["order_number"].startswith("ORD-")
        assert len(order["items"]) == 1
        assert order["items"][0]["product_name"] == "Wool coat"

        assert db.get(UserCouponModel, grant.id).used is True

    def test_cart_reservations_move_to_order(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=10)
        address = make_address(user_id=1)
        CartService(db).add_item(1, product.id, sku.id, 3)

        orders.create_from_cart(1, address.id, "CARD")

        assert _sku(db, sku.id).reserved_stock == 3
        assert _sku(db, sku.id).total_stock == 10
        assert CartService(db).get_cart(1)["items"] == []

    def test_delivery_fee_below_threshold(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=10, price="12000")
        address = make_address(user_id=1)
        CartService(db).add_item(1, product.id, sku.id, 2)

        order = orders.create_from_cart(1, address.id, "CARD")

        assert order["delivery_fee"] == Decimal("3000")
        assert order["final_amount"] == Decimal("27000")

    def test_empty_cart(self, db, orders, make_address):
        address = make_address(user_id=1)
        with pytest.raises(EmptyCart):
            orders.create_from_cart(1, address.id, "CARD")

    def test_someone_elses_address(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product()
        other = make_address(user_id=2)
        CartService(db).add_item(1, product.id, sku.id, 1)

        with pytest.raises(AddressNotFound):
            orders.create_from_cart(1, other.id, "CARD")

        # nothing moved
        assert len(CartService(db).get_cart(1)["items"]) == 1

    def test_unknown_payment_method(self, db, orders, make_address):
        address = make_address(user_id=1)
        with pytest.raises(ValidationError):
            orders.create_from_cart(1, address.id, "CASH")


class TestCoupons:
    @pytest.fixture()
    def cart_of_36000(self, db, make_sku_product, make_address):
        product, sku = make_sku_product(total=10, price="18000")
        CartService(db).add_item(1, product.id, sku.id, 2)
        return make_address(user_id=1)

    def test_coupon_not_granted(self, orders, cart_of_36000, make_coupon):
        coupon = make_coupon()
        with pytest.raises(CouponNotOwned):
            orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

    def test_grant_used_only_once(self, db, orders, cart_of_36000, make_sku_product, make_coupon, grant_coupon):
        coupon = make_coupon()
        grant_coupon(coupon, user_id=1)
        orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

        product, sku = make_sku_product(total=5, price="18000")
        CartService(db).add_item(1, product.id, sku.id, 1)
        with pytest.raises(CouponNotOwned):
            orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

    def test_expired(self, orders, cart_of_36000, make_coupon, grant_coupon):
        now = datetime.now(timezone.utc)
        coupon = make_coupon(valid_from=now - timedelta(days=10), valid_to=now - timedelta(days=1))
        grant_coupon(coupon, user_id=1)
        with pytest.raises(CouponExpired):
            orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

    def test_not_started(self, orders, cart_of_36000, make_coupon, grant_coupon):
        now = datetime.now(timezone.utc)
        coupon = make_coupon(valid_from=now + timedelta(days=1))
        grant_coupon(coupon, user_id=1)
        with pytest.raises(CouponNotStarted):
            orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

    def test_min_order_amount(self, db, orders, cart_of_36000, make_coupon, grant_coupon):
        coupon = make_coupon(min_order="50000")
        grant = grant_coupon(coupon, user_id=1)
        with pytest.raises(MinOrderAmountNotMet):
            orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)
        assert db.get(UserCouponModel, grant.id).used is False

    def test_percent_coupon_is_capped(self, orders, cart_of_36000, make_coupon, grant_coupon):
        coupon = make_coupon(amount="10", mode="percent", min_order=None, max_discount="3000")
        grant_coupon(coupon, user_id=1)

        order = orders.create_from_cart(1, cart_of_36000.id, "CARD", coupon_id=coupon.id)

        # 10% of 36000 is 3600, capped at 3000
        assert order["discount_amount"] == Decimal("3000")
        assert order["final_amount"] == Decimal("33000")


class TestCreateDirect:
    def test_direct_sku_order_reserves(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=10, price="18000")
        address = make_address(user_id=1)

        order = orders.create_direct(1, product.id, sku.id, 2, address.id, "CARD")

        assert order["total_amount"] == Decimal("36000")
        assert _sku(db, sku.id).reserved_stock == 2

    def test_direct_single_product(self, db, orders, make_product, make_address):
        product = make_product(stock=1, price="9000")
        address = make_address(user_id=1)

        order = orders.create_direct(1, product.id, None, 1, address.id, "PHONE")
        assert order["final_amount"] == Decimal("12000")

        with pytest.raises(InsufficientStock):
            orders.create_direct(1, product.id, None, 2, address.id, "CARD")

    def test_direct_beyond_stock(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=1)
        address = make_address(user_id=1)
        with pytest.raises(InsufficientStock):
            orders.create_direct(1, product.id, sku.id, 2, address.id, "CARD")
        assert _sku(db, sku.id).reserved_stock == 0


class TestQueries:
    def test_get_and_list(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=10)
        address = make_address(user_id=1)
        first = orders.create_direct(1, product.id, sku.id, 1, address.id, "CARD")
        second = orders.create_direct(1, product.id, sku.id, 1, address.id, "CARD")

        assert orders.get_order(first["id"], user_id=1)["order_number"] == first["order_number"]
        assert {o["id"] for o in orders.list_user_orders(1)} == {first["id"], second["id"]}
        assert orders.list_user_orders(2) == []

    def test_other_users_order(self, db, orders, make_sku_product, make_address):
        product, sku = make_sku_product(total=10)
        address = make_address(user_id=1)
        order = orders.create_direct(1, product.id, sku.id, 1, address.id, "CARD")

        with pytest.raises(PermissionError):
            orders.get_order(order["id"], user_id=2)

    def test_missing_order(self, orders):
        with pytest.raises(OrderNotFound):
            orders.get_order(31337)
