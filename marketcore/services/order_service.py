# marketcore/services/order_service.py
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from marketcore.data.database import transaction
from marketcore.data.models.order import OrderModel
from marketcore.data.models.order_item import OrderItemModel
from marketcore.domain.errors import (
    AddressNotFound,
    CouponNotOwned,
    EmptyCart,
    InsufficientStock,
    OrderNotFound,
    ValidationError,
)
from marketcore.domain.pricing import ZERO, check_coupon_window, coupon_discount, delivery_fee
from marketcore.domain.statuses import OrderStatus, PaymentMethod, PaymentStatus
from marketcore.repos.cart_repo import CartRepo
from marketcore.repos.catalog_repo import CatalogRepo
from marketcore.repos.coupon_repo import CouponRepo
from marketcore.repos.order_repo import OrderRepo
from marketcore.services.address_book import AddressSnapshot, DbAddressBook
from marketcore.services.catalog import current_price, resolve_selection
from marketcore.services.stock_ledger import StockLedger, target_for
from marketcore.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    sku_id: int | None
    quantity: int
    unit_price: Decimal
    product_name: str

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderService:
    """
    Turns a cart, or a single "buy now" selection, into an order snapshot.

    Prices, the shipping address and the coupon outcome are copied into the
    order at creation and never re-read. Stock is not consumed here: SKU
    reservations made for the cart (or for the direct purchase) stay in place
    and back the order until payment confirmation consumes them.
    """

    def __init__(self, db: Session, order_numbers, address_book=None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.coupons = CouponRepo(db)
        self.ledger = StockLedger(db)
        self.order_numbers = order_numbers
        self.address_book = address_book or DbAddressBook(db)

    # commands
    def create_from_cart(
        self,
        user_id: int,
        address_id: int,
        payment_method: str,
        coupon_id: int | None = None,
        memo: str | None = None,
    ) -> Dict[str, Any]:
        _require_payment_method(payment_method)

        with transaction(self.db):
            address = self._get_address(user_id, address_id)

            cart = self.carts.get_cart_by_user(user_id)
            items = self.carts.get_cart_items(cart.id) if cart else []
            if not items:
                raise EmptyCart("The cart is empty")

            lines = [
                OrderLine(
                    product_id=item.product_id,
                    sku_id=item.sku_id,
                    quantity=item.quantity,
                    unit_price=item.price,
                    product_name=item.product.name,
                )
                for item in items
            ]

            order = self._place_order(user_id, address, lines, payment_method, coupon_id, memo)

            # the lines' SKU reservations are handed over to the order, not released
            self.carts.delete_cart_items(cart.id)
            result = order_to_dict(order)

        logger.info(f"Order {result['order_number']} created from cart {cart.id} for user {user_id}")
        return result

    def create_direct(
        self,
        user_id: int,
        product_id: int,
        sku_id: int | None,
        quantity: int,
        address_id: int,
        payment_method: str,
        coupon_id: int | None = None,
        memo: str | None = None,
    ) -> Dict[str, Any]:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        _require_payment_method(payment_method)

        with transaction(self.db):
            address = self._get_address(user_id, address_id)
            product, sku = resolve_selection(self.catalog, product_id, sku_id)

            target = target_for(product.id, sku_id)
            if not self.ledger.check_available(target, quantity):
                logger.warning(f"Direct order of {quantity} x product {product_id} rejected, not enough stock")
                raise InsufficientStock("Not enough stock for the requested quantity")
            # same hold a cart line would have made
            self.ledger.reserve(target, quantity)

            line = OrderLine(
                product_id=product.id,
                sku_id=sku_id,
                quantity=quantity,
                unit_price=current_price(product, sku),
                product_name=product.name,
            )
            order = self._place_order(user_id, address, [line], payment_method, coupon_id, memo)
            result = order_to_dict(order)

        logger.info(f"Direct order {result['order_number']} created for user {user_id}")
        return result

    # queries
    def get_order(self, order_id: int, user_id: int | None = None) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFound(f"Order {order_id} not found")

        if user_id is not None and order.user_id != user_id:
            raise PermissionError("No access to this order")

        return order_to_dict(order)

    def list_user_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [order_to_dict(o) for o in self.repo.list_user_orders(user_id)]

    # helpers
    def _get_address(self, user_id: int, address_id: int) -> AddressSnapshot:
        address = self.address_book.get_address(address_id)
        # someone else's address is reported exactly like a missing one
        if not address or address.user_id != user_id:
            raise AddressNotFound(f"Address {address_id} not found")
        return address

    def _place_order(
        self,
        user_id: int,
        address: AddressSnapshot,
        lines: List[OrderLine],
        payment_method: str,
        coupon_id: int | None,
        memo: str | None,
    ) -> OrderModel:
        now = datetime.now(timezone.utc)
        total_amount = sum((line.total_price for line in lines), Decimal("0.00"))

        grant = None
        discount_amount = ZERO
        if coupon_id is not None:
            grant = self.coupons.find_unused_grant(user_id, coupon_id)
            if not grant:
                raise CouponNotOwned(f"Coupon {coupon_id} is not available to this user")
            check_coupon_window(grant.coupon, now)
            discount_amount = coupon_discount(grant.coupon, total_amount)

        fee = delivery_fee(total_amount)
        final_amount = total_amount - discount_amount + fee

        order = OrderModel(
            order_number=self.order_numbers.next_number(now),
            user_id=user_id,
            recipient=address.recipient,
            phone=address.phone,
            postcode=address.postcode,
            address1=address.address1,
            address2=address.address2,
            delivery_memo=memo,
            total_amount=total_amount,
            discount_amount=discount_amount,
            delivery_fee=fee,
            final_amount=final_amount,
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            used_coupon_id=coupon_id if grant is not None else None,
            user_coupon_id=grant.id if grant is not None else None,
            items=[
                OrderItemModel(
                    product_id=line.product_id,
                    sku_id=line.sku_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                    product_name=line.product_name,
                )
                for line in lines
            ],
        )
        self.repo.create_order(order)

        if grant is not None and self.coupons.mark_used(grant.id, now) == 0:
            # spent by a concurrent order between the lookup and now
            raise CouponNotOwned(f"Coupon {coupon_id} has already been used")

        return order


def _require_payment_method(payment_method: str) -> None:
    try:
        PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {payment_method}") from None


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "recipient": order.recipient,
        "phone": order.phone,
        "postcode": order.postcode,
        "address1": order.address1,
        "address2": order.address2,
        "delivery_memo": order.delivery_memo,
        "total_amount": order.total_amount,
        "discount_amount": order.discount_amount,
        "delivery_fee": order.delivery_fee,
        "final_amount": order.final_amount,
        "refunded_amount": order.refunded_amount,
        "order_status": order.order_status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_id": order.payment_id,
        "paid_at": order.paid_at,
        "status_reason": order.status_reason,
        "used_coupon_id": order.used_coupon_id,
        "created_at": order.created_at,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "sku_id": i.sku_id,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
                "total_price": i.total_price,
                "product_name": i.product_name,
            }
            for i in order.items
        ],
    }
