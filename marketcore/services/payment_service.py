# marketcore/services/payment_service.py
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from sqlalchemy.orm import Session

from marketcore.data.database import transaction
from marketcore.data.models.order import OrderModel
from marketcore.domain.errors import (
    AlreadyCompleted,
    AmountMismatch,
    DuplicateTransaction,
    GatewayOriginRejected,
    InvalidTransition,
    NotCancellable,
    NotCompleted,
    OrderNotFound,
    RefundExceedsPaid,
    TransactionMismatch,
    UnsupportedWebhook,
    ValidationError,
)
from marketcore.domain.ids import parse_id
from marketcore.domain.statuses import (
    FULFILLMENT_FLOW,
    NOT_CANCELLABLE,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from marketcore.repos.coupon_repo import CouponRepo
from marketcore.repos.order_repo import OrderRepo
from marketcore.services.order_service import order_to_dict
from marketcore.services.payment_gateway import PaymentGatewayClient
from marketcore.services.stock_ledger import StockLedger, target_for
from marketcore.utils.logging import get_logger
from marketcore.utils.settings import AMOUNT_TOLERANCE

logger = get_logger(__name__)

PENDING = PaymentStatus.PENDING.value
COMPLETED = PaymentStatus.COMPLETED.value


class PaymentService:
    """
    Order/payment state machine.

    order:   PENDING -> CONFIRMED -> PREPARING -> SHIPPED -> DELIVERED,
             CANCELLED / REFUNDED from any non-terminal state
    payment: PENDING -> COMPLETED | FAILED, COMPLETED -> REFUNDED | CANCELLED

    Every transition is a compare-and-set on the order row, applied in the
    same transaction as its stock side effect (consume on confirmation,
    release for a pending order that dies, restore for a paid one).
    """

    def __init__(self, db: Session, gateway: PaymentGatewayClient | None = None, callback_guard=None):
        self.db = db
        self.repo = OrderRepo(db)
        self.coupons = CouponRepo(db)
        self.ledger = StockLedger(db)
        self.gateway = gateway or PaymentGatewayClient()
        self.callback_guard = callback_guard

    # commands
    def approve(
        self,
        order_id: int,
        payment_id: str,
        paid_amount: Any,
        paid_at: datetime | None = None,
    ) -> Dict[str, Any]:
        amount = to_amount(paid_amount)

        with transaction(self.db):
            order = self._get_order(order_id)
            self._confirm(order, payment_id, amount, paid_at)
            result = order_to_dict(order)

        logger.info(f"Payment {payment_id} approved for order {result['order_number']}")
        return result

    def fail(self, order_id: int, reason: str | None = None) -> Dict[str, Any]:
        with transaction(self.db):
            order = self._get_order(order_id)
            self._fail(order, reason)
            result = order_to_dict(order)

        logger.info(f"Payment failed for order {result['order_number']}: {reason}")
        return result

    def refund(self, order_id: int, refund_amount: Any, reason: str | None = None) -> Dict[str, Any]:
        amount = to_amount(refund_amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be positive")

        with transaction(self.db):
            order = self._get_order(order_id)

            if order.payment_status != COMPLETED:
                raise NotCompleted(f"Order {order.order_number} has no completed payment to refund")
            if amount > order.final_amount:
                raise RefundExceedsPaid(f"Refund {amount} exceeds paid amount {order.final_amount}")

            moved = self.repo.compare_and_set(
                order.id,
                expected={"payment_status": COMPLETED},
                values={
                    "payment_status": PaymentStatus.REFUNDED.value,
                    "order_status": OrderStatus.REFUNDED.value,
                    "refunded_amount": amount,
                    "status_reason": reason,
                },
            )
            if moved == 0:
                raise NotCompleted(f"Order {order.order_number} changed while refunding")

            self._restore_items(order)
            if order.user_coupon_id is not None:
                self.coupons.reset(order.user_coupon_id)
                logger.info(f"Coupon grant {order.user_coupon_id} returned to user {order.user_id}")

            result = order_to_dict(order)

        logger.info(f"Order {result['order_number']} refunded {amount}")
        return result

    def cancel(self, order_id: int, reason: str | None = None) -> Dict[str, Any]:
        with transaction(self.db):
            order = self._get_order(order_id)
            self._cancel(order, reason)
            result = order_to_dict(order)

        logger.info(f"Order {result['order_number']} cancelled: {reason}")
        return result

    def advance(self, order_id: int, status: str) -> Dict[str, Any]:
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown order status: {status}") from None

        with transaction(self.db):
            order = self._get_order(order_id)
            current = OrderStatus(order.order_status)

            if FULFILLMENT_FLOW.get(current) != target:
                raise InvalidTransition(f"Order {order.order_number} cannot move from {current.value} to {target.value}")

            moved = self.repo.compare_and_set(
                order.id,
                expected={"order_status": current.value, "payment_status": COMPLETED},
                values={"order_status": target.value},
            )
            if moved == 0:
                raise InvalidTransition(f"Order {order.order_number} changed concurrently")
            result = order_to_dict(order)

        logger.info(f"Order {result['order_number']} {current.value} -> {target.value}")
        return result

    def request_payment(
        self,
        order_id: int,
        return_url: str,
        payment_method: str | None = None,
        noti_url: str | None = None,
    ) -> Dict[str, Any]:
        with transaction(self.db):
            order = self._get_order(order_id)
            if order.payment_status != PENDING:
                raise InvalidTransition(f"Order {order.order_number} is not awaiting payment")

            if payment_method and payment_method != order.payment_method:
                try:
                    PaymentMethod(payment_method)
                except ValueError:
                    raise ValidationError(f"Unsupported payment method: {payment_method}") from None
                order.payment_method = payment_method

            snapshot = order_to_dict(order)

        params = self.gateway.create_payment_request(
            snapshot,
            return_url=return_url,
            payment_method=snapshot["payment_method"],
            noti_url=noti_url,
        )
        return {
            "payment_url": self.gateway.payment_url,
            "method": "POST",
            "charset": "EUC-KR",
            "params": params,
            "order": {
                "order_number": snapshot["order_number"],
                "final_amount": snapshot["final_amount"],
                "goods_name": params["P_GOODS"],
            },
        }

    def handle_gateway_callback(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Result the gateway posts back after the payment window closes.

        The payload is untrusted: its origin is checked before anything in it
        is read, and the paid amount is compared against our own order total.
        """
        idc_name = payload.get("idc_name")
        req_url = payload.get("P_REQ_URL")
        if not self.gateway.validate_origin(idc_name, req_url):
            logger.warning(f"Rejected gateway callback from idc={idc_name!r} url={req_url!r}")
            raise GatewayOriginRejected("Callback origin is not an allowed gateway endpoint")

        result = self.gateway.parse_callback(payload)
        if not result.order_number:
            raise ValidationError("Callback carries no order number")

        if not result.success:
            with transaction(self.db):
                order = self._get_order_by_number(result.order_number)
                self._fail(order, result.message or f"Gateway status {result.status}")
                snapshot = order_to_dict(order)
            logger.info(f"Gateway reported failure {result.status} for order {result.order_number}")
            return {"success": False, "order": snapshot, "status": result.status, "message": result.message}

        if result.amount is None or not result.transaction_id:
            raise ValidationError("Successful callback without amount or transaction id")

        claimed = False
        try:
            with transaction(self.db):
                order = self._get_order_by_number(result.order_number)

                if self.callback_guard is not None:
                    if not self.callback_guard.claim(result.transaction_id, result.order_number):
                        raise DuplicateTransaction(f"Transaction {result.transaction_id} is already being applied")
                    claimed = True

                self._confirm(order, result.transaction_id, result.amount, result.auth_timestamp)
                snapshot = order_to_dict(order)
        except Exception:
            if claimed:
                self.callback_guard.release(result.transaction_id, result.order_number)
            raise

        logger.info(f"Gateway transaction {result.transaction_id} confirmed order {result.order_number}")
        return {"success": True, "order": snapshot, "status": result.status, "message": result.message}

    def net_cancel(self, transaction_id: str, amount: Any, order_number: str, req_url: str) -> Dict[str, Any]:
        """
        Ask the gateway to void an approval we could not apply, then cancel
        the order with the usual stock handling.
        """
        amount = to_amount(amount)
        if not self.gateway.is_gateway_url(req_url):
            logger.warning(f"Network cancel for order {order_number} refused, {req_url!r} is not a gateway endpoint")
            raise GatewayOriginRejected("Network cancel target is not an allowed gateway endpoint")

        # checked before the gateway call, no transaction is held across it
        with transaction(self.db):
            self._check_cancel_transaction(self._get_order_by_number(order_number), transaction_id)

        cancel = self.gateway.request_network_cancel(transaction_id, amount, order_number, req_url)

        if not cancel.success:
            logger.warning(f"Network cancel for order {order_number} refused: {cancel.status} {cancel.message}")
            return {"success": False, "status": cancel.status, "message": cancel.message, "order": None}

        with transaction(self.db):
            order = self._get_order_by_number(order_number)
            # the order may have been paid while the gateway call was in flight
            self._check_cancel_transaction(order, transaction_id)
            if OrderStatus(order.order_status) not in NOT_CANCELLABLE:
                self._cancel(order, "Network cancel")
            snapshot = order_to_dict(order)

        logger.info(f"Network cancel for order {order_number} completed, tid {cancel.transaction_id}")
        return {"success": True, "status": cancel.status, "message": cancel.message, "order": snapshot}

    def webhook(self, event_type: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        if event_type == "payment.completed":
            return self.approve(
                order_id=parse_id(_field(data, "order_id", "orderId")),
                payment_id=str(_field(data, "payment_id", "paymentId")),
                paid_amount=_field(data, "paid_amount", "paidAmount"),
            )

        if event_type == "payment.failed":
            return self.fail(
                order_id=parse_id(_field(data, "order_id", "orderId")),
                reason=data.get("failure_reason") or data.get("failureReason"),
            )

        logger.warning(f"Unsupported webhook type {event_type!r}")
        raise UnsupportedWebhook(f"Unsupported webhook type: {event_type}")

    # queries
    def get_payment_info(self, order_id: int) -> Dict[str, Any]:
        order = self._get_order(order_id)
        return {
            "id": order.id,
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "discount_amount": order.discount_amount,
            "delivery_fee": order.delivery_fee,
            "final_amount": order.final_amount,
            "refunded_amount": order.refunded_amount,
            "payment_method": order.payment_method,
            "payment_status": order.payment_status,
            "payment_id": order.payment_id,
            "paid_at": order.paid_at,
            "created_at": order.created_at,
        }

    # transitions on a loaded order, inside the caller's transaction
    def _confirm(self, order: OrderModel, payment_id: str, paid_amount: Decimal, paid_at: datetime | None) -> None:
        if not payment_id:
            raise ValidationError("Payment id is required")

        if order.payment_status == COMPLETED:
            raise AlreadyCompleted(f"Order {order.order_number} is already paid")
        if order.payment_status != PENDING or order.order_status != OrderStatus.PENDING.value:
            raise InvalidTransition(f"Order {order.order_number} is {order.order_status}/{order.payment_status}")

        if abs(order.final_amount - paid_amount) > AMOUNT_TOLERANCE:
            logger.warning(
                f"Amount mismatch for order {order.order_number}: expected {order.final_amount}, paid {paid_amount}"
            )
            raise AmountMismatch(order.final_amount, paid_amount)

        other = self.repo.get_order_by_payment_id(payment_id)
        if other is not None and other.id != order.id:
            raise DuplicateTransaction(f"Payment {payment_id} already settled order {other.order_number}")

        moved = self.repo.compare_and_set(
            order.id,
            expected={"payment_status": PENDING, "order_status": OrderStatus.PENDING.value},
            values={
                "payment_status": COMPLETED,
                "order_status": OrderStatus.CONFIRMED.value,
                "payment_id": payment_id,
                "paid_at": paid_at or datetime.now(timezone.utc),
            },
        )
        if moved == 0:
            # lost the race against a concurrent approval of the same order
            raise AlreadyCompleted(f"Order {order.order_number} is already paid")

        # the real sale: reservations held by the order become consumption
        for item in order.items:
            self.ledger.consume(target_for(item.product_id, item.sku_id), item.quantity)

    def _fail(self, order: OrderModel, reason: str | None) -> None:
        if order.payment_status != PENDING:
            raise InvalidTransition(f"Order {order.order_number} payment is already {order.payment_status}")

        moved = self.repo.compare_and_set(
            order.id,
            expected={"payment_status": PENDING},
            values={
                "payment_status": PaymentStatus.FAILED.value,
                "order_status": OrderStatus.CANCELLED.value,
                "status_reason": reason,
            },
        )
        if moved == 0:
            raise InvalidTransition(f"Order {order.order_number} changed concurrently")

        # nothing was consumed; only the pending order's holds go back
        self._release_items(order)

    def _cancel(self, order: OrderModel, reason: str | None) -> None:
        status = OrderStatus(order.order_status)
        if status in NOT_CANCELLABLE:
            raise NotCancellable(f"Order {order.order_number} is {status.value} and cannot be cancelled")

        payment_status = order.payment_status
        moved = self.repo.compare_and_set(
            order.id,
            expected={"order_status": status.value, "payment_status": payment_status},
            values={
                "order_status": OrderStatus.CANCELLED.value,
                "payment_status": PaymentStatus.CANCELLED.value,
                "status_reason": reason,
            },
        )
        if moved == 0:
            raise NotCancellable(f"Order {order.order_number} changed concurrently")

        if payment_status == COMPLETED:
            self._restore_items(order)
        elif payment_status == PENDING:
            self._release_items(order)

    def _check_cancel_transaction(self, order: OrderModel, transaction_id: str) -> None:
        # a recorded payment may only be voided by its own gateway transaction
        if order.payment_id is not None and order.payment_id != transaction_id:
            logger.warning(f"Network cancel for order {order.order_number} names foreign transaction {transaction_id}")
            raise TransactionMismatch(f"Transaction {transaction_id} did not pay order {order.order_number}")

    def _release_items(self, order: OrderModel) -> None:
        # single products hold nothing, release is a no-op for them
        for item in order.items:
            self.ledger.release(target_for(item.product_id, item.sku_id), item.quantity)

    def _restore_items(self, order: OrderModel) -> None:
        for item in order.items:
            self.ledger.restore(target_for(item.product_id, item.sku_id), item.quantity)

    def _get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    def _get_order_by_number(self, order_number: str) -> OrderModel:
        order = self.repo.get_order_by_number(order_number)
        if not order:
            raise OrderNotFound(f"Order {order_number} not found")
        return order


def to_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount


def _field(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    raise ValidationError(f"Missing field: {names[0]}")
