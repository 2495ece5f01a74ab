# marketcore/domain/errors.py
"""
Domain errors raised by the ledger, cart, order and payment services.

Each class carries the HTTP status the routers answer with, so the API layer
only has to catch CommerceError.
"""


class CommerceError(Exception):
    status_code = 400


class ValidationError(CommerceError, ValueError):
    status_code = 422


# --- not found ---------------------------------------------------------------

class NotFound(CommerceError):
    status_code = 404


class ProductNotFound(NotFound):
    pass


class SkuNotFound(NotFound):
    pass


class CartItemNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass


class AddressNotFound(NotFound):
    pass


# --- stock / cart ------------------------------------------------------------

class InsufficientStock(CommerceError):
    status_code = 409


class InvalidSelection(CommerceError):
    pass


class EmptyCart(CommerceError):
    pass


# --- coupons -----------------------------------------------------------------

class CouponInvalid(CommerceError):
    pass


class CouponNotOwned(CouponInvalid):
    pass


class CouponExpired(CouponInvalid):
    pass


class CouponNotStarted(CouponInvalid):
    pass


class MinOrderAmountNotMet(CouponInvalid):
    pass


# --- payment state -----------------------------------------------------------

class PaymentStateError(CommerceError):
    status_code = 409


class AmountMismatch(PaymentStateError):
    status_code = 400

    def __init__(self, expected, paid):
        super().__init__(f"Paid amount {paid} does not match order amount {expected}")
        self.expected = expected
        self.paid = paid


class AlreadyCompleted(PaymentStateError):
    pass


class NotCompleted(PaymentStateError):
    pass


class NotCancellable(PaymentStateError):
    pass


class RefundExceedsPaid(PaymentStateError):
    status_code = 400


class InvalidTransition(PaymentStateError):
    pass


class DuplicateTransaction(PaymentStateError):
    pass


class TransactionMismatch(PaymentStateError):
    pass


# --- gateway -----------------------------------------------------------------

class GatewayError(CommerceError):
    status_code = 502


class GatewayTimeout(GatewayError):
    status_code = 504


class GatewayOriginRejected(GatewayError):
    status_code = 400


class UnsupportedWebhook(GatewayError):
    status_code = 400
