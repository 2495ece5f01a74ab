# marketcore/domain/pricing.py
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal

from marketcore.domain.errors import CouponExpired, CouponNotStarted, MinOrderAmountNotMet
from marketcore.domain.statuses import DiscountMode
from marketcore.utils.settings import DELIVERY_FEE, FREE_DELIVERY_THRESHOLD

ZERO = Decimal("0")


def as_utc(value: datetime | None) -> datetime | None:
    # sqlite hands timestamps back without tzinfo
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def delivery_fee(total_amount: Decimal) -> Decimal:
    if total_amount >= FREE_DELIVERY_THRESHOLD:
        return ZERO
    return DELIVERY_FEE


def check_coupon_window(coupon, now: datetime) -> None:
    valid_from = as_utc(coupon.valid_from)
    valid_to = as_utc(coupon.valid_to)

    if valid_from is not None and now < valid_from:
        raise CouponNotStarted(f"Coupon {coupon.id} is not valid yet")
    if valid_to is not None and now > valid_to:
        raise CouponExpired(f"Coupon {coupon.id} has expired")


def coupon_discount(coupon, total_amount: Decimal) -> Decimal:
    """
    Discount granted by `coupon` on an order of `total_amount`.

    Flat coupons take `discount_amount` off. Percent coupons take
    floor(total * pct / 100), capped at `discount_max`. The result never
    exceeds the order total.
    """
    min_amount = coupon.min_order_amount
    if min_amount is not None and total_amount < min_amount:
        raise MinOrderAmountNotMet(f"Order total must be at least {min_amount}")

    if coupon.discount_mode == DiscountMode.PERCENT.value:
        discount = (total_amount * Decimal(coupon.discount_amount) / 100).to_integral_value(rounding=ROUND_FLOOR)
        if coupon.discount_max is not None and discount > coupon.discount_max:
            discount = Decimal(coupon.discount_max)
    else:
        discount = Decimal(coupon.discount_amount)

    return min(discount, total_amount)
