import os

# must be set before marketcore.utils.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADDRESS_SERVICE_URL"] = ""

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from marketcore.data.database import Base, build_engine  # noqa: E402
from marketcore.data.models import (  # noqa: E402
    AddressModel,
    CouponModel,
    ProductModel,
    ProductSkuModel,
    UserCouponModel,
)
from marketcore.services.order_numbers import format_order_number  # noqa: E402


class FakeOrderNumbers:
    """In-process stand-in for the redis day counter."""

    def __init__(self):
        self.issued = []

    def next_number(self, now=None):
        now = now or datetime.now(timezone.utc)
        number = format_order_number(now, len(self.issued) + 1)
        self.issued.append(number)
        return number


class FakeCallbackGuard:
    def __init__(self):
        self.claims = {}

    def claim(self, transaction_id, order_number):
        if transaction_id in self.claims:
            return False
        self.claims[transaction_id] = order_number
        return True

    def release(self, transaction_id, order_number):
        if self.claims.get(transaction_id) == order_number:
            del self.claims[transaction_id]
            return True
        return False


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=True)()
    yield session
    session.close()


@pytest.fixture()
def order_numbers():
    return FakeOrderNumbers()


@pytest.fixture()
def callback_guard():
    return FakeCallbackGuard()


# --- factories ---------------------------------------------------------------

@pytest.fixture()
def make_product(db):
    def _make(name="Linen shirt", stock=10, price="10000", seller_id=1):
        product = ProductModel(
            seller_id=seller_id,
            name=name,
            is_single_product=True,
            stock_quantity=stock,
            original_price=Decimal(price),
            sale_price=Decimal(price),
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture()
def make_sku_product(db):
    """Option product with one SKU; returns (product, sku)."""

    def _make(name="Wool coat", total=10, reserved=0, price="18000", seller_id=1, active=True):
        product = ProductModel(
            seller_id=seller_id,
            name=name,
            is_single_product=False,
            stock_quantity=0,
            original_price=Decimal(price),
            sale_price=Decimal(price),
        )
        db.add(product)
        db.flush()
        sku = ProductSkuModel(
            product_id=product.id,
            total_stock=total,
            reserved_stock=reserved,
            is_active=active,
            sale_price=Decimal(price),
        )
        db.add(sku)
        db.commit()
        return product, sku

    return _make


@pytest.fixture()
def make_address(db):
    def _make(user_id=1, recipient="Kim Minji"):
        address = AddressModel(
            user_id=user_id,
            recipient=recipient,
            phone="010-1234-5678",
            postcode="04524",
            address1="Sejong-daero 110",
            address2="3F",
        )
        db.add(address)
        db.commit()
        return address

    return _make


@pytest.fixture()
def make_coupon(db):
    def _make(
        amount="2000",
        mode="amount",
        min_order="10000",
        max_discount=None,
        valid_from=None,
        valid_to=None,
    ):
        now = datetime.now(timezone.utc)
        coupon = CouponModel(
            name="Welcome coupon",
            discount_mode=mode,
            discount_amount=Decimal(amount),
            discount_max=Decimal(max_discount) if max_discount is not None else None,
            min_order_amount=Decimal(min_order) if min_order is not None else None,
            valid_from=valid_from or now - timedelta(days=1),
            valid_to=valid_to or now + timedelta(days=30),
        )
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture()
def grant_coupon(db):
    def _grant(coupon, user_id=1):
        grant = UserCouponModel(user_id=user_id, coupon_id=coupon.id, used=False)
        db.add(grant)
        db.commit()
        return grant

    return _grant
