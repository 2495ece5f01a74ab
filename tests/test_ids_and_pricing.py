from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from marketcore.domain.errors import MinOrderAmountNotMet, ValidationError
from marketcore.domain.ids import EntityId, OptionalEntityId, parse_id
from marketcore.domain.pricing import coupon_discount, delivery_fee
from marketcore.services.order_numbers import format_order_number


class Ref(BaseModel):
    id: EntityId
    parent_id: OptionalEntityId = None


class TestIds:
    def test_large_ids_round_trip_as_strings(self):
        big = 2**63 - 1
        ref = Ref(id=str(big))
        assert ref.id == big
        assert ref.model_dump(mode="json") == {"id": str(big), "parent_id": None}

    @pytest.mark.parametrize("raw", ["0", "-5", "12a", "", " 7", "１２", True, 0, 1.0])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationError):
            parse_id(raw)

    def test_schema_rejects_malformed(self):
        with pytest.raises(PydanticValidationError):
            Ref(id="abc")


class TestPricing:
    def test_delivery_fee_threshold(self):
        assert delivery_fee(Decimal("29999")) == Decimal("3000")
        assert delivery_fee(Decimal("30000")) == Decimal("0")

    def test_flat_discount_never_exceeds_total(self):
        coupon = SimpleNamespace(discount_mode="amount", discount_amount=Decimal("5000"),
                                 discount_max=None, min_order_amount=None)
        assert coupon_discount(coupon, Decimal("3000")) == Decimal("3000")

    def test_percent_discount_is_floored(self):
        coupon = SimpleNamespace(discount_mode="percent", discount_amount=Decimal("15"),
                                 discount_max=None, min_order_amount=None)
        assert coupon_discount(coupon, Decimal("9999")) == Decimal("1499")

    def test_min_order_amount(self):
        coupon = SimpleNamespace(discount_mode="amount", discount_amount=Decimal("2000"),
                                 discount_max=None, min_order_amount=Decimal("10000"))
        with pytest.raises(MinOrderAmountNotMet):
            coupon_discount(coupon, Decimal("9999"))


def test_order_number_format():
    day = datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert format_order_number(day, 42) == "ORD-20261019-000042"
