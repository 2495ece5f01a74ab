# marketcore/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from marketcore.domain.ids import EntityId, OptionalEntityId


# --- cart --------------------------------------------------------------------

class ItemIn(BaseModel):
    """Schema for adding a product (or one of its SKUs) to the cart."""

    product_id: EntityId
    sku_id: OptionalEntityId = None
    quantity: int = Field(1, gt=0, description="Quantity (must be > 0)")


class SelectionIn(BaseModel):
    sku_id: OptionalEntityId = None
    quantity: int = Field(1, gt=0)
    price: Decimal | None = Field(None, ge=0)


class ItemsIn(BaseModel):
    """Schema for adding several option combinations of one product."""

    product_id: EntityId
    selections: List[SelectionIn] = Field(..., min_length=1)


class QuantityIn(BaseModel):
    quantity: int = Field(..., gt=0, description="New quantity (must be > 0)")


class CartItemOut(BaseModel):
    cart_item_id: EntityId
    cart_id: EntityId
    product_id: EntityId
    sku_id: OptionalEntityId = None
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class CartLineOut(CartItemOut):
    product_name: str
    stock_available: bool
    current_price: Decimal
    price_changed: bool
    line_total: Decimal


class CartOut(BaseModel):
    """Schema for the cart (response)."""

    cart_id: OptionalEntityId = None
    user_id: EntityId
    items: List[CartLineOut]
    total: Decimal


class BatchLineOut(BaseModel):
    index: int
    ok: bool
    item: CartItemOut | None = None
    error: str | None = None


class ClearOut(BaseModel):
    removed: int


# --- orders ------------------------------------------------------------------

class OrderFromCartIn(BaseModel):
    """Schema for checking out the whole cart."""

    address_id: EntityId
    payment_method: str = Field(..., min_length=1)
    coupon_id: OptionalEntityId = None
    memo: str | None = Field(None, max_length=255)


class DirectOrderIn(OrderFromCartIn):
    """Schema for a "buy now" order of a single selection."""

    product_id: EntityId
    sku_id: OptionalEntityId = None
    quantity: int = Field(..., gt=0)


class OrderItemOut(BaseModel):
    id: EntityId
    product_id: EntityId
    sku_id: OptionalEntityId = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    product_name: str


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: EntityId
    order_number: str
    user_id: EntityId
    recipient: str
    phone: str
    postcode: str
    address1: str
    address2: str | None = None
    delivery_memo: str | None = None
    total_amount: Decimal
    discount_amount: Decimal
    delivery_fee: Decimal
    final_amount: Decimal
    refunded_amount: Decimal | None = None
    order_status: str
    payment_status: str
    payment_method: str
    payment_id: str | None = None
    paid_at: datetime | None = None
    status_reason: str | None = None
    used_coupon_id: OptionalEntityId = None
    created_at: datetime
    items: List[OrderItemOut]


# --- payments ----------------------------------------------------------------

class ApproveIn(BaseModel):
    payment_id: str = Field(..., min_length=1)
    paid_amount: Decimal = Field(..., ge=0)
    paid_at: datetime | None = None


class ReasonIn(BaseModel):
    reason: str | None = Field(None, max_length=255)


class RefundIn(ReasonIn):
    refund_amount: Decimal = Field(..., gt=0)


class AdvanceIn(BaseModel):
    status: str


class PaymentRequestIn(BaseModel):
    return_url: str = Field(..., min_length=1)
    payment_method: str | None = None
    noti_url: str | None = None


class NetCancelIn(BaseModel):
    transaction_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    order_number: str = Field(..., min_length=1)
    req_url: str = Field(..., min_length=1)


class WebhookIn(BaseModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class PaymentInfoOut(BaseModel):
    id: EntityId
    order_number: str
    total_amount: Decimal
    discount_amount: Decimal
    delivery_fee: Decimal
    final_amount: Decimal
    refunded_amount: Decimal | None = None
    payment_method: str
    payment_status: str
    payment_id: str | None = None
    paid_at: datetime | None = None
    created_at: datetime


class PaymentRequestOut(BaseModel):
    payment_url: str
    method: str
    charset: str
    params: Dict[str, str]
    order: Dict[str, Any]


class GatewayOutcomeOut(BaseModel):
    success: bool
    status: str | None = None
    message: str | None = None
    order: OrderOut | None = None


# --- stock / settlement ------------------------------------------------------

class ProductStockOut(BaseModel):
    product_id: EntityId
    total_stock: int
    available_stock: int


class LowStockSkuOut(BaseModel):
    id: EntityId
    product_id: EntityId
    total_stock: int
    reserved_stock: int
    available_stock: int

    model_config = ConfigDict(from_attributes=True)


class SettlementRowOut(BaseModel):
    order_id: EntityId
    order_number: str
    seller_id: EntityId
    product_id: EntityId
    sku_id: OptionalEntityId = None
    quantity: int
    total_price: Decimal
    final_amount: Decimal
    paid_at: datetime | None = None
    created_at: datetime
