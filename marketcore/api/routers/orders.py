# marketcore/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query

from marketcore.api.deps import get_order_service, to_http
from marketcore.domain.errors import CommerceError
from marketcore.domain.schemas import DirectOrderIn, OrderFromCartIn, OrderOut
from marketcore.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def create_from_cart(
    payload: OrderFromCartIn,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    """
    Checks out the whole cart. The cart's SKU reservations move to the order.
    """
    try:
        return svc.create_from_cart(
            user_id=user_id,
            address_id=payload.address_id,
            payment_method=payload.payment_method,
            coupon_id=payload.coupon_id,
            memo=payload.memo,
        )
    except CommerceError as e:
        raise to_http(e)


@router.post("/direct", response_model=OrderOut, status_code=201)
def create_direct(
    payload: DirectOrderIn,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.create_direct(
            user_id=user_id,
            product_id=payload.product_id,
            sku_id=payload.sku_id,
            quantity=payload.quantity,
            address_id=payload.address_id,
            payment_method=payload.payment_method,
            coupon_id=payload.coupon_id,
            memo=payload.memo,
        )
    except CommerceError as e:
        raise to_http(e)


@router.get("/", response_model=List[OrderOut])
def list_orders(
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    return svc.list_user_orders(user_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.get_order(order_id, user_id)
    except (CommerceError, PermissionError) as e:
        raise to_http(e)
