# marketcore/api/routers/carts.py
from typing import List

from fastapi import APIRouter, Depends, Query, Response

from marketcore.api.deps import get_cart_service, to_http
from marketcore.domain.errors import CommerceError
from marketcore.domain.schemas import (
    BatchLineOut,
    CartItemOut,
    CartOut,
    ClearOut,
    ItemIn,
    ItemsIn,
    QuantityIn,
)
from marketcore.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(user_id)


@router.post("/items", response_model=CartItemOut, status_code=201)
def add_item(
    payload: ItemIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(
            user_id=user_id,
            product_id=payload.product_id,
            sku_id=payload.sku_id,
            quantity=payload.quantity,
        )
    except CommerceError as e:
        raise to_http(e)


@router.post("/items/batch", response_model=List[BatchLineOut])
def add_items(
    payload: ItemsIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_items(
            user_id=user_id,
            product_id=payload.product_id,
            selections=[s.model_dump() for s in payload.selections],
        )
    except CommerceError as e:
        raise to_http(e)


@router.patch("/items/{cart_item_id}", response_model=CartItemOut)
def update_quantity(
    cart_item_id: int,
    payload: QuantityIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_quantity(cart_item_id, payload.quantity, user_id=user_id)
    except (CommerceError, PermissionError) as e:
        raise to_http(e)


@router.delete("/items/{cart_item_id}", status_code=204)
def remove_item(
    cart_item_id: int,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        svc.remove_item(cart_item_id, user_id=user_id)
    except (CommerceError, PermissionError) as e:
        raise to_http(e)
    return Response(status_code=204)


@router.delete("/", response_model=ClearOut)
def clear_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    # a shopper emptying the cart gives the held stock back
    return {"removed": svc.clear(user_id, release_reservations=True)}
