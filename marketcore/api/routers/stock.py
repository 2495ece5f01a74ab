# marketcore/api/routers/stock.py
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query

from marketcore.api.deps import get_settlement_feed, get_stock_ledger, to_http
from marketcore.domain.errors import CommerceError
from marketcore.domain.schemas import LowStockSkuOut, ProductStockOut, SettlementRowOut
from marketcore.services.settlement_feed import SettlementFeed
from marketcore.services.stock_ledger import StockLedger

router = APIRouter(tags=["stock"])


@router.get("/products/{product_id}/stock", response_model=ProductStockOut)
def product_stock(product_id: int, ledger: StockLedger = Depends(get_stock_ledger)):
    try:
        return {"product_id": product_id, **ledger.product_stock(product_id)}
    except CommerceError as e:
        raise to_http(e)


@router.get("/stock/low", response_model=List[LowStockSkuOut])
def low_stock(
    threshold: int = Query(5, ge=0),
    product_id: int | None = Query(None, gt=0),
    ledger: StockLedger = Depends(get_stock_ledger),
):
    return ledger.low_stock_skus(threshold, product_id)


@router.get("/settlement/completed-orders", response_model=List[SettlementRowOut])
def completed_orders(
    since: datetime | None = None,
    until: datetime | None = None,
    feed: SettlementFeed = Depends(get_settlement_feed),
):
    try:
        return feed.completed_orders(since, until)
    except CommerceError as e:
        raise to_http(e)
