# marketcore/api/deps.py
from functools import lru_cache

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from marketcore.data.database import get_db
from marketcore.domain.errors import CommerceError
from marketcore.services.address_book import AddressClient, DbAddressBook
from marketcore.services.callback_guard import CallbackGuard
from marketcore.services.cart_service import CartService
from marketcore.services.order_numbers import RedisOrderNumberGenerator
from marketcore.services.order_service import OrderService
from marketcore.services.payment_gateway import PaymentGatewayClient
from marketcore.services.payment_service import PaymentService
from marketcore.services.settlement_feed import SettlementFeed
from marketcore.services.stock_ledger import StockLedger
from marketcore.utils.logging import get_logger
from marketcore.utils.settings import ADDRESS_SERVICE_URL

logger = get_logger(__name__)


# shared clients, one per process
@lru_cache
def get_order_numbers() -> RedisOrderNumberGenerator:
    return RedisOrderNumberGenerator()


@lru_cache
def get_callback_guard() -> CallbackGuard:
    return CallbackGuard()


@lru_cache
def get_gateway() -> PaymentGatewayClient:
    return PaymentGatewayClient()


def get_address_book(db: Session = Depends(get_db)):
    if ADDRESS_SERVICE_URL:
        return AddressClient()
    return DbAddressBook(db)


# services, one per request
def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_order_service(
    db: Session = Depends(get_db),
    order_numbers=Depends(get_order_numbers),
    address_book=Depends(get_address_book),
) -> OrderService:
    return OrderService(db, order_numbers=order_numbers, address_book=address_book)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayClient = Depends(get_gateway),
    callback_guard=Depends(get_callback_guard),
) -> PaymentService:
    return PaymentService(db, gateway=gateway, callback_guard=callback_guard)


def get_stock_ledger(db: Session = Depends(get_db)) -> StockLedger:
    return StockLedger(db)


def get_settlement_feed(db: Session = Depends(get_db)) -> SettlementFeed:
    return SettlementFeed(db)


def to_http(e: CommerceError | PermissionError) -> HTTPException:
    """Translate a service error into the response the routers answer with."""
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    if e.status_code >= 500:
        logger.error(f"{type(e).__name__}: {e}")
    return HTTPException(status_code=e.status_code, detail=str(e))
