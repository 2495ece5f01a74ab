# marketcore/services/stock_ledger.py
from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from marketcore.domain.errors import InsufficientStock, ProductNotFound, SkuNotFound, ValidationError
from marketcore.repos.stock_repo import StockRepo
from marketcore.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SingleTarget:
    """Stock kept on the product row itself, no reservations."""

    product_id: int


@dataclass(frozen=True)
class SkuTarget:
    """Stock kept on a SKU row, with a reserved counter."""

    sku_id: int


StockTarget = Union[SingleTarget, SkuTarget]


def target_for(product_id: int, sku_id: int | None) -> StockTarget:
    if sku_id is not None:
        return SkuTarget(sku_id)
    return SingleTarget(product_id)


class StockLedger:
    """
    The only writer of stock counters.

    Every method runs inside the caller's transaction and never commits,
    retries or swallows a failure: a raised error is meant to abort the
    enclosing unit of work.
    """

    def __init__(self, db: Session):
        self.repo = StockRepo(db)

    # queries
    def check_available(self, target: StockTarget, quantity: int, held: int = 0) -> bool:
        """
        True if `quantity` units can be held for the target.

        `held` is what the caller already reserves on the SKU (an existing cart
        line), so the line is not counted against itself.
        """
        _require_positive(quantity)

        if isinstance(target, SkuTarget):
            sku = self.repo.get_sku(target.sku_id)
            if not sku or not sku.is_active:
                return False
            return sku.total_stock - sku.reserved_stock + held >= quantity

        product = self.repo.get_product(target.product_id)
        if not product:
            return False
        return product.stock_quantity >= quantity

    def product_stock(self, product_id: int) -> dict:
        product = self.repo.get_product(product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found")

        if product.is_single_product:
            return {"total_stock": product.stock_quantity, "available_stock": product.stock_quantity}

        total, reserved = self.repo.sku_totals(product_id)
        return {"total_stock": total, "available_stock": total - reserved}

    def low_stock_skus(self, threshold: int, product_id: int | None = None):
        return self.repo.skus_at_or_below(threshold, product_id)

    # mutations
    def reserve(self, target: StockTarget, quantity: int) -> None:
        _require_positive(quantity)
        if isinstance(target, SingleTarget):
            return

        if self.repo.reserve_sku(target.sku_id, quantity) == 0:
            self._raise_for_sku(target.sku_id, quantity, "reserve")

        logger.info(f"Reserved {quantity} of sku {target.sku_id}")

    def release(self, target: StockTarget, quantity: int) -> None:
        _require_positive(quantity)
        if isinstance(target, SingleTarget):
            return

        if self.repo.release_sku(target.sku_id, quantity) == 0:
            raise SkuNotFound(f"SKU {target.sku_id} not found")

        logger.info(f"Released {quantity} of sku {target.sku_id}")

    def consume(self, target: StockTarget, quantity: int) -> None:
        _require_positive(quantity)

        if isinstance(target, SkuTarget):
            if self.repo.consume_sku(target.sku_id, quantity) == 0:
                self._raise_for_sku(target.sku_id, quantity, "consume")
            logger.info(f"Consumed {quantity} of sku {target.sku_id}")
            return

        if self.repo.consume_product(target.product_id, quantity) == 0:
            if not self.repo.get_product(target.product_id):
                raise ProductNotFound(f"Product {target.product_id} not found")
            logger.warning(f"Consume of {quantity} rejected for product {target.product_id}")
            raise InsufficientStock(f"Not enough stock for product {target.product_id}")
        logger.info(f"Consumed {quantity} of product {target.product_id}")

    def restore(self, target: StockTarget, quantity: int) -> None:
        _require_positive(quantity)

        if isinstance(target, SkuTarget):
            if self.repo.restore_sku(target.sku_id, quantity) == 0:
                raise SkuNotFound(f"SKU {target.sku_id} not found")
            logger.info(f"Restored {quantity} of sku {target.sku_id}")
            return

        if self.repo.restore_product(target.product_id, quantity) == 0:
            raise ProductNotFound(f"Product {target.product_id} not found")
        logger.info(f"Restored {quantity} of product {target.product_id}")

    def _raise_for_sku(self, sku_id: int, quantity: int, action: str):
        if not self.repo.get_sku(sku_id):
            raise SkuNotFound(f"SKU {sku_id} not found")
        logger.warning(f"{action} of {quantity} rejected for sku {sku_id}")
        raise InsufficientStock(f"Not enough stock for SKU {sku_id}")


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
