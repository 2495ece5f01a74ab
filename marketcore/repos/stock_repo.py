# marketcore/repos/stock_repo.py
from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from marketcore.data.models.product import ProductModel, ProductSkuModel


class StockRepo:
    """
    Counter mutations as single conditional UPDATE statements.

    The availability predicate lives in the WHERE clause, so the check and the
    write are one statement: a concurrent writer either sees the committed
    counters or waits on the row lock, and a lost race shows up as rowcount 0.
    Nothing here commits.
    """

    def __init__(self, db: Session):
        self.db = db

    # reads
    def get_sku(self, sku_id: int) -> ProductSkuModel | None:
        return self.db.execute(
            select(ProductSkuModel)
            .where(ProductSkuModel.id == sku_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def sku_totals(self, product_id: int) -> tuple[int, int]:
        total, reserved = self.db.execute(
            select(
                func.coalesce(func.sum(ProductSkuModel.total_stock), 0),
                func.coalesce(func.sum(ProductSkuModel.reserved_stock), 0),
            ).where(
                ProductSkuModel.product_id == product_id,
                ProductSkuModel.is_active.is_(True),
            )
        ).one()
        return int(total), int(reserved)

    def skus_at_or_below(self, threshold: int, product_id: int | None = None) -> list[ProductSkuModel]:
        stmt = select(ProductSkuModel).where(
            ProductSkuModel.is_active.is_(True),
            ProductSkuModel.total_stock <= threshold,
        )
        if product_id is not None:
            stmt = stmt.where(ProductSkuModel.product_id == product_id)
        return list(self.db.execute(stmt.order_by(ProductSkuModel.id)).scalars().all())

    # sku counters
    def reserve_sku(self, sku_id: int, quantity: int) -> int:
        stmt = (
            update(ProductSkuModel)
            .where(
                ProductSkuModel.id == sku_id,
                ProductSkuModel.is_active.is_(True),
                ProductSkuModel.total_stock - ProductSkuModel.reserved_stock >= quantity,
            )
            .values(reserved_stock=ProductSkuModel.reserved_stock + quantity)
        )
        return self._execute(stmt, ProductSkuModel, sku_id)

    def release_sku(self, sku_id: int, quantity: int) -> int:
        # clamped to zero in the same statement
        stmt = (
            update(ProductSkuModel)
            .where(ProductSkuModel.id == sku_id)
            .values(
                reserved_stock=case(
                    (ProductSkuModel.reserved_stock >= quantity, ProductSkuModel.reserved_stock - quantity),
                    else_=0,
                )
            )
        )
        return self._execute(stmt, ProductSkuModel, sku_id)

    def consume_sku(self, sku_id: int, quantity: int) -> int:
        # both SET expressions read the pre-update row
        stmt = (
            update(ProductSkuModel)
            .where(
                ProductSkuModel.id == sku_id,
                ProductSkuModel.total_stock >= quantity,
            )
            .values(
                total_stock=ProductSkuModel.total_stock - quantity,
                reserved_stock=case(
                    (ProductSkuModel.reserved_stock >= quantity, ProductSkuModel.reserved_stock - quantity),
                    else_=0,
                ),
            )
        )
        return self._execute(stmt, ProductSkuModel, sku_id)

    def restore_sku(self, sku_id: int, quantity: int) -> int:
        stmt = (
            update(ProductSkuModel)
            .where(ProductSkuModel.id == sku_id)
            .values(total_stock=ProductSkuModel.total_stock + quantity)
        )
        return self._execute(stmt, ProductSkuModel, sku_id)

    # single product counter
    def consume_product(self, product_id: int, quantity: int) -> int:
        stmt = (
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.is_single_product.is_(True),
                ProductModel.stock_quantity >= quantity,
            )
            .values(stock_quantity=ProductModel.stock_quantity - quantity)
        )
        return self._execute(stmt, ProductModel, product_id)

    def restore_product(self, product_id: int, quantity: int) -> int:
        stmt = (
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.is_single_product.is_(True),
            )
            .values(stock_quantity=ProductModel.stock_quantity + quantity)
        )
        return self._execute(stmt, ProductModel, product_id)

    def _execute(self, stmt, model, ident) -> int:
        result = self.db.execute(stmt.execution_options(synchronize_session=False))

        # drop the cached row so the next read sees the new counters
        cached = self.db.identity_map.get(self.db.identity_key(model, ident))
        if cached is not None:
            self.db.expire(cached)

        return result.rowcount
