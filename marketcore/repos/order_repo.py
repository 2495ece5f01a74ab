# marketcore/repos/order_repo.py
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from marketcore.data.models.order import OrderModel
from marketcore.data.models.order_item import OrderItemModel
from marketcore.domain.statuses import PaymentStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.order_number == order_number)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_order_by_payment_id(self, payment_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.payment_id == payment_id)
        ).scalar_one_or_none()

    def list_user_orders(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.items))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
        )

    def compare_and_set(self, order_id: int, expected: dict, values: dict) -> int:
        """
        Status change that only applies while the row still has the `expected`
        column values. 0 means another request moved the order first.
        """
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        for column, value in expected.items():
            stmt = stmt.where(getattr(OrderModel, column) == value)

        result = self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))

        cached = self.db.identity_map.get(self.db.identity_key(OrderModel, order_id))
        if cached is not None:
            self.db.expire(cached)
        return result.rowcount

    def completed_orders(self, since: datetime | None = None, until: datetime | None = None) -> list[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.payment_status == PaymentStatus.COMPLETED.value)
            .options(selectinload(OrderModel.items).selectinload(OrderItemModel.product))
            .order_by(OrderModel.created_at, OrderModel.id)
        )
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        if until is not None:
            stmt = stmt.where(OrderModel.created_at < until)
        return list(self.db.execute(stmt).scalars().all())
