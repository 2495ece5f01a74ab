# marketcore/repos/cart_repo.py
from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from marketcore.data.models.cart import CartModel
from marketcore.data.models.cart_item import CartItemModel

_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.get_cart_by_user(user_id)
        if cart is not None:
            return cart

        # a concurrent first add for the same user may insert the row first
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS[dialect]
        self.db.execute(
            insert(CartModel)
            .values(user_id=user_id)
            .on_conflict_do_nothing(index_elements=[CartModel.user_id])
        )
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one()

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars().all()
        )

    def get_cart_item(self, item_id: int) -> CartItemModel | None:
        return self.db.get(CartItemModel, item_id)

    def find_cart_item(self, cart_id: int, product_id: int, sku_id: int | None) -> CartItemModel | None:
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
        )
        if sku_id is None:
            stmt = stmt.where(CartItemModel.sku_id.is_(None))
        else:
            stmt = stmt.where(CartItemModel.sku_id == sku_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def delete_cart_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount
