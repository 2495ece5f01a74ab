#marketcore/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(IdType, primary_key=True)
    # one cart per user, created on first add
    user_id = Column(BigInteger, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
