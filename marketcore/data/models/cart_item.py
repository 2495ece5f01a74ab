from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(IdType, primary_key=True)
    cart_id = Column(BigInteger, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=False)
    # null for single products, which hold no reservation
    sku_id = Column(BigInteger, ForeignKey("product_skus.id"), nullable=True)

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(14, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel")
    sku = relationship("ProductSkuModel")
