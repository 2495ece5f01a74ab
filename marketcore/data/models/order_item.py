from sqlalchemy import BigInteger, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(IdType, primary_key=True)
    order_id = Column(BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=False)
    sku_id = Column(BigInteger, ForeignKey("product_skus.id"), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    total_price = Column(Numeric(14, 2), nullable=False)
    product_name = Column(String(200), nullable=False)

    order = relationship("OrderModel", back_populates="items")
    product = relationship("ProductModel")
