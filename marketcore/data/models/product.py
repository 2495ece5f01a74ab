from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(IdType, primary_key=True)
    seller_id = Column(BigInteger, nullable=False, index=True)
    name = Column(String(200), nullable=False)

    # single products keep their stock here, option products on their SKUs
    is_single_product = Column(Boolean, nullable=False, default=True)
    stock_quantity = Column(Integer, nullable=False, default=0)

    original_price = Column(Numeric(14, 2), nullable=False, default=0)
    sale_price = Column(Numeric(14, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    skus = relationship("ProductSkuModel", back_populates="product")

    __table_args__ = (CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),)


class ProductSkuModel(Base):
    __tablename__ = "product_skus"

    id = Column(IdType, primary_key=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=False, index=True)

    total_stock = Column(Integer, nullable=False, default=0)
    reserved_stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    sale_price = Column(Numeric(14, 2), nullable=False, default=0)

    product = relationship("ProductModel", back_populates="skus")

    __table_args__ = (
        CheckConstraint("reserved_stock >= 0", name="ck_sku_reserved_non_negative"),
        CheckConstraint("reserved_stock <= total_stock", name="ck_sku_reserved_within_total"),
    )

    @property
    def available_stock(self) -> int:
        return self.total_stock - self.reserved_stock
