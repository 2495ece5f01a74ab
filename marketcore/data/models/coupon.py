from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType
from marketcore.domain.statuses import DiscountMode


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(IdType, primary_key=True)
    name = Column(String(100), nullable=False)

    discount_mode = Column(String(10), nullable=False, default=DiscountMode.AMOUNT.value)
    # flat amount, or a percentage when discount_mode == "percent"
    discount_amount = Column(Numeric(14, 2), nullable=False)
    discount_max = Column(Numeric(14, 2), nullable=True)
    min_order_amount = Column(Numeric(14, 2), nullable=True)

    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_to = Column(DateTime(timezone=True), nullable=True)


class UserCouponModel(Base):
    __tablename__ = "user_coupons"

    id = Column(IdType, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    coupon_id = Column(BigInteger, ForeignKey("coupons.id"), nullable=False)

    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    coupon = relationship("CouponModel")
