from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from marketcore.data.database import Base, IdType
from marketcore.domain.statuses import OrderStatus, PaymentStatus


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(IdType, primary_key=True)
    order_number = Column(String(40), nullable=False, unique=True)
    user_id = Column(BigInteger, nullable=False, index=True)

    # shipping snapshot, copied from the address at creation time
    recipient = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=False)
    postcode = Column(String(10), nullable=False)
    address1 = Column(String(255), nullable=False)
    address2 = Column(String(255), nullable=True)
    delivery_memo = Column(String(255), nullable=True)

    total_amount = Column(Numeric(14, 2), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(14, 2), nullable=False, default=0)
    final_amount = Column(Numeric(14, 2), nullable=False)
    refunded_amount = Column(Numeric(14, 2), nullable=True)

    order_status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(30), nullable=False)
    # gateway transaction id, unique so one transaction can pay one order only
    payment_id = Column(String(100), nullable=True, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    status_reason = Column(String(255), nullable=True)

    used_coupon_id = Column(BigInteger, ForeignKey("coupons.id"), nullable=True)
    user_coupon_id = Column(BigInteger, ForeignKey("user_coupons.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
