# marketcore/repos/coupon_repo.py
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from marketcore.data.models.coupon import UserCouponModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_unused_grant(self, user_id: int, coupon_id: int) -> UserCouponModel | None:
        return self.db.execute(
            select(UserCouponModel)
            .where(
                UserCouponModel.user_id == user_id,
                UserCouponModel.coupon_id == coupon_id,
                UserCouponModel.used.is_(False),
            )
            .order_by(UserCouponModel.id)
            .limit(1)
        ).scalar_one_or_none()

    def mark_used(self, grant_id: int, used_at: datetime) -> int:
        # only flips an unused grant; 0 rows means someone else spent it
        return self._update(
            grant_id,
            update(UserCouponModel)
            .where(UserCouponModel.id == grant_id, UserCouponModel.used.is_(False))
            .values(used=True, used_at=used_at),
        )

    def reset(self, grant_id: int) -> int:
        return self._update(
            grant_id,
            update(UserCouponModel)
            .where(UserCouponModel.id == grant_id)
            .values(used=False, used_at=None),
        )

    def _update(self, grant_id: int, stmt) -> int:
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        cached = self.db.identity_map.get(self.db.identity_key(UserCouponModel, grant_id))
        if cached is not None:
            self.db.expire(cached)
        return result.rowcount
