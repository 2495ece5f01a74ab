# marketcore/services/settlement_feed.py
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from marketcore.domain.pricing import as_utc
from marketcore.domain.errors import ValidationError
from marketcore.repos.order_repo import OrderRepo


class SettlementFeed:
    """Read-only view of paid orders for the settlement side, one row per item."""

    def __init__(self, db: Session):
        self.repo = OrderRepo(db)

    def completed_orders(self, since: datetime | None = None, until: datetime | None = None) -> List[Dict[str, Any]]:
        since = as_utc(since) if since else None
        until = as_utc(until) if until else None
        if since and until and since >= until:
            raise ValidationError("`since` must be before `until`")

        rows = []
        for order in self.repo.completed_orders(since, until):
            for item in order.items:
                rows.append(
                    {
                        "order_id": order.id,
                        "order_number": order.order_number,
                        "seller_id": item.product.seller_id,
                        "product_id": item.product_id,
                        "sku_id": item.sku_id,
                        "quantity": item.quantity,
                        "total_price": item.total_price,
                        "final_amount": order.final_amount,
                        "paid_at": order.paid_at,
                        "created_at": order.created_at,
                    }
                )
        return rows
