# marketcore/services/order_numbers.py
from datetime import datetime, timezone

import redis

from marketcore.utils.logging import get_logger
from marketcore.utils.retry import redis_retry
from marketcore.utils.settings import ORDER_NUMBER_PREFIX, REDIS_URL

logger = get_logger(__name__)

# a day's counter only needs to outlive the day
_SEQUENCE_TTL_SECONDS = 2 * 24 * 60 * 60


def format_order_number(day: datetime, sequence: int, prefix: str = ORDER_NUMBER_PREFIX) -> str:
    # e.g. ORD-20261019-000042
    return f"{prefix}-{day.strftime('%Y%m%d')}-{sequence:06d}"


class RedisOrderNumberGenerator:
    """
    Human readable order numbers: date plus a per-day counter.

    INCR is atomic in redis, so two API workers never hand out the same
    suffix. A retried INCR can skip a value, which only leaves a gap.
    """

    def __init__(self, url: str | None = None, prefix: str = ORDER_NUMBER_PREFIX):
        self.redis = redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.prefix = prefix

    @redis_retry()
    def _next_sequence(self, day_key: str) -> int:
        key = f"order_seq:{day_key}"
        # created with its TTL before the first INCR, so every counter expires
        self.redis.set(key, 0, ex=_SEQUENCE_TTL_SECONDS, nx=True)
        return self.redis.incr(key)

    def next_number(self, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        sequence = self._next_sequence(now.strftime("%Y%m%d"))
        number = format_order_number(now, sequence, self.prefix)
        logger.info(f"Issued order number {number}")
        return number
