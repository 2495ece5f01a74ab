# marketcore/services/callback_guard.py
import redis

from marketcore.utils.logging import get_logger
from marketcore.utils.retry import redis_retry
from marketcore.utils.settings import CALLBACK_GUARD_TTL_SECONDS, REDIS_URL

logger = get_logger(__name__)

# compare and delete in one step: only the claimant may release its claim
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class CallbackGuard:
    """
    Claims a gateway transaction id while its callback is being applied.

    A replayed callback for the same transaction finds the key and is turned
    away before it reaches the order. The claim is released when applying the
    callback fails so the gateway can deliver it again.
    """

    def __init__(self, url: str | None = None, ttl: int = CALLBACK_GUARD_TTL_SECONDS):
        self.redis = redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @redis_retry()
    def claim(self, transaction_id: str, order_number: str) -> bool:
        key = f"payment:{transaction_id}:callback"
        logger.info(f"Claim {key} for order {order_number}")
        # SET key order_number NX EX ttl
        return bool(
            self.redis.set(
                name=key,
                value=order_number,
                nx=True,
                ex=self.ttl,
            )
        )

    @redis_retry()
    def release(self, transaction_id: str, order_number: str) -> bool:
        key = f"payment:{transaction_id}:callback"
        logger.info(f"Release {key} for order {order_number}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, order_number)
        return bool(res)
