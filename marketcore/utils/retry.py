# marketcore/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from marketcore.utils.logging import get_logger

logger = get_logger("marketcore.retry")

_ATTEMPTS = 3

# transport failures only; a ResponseError (wrong type, script error) will not heal on retry
_TRANSIENT_REDIS = (redis.ConnectionError, redis.TimeoutError)
_TRANSIENT_HTTP = (requests.ConnectionError, requests.Timeout)


def _server_error(response) -> bool:
    return isinstance(response, requests.Response) and response.status_code >= 500


def _last_result(retry_state):
    # out of attempts on a 5xx: hand the response back so the caller can raise_for_status
    return retry_state.outcome.result()


def http_retry():
    """
    Retry idempotent reads from collaborator services.

    Connection errors, timeouts and 5xx responses are retried. Ledger and
    payment writes never go through here.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(_ATTEMPTS),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(_TRANSIENT_HTTP) | retry_if_result(_server_error),
        retry_error_callback=_last_result,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry():
    """Retry a redis command that is safe to repeat after a dropped connection."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(_TRANSIENT_REDIS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
