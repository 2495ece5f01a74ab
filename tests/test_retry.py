"""Which collaborator failures are retried, and how often."""

import pytest
import redis
import requests
from tenacity import wait_none

from marketcore.utils.retry import http_retry, redis_retry


def _response(status_code):
    response = requests.Response()
    response.status_code = status_code
    return response


def _flaky(decorator, outcomes):
    """Each call pops the next outcome: exceptions are raised, anything else is returned."""
    calls = []

    @decorator()
    def call():
        calls.append(1)
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return call.retry_with(wait=wait_none()), calls


class TestHttpRetry:
    def test_connection_errors_give_up_after_three_attempts(self):
        call, calls = _flaky(http_retry, [requests.ConnectionError("down")] * 5)
        with pytest.raises(requests.ConnectionError):
            call()
        assert len(calls) == 3

    def test_recovers_after_timeout(self):
        ok = _response(200)
        call, calls = _flaky(http_retry, [requests.Timeout("slow"), ok])
        assert call() is ok
        assert len(calls) == 2

    def test_http_error_is_not_retried(self):
        call, calls = _flaky(http_retry, [requests.HTTPError("400"), _response(200)])
        with pytest.raises(requests.HTTPError):
            call()
        assert len(calls) == 1

    def test_server_errors_are_retried_and_last_response_returned(self):
        call, calls = _flaky(http_retry, [_response(503), _response(502), _response(500)])
        assert call().status_code == 500
        assert len(calls) == 3

    def test_client_error_response_is_returned_at_once(self):
        call, calls = _flaky(http_retry, [_response(404)])
        assert call().status_code == 404
        assert len(calls) == 1


class TestRedisRetry:
    def test_connection_drop_is_retried(self):
        call, calls = _flaky(redis_retry, [redis.ConnectionError("reset"), 7])
        assert call() == 7
        assert len(calls) == 2

    def test_response_error_is_not_retried(self):
        call, calls = _flaky(redis_retry, [redis.ResponseError("WRONGTYPE"), 7])
        with pytest.raises(redis.ResponseError):
            call()
        assert len(calls) == 1
