# marketcore/services/payment_gateway.py
import base64
import hashlib
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping
from urllib.parse import parse_qs, urlsplit

import requests

from marketcore.domain.errors import GatewayError, GatewayOriginRejected, GatewayTimeout, ValidationError
from marketcore.utils.logging import get_logger
from marketcore.utils.settings import (
    GATEWAY_ALLOWED_ORIGINS,
    GATEWAY_ENV,
    GATEWAY_HASH_KEY,
    GATEWAY_MID,
    GATEWAY_PAYMENT_URL_PRODUCTION,
    GATEWAY_PAYMENT_URL_TEST,
    GATEWAY_TIMEOUT_SECONDS,
)

logger = get_logger(__name__)

SUCCESS_STATUS = "00"

# internal payment method -> gateway code
_METHOD_CODES = {
    "CARD": "CARD",
    "VIRTUAL_ACCOUNT": "VBANK",
    "BANK_TRANSFER": "REAL",
    "PHONE": "HPP",
}

# gateway auth timestamps are KST wall clock, yyyymmddhhmmss
_GATEWAY_TZ = timezone(timedelta(hours=9))


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    status: str | None
    message: str | None
    transaction_id: str | None
    order_number: str | None
    amount: Decimal | None
    method: str | None
    auth_timestamp: datetime | None


@dataclass(frozen=True)
class NetCancelResult:
    status: str | None
    message: str | None
    transaction_id: str | None

    @property
    def success(self) -> bool:
        return self.status == SUCCESS_STATUS


class PaymentGatewayClient:
    """
    Mobile payment gateway: request parameters, callback parsing and network
    cancel. Every HTTP call is bounded by `timeout` and is never retried, a
    cancel sent twice is not harmless.
    """

    def __init__(
        self,
        mid: str | None = None,
        hash_key: str | None = None,
        env: str | None = None,
        timeout: float = GATEWAY_TIMEOUT_SECONDS,
        allowed_origins: Mapping[str, str] | None = None,
    ):
        self.mid = mid if mid is not None else GATEWAY_MID
        self.hash_key = hash_key if hash_key is not None else GATEWAY_HASH_KEY
        self.env = env or GATEWAY_ENV
        self.timeout = timeout
        self.allowed_origins = dict(allowed_origins or GATEWAY_ALLOWED_ORIGINS)

    @property
    def payment_url(self) -> str:
        return GATEWAY_PAYMENT_URL_PRODUCTION if self.env == "production" else GATEWAY_PAYMENT_URL_TEST

    def create_payment_request(
        self,
        order: Mapping[str, Any],
        return_url: str,
        payment_method: str = "CARD",
        noti_url: str | None = None,
        hpp_method: str = "2",
    ) -> Dict[str, str]:
        items = order.get("items") or []
        if len(items) > 1:
            goods_name = f"{items[0]['product_name']} and {len(items) - 1} more"
        elif items:
            goods_name = items[0]["product_name"]
        else:
            goods_name = order["order_number"]

        params = {
            "P_INI_PAYMENT": _METHOD_CODES.get(payment_method, "CARD"),
            "P_MID": self.mid,
            "P_OID": order["order_number"],
            "P_AMT": str(int(Decimal(order["final_amount"]))),
            "P_GOODS": goods_name[:40],
            "P_UNAME": order.get("recipient") or "",
            "P_MOBILE": order.get("phone") or "",
            "P_NEXT_URL": return_url,
            "P_RESERVED": "centerCd=Y",
        }

        if payment_method == "VIRTUAL_ACCOUNT" and noti_url:
            params["P_NOTI_URL"] = noti_url
            params["P_RESERVED"] += f"&noti={noti_url}"

        if payment_method == "PHONE":
            params["P_HPP_METHOD"] = hpp_method

        return params

    def validate_origin(self, idc_name: str | None, req_url: str | None) -> bool:
        """True only for a known data center whose approval URL matches it."""
        if not idc_name or not req_url:
            return False
        expected = self.allowed_origins.get(idc_name)
        if expected is None:
            return False
        return req_url.startswith(expected)

    def is_gateway_url(self, url: str | None) -> bool:
        """True if `url` lies under one of the allowed gateway endpoints."""
        if not url:
            return False
        return any(url.startswith(prefix) for prefix in self.allowed_origins.values())

    def parse_callback(self, payload: Mapping[str, Any]) -> GatewayResult:
        status = payload.get("P_STATUS")

        amount = None
        if payload.get("P_AMT") not in (None, ""):
            try:
                amount = Decimal(str(payload["P_AMT"]))
            except InvalidOperation:
                raise ValidationError(f"Malformed gateway amount: {payload['P_AMT']!r}") from None

        return GatewayResult(
            success=status == SUCCESS_STATUS,
            status=status,
            message=payload.get("P_RMESG1"),
            transaction_id=payload.get("P_TID"),
            order_number=payload.get("P_OID"),
            amount=amount,
            method=payload.get("P_TYPE"),
            auth_timestamp=_parse_auth_timestamp(payload.get("P_AUTH_DT")),
        )

    def generate_hash(self, amount: str, order_number: str, timestamp: str) -> str | None:
        if not self.hash_key:
            return None
        data = f"{amount}{order_number}{timestamp}{self.hash_key}"
        return base64.b64encode(hashlib.sha512(data.encode("utf-8")).digest()).decode("ascii")

    def request_network_cancel(
        self,
        transaction_id: str,
        amount: Decimal,
        order_number: str,
        req_url: str,
        mid: str | None = None,
    ) -> NetCancelResult:
        if not self.is_gateway_url(req_url):
            logger.warning(f"Network cancel for order {order_number} refused, {req_url!r} is not a gateway endpoint")
            raise GatewayOriginRejected("Network cancel target is not an allowed gateway endpoint")

        parts = urlsplit(req_url)
        url = f"{parts.scheme}://{parts.netloc}/smart/payNetCancel.ini"

        amount_str = str(int(Decimal(amount)))
        timestamp = str(int(time.time() * 1000))
        data = {
            "P_TID": transaction_id,
            "P_MID": mid or self.mid,
            "P_AMT": amount_str,
            "P_OID": order_number,
            "P_TIMESTAMP": timestamp,
        }
        chkfake = self.generate_hash(amount_str, order_number, timestamp)
        if chkfake:
            data["P_CHKFAKE"] = chkfake

        logger.info(f"Network cancel POST {url} for order {order_number}")
        try:
            resp = requests.post(url, data=data, timeout=self.timeout)
            resp.raise_for_status()
        except requests.Timeout as e:
            logger.error(f"Network cancel for order {order_number} timed out after {self.timeout}s")
            raise GatewayTimeout(f"Gateway did not answer within {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error(f"Network cancel for order {order_number} failed: {e}")
            raise GatewayError(f"Network cancel request failed: {e}") from e

        fields = parse_qs(resp.text)
        return NetCancelResult(
            status=_first(fields, "P_STATUS"),
            message=_first(fields, "P_RMESG1"),
            transaction_id=_first(fields, "P_TID"),
        )


def _first(fields: Dict[str, list], key: str) -> str | None:
    values = fields.get(key)
    return values[0] if values else None


def _parse_auth_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        local = datetime.strptime(value, "%Y%m%d%H%M%S").replace(tzinfo=_GATEWAY_TZ)
    except ValueError:
        logger.warning(f"Unparseable gateway auth timestamp {value!r}")
        return None
    return local.astimezone(timezone.utc)
