# marketcore/services/address_book.py
from dataclasses import dataclass

import requests
from sqlalchemy.orm import Session

from marketcore.repos.address_repo import AddressRepo
from marketcore.utils.logging import get_logger
from marketcore.utils.retry import http_retry
from marketcore.utils.settings import ADDRESS_SERVICE_URL

logger = get_logger(__name__)


@dataclass(frozen=True)
class AddressSnapshot:
    id: int
    user_id: int
    recipient: str
    phone: str
    postcode: str
    address1: str
    address2: str | None = None


class DbAddressBook:
    """Addresses stored in the same database as orders."""

    def __init__(self, db: Session):
        self.repo = AddressRepo(db)

    def get_address(self, address_id: int) -> AddressSnapshot | None:
        row = self.repo.get_address(address_id)
        if not row:
            return None
        return AddressSnapshot(
            id=row.id,
            user_id=row.user_id,
            recipient=row.recipient,
            phone=row.phone,
            postcode=row.postcode,
            address1=row.address1,
            address2=row.address2,
        )


class AddressClient:
    """Addresses served by the user service over HTTP."""

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or ADDRESS_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _fetch(self, address_id: int) -> requests.Response:
        url = f"{self.base_url}/addresses/{address_id}"
        logger.info(f"AddressClient GET {url}")
        return requests.get(url, timeout=self.timeout)

    def get_address(self, address_id: int) -> AddressSnapshot | None:
        resp = self._fetch(address_id)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()

        data = resp.json()
        # ids arrive as decimal strings
        return AddressSnapshot(
            id=int(data["id"]),
            user_id=int(data["userId"]),
            recipient=data["recipient"],
            phone=data["phone"],
            postcode=data["postcode"],
            address1=data["address1"],
            address2=data.get("address2"),
        )
