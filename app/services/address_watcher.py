"""Confirmed and unconfirmed balance of a deposit address, read from a Blockbook indexer."""

from dataclasses import dataclass

import httpx

from app.core.exceptions import AddressLookupError
from app.core.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class AddressBalance:
    confirmed: int  # satoshis
    unconfirmed: int

    @property
    def total(self) -> int:
        return self.confirmed + self.unconfirmed


class AddressWatcher:
    def __init__(self, indexer_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.indexer_url = indexer_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def balance_of(self, address: str) -> AddressBalance:
        url = f"{self.indexer_url}/api/v2/address/{address}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(url, params={"details": "basic"})
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("address_lookup_failed", address=address, error=str(e))
            raise AddressLookupError(f"Indexer unreachable: {e}") from e
        return parse_balance(data)


def parse_balance(data: object) -> AddressBalance:
    """Blockbook returns satoshi amounts as decimal strings."""
    try:
        confirmed = int(data["balance"])  # type: ignore[index]
        unconfirmed = int(data.get("unconfirmedBalance", 0) or 0)  # type: ignore[union-attr]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise AddressLookupError("Malformed indexer response") from e
    if confirmed < 0 or unconfirmed < 0:
        raise AddressLookupError(f"Negative balance reported: {confirmed}/{unconfirmed}")
    return AddressBalance(confirmed=confirmed, unconfirmed=unconfirmed)
