"""Exchange rate of the settlement coin in the reference currency."""

from decimal import Decimal, InvalidOperation

import httpx

from app.core.exceptions import PriceUnavailableError
from app.core.logging import get_logger

log = get_logger(__name__)


class PriceOracle:
    """Reads a CoinGecko-style simple price endpoint: {"<coin_id>": {"<currency>": 250.12}}."""

    def __init__(
        self,
        url: str,
        coin_id: str,
        currency: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.coin_id = coin_id
        self.currency = currency.lower()
        self.timeout = timeout
        self.transport = transport

    async def current_price(self) -> Decimal:
        """Reference-currency units per one whole coin. Never returns zero, negative or NaN."""
        params = {"ids": self.coin_id, "vs_currencies": self.currency}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(self.url, params=params)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("price_fetch_failed", url=self.url, error=str(e))
            raise PriceUnavailableError(f"Price feed unreachable: {e}") from e
        return parse_price(data, self.coin_id, self.currency)


def parse_price(data: object, coin_id: str, currency: str) -> Decimal:
    try:
        raw = data[coin_id][currency]  # type: ignore[index]
        price = Decimal(str(raw))
    except (KeyError, TypeError, InvalidOperation) as e:
        raise PriceUnavailableError(f"Malformed price quote for {coin_id}/{currency}") from e
    if not price.is_finite() or price <= 0:
        raise PriceUnavailableError(f"Non-positive price quote: {raw}")
    return price
