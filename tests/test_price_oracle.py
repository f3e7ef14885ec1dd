from decimal import Decimal

import httpx
import pytest

from app.core.exceptions import PriceUnavailableError
from app.services.price_oracle import PriceOracle, parse_price

URL = "https://prices.test/api/v3/simple/price"


def _oracle(handler) -> PriceOracle:
    return PriceOracle(URL, "bitcoin-cash", "USD", transport=httpx.MockTransport(handler))


def test_parse_price():
    assert parse_price({"bitcoin-cash": {"usd": 216.65}}, "bitcoin-cash", "usd") == Decimal("216.65")


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"bitcoin-cash": {}},
        {"bitcoin-cash": {"usd": "abc"}},
        {"bitcoin-cash": {"usd": 0}},
        {"bitcoin-cash": {"usd": -3}},
        {"bitcoin-cash": {"usd": "NaN"}},
        [],
        None,
    ],
)
def test_parse_price_rejects_bad_quotes(data):
    with pytest.raises(PriceUnavailableError):
        parse_price(data, "bitcoin-cash", "usd")


@pytest.mark.asyncio
async def test_current_price_queries_coin_and_currency():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={"bitcoin-cash": {"usd": 250.5}})

    assert await _oracle(handler).current_price() == Decimal("250.5")
    assert seen == {"ids": "bitcoin-cash", "vs_currencies": "usd"}


@pytest.mark.asyncio
async def test_current_price_http_error():
    oracle = _oracle(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(PriceUnavailableError):
        await oracle.current_price()


@pytest.mark.asyncio
async def test_current_price_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(PriceUnavailableError):
        await _oracle(handler).current_price()


@pytest.mark.asyncio
async def test_current_price_not_json():
    oracle = _oracle(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(PriceUnavailableError):
        await oracle.current_price()
