import httpx
import pytest

from app.core.exceptions import AddressLookupError
from app.services.address_watcher import AddressBalance, AddressWatcher, parse_balance

ADDR = "bitcoincash:qp3wjpa3tjlj042z2wv7hahsldgwhwy0rq9sywjpyy"


def _watcher(handler) -> AddressWatcher:
    return AddressWatcher("https://indexer.test/", transport=httpx.MockTransport(handler))


def test_parse_balance():
    b = parse_balance({"address": ADDR, "balance": "1500", "unconfirmedBalance": "250"})
    assert b == AddressBalance(confirmed=1500, unconfirmed=250)
    assert b.total == 1750


def test_parse_balance_without_unconfirmed():
    assert parse_balance({"balance": "0"}).total == 0


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"balance": "abc"},
        {"balance": "-1"},
        {"balance": "10", "unconfirmedBalance": "-20"},
        "not a dict",
    ],
)
def test_parse_balance_rejects_bad_responses(data):
    with pytest.raises(AddressLookupError):
        parse_balance(data)


@pytest.mark.asyncio
async def test_balance_of_requests_address_endpoint():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"balance": "100000", "unconfirmedBalance": "0"})

    balance = await _watcher(handler).balance_of(ADDR)
    assert balance.total == 100000
    assert seen[0].path == f"/api/v2/address/{ADDR}"
    assert seen[0].params["details"] == "basic"


@pytest.mark.asyncio
async def test_balance_of_indexer_error():
    with pytest.raises(AddressLookupError):
        await _watcher(lambda request: httpx.Response(503)).balance_of(ADDR)


@pytest.mark.asyncio
async def test_balance_of_connect_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(AddressLookupError):
        await _watcher(handler).balance_of(ADDR)
