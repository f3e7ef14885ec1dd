from decimal import Decimal

import pytest

pytestmark = pytest.mark.asyncio


async def test_new_token_requires_api_level(client, store):
    store.add("u1", credit="100")
    r = await client.post("/v1/apitoken/new", json={})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_new_token_rejects_non_integer_level(client, store):
    store.add("u1", credit="100")
    r = await client.post("/v1/apitoken/new", json={"apiLevel": "ten"})
    assert r.status_code == 422


async def test_new_token_rejects_unknown_tier(client, store):
    store.add("u1", credit="100")
    r = await client.post("/v1/apitoken/new", json={"apiLevel": 15})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "INVALID_TIER"
    assert store.accounts["u1"].credit == Decimal("100")


async def test_new_token_payment_required_when_credit_low(client, store):
    store.add("u1", credit="0")
    r = await client.post("/v1/apitoken/new", json={"apiLevel": 10})
    assert r.status_code == 402
    assert r.json()["error"]["code"] == "INSUFFICIENT_CREDIT"


async def test_free_token(client, store):
    store.add("u1", credit="0")
    r = await client.post("/v1/apitoken/new", json={"apiLevel": 0})
    assert r.status_code == 200
    assert isinstance(r.json()["apiToken"], str)


async def test_paid_token_then_validate(client, store):
    store.add("u1", credit="100")
    r = await client.post("/v1/apitoken/new", json={"apiLevel": 10})
    assert r.status_code == 200
    token = r.json()["apiToken"]
    assert store.accounts["u1"].credit == Decimal("90")

    r = await client.get(f"/v1/apitoken/isvalid/{token}")
    assert r.status_code == 200
    assert r.json() == {"isValid": True, "apiLevel": 10}


async def test_isvalid_false_for_junk(client):
    r = await client.get("/v1/apitoken/isvalid/not-a-token")
    assert r.status_code == 200
    assert r.json() == {"isValid": False, "apiLevel": 0}


async def test_isvalid_false_after_reissue(client, store):
    store.add("u1", credit="100")
    old = (await client.post("/v1/apitoken/new", json={"apiLevel": 0})).json()["apiToken"]
    new = (await client.post("/v1/apitoken/new", json={"apiLevel": 0})).json()["apiToken"]
    assert new != old
    assert (await client.get(f"/v1/apitoken/isvalid/{old}")).json()["isValid"] is False
    assert (await client.get(f"/v1/apitoken/isvalid/{new}")).json()["isValid"] is True


async def test_bchaddr_for_self(client, store):
    account = store.add("u1")
    r = await client.get("/v1/apitoken/bchaddr/u1")
    assert r.status_code == 200
    assert r.json() == {"bchAddr": account.bch_addr}


async def test_bchaddr_of_other_user_needs_admin(client, store, current_user):
    store.add("u1")
    store.add("u2")
    r = await client.get("/v1/apitoken/bchaddr/u2")
    assert r.status_code == 401

    current_user.role = "admin"
    r = await client.get("/v1/apitoken/bchaddr/u2")
    assert r.status_code == 200


async def test_update_credit_same_when_nothing_deposited(client, store):
    store.add("u1", credit="90")
    r = await client.get("/v1/apitoken/update-credit/u1")
    assert r.status_code == 200
    assert r.json() == 90


async def test_update_credit_after_deposit(client, store, watcher, oracle):
    account = store.add("u1", credit="90")
    watcher.balances[account.bch_addr] = 10_000_000
    oracle.price = Decimal("216.65")
    r = await client.get("/v1/apitoken/update-credit/u1")
    assert r.status_code == 200
    # 0.1 coin * 216.65
    assert r.json() == pytest.approx(111.665)


async def test_update_credit_upstream_down_is_503(client, store, watcher):
    store.add("u1", credit="1")
    watcher.fail = True
    r = await client.get("/v1/apitoken/update-credit/u1")
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "ADDRESS_LOOKUP_FAILED"


async def test_update_credit_for_other_user_is_unauthorized(client, store):
    store.add("u1")
    store.add("u2")
    r = await client.get("/v1/apitoken/update-credit/u2")
    assert r.status_code == 401
