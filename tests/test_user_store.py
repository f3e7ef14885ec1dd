from decimal import Decimal
from types import SimpleNamespace

import pytest
from bson import Decimal128

from app.core.exceptions import ConcurrentUpdateError, InvariantViolationError
from app.services import user_store
from app.services.user_store import Account, BeanieUserStore, check_fields

USER_ID = "65a000000000000000000001"


class RecordingLog:
    def __init__(self) -> None:
        self.events: list[str] = []

    def error(self, event: str, **kw) -> None:
        self.events.append(event)


class FakeQuery:
    def __init__(self, result) -> None:
        self.result = result
        self.operators: tuple = ()

    async def update(self, *operators, response_type=None):
        self.operators = operators
        return self.result


class FakeUserModel:
    """Class-level attributes stand in for Beanie's query expression fields."""

    id = "_id"
    revision = "revision"
    query: FakeQuery

    @classmethod
    def find_one(cls, *conditions):
        return cls.query


def _account(**kw) -> Account:
    return Account(id=USER_ID, bch_addr="bitcoincash:qtest0", hd_index=0, credit=Decimal("10"), revision=3, **kw)


def _stored_user(**kw) -> SimpleNamespace:
    fields = dict(
        id=USER_ID,
        bch_addr="bitcoincash:qtest0",
        hd_index=0,
        credit=Decimal("15"),
        last_credit_check_balance=0,
        api_token=None,
        api_level=0,
        api_token_exp=None,
        revision=4,
    )
    fields.update(kw)
    return SimpleNamespace(**fields)


@pytest.mark.asyncio
async def test_update_with_stale_revision_raises(monkeypatch):
    FakeUserModel.query = FakeQuery(result=None)
    monkeypatch.setattr(user_store, "User", FakeUserModel)
    with pytest.raises(ConcurrentUpdateError):
        await BeanieUserStore().update(_account(), {"credit": Decimal("15")})


@pytest.mark.asyncio
async def test_update_sets_fields_and_bumps_revision(monkeypatch):
    FakeUserModel.query = FakeQuery(result=_stored_user())
    monkeypatch.setattr(user_store, "User", FakeUserModel)
    updated = await BeanieUserStore().update(_account(), {"credit": Decimal("15")})
    assert updated.credit == Decimal("15")
    assert updated.revision == 4

    set_op, inc_op = FakeUserModel.query.operators
    assert set_op.query["$set"]["credit"] == Decimal128("15")
    assert inc_op.query == {"$inc": {"revision": 1}}


def test_check_fields_rejects_and_logs_unknown_field(monkeypatch):
    log = RecordingLog()
    monkeypatch.setattr(user_store, "log", log)
    with pytest.raises(InvariantViolationError):
        check_fields({"email": "x@example.com"})
    assert log.events == ["unknown_settlement_fields"]


def test_check_fields_rejects_and_logs_negative_credit(monkeypatch):
    log = RecordingLog()
    monkeypatch.setattr(user_store, "log", log)
    with pytest.raises(InvariantViolationError):
        check_fields({"credit": Decimal("-0.00000001")})
    assert log.events == ["negative_credit_rejected"]
