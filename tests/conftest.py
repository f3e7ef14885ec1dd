import os
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Never talk to real services from tests
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "bch_api_credit_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")

from app.core.exceptions import AddressLookupError, ConcurrentUpdateError, PriceUnavailableError  # noqa: E402
from app.services.address_watcher import AddressBalance  # noqa: E402
from app.services.pricing import TierPricing  # noqa: E402
from app.services.settlement import SettlementService, build_settlement_service  # noqa: E402
from app.services.tokens import ApiTokenSigner  # noqa: E402
from app.services.user_store import Account, UserStore, check_fields  # noqa: E402

T0 = datetime(2026, 1, 1, 12, 0, 0)
TOKEN_LIFETIME = timedelta(days=30)
PRICES = {0: Decimal("0"), 10: Decimal("10"), 20: Decimal("20"), 30: Decimal("30")}


class MemoryUserStore(UserStore):
    """In-memory UserStore with the same revision check as BeanieUserStore."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.entries: list[dict[str, Any]] = []
        self.updates = 0

    def add(self, user_id: str = "u1", credit: str = "0", hd_index: int | None = None, **kw) -> Account:
        index = len(self.accounts) if hd_index is None else hd_index
        account = Account(
            id=user_id,
            bch_addr=f"bitcoincash:qtest{index}",
            hd_index=index,
            credit=Decimal(credit),
            **kw,
        )
        self.accounts[user_id] = account
        return account

    async def get(self, user_id: str) -> Account | None:
        return self.accounts.get(user_id)

    async def update(self, account: Account, fields: dict[str, Any]) -> Account:
        check_fields(fields)
        current = self.accounts.get(account.id)
        if current is None or current.revision != account.revision:
            raise ConcurrentUpdateError()
        updated = current.model_copy(update={**fields, "revision": current.revision + 1})
        self.accounts[account.id] = updated
        self.updates += 1
        return updated

    async def record_entry(self, account, amount, reason, reference_type=None, reference_id=None, idempotency_key=None):
        self.entries.append(
            {
                "user_id": account.id,
                "amount": amount,
                "balance_after": account.credit,
                "reason": reason,
                "idempotency_key": idempotency_key,
            }
        )


class StubWatcher:
    """Reports a settable balance per address; set fail to simulate an indexer outage."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.fail = False
        self.calls = 0

    async def balance_of(self, address: str) -> AddressBalance:
        self.calls += 1
        if self.fail:
            raise AddressLookupError("indexer down")
        return AddressBalance(confirmed=self.balances.get(address, 0), unconfirmed=0)


class StubOracle:
    def __init__(self, price: str = "20000") -> None:
        self.price = Decimal(price)
        self.fail = False
        self.calls = 0

    async def current_price(self) -> Decimal:
        self.calls += 1
        if self.fail:
            raise PriceUnavailableError("feed down")
        return self.price


class Clock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def store() -> MemoryUserStore:
    return MemoryUserStore()


@pytest.fixture
def watcher() -> StubWatcher:
    return StubWatcher()


@pytest.fixture
def oracle() -> StubOracle:
    return StubOracle()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def pricing() -> TierPricing:
    return TierPricing(PRICES, TOKEN_LIFETIME)


@pytest.fixture
def signer() -> ApiTokenSigner:
    return ApiTokenSigner("api-token-test-secret")


@pytest.fixture
def settlement(store, watcher, oracle, pricing, signer, clock) -> SettlementService:
    return build_settlement_service(store, watcher, oracle, pricing, signer, clock=clock)


@pytest.fixture
def current_user() -> SimpleNamespace:
    return SimpleNamespace(id="u1", role="user", credit=Decimal("0"))


@pytest_asyncio.fixture
async def client(settlement, current_user) -> AsyncGenerator[AsyncClient, None]:
    from app.deps import get_current_user, get_settlement
    from app.main import app

    app.dependency_overrides[get_settlement] = lambda: settlement
    app.dependency_overrides[get_current_user] = lambda: current_user
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
