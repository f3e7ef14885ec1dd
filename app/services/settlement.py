"""
Settlement service: the entry point used by routers and the worker.

Wires the oracle, watcher, ledger, pricing and token issuer together and
serializes every read-modify-write on a user behind that user's lock. The lock
stays held across the indexer and price-feed calls.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Callable

from app.core.config import get_settings
from app.core.exceptions import NotFoundError
from app.services.address_watcher import AddressWatcher
from app.services.credit_ledger import CreditLedger
from app.services.locks import UserLocks
from app.services.price_oracle import PriceOracle
from app.services.pricing import TierPricing
from app.services.tokens import ApiTokenSigner, TokenIssuer, TokenStatus
from app.services.user_store import Account, BeanieUserStore, UserStore


class SettlementService:
    def __init__(
        self,
        store: UserStore,
        ledger: CreditLedger,
        issuer: TokenIssuer,
        locks: UserLocks | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.ledger = ledger
        self.issuer = issuer
        self.locks = locks or UserLocks()
        self.clock = clock

    async def _load(self, user_id: str) -> Account:
        account = await self.store.get(user_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def deposit_address(self, user_id: str) -> str:
        return (await self._load(user_id)).bch_addr

    async def get_credit(self, user_id: str) -> Decimal:
        return (await self._load(user_id)).credit

    async def refresh_credit(self, user_id: str) -> Decimal:
        async with self.locks.hold(user_id):
            account = await self._load(user_id)
            account = await self.ledger.refresh_credit(account)
            return account.credit

    async def issue_token(self, user_id: str, api_level: int) -> str:
        async with self.locks.hold(user_id):
            account = await self._load(user_id)
            _, token = await self.issuer.issue(account, api_level, self.clock())
            return token

    async def validate_token(self, token: str) -> TokenStatus:
        return await self.issuer.validate(token, self.clock())


def build_settlement_service(
    store: UserStore,
    watcher: AddressWatcher,
    oracle: PriceOracle,
    pricing: TierPricing,
    signer: ApiTokenSigner,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> SettlementService:
    ledger = CreditLedger(store, watcher, oracle)
    issuer = TokenIssuer(store, ledger, pricing, signer)
    return SettlementService(store, ledger, issuer, clock=clock)


@lru_cache
def get_settlement_service() -> SettlementService:
    s = get_settings()
    return build_settlement_service(
        store=BeanieUserStore(),
        watcher=AddressWatcher(s.indexer_url, timeout=s.http_timeout_seconds),
        oracle=PriceOracle(
            s.price_feed_url,
            s.price_coin_id,
            s.reference_currency,
            timeout=s.http_timeout_seconds,
        ),
        pricing=TierPricing(s.api_tier_prices, timedelta(days=s.api_token_lifetime_days)),
        signer=ApiTokenSigner(s.api_token_signing_key),
    )
