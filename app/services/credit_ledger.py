"""
Credit ledger: turns on-chain deposits into credit and applies debits/refunds.

All methods take the caller's current Account snapshot and return the new one.
Callers must hold the user's lock (see SettlementService) for the whole sequence.
"""

from decimal import Decimal
from typing import Any

from app.core.exceptions import InsufficientCreditError, InvariantViolationError
from app.core.logging import get_logger
from app.services.address_watcher import AddressWatcher
from app.services.price_oracle import PriceOracle
from app.services.pricing import quantize_credit
from app.services.user_store import Account, UserStore

log = get_logger(__name__)

SATOSHIS_PER_COIN = Decimal(100_000_000)


class CreditLedger:
    def __init__(self, store: UserStore, watcher: AddressWatcher, oracle: PriceOracle):
        self.store = store
        self.watcher = watcher
        self.oracle = oracle

    async def refresh_credit(self, account: Account) -> Account:
        """Credit any balance observed above last_credit_check_balance, exactly once."""
        balance = await self.watcher.balance_of(account.bch_addr)
        new_balance = balance.total
        delta = new_balance - account.last_credit_check_balance
        if delta < 0:
            # Ledger never auto-debits from chain observations.
            log.warning(
                "balance_decreased",
                user_id=account.id,
                address=account.bch_addr,
                last_balance=account.last_credit_check_balance,
                observed_balance=new_balance,
            )
            return account
        if delta == 0:
            return account

        price = await self.oracle.current_price()
        credit_to_add = quantize_credit(Decimal(delta) / SATOSHIS_PER_COIN * price)
        updated = await self.store.update(
            account,
            {
                "credit": account.credit + credit_to_add,
                "last_credit_check_balance": new_balance,
            },
        )
        log.info(
            "deposit_credited",
            user_id=account.id,
            satoshis=delta,
            price=str(price),
            credit_added=str(credit_to_add),
            credit=str(updated.credit),
        )
        await self.store.record_entry(
            updated,
            credit_to_add,
            "deposit",
            reference_type="bch_deposit",
            reference_id=account.bch_addr,
            idempotency_key=f"deposit_{account.id}_{new_balance}",
        )
        return updated

    async def debit(
        self,
        account: Account,
        amount: Decimal,
        reference_id: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> Account:
        """
        Subtract amount from credit. Extra settlement fields (e.g. the token being
        bought) are written in the same update, so payment and delivery commit together.
        """
        if amount < 0:
            log.error("negative_debit_rejected", user_id=account.id, amount=str(amount))
            raise InvariantViolationError("Debit amount must be non-negative", details={"amount": str(amount)})
        if amount > account.credit:
            raise InsufficientCreditError(amount, account.credit)
        changes = dict(fields or {})
        if amount > 0:
            changes["credit"] = account.credit - amount
        if not changes:
            return account
        updated = await self.store.update(account, changes)
        if amount > 0:
            await self.store.record_entry(
                updated, -amount, "token_purchase", reference_type="api_token", reference_id=reference_id
            )
        return updated

    async def credit(
        self,
        account: Account,
        amount: Decimal,
        reference_id: str | None = None,
        fields: dict[str, Any] | None = None,
    ) -> Account:
        """
        Add a refund. Extra settlement fields (e.g. revoking the refunded token) are
        written in the same update, so a refund can only be paid once.
        A negative refund means the pricing upstream is broken.
        """
        if amount < 0:
            log.error("negative_refund_rejected", user_id=account.id, amount=str(amount))
            raise InvariantViolationError("Refund amount must be non-negative", details={"amount": str(amount)})
        changes = dict(fields or {})
        if amount > 0:
            changes["credit"] = account.credit + amount
        if not changes:
            return account
        updated = await self.store.update(account, changes)
        if amount > 0:
            await self.store.record_entry(
                updated, amount, "refund", reference_type="api_token", reference_id=reference_id
            )
        return updated
