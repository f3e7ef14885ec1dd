"""API tier price schedule and pro-rated refunds for superseded tokens."""

from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal

from app.core.exceptions import InvalidTierError
from app.services.user_store import Account

CREDIT_QUANTUM = Decimal("0.00000001")


def quantize_credit(amount: Decimal) -> Decimal:
    """Round toward zero so rounding never creates credit."""
    return amount.quantize(CREDIT_QUANTUM, rounding=ROUND_DOWN)


class TierPricing:
    def __init__(self, prices: dict[int, Decimal], token_lifetime: timedelta):
        if token_lifetime <= timedelta(0):
            raise ValueError("token_lifetime must be positive")
        self.prices = dict(prices)
        self.prices[0] = Decimal("0")
        self.token_lifetime = token_lifetime

    def is_known(self, tier: object) -> bool:
        return isinstance(tier, int) and not isinstance(tier, bool) and tier >= 0 and tier in self.prices

    def price_of(self, tier: int) -> Decimal:
        if not self.is_known(tier):
            raise InvalidTierError(tier)
        return self.prices[tier]

    def refund_for(self, account: Account, now: datetime) -> Decimal:
        """
        Unused share of the active token's price, linear in remaining time.
        0 without an active token or once expired; always strictly below the tier price.
        """
        if not account.api_token or account.api_token_exp is None:
            return Decimal("0")
        if not self.is_known(account.api_level):
            return Decimal("0")
        price = self.prices[account.api_level]
        remaining = account.api_token_exp - now
        if price <= 0 or remaining <= timedelta(0):
            return Decimal("0")
        ratio = Decimal(remaining.total_seconds()) / Decimal(self.token_lifetime.total_seconds())
        refund = quantize_credit(price * ratio)
        if refund >= price:
            refund = price - CREDIT_QUANTUM
        return max(refund, Decimal("0"))
