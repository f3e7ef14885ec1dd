"""API token issuing and validation against the stored user record."""

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from itsdangerous import BadData

from app.core.exceptions import InsufficientCreditError
from app.core.logging import get_logger
from app.core.security import get_api_token_serializer
from app.services.credit_ledger import CreditLedger
from app.services.pricing import TierPricing
from app.services.user_store import Account, UserStore

log = get_logger(__name__)

REVOKED_TOKEN = {"api_token": None, "api_level": 0, "api_token_exp": None}


@dataclass(frozen=True)
class TokenStatus:
    is_valid: bool
    api_level: int = 0


def _timestamp(dt: datetime) -> int:
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


class ApiTokenSigner:
    """Signs {id, lvl, exp, jti} claims with the process-wide API token secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("API token secret is empty")
        self._serializer = get_api_token_serializer(secret)

    def sign(self, user_id: str, api_level: int, exp: datetime) -> str:
        claims = {"id": user_id, "lvl": api_level, "exp": _timestamp(exp), "jti": secrets.token_hex(8)}
        return self._serializer.dumps(claims)

    def decode(self, token: str) -> dict | None:
        try:
            claims = self._serializer.loads(token)
        except BadData:
            return None
        if not isinstance(claims, dict) or not isinstance(claims.get("id"), str):
            return None
        if not isinstance(claims.get("exp"), int):
            return None
        return claims


class TokenIssuer:
    def __init__(self, store: UserStore, ledger: CreditLedger, pricing: TierPricing, signer: ApiTokenSigner):
        self.store = store
        self.ledger = ledger
        self.pricing = pricing
        self.signer = signer

    async def issue(self, account: Account, requested_tier: int, now: datetime) -> tuple[Account, str]:
        """
        Mint a token for requested_tier, superseding any active token.

        Superseding revokes the old token and pays its refund in one write, before
        the affordability check. Both stay committed if the purchase then fails.
        """
        price = self.pricing.price_of(requested_tier)

        if account.api_token and account.api_token_exp and account.api_token_exp > now:
            old_level = account.api_level
            refund = self.pricing.refund_for(account, now)
            account = await self.ledger.credit(
                account,
                refund,
                reference_id=f"level_{old_level}",
                fields=REVOKED_TOKEN,
            )
            log.info("token_superseded", user_id=account.id, api_level=old_level, refund=str(refund))

        if price > Decimal("0") and price > account.credit:
            raise InsufficientCreditError(price, account.credit)

        exp = now + self.pricing.token_lifetime
        token = self.signer.sign(account.id, requested_tier, exp)
        account = await self.ledger.debit(
            account,
            price,
            reference_id=f"level_{requested_tier}",
            fields={"api_token": token, "api_level": requested_tier, "api_token_exp": exp},
        )
        log.info("token_issued", user_id=account.id, api_level=requested_tier, price=str(price), credit=str(account.credit))
        return account, token

    async def validate(self, token: str, now: datetime) -> TokenStatus:
        """Fail closed: bad signature, expiry, unknown user or a superseded token are all invalid."""
        claims = self.signer.decode(token or "")
        if claims is None:
            return TokenStatus(is_valid=False)
        if claims["exp"] <= _timestamp(now):
            return TokenStatus(is_valid=False)
        account = await self.store.get(claims["id"])
        if account is None or not account.api_token:
            return TokenStatus(is_valid=False)
        if not hmac.compare_digest(account.api_token.encode(), token.encode()):
            return TokenStatus(is_valid=False)
        if account.api_token_exp is None or account.api_token_exp <= now:
            return TokenStatus(is_valid=False)
        return TokenStatus(is_valid=True, api_level=account.api_level)
