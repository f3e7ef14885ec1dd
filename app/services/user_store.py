"""User store seen by the settlement core: snapshot reads and atomic multi-field writes."""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc, Set
from bson import Decimal128
from bson.errors import InvalidId
from pydantic import BaseModel

from app.core.exceptions import ConcurrentUpdateError, InvariantViolationError
from app.core.logging import get_logger
from app.models.credit_ledger import CreditLedgerEntry
from app.models.user import User

log = get_logger(__name__)

SETTLEMENT_FIELDS = frozenset(
    {"credit", "last_credit_check_balance", "api_token", "api_level", "api_token_exp"}
)


class Account(BaseModel):
    """Settlement view of a user record at a given revision."""

    id: str
    bch_addr: str
    hd_index: int
    credit: Decimal = Decimal("0")
    last_credit_check_balance: int = 0
    api_token: str | None = None
    api_level: int = 0
    api_token_exp: datetime | None = None
    revision: int = 0


class UserStore(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> Account | None:
        """Return the current snapshot, or None if the user does not exist."""
        ...

    @abstractmethod
    async def update(self, account: Account, fields: dict[str, Any]) -> Account:
        """
        Apply all fields in one write, only if the stored revision still equals
        account.revision. Returns the new snapshot; raises ConcurrentUpdateError otherwise.
        """
        ...

    @abstractmethod
    async def record_entry(
        self,
        account: Account,
        amount: Decimal,
        reason: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        """Append a journal entry for a committed balance change."""
        ...


def check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - SETTLEMENT_FIELDS
    if unknown:
        log.error("unknown_settlement_fields", fields=sorted(unknown))
        raise InvariantViolationError("Not a settlement field", details={"fields": sorted(unknown)})
    credit = fields.get("credit")
    if credit is not None and credit < 0:
        log.error("negative_credit_rejected", credit=str(credit))
        raise InvariantViolationError("Credit would become negative", details={"credit": str(credit)})


def account_from_user(user: User) -> Account:
    return Account(
        id=str(user.id),
        bch_addr=user.bch_addr,
        hd_index=user.hd_index,
        credit=user.credit,
        last_credit_check_balance=user.last_credit_check_balance,
        api_token=user.api_token,
        api_level=user.api_level,
        api_token_exp=user.api_token_exp,
        revision=user.revision,
    )


def _to_bson(value: Any) -> Any:
    if isinstance(value, Decimal):
        return Decimal128(str(value))
    return value


def _object_id(user_id: str) -> PydanticObjectId | None:
    try:
        return PydanticObjectId(user_id)
    except (InvalidId, TypeError):
        return None


class BeanieUserStore(UserStore):
    async def get(self, user_id: str) -> Account | None:
        oid = _object_id(user_id)
        if oid is None:
            return None
        user = await User.get(oid)
        return account_from_user(user) if user else None

    async def update(self, account: Account, fields: dict[str, Any]) -> Account:
        check_fields(fields)
        changes = {k: _to_bson(v) for k, v in fields.items()}
        changes["updated_at"] = datetime.utcnow()
        user = await User.find_one(
            User.id == PydanticObjectId(account.id),
            User.revision == account.revision,
        ).update(
            Set(changes),
            Inc({"revision": 1}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if user is None:
            raise ConcurrentUpdateError()
        return account_from_user(user)

    async def record_entry(
        self,
        account: Account,
        amount: Decimal,
        reason: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        await CreditLedgerEntry(
            user_id=PydanticObjectId(account.id),
            amount=amount,
            balance_after=account.credit,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        ).insert()
