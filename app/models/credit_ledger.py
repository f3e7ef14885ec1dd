from datetime import datetime

from beanie import DecimalAnnotation, Document, PydanticObjectId
from pydantic import Field


class CreditLedgerEntry(Document):
    user_id: PydanticObjectId
    amount: DecimalAnnotation  # positive = credit, negative = debit
    balance_after: DecimalAnnotation
    reason: str  # deposit, token_purchase, refund
    reference_type: str | None = None  # bch_deposit, api_token
    reference_id: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "credit_ledger"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("idempotency_key", 1)],
        ]
