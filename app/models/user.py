from datetime import datetime
from decimal import Decimal

from beanie import DecimalAnnotation, Document, Indexed
from pydantic import Field


class User(Document):
    email: Indexed(str, unique=True)
    password_hash: str
    name: str = ""
    role: str = "user"  # "user" | "admin"
    session_version: int = 0

    # Deposit address is derived from hd_index; both are immutable once assigned.
    hd_index: Indexed(int, unique=True)
    bch_addr: str

    # Settlement state, mutated only through the settlement service.
    credit: DecimalAnnotation = Decimal("0")
    last_credit_check_balance: int = 0  # satoshis
    api_token: str | None = None
    api_level: int = 0
    api_token_exp: datetime | None = None
    revision: int = 0  # bumped on every settlement write (compare-and-swap)

    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
