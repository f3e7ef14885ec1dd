from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    """Account lifecycle events. Credit movements go to credit_ledger instead."""

    actor_id: str | None = None  # None for system events
    event_type: str  # user_created, user_login, user_deleted
    user_id: str  # account the event is about
    request_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("event_type", 1)],
        ]
