"""Audit trail for account lifecycle actions (signup, login, deletion)."""

from typing import Any

import structlog

from app.models.audit_log import AuditLog


async def log_event(
    actor_id: str | None,
    event_type: str,
    user_id: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Tagged with the current request id when called inside a request."""
    await AuditLog(
        actor_id=actor_id,
        event_type=event_type,
        user_id=user_id,
        request_id=structlog.contextvars.get_contextvars().get("request_id"),
        metadata=metadata or {},
    ).insert()
