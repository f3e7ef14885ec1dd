"""ARQ job definitions."""

import uuid
from typing import Any, Awaitable
from urllib.parse import urlparse

from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.logging import bind_job, get_logger

log = get_logger(__name__)


async def _run_with_dlq(job_name: str, job_id: str | None, coro: Awaitable[Any]) -> Any:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    bind_job(job_name, job_id)
    try:
        return await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            error_type=type(e).__name__,
            reason=str(e)[:2000],
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def refresh_all_credit(ctx: dict[str, Any]) -> dict:
    """Cron job: check every deposit address and credit new funds."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    from app.worker.cron import run_refresh_all_credit
    return await _run_with_dlq("refresh_all_credit", job_id, run_refresh_all_credit())


async def startup(ctx: dict) -> None:
    from app.core.logging import configure_logging
    from app.db.init import init_db
    configure_logging(debug=get_settings().debug)
    await init_db()


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    u = urlparse(get_settings().redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )
