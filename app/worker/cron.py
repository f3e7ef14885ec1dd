"""Cron: periodic credit refresh for every user (same path as GET /apitoken/update-credit)."""

from typing import AsyncIterator, Iterable

from app.core.exceptions import NotFoundError, UpstreamUnavailableError
from app.core.logging import get_logger
from app.models.user import User
from app.services.settlement import SettlementService, get_settlement_service

log = get_logger(__name__)

BATCH_SIZE = 100


async def _user_id_batches() -> AsyncIterator[list[str]]:
    """Pages by hd_index so users deleted mid-scan cannot shift the window."""
    last_seen = -1
    while True:
        users = (
            await User.find(User.hd_index > last_seen)
            .sort(+User.hd_index)
            .limit(BATCH_SIZE)
            .to_list()
        )
        if not users:
            return
        last_seen = users[-1].hd_index
        yield [str(u.id) for u in users]


async def refresh_users(settlement: SettlementService, user_ids: Iterable[str]) -> tuple[int, int]:
    """An unreachable indexer or price feed skips that user only. Returns (refreshed, skipped)."""
    refreshed = skipped = 0
    for user_id in user_ids:
        try:
            await settlement.refresh_credit(user_id)
            refreshed += 1
        except UpstreamUnavailableError as e:
            skipped += 1
            log.warning("credit_refresh_skipped", user_id=user_id, reason=e.message)
        except NotFoundError:
            skipped += 1  # deleted since the batch was read
    return refreshed, skipped


async def run_refresh_all_credit(settlement: SettlementService | None = None) -> dict:
    settlement = settlement or get_settlement_service()
    refreshed = skipped = 0
    async for batch in _user_id_batches():
        r, s = await refresh_users(settlement, batch)
        refreshed += r
        skipped += s
    log.info("credit_refresh_done", refreshed=refreshed, skipped=skipped)
    return {"refreshed": refreshed, "skipped": skipped}
