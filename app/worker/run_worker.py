"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

from arq import run_worker
from arq.cron import cron

from app.core.config import get_settings
from app.worker.tasks import get_redis_settings, refresh_all_credit, shutdown, startup


def _cron_jobs() -> list:
    if not get_settings().credit_refresh_cron_enabled:
        return []
    return [cron(refresh_all_credit, minute={0, 10, 20, 30, 40, 50}, second=0)]  # every 10 minutes


class WorkerSettings:
    functions = [refresh_all_credit]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    cron_jobs = _cron_jobs()


if __name__ == "__main__":
    run_worker(WorkerSettings)
