from __future__ import annotations
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from zoneinfo import ZoneInfo

from .context import AppContext
from .sync.engine import SyncEngine


def build_scheduler(ctx: AppContext, engine: SyncEngine) -> AsyncIOScheduler:
    """Background jobs that run beside the sync loop. Call start() from inside the event loop."""
    tz = ZoneInfo(ctx.settings.local_tz)
    sched = AsyncIOScheduler(timezone=tz)
    # Renew ahead of expiry so long sync delays never hand a stale token to the next cycle.
    sched.add_job(
        engine.ensure_authenticated,
        IntervalTrigger(seconds=ctx.settings.auth_check_interval_seconds, timezone=tz),
        id="auth_watchdog",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return sched


def start_scheduler(sched: AsyncIOScheduler, ctx: AppContext):
    sched.start()
    ctx.log.info("scheduler_started", jobs=[job.id for job in sched.get_jobs()])
