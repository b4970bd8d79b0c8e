"""Background task scheduler using APScheduler."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from groups_api.config import get_settings
from groups_api.utils.secure_logging import log_error

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def sync_derived_groups_job() -> None:
    """Background job to reconcile every derived group with its rules."""
    from groups_api.database import async_session_maker
    from groups_api.services.cache_service import get_group_cache
    from groups_api.services.derived_group_service import DerivedGroupService

    logger.info("Starting scheduled derived group sync")

    cache = await get_group_cache()
    async with async_session_maker() as session:
        try:
            service = DerivedGroupService(session, cache)
            results = await service.sync_all_derived_groups()
            changed = sum(1 for r in results if r.changed)
            logger.info(
                "Derived group sync completed: %d group(s) checked, %d changed",
                len(results),
                changed,
            )
        except Exception as e:
            log_error(logger, "Derived group sync failed", e)
            await session.rollback()


async def expire_invitations_job() -> None:
    """Background job to mark overdue pending invitations as expired."""
    from groups_api.database import async_session_maker
    from groups_api.services.cache_service import get_group_cache
    from groups_api.services.character_lookup import HttpCharacterLookup
    from groups_api.services.invitation_service import InvitationService

    cache = await get_group_cache()
    async with async_session_maker() as session:
        try:
            service = InvitationService(session, cache, HttpCharacterLookup())
            expired = await service.expire_stale_invitations()
            logger.info("Invitation expiry completed: %d expired", expired)
        except Exception as e:
            log_error(logger, "Invitation expiry failed", e)
            await session.rollback()


async def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler

    settings = get_settings()
    _scheduler = AsyncIOScheduler()

    # Derived group sync, run once immediately on startup
    _scheduler.add_job(
        sync_derived_groups_job,
        trigger=IntervalTrigger(minutes=settings.derived_sync_interval_minutes),
        id="sync_derived_groups",
        name="Sync derived groups",
        replace_existing=True,
        next_run_time=datetime.now(),
    )

    _scheduler.add_job(
        expire_invitations_job,
        trigger=IntervalTrigger(minutes=settings.invitation_expiry_interval_minutes),
        id="expire_invitations",
        name="Expire stale invitations",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
