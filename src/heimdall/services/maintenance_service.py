"""
# Maintenance Service

Background sweeps that keep time-based state consistent, run on an APScheduler
`AsyncIOScheduler` inside the application's event loop.

## Jobs

| Job | Interval setting | Action |
|---|---|---|
| `publish_due_content` | `SCHEDULED_PUBLISH_INTERVAL_SECONDS` | Publish scheduled posts and pages whose `publishedAt` has passed |
| `release_expired_locks` | `LOCK_SWEEP_INTERVAL_SECONDS` | Unlock users whose `lockedUntil` has passed |

Both sweeps are also callable directly (for instance from an admin command). A failure
on one document is logged and the sweep continues with the next.

## Usage Example

```python
await db_manager.connect()
maintenance_service.start()
...
maintenance_service.stop()
```
"""

from datetime import datetime
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from heimdall.config import settings
from heimdall.exceptions import DomainException
from heimdall.managers.logging_manager import get_logger
from heimdall.repositories import get_page_repository, get_post_repository, get_user_repository
from heimdall.utils.text_utils import utc_now

logger = get_logger(prefix="[Maintenance]")

PUBLISH_JOB_ID = "publish_due_content"
LOCK_SWEEP_JOB_ID = "release_expired_locks"


class MaintenanceService:
    """Schedules the publish and lock-release sweeps."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()

    def start(self):
        """Register both jobs and start the scheduler. No-op when disabled or already running."""
        if not settings.MAINTENANCE_ENABLED:
            logger.info("Maintenance service disabled by configuration")
            return
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self._run_publish_job,
            trigger=IntervalTrigger(seconds=settings.SCHEDULED_PUBLISH_INTERVAL_SECONDS),
            id=PUBLISH_JOB_ID,
            name="Publish due posts and pages",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._run_lock_sweep_job,
            trigger=IntervalTrigger(seconds=settings.LOCK_SWEEP_INTERVAL_SECONDS),
            id=LOCK_SWEEP_JOB_ID,
            name="Release expired account locks",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Maintenance service started (publish every %ds, lock sweep every %ds)",
            settings.SCHEDULED_PUBLISH_INTERVAL_SECONDS,
            settings.LOCK_SWEEP_INTERVAL_SECONDS,
        )

    def stop(self):
        """Stop the scheduler and drop pending runs."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Maintenance service stopped")

    async def publish_due_content(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Publish every scheduled post and page whose publish time has come.

        Returns:
            Dict[str, int]: Number of documents published, keyed `posts` and `pages`.
        """
        now = now or utc_now()
        posts = get_post_repository()
        pages = get_page_repository()
        published = {"posts": 0, "pages": 0}

        for post in await posts.get_scheduled_posts(now):
            try:
                await posts.publish(post.id, now)
                published["posts"] += 1
            except DomainException as e:
                logger.error("Failed to publish scheduled post %s: %s", post.id, e)

        for page in await pages.get_scheduled_pages(now):
            try:
                await pages.publish(page.id, now)
                published["pages"] += 1
            except DomainException as e:
                logger.error("Failed to publish scheduled page %s: %s", page.id, e)

        if published["posts"] or published["pages"]:
            logger.info("Published %d scheduled posts and %d scheduled pages", published["posts"], published["pages"])
        return published

    async def release_expired_locks(self, now: Optional[datetime] = None) -> int:
        """Unlock every account whose lock has expired. Returns the number unlocked."""
        users = get_user_repository()
        released = 0

        for user in await users.get_locked_users(now or utc_now()):
            try:
                await users.unlock_user(user.id)
                released += 1
            except DomainException as e:
                logger.error("Failed to unlock user %s: %s", user.id, e)

        if released:
            logger.info("Released %d expired account locks", released)
        return released

    async def _run_publish_job(self):
        try:
            await self.publish_due_content()
        except Exception as e:
            logger.error(f"Scheduled publish sweep failed: {e}", exc_info=True)

    async def _run_lock_sweep_job(self):
        try:
            await self.release_expired_locks()
        except Exception as e:
            logger.error(f"Lock release sweep failed: {e}", exc_info=True)


# Global instance
maintenance_service = MaintenanceService()
