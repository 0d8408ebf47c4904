"""Background sweep that deactivates expired notices.

Runs as an asyncio task within the FastAPI process, started and stopped by
the application lifespan. Each pass is a single UPDATE, so it is safe to
run alongside request handlers and running it twice changes nothing.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bulletin.models.base import utcnow
from bulletin.models.post import Post

logger = logging.getLogger(__name__)


async def deactivate_expired_notices(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Set is_active=False on every active notice whose expiry is before `now`.

    Returns the number of notices deactivated.
    """
    now = now or utcnow()
    result = await db.execute(
        update(Post)
        .where(
            Post.is_notice == True,  # noqa: E712
            Post.is_active == True,  # noqa: E712
            Post.expiry_date.is_not(None),
            Post.expiry_date < now,
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    count = result.rowcount or 0
    if count:
        logger.info(f"Deactivated {count} expired notice(s)")
    return count


class ExpirySweeper:
    """Periodically runs deactivate_expired_notices on its own session."""

    def __init__(self, session_factory: async_sessionmaker, interval_seconds: float = 3600.0):
        self._session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        async with self._session_factory() as db:
            return await deactivate_expired_notices(db)

    async def _loop(self) -> None:
        logger.info(f"Expiry sweeper started (every {self.interval_seconds:g}s)")
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._loop(), name="expiry-sweeper")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
