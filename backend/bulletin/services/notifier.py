"""Fire-and-forget notifications for newly published notices.

Every notification is logged. When NOTICE_WEBHOOK_URL is set the notice is
also POSTed there as JSON. Delivery runs in its own asyncio task so a slow
or failing receiver never affects the request that created the notice.
"""
import asyncio
import logging

import aiohttp

from bulletin.config import settings
from bulletin.models.base import as_utc
from bulletin.models.post import Post

logger = logging.getLogger(__name__)


def notice_payload(notice: Post) -> dict:
    """Snapshot the fields a receiver needs; the ORM object must not leave the session."""
    return {
        "id": notice.id,
        "title": notice.title,
        "author": notice.author,
        "isPinned": bool(notice.is_pinned),
        "createdAt": as_utc(notice.created_at).isoformat() if notice.created_at else None,
    }


class NoticeNotifier:
    """Dispatches new-notice events to the log and an optional webhook."""

    def __init__(self, webhook_url: str = "", timeout: float = 5.0):
        self.webhook_url = webhook_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._pending: set[asyncio.Task] = set()

    async def notify(self, payload: dict) -> None:
        logger.info(f"New notice published: #{payload['id']} {payload['title']!r}")
        if not self.webhook_url:
            return
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(self.webhook_url, json=payload) as resp:
                resp.raise_for_status()

    def schedule(self, notice: Post) -> asyncio.Task:
        """Start delivery in the background and return immediately."""
        task = asyncio.create_task(self.notify(notice_payload(notice)))
        # Hold a reference until done; the loop only keeps weak ones
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Notice notification failed: {type(exc).__name__}: {exc}")

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


notice_notifier = NoticeNotifier(settings.NOTICE_WEBHOOK_URL, settings.NOTICE_WEBHOOK_TIMEOUT)
