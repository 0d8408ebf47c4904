import asyncio
import logging
from types import SimpleNamespace

from bulletin.services.notifier import NoticeNotifier, notice_payload


def _notice(**overrides):
    values = {"id": 7, "title": "Hello", "author": "admin", "is_pinned": True, "created_at": None}
    values.update(overrides)
    return SimpleNamespace(**values)


def test_notice_payload():
    payload = notice_payload(_notice())
    assert payload == {"id": 7, "title": "Hello", "author": "admin", "isPinned": True, "createdAt": None}


def test_notify_without_webhook_only_logs(caplog):
    notifier = NoticeNotifier()
    with caplog.at_level(logging.INFO, logger="bulletin.services.notifier"):
        asyncio.run(notifier.notify(notice_payload(_notice())))
    assert "New notice published: #7" in caplog.text


def test_failed_delivery_is_logged_not_raised(caplog, monkeypatch):
    notifier = NoticeNotifier(webhook_url="http://hooks.invalid/notices")

    async def failing(payload):
        raise ConnectionError("receiver down")

    monkeypatch.setattr(notifier, "notify", failing)

    async def publish():
        task = notifier.schedule(_notice())
        await notifier.drain()
        return task

    with caplog.at_level(logging.ERROR, logger="bulletin.services.notifier"):
        task = asyncio.run(publish())

    assert task.done()
    assert "Notice notification failed: ConnectionError: receiver down" in caplog.text
