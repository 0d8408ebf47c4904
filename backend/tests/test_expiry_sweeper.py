"""Expiry sweep: deactivates active notices whose expiry has passed."""
import asyncio
from datetime import timedelta

from sqlalchemy import select

from conftest import TestingSession
from bulletin.models.base import utcnow
from bulletin.models.post import Post
from bulletin.services.expiry_sweeper import ExpirySweeper, deactivate_expired_notices


def _seed(run_db):
    """Insert rows directly so an expired notice can still be active."""
    now = utcnow()

    async def seed(db):
        rows = [
            Post(title="stale", content="c", author="a", is_notice=True, is_active=True,
                 expiry_date=now - timedelta(hours=1)),
            Post(title="fresh", content="c", author="a", is_notice=True, is_active=True,
                 expiry_date=now + timedelta(days=1)),
            Post(title="open-ended", content="c", author="a", is_notice=True, is_active=True),
            Post(title="plain", content="c", author="a", is_notice=False, is_active=True,
                 expiry_date=now - timedelta(days=1)),
        ]
        db.add_all(rows)
        await db.commit()
        return {row.title: row.id for row in rows}

    return run_db(seed)


def _active_titles(run_db):
    async def fetch(db):
        result = await db.execute(select(Post.title).where(Post.is_active == True))  # noqa: E712
        return set(result.scalars().all())

    return run_db(fetch)


def test_sweep_deactivates_only_expired_notices(run_db):
    _seed(run_db)
    assert run_db(deactivate_expired_notices) == 1
    assert _active_titles(run_db) == {"fresh", "open-ended", "plain"}


def test_sweep_is_idempotent(run_db):
    _seed(run_db)
    assert run_db(deactivate_expired_notices) == 1
    assert run_db(deactivate_expired_notices) == 0
    assert _active_titles(run_db) == {"fresh", "open-ended", "plain"}


def test_sweep_with_explicit_now(run_db):
    _seed(run_db)
    later = utcnow() + timedelta(days=2)
    assert run_db(lambda db: deactivate_expired_notices(db, now=later)) == 2
    assert _active_titles(run_db) == {"open-ended", "plain"}


def test_swept_notice_drops_off_board(client, run_db):
    ids = _seed(run_db)
    run_db(deactivate_expired_notices)

    board = client.get("/api/posts/all").json()
    assert ids["stale"] not in [p["id"] for p in board["items"]]


def test_sweeper_run_once():
    sweeper = ExpirySweeper(TestingSession, interval_seconds=60)
    assert asyncio.run(sweeper.run_once()) == 0


def test_sweeper_start_and_stop(run_db):
    _seed(run_db)

    async def cycle():
        sweeper = ExpirySweeper(TestingSession, interval_seconds=60)
        sweeper.start()
        assert sweeper.running
        # first pass runs immediately
        for _ in range(50):
            await asyncio.sleep(0.02)
            async with TestingSession() as db:
                stale = (await db.execute(select(Post).where(Post.title == "stale"))).scalar_one()
                if not stale.is_active:
                    break
        await sweeper.stop()
        assert not sweeper.running
        return stale.is_active

    assert asyncio.run(cycle()) is False
