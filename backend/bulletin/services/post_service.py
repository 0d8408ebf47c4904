"""Post service layer: board posts, notices and their lifecycle.

Listings return a PageResult ordered as follows:
  plain posts         created_at DESC
  notices             is_pinned DESC, created_at DESC
  board (all)         is_notice DESC, is_pinned DESC, created_at DESC
`id DESC` breaks ties so paging is stable.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, case, delete, desc, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.models.base import utcnow
from bulletin.models.comment import Comment
from bulletin.models.post import Post
from bulletin.models.post_file import PostFile
from bulletin.services.errors import InvalidInputError, InvalidOperationError, NotFoundError
from bulletin.services.notifier import notice_notifier
from bulletin.services.pagination import PageResult, paginate

logger = logging.getLogger(__name__)

_RECENT_FIRST = (desc(Post.created_at), desc(Post.id))
_NOTICE_ORDER = (desc(Post.is_pinned),) + _RECENT_FIRST
_BOARD_ORDER = (desc(Post.is_notice),) + _NOTICE_ORDER

_IS_NOTICE = Post.is_notice == True  # noqa: E712
_IS_PLAIN = Post.is_notice == False  # noqa: E712
_IS_ACTIVE = Post.is_active == True  # noqa: E712

_POST_FIELDS = {"title", "content"}
_NOTICE_FIELDS = _POST_FIELDS | {"is_pinned", "is_active", "expiry_date", "send_notification"}
_NULLABLE_FIELDS = {"expiry_date"}


def _expired_notice_clause(now: datetime):
    return and_(_IS_NOTICE, Post.expiry_date.is_not(None), Post.expiry_date < now)


# ── Lookups ──────────────────────────────────────────────────────

async def get_post(db: AsyncSession, post_id: int) -> Post:
    post = await db.get(Post, post_id)
    if not post:
        raise NotFoundError(f"Post not found: {post_id}")
    return post


async def get_notice(db: AsyncSession, post_id: int) -> Post:
    post = await get_post(db, post_id)
    if not post.is_notice:
        raise InvalidOperationError(f"Post {post_id} is not a notice")
    return post


async def get_post_with_view_increment(db: AsyncSession, post_id: int) -> Post:
    """Bump view_count with a single UPDATE and return the fresh row.

    The increment happens in SQL so concurrent readers never lose a view.
    A notice whose expiry has passed is deactivated by the same statement.
    """
    result = await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(
            view_count=Post.view_count + 1,
            is_active=case((_expired_notice_clause(utcnow()), False), else_=Post.is_active),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError(f"Post not found: {post_id}")
    await db.commit()
    post = await db.get(Post, post_id, populate_existing=True)
    if not post:
        raise NotFoundError(f"Post not found: {post_id}")
    return post


async def get_notice_with_view_increment(db: AsyncSession, post_id: int) -> Post:
    await get_notice(db, post_id)
    return await get_post_with_view_increment(db, post_id)


# ── Listings ─────────────────────────────────────────────────────

async def list_posts(db: AsyncSession, page: int = 0, size: int = 10) -> PageResult:
    """Plain posts only; notices are never included."""
    query = select(Post).where(_IS_PLAIN).order_by(*_RECENT_FIRST)
    return await paginate(db, query, page, size)


async def list_posts_with_notices(db: AsyncSession, page: int = 0, size: int = 10) -> PageResult:
    """Plain posts plus active notices, notices first."""
    query = (
        select(Post)
        .where(or_(_IS_PLAIN, and_(_IS_NOTICE, _IS_ACTIVE)))
        .order_by(*_BOARD_ORDER)
    )
    return await paginate(db, query, page, size)


async def list_notices(db: AsyncSession, page: int = 0, size: int = 10) -> PageResult:
    query = select(Post).where(_IS_NOTICE).order_by(*_NOTICE_ORDER)
    return await paginate(db, query, page, size)


async def list_notices_by_status(
    db: AsyncSession, is_active: bool, page: int = 0, size: int = 10,
) -> PageResult:
    query = (
        select(Post)
        .where(_IS_NOTICE, Post.is_active == is_active)
        .order_by(*_NOTICE_ORDER)
    )
    return await paginate(db, query, page, size)


async def list_active_notices(db: AsyncSession) -> list[Post]:
    result = await db.execute(
        select(Post).where(_IS_NOTICE, _IS_ACTIVE).order_by(*_NOTICE_ORDER)
    )
    return list(result.scalars().all())


async def list_pinned_notices(db: AsyncSession) -> list[Post]:
    result = await db.execute(
        select(Post)
        .where(_IS_NOTICE, _IS_ACTIVE, Post.is_pinned == True)  # noqa: E712
        .order_by(*_RECENT_FIRST)
    )
    return list(result.scalars().all())


async def list_regular_notices(db: AsyncSession) -> list[Post]:
    result = await db.execute(
        select(Post)
        .where(_IS_NOTICE, _IS_ACTIVE, Post.is_pinned == False)  # noqa: E712
        .order_by(*_RECENT_FIRST)
    )
    return list(result.scalars().all())


async def list_notices_expiring_soon(db: AsyncSession, days: int = 3) -> list[Post]:
    """Active notices whose expiry falls within the next `days` days."""
    now = utcnow()
    result = await db.execute(
        select(Post)
        .where(
            _IS_NOTICE,
            _IS_ACTIVE,
            Post.expiry_date.is_not(None),
            Post.expiry_date.between(now, now + timedelta(days=days)),
        )
        .order_by(Post.expiry_date.asc(), Post.id.asc())
    )
    return list(result.scalars().all())


async def list_posts_with_files(db: AsyncSession, page: int = 0, size: int = 10) -> PageResult:
    query = (
        select(Post)
        .where(exists().where(PostFile.post_id == Post.id))
        .order_by(*_RECENT_FIRST)
    )
    return await paginate(db, query, page, size)


async def list_posts_with_comments(db: AsyncSession) -> list[Post]:
    result = await db.execute(
        select(Post)
        .where(exists().where(Comment.post_id == Post.id))
        .order_by(*_RECENT_FIRST)
    )
    return list(result.scalars().all())


# ── Search ───────────────────────────────────────────────────────

def _first_term(*terms: Optional[str]) -> tuple[int, str] | None:
    """Index and stripped value of the first non-blank search term."""
    for index, term in enumerate(terms):
        if term is not None and term.strip():
            return index, term.strip()
    return None


async def search_posts(
    db: AsyncSession,
    title: Optional[str] = None,
    author: Optional[str] = None,
    content: Optional[str] = None,
    keyword: Optional[str] = None,
    page: int = 0,
    size: int = 10,
) -> PageResult:
    """Search all posts. The first supplied criterion wins: title, author, content, keyword.

    `content` and `keyword` both match title or content. No criterion
    falls back to the plain post listing.
    """
    picked = _first_term(title, author, content, keyword)
    if picked is None:
        return await list_posts(db, page, size)
    index, term = picked
    if index == 0:
        condition = Post.title.icontains(term, autoescape=True)
    elif index == 1:
        condition = Post.author.icontains(term, autoescape=True)
    else:
        condition = or_(
            Post.title.icontains(term, autoescape=True),
            Post.content.icontains(term, autoescape=True),
        )
    query = select(Post).where(condition).order_by(*_RECENT_FIRST)
    return await paginate(db, query, page, size)


async def search_notices(
    db: AsyncSession,
    title: Optional[str] = None,
    author: Optional[str] = None,
    content: Optional[str] = None,
    keyword: Optional[str] = None,
    page: int = 0,
    size: int = 10,
) -> PageResult:
    """Like search_posts, scoped to notices; `content` matches content only."""
    picked = _first_term(title, author, content, keyword)
    if picked is None:
        return await list_notices(db, page, size)
    index, term = picked
    if index == 0:
        condition = Post.title.icontains(term, autoescape=True)
    elif index == 1:
        condition = Post.author.icontains(term, autoescape=True)
    elif index == 2:
        condition = Post.content.icontains(term, autoescape=True)
    else:
        condition = or_(
            Post.title.icontains(term, autoescape=True),
            Post.content.icontains(term, autoescape=True),
        )
    query = select(Post).where(_IS_NOTICE, condition).order_by(*_NOTICE_ORDER)
    return await paginate(db, query, page, size)


# ── Mutations ────────────────────────────────────────────────────

async def create_post(db: AsyncSession, title: str, content: str, author: str) -> Post:
    post = Post(title=title, content=content, author=author)
    db.add(post)
    await db.commit()
    await db.refresh(post)
    return post


async def create_notice(
    db: AsyncSession,
    title: str,
    content: str,
    author: str,
    is_pinned: Optional[bool] = None,
    is_active: Optional[bool] = None,
    expiry_date: Optional[datetime] = None,
    send_notification: Optional[bool] = None,
) -> Post:
    """Create a notice; unset flags take the column defaults.

    When the saved notice is active and asks for it, a notification is
    dispatched in the background after commit.
    """
    notice = Post(
        title=title,
        content=content,
        author=author,
        is_notice=True,
        is_pinned=bool(is_pinned) if is_pinned is not None else False,
        is_active=bool(is_active) if is_active is not None else True,
        expiry_date=expiry_date,
        send_notification=bool(send_notification) if send_notification is not None else False,
    )
    notice.deactivate_if_expired()
    db.add(notice)
    await db.commit()
    await db.refresh(notice)

    if notice.send_notification and notice.is_active:
        _dispatch_notification(notice)
    return notice


def _dispatch_notification(notice: Post) -> None:
    try:
        notice_notifier.schedule(notice)
    except Exception as e:
        logger.error(f"Could not schedule notification for notice {notice.id}: {e}")


def _apply_changes(post: Post, changes: dict, allowed: set[str]) -> None:
    for key, value in changes.items():
        if key not in allowed:
            raise InvalidInputError(f"Field cannot be updated here: {key}")
        if value is None and key not in _NULLABLE_FIELDS:
            continue
        setattr(post, key, value)


async def update_post(db: AsyncSession, post_id: int, **changes) -> Post:
    """Update title and/or content. Only provided, non-null fields change."""
    post = await get_post(db, post_id)
    _apply_changes(post, changes, _POST_FIELDS)
    post.deactivate_if_expired()
    await db.commit()
    await db.refresh(post)
    return post


async def update_notice(db: AsyncSession, post_id: int, **changes) -> Post:
    """Update notice fields. Only provided fields change; expiry_date may be cleared with None."""
    notice = await get_notice(db, post_id)
    _apply_changes(notice, changes, _NOTICE_FIELDS)
    notice.deactivate_if_expired()
    await db.commit()
    await db.refresh(notice)
    return notice


async def toggle_notice_status(db: AsyncSession, post_id: int) -> Post:
    notice = await get_notice(db, post_id)
    notice.is_active = not notice.is_active
    notice.deactivate_if_expired()
    await db.commit()
    await db.refresh(notice)
    return notice


async def delete_post(db: AsyncSession, post_id: int) -> list[str]:
    """Delete a post with its comments and file rows.

    Returns the storage paths of the removed attachments so the caller can
    unlink them.
    """
    post = await get_post(db, post_id)
    paths = (
        await db.execute(select(PostFile.file_path).where(PostFile.post_id == post_id))
    ).scalars().all()
    await db.execute(delete(Comment).where(Comment.post_id == post_id))
    await db.execute(delete(PostFile).where(PostFile.post_id == post_id))
    await db.delete(post)
    await db.commit()
    return list(paths)


# ── Statistics ───────────────────────────────────────────────────

async def _count(db: AsyncSession, *conditions) -> int:
    query = select(func.count(Post.id))
    if conditions:
        query = query.where(*conditions)
    return (await db.execute(query)).scalar_one()


async def count_posts_by_author(db: AsyncSession, author: str) -> int:
    return await _count(db, Post.author == author)


async def count_expired_notices(db: AsyncSession) -> int:
    return await _count(db, _expired_notice_clause(utcnow()))


async def get_post_stats(db: AsyncSession) -> dict:
    return {
        "total_posts": await _count(db),
        "regular_posts": await _count(db, _IS_PLAIN),
        "total_notices": await _count(db, _IS_NOTICE),
        "active_notices": await _count(db, _IS_NOTICE, _IS_ACTIVE),
        "pinned_notices": await _count(db, _IS_NOTICE, _IS_ACTIVE, Post.is_pinned == True),  # noqa: E712
        "expired_notices": await count_expired_notices(db),
    }


async def get_notice_stats(db: AsyncSession, expiring_soon_days: int = 3) -> dict:
    stats = await get_post_stats(db)
    expiring = await list_notices_expiring_soon(db, expiring_soon_days)
    return {
        "total": stats["total_notices"],
        "active": stats["active_notices"],
        "pinned": stats["pinned_notices"],
        "expired": stats["expired_notices"],
        "expiring_soon": len(expiring),
    }
