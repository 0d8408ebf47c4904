"""Comment service layer. Comments always belong to an existing post."""
from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.models.comment import Comment
from bulletin.services import post_service
from bulletin.services.errors import InvalidInputError, NotFoundError
from bulletin.services.pagination import PageResult, paginate


async def list_comments_by_post(db: AsyncSession, post_id: int, order: str = "desc") -> list[Comment]:
    """Comments of a post, newest first by default."""
    if order not in ("asc", "desc"):
        raise InvalidInputError(f"Unknown sort order: {order}")
    direction = desc if order == "desc" else asc
    result = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(direction(Comment.created_at), direction(Comment.id))
    )
    return list(result.scalars().all())


async def get_comment(db: AsyncSession, comment_id: int) -> Comment:
    comment = await db.get(Comment, comment_id)
    if not comment:
        raise NotFoundError(f"Comment not found: {comment_id}")
    return comment


async def create_comment(db: AsyncSession, post_id: int, content: str, author: str) -> Comment:
    await post_service.get_post(db, post_id)
    comment = Comment(post_id=post_id, content=content, author=author)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


async def update_comment(db: AsyncSession, comment_id: int, content: str) -> Comment:
    comment = await get_comment(db, comment_id)
    comment.content = content
    await db.commit()
    await db.refresh(comment)
    return comment


async def delete_comment(db: AsyncSession, comment_id: int) -> None:
    comment = await get_comment(db, comment_id)
    await db.delete(comment)
    await db.commit()


async def list_comments_by_author(db: AsyncSession, author: str, page: int = 0, size: int = 10) -> PageResult:
    query = (
        select(Comment)
        .where(Comment.author == author)
        .order_by(desc(Comment.created_at), desc(Comment.id))
    )
    return await paginate(db, query, page, size)


async def search_comments(db: AsyncSession, content: str, page: int = 0, size: int = 10) -> PageResult:
    query = (
        select(Comment)
        .where(Comment.content.icontains(content, autoescape=True))
        .order_by(desc(Comment.created_at), desc(Comment.id))
    )
    return await paginate(db, query, page, size)


async def count_comments_by_post(db: AsyncSession, post_id: int) -> int:
    result = await db.execute(select(func.count(Comment.id)).where(Comment.post_id == post_id))
    return result.scalar_one()


async def count_comments_by_author(db: AsyncSession, author: str) -> int:
    result = await db.execute(select(func.count(Comment.id)).where(Comment.author == author))
    return result.scalar_one()


async def count_comments_per_post(db: AsyncSession) -> dict[int, int]:
    result = await db.execute(
        select(Comment.post_id, func.count(Comment.id))
        .group_by(Comment.post_id)
        .order_by(Comment.post_id)
    )
    return {post_id: count for post_id, count in result.all()}
