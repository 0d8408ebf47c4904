"""Posts API routes (plain posts; notices are served here too when addressed by id)."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.database import get_db
from bulletin.routes.responses import build_detail, page_to_response, post_to_response
from bulletin.schemas.common import DeleteResponse, Page
from bulletin.schemas.post import (
    AuthorPostCount, PostCreate, PostDetailResponse, PostResponse, PostStatsResponse, PostUpdate,
)
from bulletin.services import post_service
from bulletin.services.file_service import PostFileService, format_size, get_file_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("", response_model=Page[PostResponse])
async def list_posts(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List plain posts, newest first. Notices are excluded."""
    result = await post_service.list_posts(db, page, size)
    return page_to_response(result, post_to_response)


@router.get("/all", response_model=Page[PostResponse])
async def list_posts_with_notices(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List plain posts and active notices, notices (pinned first) on top."""
    result = await post_service.list_posts_with_notices(db, page, size)
    return page_to_response(result, post_to_response)


@router.get("/search", response_model=Page[PostResponse])
async def search_posts(
    title: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    content: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Search by title, author, content or keyword (first one given wins)."""
    result = await post_service.search_posts(
        db, title=title, author=author, content=content, keyword=keyword, page=page, size=size,
    )
    return page_to_response(result, post_to_response)


@router.get("/with-files", response_model=Page[PostResponse])
async def list_posts_with_files(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List posts that have at least one attachment."""
    result = await post_service.list_posts_with_files(db, page, size)
    return page_to_response(result, post_to_response)


@router.get("/with-comments", response_model=list[PostResponse])
async def list_posts_with_comments(db: AsyncSession = Depends(get_db)):
    """List posts that have at least one comment."""
    posts = await post_service.list_posts_with_comments(db)
    return [post_to_response(p) for p in posts]


@router.get("/stats", response_model=PostStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Post, notice and attachment totals."""
    stats = await post_service.get_post_stats(db)
    stats["total_file_size"] = format_size(await file_service.total_size(db))
    return stats


@router.get("/author/{author}/count", response_model=AuthorPostCount)
async def count_posts_by_author(author: str, db: AsyncSession = Depends(get_db)):
    return {"author": author, "count": await post_service.count_posts_by_author(db, author)}


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Post detail with comments and files. Counts as a view."""
    post = await post_service.get_post_with_view_increment(db, post_id)
    detail = await build_detail(db, post, file_service)
    return {"post": post_to_response(post), "is_notice": post.is_notice, **detail}


@router.post("", response_model=PostResponse, status_code=201)
async def create_post(
    body: PostCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a plain post, or a notice when `isNotice` is true."""
    if body.is_notice:
        post = await post_service.create_notice(
            db,
            title=body.title,
            content=body.content,
            author=body.author,
            is_pinned=body.is_pinned,
            is_active=body.is_active,
            expiry_date=body.expiry_date,
            send_notification=body.send_notification,
        )
    else:
        post = await post_service.create_post(db, body.title, body.content, body.author)
    logger.info(f"Created {'notice' if post.is_notice else 'post'} {post.id}")
    return post_to_response(post)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    body: PostUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a post. Only provided fields are updated; notice fields apply to notices only."""
    existing = await post_service.get_post(db, post_id)
    update_data = body.model_dump(exclude_unset=True)
    if existing.is_notice:
        post = await post_service.update_notice(db, post_id, **update_data)
    else:
        plain_fields = {k: v for k, v in update_data.items() if k in ("title", "content")}
        post = await post_service.update_post(db, post_id, **plain_fields)
    return post_to_response(post)


@router.delete("/{post_id}", response_model=DeleteResponse)
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Delete a post with its comments and attachments."""
    paths = await post_service.delete_post(db, post_id)
    await file_service.remove_stored_files(paths)
    return {"deleted": True, "id": post_id, "message": "Post deleted"}
