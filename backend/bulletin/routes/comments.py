"""Comments API routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.database import get_db
from bulletin.routes.responses import comment_to_response, page_to_response
from bulletin.schemas.comment import CommentCountByPost, CommentCreate, CommentResponse, CommentUpdate
from bulletin.schemas.common import DeleteResponse, Page
from bulletin.services import comment_service

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("/post/{post_id}", response_model=list[CommentResponse])
async def list_comments_by_post(
    post_id: int,
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    """Comments of a post, newest first unless order=asc."""
    comments = await comment_service.list_comments_by_post(db, post_id, order)
    return [comment_to_response(c) for c in comments]


@router.get("/notice/{notice_id}", response_model=list[CommentResponse])
async def list_comments_by_notice(notice_id: int, db: AsyncSession = Depends(get_db)):
    comments = await comment_service.list_comments_by_post(db, notice_id)
    return [comment_to_response(c) for c in comments]


@router.get("/author/{author}", response_model=Page[CommentResponse])
async def list_comments_by_author(
    author: str,
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.list_comments_by_author(db, author, page, size)
    return page_to_response(result, comment_to_response)


@router.get("/search", response_model=Page[CommentResponse])
async def search_comments(
    content: str = Query(..., min_length=1),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.search_comments(db, content, page, size)
    return page_to_response(result, comment_to_response)


@router.get("/stats/by-post", response_model=list[CommentCountByPost])
async def count_comments_per_post(db: AsyncSession = Depends(get_db)):
    counts = await comment_service.count_comments_per_post(db)
    return [{"post_id": post_id, "count": count} for post_id, count in counts.items()]


@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.get_comment(db, comment_id)
    return comment_to_response(comment)


@router.post("", response_model=CommentResponse, status_code=201)
async def create_comment(body: CommentCreate, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.create_comment(db, body.post_id, body.content, body.author)
    return comment_to_response(comment)


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(comment_id: int, body: CommentUpdate, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.update_comment(db, comment_id, body.content)
    return comment_to_response(comment)


@router.delete("/{comment_id}", response_model=DeleteResponse)
async def delete_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    await comment_service.delete_comment(db, comment_id)
    return {"deleted": True, "id": comment_id, "message": "Comment deleted"}
