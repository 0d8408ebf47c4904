"""Notices API routes. A notice is a post with isNotice=true."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.config import settings
from bulletin.database import get_db
from bulletin.routes.responses import build_detail, page_to_response, post_to_response
from bulletin.schemas.common import DeleteResponse, Page
from bulletin.schemas.post import (
    NoticeCreate, NoticeDetailResponse, NoticeStatsResponse, PostResponse, PostUpdate,
)
from bulletin.services import post_service
from bulletin.services.file_service import PostFileService, get_file_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notices", tags=["notices"])


@router.get("", response_model=Page[PostResponse])
async def list_notices(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List all notices (active or not), pinned first."""
    result = await post_service.list_notices(db, page, size)
    return page_to_response(result, post_to_response)


@router.get("/active", response_model=list[PostResponse])
async def list_active_notices(db: AsyncSession = Depends(get_db)):
    notices = await post_service.list_active_notices(db)
    return [post_to_response(n) for n in notices]


@router.get("/status", response_model=Page[PostResponse])
async def list_notices_by_status(
    active: bool = Query(True),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List notices filtered by active flag."""
    result = await post_service.list_notices_by_status(db, active, page, size)
    return page_to_response(result, post_to_response)


@router.get("/search", response_model=Page[PostResponse])
async def search_notices(
    title: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    content: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None),
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await post_service.search_notices(
        db, title=title, author=author, content=content, keyword=keyword, page=page, size=size,
    )
    return page_to_response(result, post_to_response)


@router.get("/pinned", response_model=list[PostResponse])
async def list_pinned_notices(db: AsyncSession = Depends(get_db)):
    notices = await post_service.list_pinned_notices(db)
    return [post_to_response(n) for n in notices]


@router.get("/regular", response_model=list[PostResponse])
async def list_regular_notices(db: AsyncSession = Depends(get_db)):
    notices = await post_service.list_regular_notices(db)
    return [post_to_response(n) for n in notices]


@router.get("/expiring-soon", response_model=list[PostResponse])
async def list_notices_expiring_soon(
    days: int = Query(settings.EXPIRING_SOON_DAYS, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Active notices expiring within `days` days, soonest first."""
    notices = await post_service.list_notices_expiring_soon(db, days)
    return [post_to_response(n) for n in notices]


@router.get("/stats", response_model=NoticeStatsResponse)
async def get_notice_stats(db: AsyncSession = Depends(get_db)):
    return await post_service.get_notice_stats(db, settings.EXPIRING_SOON_DAYS)


@router.get("/{notice_id}", response_model=NoticeDetailResponse)
async def get_notice(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Notice detail with comments and files. Counts as a view."""
    notice = await post_service.get_notice_with_view_increment(db, notice_id)
    detail = await build_detail(db, notice, file_service)
    return {
        "notice": post_to_response(notice),
        "is_expired": notice.is_expired,
        "expiry_date": notice.expiry_date,
        **detail,
    }


@router.post("", response_model=PostResponse, status_code=201)
async def create_notice(
    body: NoticeCreate,
    db: AsyncSession = Depends(get_db),
):
    notice = await post_service.create_notice(db, **body.model_dump())
    logger.info(f"Created notice {notice.id} (pinned={notice.is_pinned}, active={notice.is_active})")
    return post_to_response(notice)


@router.put("/{notice_id}", response_model=PostResponse)
async def update_notice(
    notice_id: int,
    body: PostUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a notice. Only provided fields are updated; `expiryDate: null` clears the expiry."""
    notice = await post_service.update_notice(db, notice_id, **body.model_dump(exclude_unset=True))
    return post_to_response(notice)


@router.delete("/{notice_id}", response_model=DeleteResponse)
async def delete_notice(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    await post_service.get_notice(db, notice_id)
    paths = await post_service.delete_post(db, notice_id)
    await file_service.remove_stored_files(paths)
    return {"deleted": True, "id": notice_id, "message": "Notice deleted"}


@router.patch("/{notice_id}/toggle-status", response_model=PostResponse)
async def toggle_notice_status(
    notice_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Flip a notice between active and inactive."""
    notice = await post_service.toggle_notice_status(db, notice_id)
    return post_to_response(notice)
