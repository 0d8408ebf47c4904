"""Post and notice request/response schemas."""
from typing import Optional
from datetime import datetime
from pydantic import Field, field_validator
from bulletin.schemas.base import CamelModel, CamelORMModel, to_utc, utc_or_none
from bulletin.schemas.comment import CommentResponse
from bulletin.schemas.file import FileResponse


class NoticeCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1, max_length=100)
    is_pinned: Optional[bool] = None
    is_active: Optional[bool] = None
    expiry_date: Optional[datetime] = None
    send_notification: Optional[bool] = None

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, v):
        return to_utc(v)


class PostCreate(NoticeCreate):
    """Plain post body; `isNotice: true` turns it into a notice."""
    is_notice: bool = False


class PostUpdate(CamelModel):
    """Only provided fields are updated. Notice fields are ignored for plain posts."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    is_pinned: Optional[bool] = None
    is_active: Optional[bool] = None
    expiry_date: Optional[datetime] = None
    send_notification: Optional[bool] = None

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, v):
        return to_utc(v)


class PostResponse(CamelORMModel):
    id: int
    title: str
    content: str
    author: str
    is_notice: bool
    is_pinned: bool
    is_active: bool
    is_expired: bool
    expiry_date: Optional[datetime] = None
    view_count: int
    send_notification: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("expiry_date", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v):
        return utc_or_none(v)


class PostDetailResponse(CamelModel):
    post: PostResponse
    comments: list[CommentResponse]
    files: list[FileResponse]
    comment_count: int
    file_count: int
    is_notice: bool
    is_pinned: bool
    is_active: bool
    has_files: bool
    has_comments: bool
    files_detail: Optional[list[FileResponse]] = None


class NoticeDetailResponse(CamelModel):
    notice: PostResponse
    comments: list[CommentResponse]
    files: list[FileResponse]
    comment_count: int
    file_count: int
    is_pinned: bool
    is_active: bool
    is_expired: bool
    expiry_date: Optional[datetime] = None
    has_files: bool
    has_comments: bool
    files_detail: Optional[list[FileResponse]] = None


class PostStatsResponse(CamelModel):
    total_posts: int
    regular_posts: int
    total_notices: int
    active_notices: int
    pinned_notices: int
    expired_notices: int
    total_file_size: str


class NoticeStatsResponse(CamelModel):
    total: int
    active: int
    pinned: int
    expired: int
    expiring_soon: int


class AuthorPostCount(CamelModel):
    author: str
    count: int
