"""Comment request/response schemas."""
from datetime import datetime
from pydantic import Field, field_validator
from bulletin.schemas.base import CamelModel, CamelORMModel, utc_or_none


class CommentCreate(CamelModel):
    post_id: int
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1, max_length=100)


class CommentUpdate(CamelModel):
    content: str = Field(..., min_length=1)


class CommentResponse(CamelORMModel):
    id: int
    post_id: int
    content: str
    author: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v):
        return utc_or_none(v)


class CommentCountByPost(CamelModel):
    post_id: int
    count: int
