"""File request/response schemas."""
from typing import Optional
from datetime import datetime
from pydantic import field_validator
from bulletin.schemas.base import CamelModel, CamelORMModel, utc_or_none


class FileResponse(CamelORMModel):
    id: int
    post_id: int
    original_name: str
    stored_name: str
    file_size: int
    formatted_file_size: str
    content_type: Optional[str] = None
    is_image: bool
    download_url: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v):
        return utc_or_none(v)


class FileInfoResponse(CamelModel):
    file: FileResponse
    formatted_size: str


class UploadResponse(CamelModel):
    message: str
    files: list[FileResponse]


class FileStatsResponse(CamelModel):
    total_files: int
    total_size: int
    formatted_total_size: str
    image_files: int


class UploadMultipleResponse(CamelModel):
    message: str
    count: int
    files: list[FileResponse]
