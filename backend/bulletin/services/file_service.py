"""Attachment service: keeps file rows and bytes on disk in step.

Upload writes the bytes first and then inserts the row. If the insert
fails the bytes are removed again, and a failed write never reaches the
insert, so neither side is left orphaned.
"""
import logging
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

from sqlalchemy import asc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.models.post_file import PostFile
from bulletin.services import post_service
from bulletin.services.errors import InvalidInputError, NotFoundError, StorageInconsistencyError
from bulletin.services.file_storage import FileStorageConfig, LocalFileStorage

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_size(size_bytes: Optional[int]) -> str:
    """Human readable size with one decimal, e.g. 1536 -> "1.5 KB"."""
    if not size_bytes:
        return "0 B"
    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{size:.1f} {_SIZE_UNITS[unit]}"


def content_disposition(original_name: str) -> str:
    """Attachment header carrying the original name, percent-encoded as UTF-8."""
    encoded = quote(original_name, safe="")
    return f"attachment; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"


class PostFileService:
    """File operations for post attachments over a LocalFileStorage."""

    def __init__(self, storage: LocalFileStorage):
        self.storage = storage

    async def list_files_by_post(self, db: AsyncSession, post_id: int) -> list[PostFile]:
        result = await db.execute(
            select(PostFile)
            .where(PostFile.post_id == post_id)
            .order_by(asc(PostFile.created_at), asc(PostFile.id))
        )
        return list(result.scalars().all())

    async def get_file(self, db: AsyncSession, file_id: int) -> PostFile:
        record = await db.get(PostFile, file_id)
        if not record:
            raise NotFoundError(f"File not found: {file_id}")
        return record

    async def get_file_by_stored_name(self, db: AsyncSession, stored_name: str) -> PostFile:
        result = await db.execute(select(PostFile).where(PostFile.stored_name == stored_name))
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundError(f"File not found: {stored_name}")
        return record

    async def upload_file(
        self,
        db: AsyncSession,
        post_id: int,
        data: bytes,
        original_name: Optional[str],
        content_type: Optional[str],
    ) -> PostFile:
        if not data:
            raise InvalidInputError("Uploaded file is empty")
        if len(data) > self.storage.config.max_upload_size:
            raise InvalidInputError(
                f"File exceeds the upload limit of {format_size(self.storage.config.max_upload_size)}"
            )
        await post_service.get_post(db, post_id)

        original_name = original_name or "unnamed"
        stored_name = self.storage.new_stored_name(original_name)
        file_path = await self.storage.save(data, stored_name)

        record = PostFile(
            post_id=post_id,
            original_name=original_name,
            stored_name=stored_name,
            file_path=file_path,
            file_size=len(data),
            content_type=content_type,
        )
        db.add(record)
        try:
            await db.commit()
        except BaseException:
            await db.rollback()
            self.storage.discard(file_path)
            raise
        await db.refresh(record)
        logger.info(f"Stored {original_name!r} as {stored_name} for post {post_id} ({len(data)} bytes)")
        return record

    async def download_file(self, db: AsyncSession, stored_name: str) -> tuple[PostFile, bytes]:
        """Return the row and the file bytes.

        A row whose bytes are gone raises StorageInconsistencyError.
        """
        record = await self.get_file_by_stored_name(db, stored_name)
        try:
            data = await self.storage.read(record.file_path)
        except FileNotFoundError:
            logger.error(f"File row {record.id} points at missing file {record.file_path}")
            raise StorageInconsistencyError(f"Stored file is missing: {stored_name}")
        return record, data

    async def delete_file(self, db: AsyncSession, file_id: int) -> None:
        record = await self.get_file(db, file_id)
        if not await self.storage.delete(record.file_path):
            logger.warning(f"File {record.file_path} was already gone; removing row {file_id}")
        await db.delete(record)
        await db.commit()

    async def remove_stored_files(self, paths: list[str]) -> None:
        """Unlink attachment bytes whose rows were deleted along with their post."""
        for path in paths:
            try:
                await self.storage.delete(path)
            except OSError as e:
                logger.error(f"Could not remove attachment {path}: {e}")

    async def list_image_files(self, db: AsyncSession) -> list[PostFile]:
        result = await db.execute(
            select(PostFile)
            .where(PostFile.content_type.like("image/%"))
            .order_by(asc(PostFile.created_at), asc(PostFile.id))
        )
        return list(result.scalars().all())

    async def search_files(self, db: AsyncSession, name: str) -> list[PostFile]:
        result = await db.execute(
            select(PostFile)
            .where(PostFile.original_name.icontains(name, autoescape=True))
            .order_by(asc(PostFile.created_at), asc(PostFile.id))
        )
        return list(result.scalars().all())

    async def count_files_by_post(self, db: AsyncSession, post_id: int) -> int:
        result = await db.execute(select(func.count(PostFile.id)).where(PostFile.post_id == post_id))
        return result.scalar_one()

    async def count_files(self, db: AsyncSession, images_only: bool = False) -> int:
        query = select(func.count(PostFile.id))
        if images_only:
            query = query.where(PostFile.content_type.like("image/%"))
        return (await db.execute(query)).scalar_one()

    async def total_size(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.coalesce(func.sum(PostFile.file_size), 0)))
        return int(result.scalar_one())


@lru_cache
def get_file_service() -> PostFileService:
    """FastAPI dependency; tests override it with a temp-dir backed service."""
    return PostFileService(LocalFileStorage(FileStorageConfig.from_settings()))
