"""Files API routes: post attachments."""
import logging
from fastapi import APIRouter, Depends, Query, UploadFile, File as FastAPIFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.database import get_db
from bulletin.routes.responses import file_to_response
from bulletin.schemas.common import DeleteResponse
from bulletin.schemas.file import (
    FileInfoResponse, FileResponse, FileStatsResponse, UploadMultipleResponse, UploadResponse,
)
from bulletin.services.errors import InvalidInputError
from bulletin.services.file_service import (
    PostFileService, content_disposition, format_size, get_file_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/post/{post_id}", response_model=list[FileResponse])
async def list_files_by_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Attachments of a post, oldest first."""
    files = await file_service.list_files_by_post(db, post_id)
    return [file_to_response(f) for f in files]


@router.post("/upload/{post_id}", response_model=UploadResponse, status_code=201)
async def upload_files(
    post_id: int,
    files: list[UploadFile] = FastAPIFile(...),
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Upload one or more attachments to a post. Empty parts are skipped."""
    uploaded = []
    for upload in files:
        contents = await upload.read()
        if not contents:
            logger.info(f"Skipping empty upload part {upload.filename!r} for post {post_id}")
            continue
        record = await file_service.upload_file(
            db, post_id, contents, upload.filename, upload.content_type,
        )
        uploaded.append(record)

    if not uploaded:
        raise InvalidInputError("No file to upload")

    return {
        "message": f"{len(uploaded)} file(s) uploaded",
        "files": [file_to_response(f) for f in uploaded],
    }


@router.post("/upload-multiple/{post_id}", response_model=UploadMultipleResponse, status_code=201)
async def upload_multiple_files(
    post_id: int,
    files: list[UploadFile] = FastAPIFile(...),
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Upload every part in order; an empty part fails with 400.

    Parts stored before the failing one stay uploaded.
    """
    uploaded = []
    for upload in files:
        contents = await upload.read()
        record = await file_service.upload_file(
            db, post_id, contents, upload.filename, upload.content_type,
        )
        uploaded.append(record)

    return {
        "message": f"{len(uploaded)} file(s) uploaded",
        "count": len(uploaded),
        "files": [file_to_response(f) for f in uploaded],
    }


@router.get("/download/{stored_name}")
async def download_file(
    stored_name: str,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Download an attachment under its original file name."""
    record, data = await file_service.download_file(db, stored_name)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(record.original_name)},
    )


@router.get("/images", response_model=list[FileResponse])
async def list_image_files(
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    files = await file_service.list_image_files(db)
    return [file_to_response(f) for f in files]


@router.get("/search", response_model=list[FileResponse])
async def search_files(
    name: str = Query(..., min_length=1, description="Substring of the original file name"),
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    files = await file_service.search_files(db, name)
    return [file_to_response(f) for f in files]


@router.get("/stats", response_model=FileStatsResponse)
async def get_file_stats(
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    total_size = await file_service.total_size(db)
    return {
        "total_files": await file_service.count_files(db),
        "total_size": total_size,
        "formatted_total_size": format_size(total_size),
        "image_files": await file_service.count_files(db, images_only=True),
    }


@router.get("/{file_id}", response_model=FileInfoResponse)
async def get_file_info(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    record = await file_service.get_file(db, file_id)
    return {"file": file_to_response(record), "formatted_size": format_size(record.file_size)}


@router.delete("/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    file_service: PostFileService = Depends(get_file_service),
):
    """Delete an attachment and its bytes. Already-missing bytes are not an error."""
    await file_service.delete_file(db, file_id)
    return {"deleted": True, "id": file_id, "message": "File deleted"}
