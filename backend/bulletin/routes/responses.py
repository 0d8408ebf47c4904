"""Model -> response dict conversion shared by the post, notice, comment and file routes."""
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from bulletin.models.comment import Comment
from bulletin.models.post import Post
from bulletin.models.post_file import PostFile
from bulletin.services import comment_service
from bulletin.services.file_service import PostFileService, format_size
from bulletin.services.pagination import PageResult


def post_to_response(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "author": post.author,
        "is_notice": post.is_notice,
        "is_pinned": post.is_pinned,
        "is_active": post.is_active,
        "is_expired": post.is_expired,
        "expiry_date": post.expiry_date,
        "view_count": post.view_count,
        "send_notification": post.send_notification,
        "created_at": post.created_at,
        "updated_at": post.updated_at,
    }


def comment_to_response(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "content": comment.content,
        "author": comment.author,
        "created_at": comment.created_at,
    }


def file_to_response(record: PostFile) -> dict:
    return {
        "id": record.id,
        "post_id": record.post_id,
        "original_name": record.original_name,
        "stored_name": record.stored_name,
        "file_size": record.file_size,
        "formatted_file_size": format_size(record.file_size),
        "content_type": record.content_type,
        "is_image": record.is_image,
        "download_url": record.download_url,
        "created_at": record.created_at,
    }


def page_to_response(result: PageResult, convert: Callable) -> dict:
    return {
        "items": [convert(item) for item in result.items],
        "total": result.total,
        "page": result.page,
        "size": result.size,
        "total_pages": result.total_pages,
    }


async def build_detail(db: AsyncSession, post: Post, file_service: PostFileService) -> dict:
    """Aggregate a post with its comments, files and counts.

    These are separate reads; counts may briefly disagree with the lists.
    """
    comments = await comment_service.list_comments_by_post(db, post.id)
    files = await file_service.list_files_by_post(db, post.id)
    comment_count = await comment_service.count_comments_by_post(db, post.id)
    file_count = await file_service.count_files_by_post(db, post.id)
    files_out = [file_to_response(f) for f in files]
    return {
        "comments": [comment_to_response(c) for c in comments],
        "files": files_out,
        "comment_count": comment_count,
        "file_count": file_count,
        "is_pinned": post.is_pinned,
        "is_active": post.is_active,
        "has_files": bool(files),
        "has_comments": bool(comments),
        "files_detail": files_out if files else None,
    }
