"""Import all models so SQLAlchemy metadata knows about them."""
from bulletin.models.base import Base
from bulletin.models.post import Post
from bulletin.models.comment import Comment
from bulletin.models.post_file import PostFile

__all__ = [
    "Base",
    "Post", "Comment", "PostFile",
]
