"""Shared Pydantic schemas."""
from typing import Generic, TypeVar
from bulletin.schemas.base import CamelModel

T = TypeVar("T")


class Page(CamelModel, Generic[T]):
    """One page of a listing. `page` is 0-based."""
    items: list[T]
    total: int
    page: int
    size: int
    total_pages: int


class DeleteResponse(CamelModel):
    deleted: bool = True
    id: int
    message: str = ""
