"""Base schema classes with camelCase alias generation.

All API schemas inherit from these instead of BaseModel directly.
Backend Python code stays snake_case. API JSON output becomes camelCase.
"""
from datetime import datetime, timezone
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from bulletin.models.base import as_utc


class CamelModel(BaseModel):
    """Base for request schemas (Create/Update). Accepts and outputs camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "protected_namespaces": (),
    }


class CamelORMModel(BaseModel):
    """Base for response schemas. Reads from SQLAlchemy, outputs camelCase."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
        "protected_namespaces": (),
    }


def utc_or_none(value: datetime | None) -> datetime | None:
    """Used by response validators so timestamps always serialize with an offset."""
    return as_utc(value) if value is not None else None


def to_utc(value: datetime | None) -> datetime | None:
    """Normalize incoming timestamps to UTC; naive input is taken as UTC."""
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc)
