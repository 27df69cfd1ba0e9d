"""Shared response envelopes and the camelCase base model."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys; accepts either casing on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(CamelModel, Generic[T]):
    """``{"data": ...}`` envelope."""

    data: T


class PageResponse(CamelModel, Generic[T]):
    """``{"data": [...], "limit": n, "nextCursor": ...}`` envelope."""

    data: list[T]
    limit: int
    next_cursor: str | int | None = None

