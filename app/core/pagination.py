"""Pagination helpers for list endpoints (users, credit ledger)."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

MAX_PAGE_SIZE = 200


class Page(BaseModel, Generic[T]):
    items: list[T]
    limit: int
    offset: int
    total: int | None = None


def paginate(limit: int, offset: int, max_limit: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    """Clamp limit to [1, max_limit] and offset to >= 0."""
    return max(1, min(limit, max_limit)), max(0, offset)
