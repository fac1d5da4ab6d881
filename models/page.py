"""
Pagination Models

PageRequest describes which slice of a tenant's rows to read; Page carries the
slice back together with the totals needed to render pagers.
"""

import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PageRequest(BaseModel):
    """
    Zero-based page request.

    Attributes:
        page: Page index, starting at 0
        size: Number of rows per page (at least 1)
    """
    page: int = Field(default=0, ge=0, description="Zero-based page index")
    size: int = Field(default=20, ge=1, description="Rows per page")

    @property
    def offset(self) -> int:
        return self.page * self.size


class Page(BaseModel, Generic[T]):
    """
    One page of results.

    Attributes:
        items: Rows on this page
        total: Number of rows across all pages
        page: Index of this page
        size: Requested page size
    """
    items: List[T]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages
