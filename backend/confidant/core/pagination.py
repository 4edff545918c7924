"""Pagination — pure page-window arithmetic shared by every paged listing.

Invariants:
    - total_pages >= 1 even for empty listings
    - page is clamped into [1, total_pages]; offset = (page - 1) * page_size
"""

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE: int = 5
MAX_PAGE_SIZE: int = 100


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int
    total: int
    total_pages: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class Page(Generic[T]):
    """One page of results plus the numbers a client needs to navigate."""
    items: list[T]
    page: int
    page_size: int
    total: int
    total_pages: int = field(default=1)


def page_window(page: int, page_size: int, total: int) -> PageWindow:
    size = min(max(page_size, 1), MAX_PAGE_SIZE)
    total_pages = max(1, math.ceil(total / size))
    safe_page = min(max(page, 1), total_pages)
    return PageWindow(
        page=safe_page, page_size=size, total=total, total_pages=total_pages,
    )


def build_page(items: list[T], window: PageWindow) -> Page[T]:
    return Page(
        items=items,
        page=window.page,
        page_size=window.page_size,
        total=window.total,
        total_pages=window.total_pages,
    )
