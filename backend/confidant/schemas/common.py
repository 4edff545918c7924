"""Shared schema helpers."""

from confidant.core.pagination import Page


def page_fields(page: Page) -> dict:
    """Navigation numbers every *Page response carries."""
    return {
        "page": page.page,
        "page_size": page.page_size,
        "total": page.total,
        "total_pages": page.total_pages,
    }
