# civreg/utils/pagination.py
from typing import Optional
from civreg.models.common import CamelModel


class PageMeta(CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_prev: bool
    has_next: bool

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


def paginate(total: int, page: int, page_size: int, max_page_size: Optional[int] = None) -> PageMeta:
    """Clamps the page into range; an empty result still has one (empty) page."""
    if max_page_size:
        page_size = min(page_size, max_page_size)
    page_size = max(page_size, 1)
    total_pages = max(-(-total // page_size), 1)
    page = min(max(page, 1), total_pages)
    return PageMeta(
        page=page, page_size=page_size, total=total, total_pages=total_pages,
        has_prev=page > 1, has_next=page < total_pages,
    )
