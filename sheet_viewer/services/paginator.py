from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TypeVar

from sheet_viewer.models.table_state import DEFAULT_PAGE_SIZE, PageState
from sheet_viewer.services.errors import ValidationError

"""Pagination over a derived view.

The Paginator only knows the page state; the view (list of row identities)
is always passed in by the caller so the page window can never drift from the
TableModel's current view.
"""

__all__ = [
    "ELLIPSIS",
    "PAGE_DELTA",
    "Paginator",
    "page_numbers",
    "total_pages",
]

ELLIPSIS = "..."
PAGE_DELTA = 2  # current の前後に常に表示するページ数

T = TypeVar("T")


def total_pages(view_length: int, page_size: int) -> int:
    return max(1, math.ceil(view_length / page_size))


def page_numbers(current: int, total: int) -> list[int | str]:
    """Compressed page number list for the pagination bar.

    1 と total は常に含め、current ± PAGE_DELTA の範囲を含める。
    欠番が 1 ページだけならその番号で埋め、2 ページ以上なら ELLIPSIS 1 個に畳む。

    >>> page_numbers(5, 10)
    [1, 2, 3, 4, 5, 6, 7, '...', 10]
    >>> page_numbers(1, 1)
    [1]
    """
    pages = [
        i for i in range(1, total + 1)
        if i == 1 or i == total or current - PAGE_DELTA <= i <= current + PAGE_DELTA
    ]
    result: list[int | str] = []
    last: int | None = None
    for i in pages:
        if last is not None:
            if i - last == 2:
                result.append(last + 1)
            elif i - last != 1:
                result.append(ELLIPSIS)
        result.append(i)
        last = i
    return result


class Paginator:
    """Holds the PageState and maps a view onto the visible window."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValidationError(f"page size must be positive: {page_size}")
        self._state = PageState(current_page=1, page_size=page_size)

    @property
    def state(self) -> PageState:
        return self._state

    @property
    def current_page(self) -> int:
        return self._state.current_page

    @property
    def page_size(self) -> int:
        return self._state.page_size

    def total_pages(self, view_length: int) -> int:
        return total_pages(view_length, self._state.page_size)

    def window_for(self, view: Sequence[T]) -> tuple[list[T], int]:
        """Return (visible items, start offset) for the current page."""
        size = self._state.page_size
        start = (self._state.current_page - 1) * size
        start = min(start, len(view))
        return list(view[start:start + size]), start

    def go_to_page(self, page: int, view_length: int) -> bool:
        """Move to ``page``. Out-of-range pages are ignored (returns False)."""
        if page < 1 or page > self.total_pages(view_length):
            return False
        self._state = PageState(current_page=page, page_size=self._state.page_size)
        return True

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValidationError(f"page size must be positive: {page_size}")
        self._state = PageState(current_page=1, page_size=page_size)

    def reset(self) -> None:
        """Back to page 1 keeping the page size."""
        self._state = PageState(current_page=1, page_size=self._state.page_size)
