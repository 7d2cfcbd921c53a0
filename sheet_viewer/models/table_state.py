from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""View state value objects (sort / filter / page).

All three are frozen; TableModel swaps whole instances instead of mutating.
"""

__all__ = [
    "SortDirection",
    "SortState",
    "FilterState",
    "PageState",
    "DEFAULT_PAGE_SIZE",
]

DEFAULT_PAGE_SIZE = 50


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True)
class SortState:
    """Active sort column (None = load order) and direction."""
    column: int | None = None
    direction: SortDirection = SortDirection.ASCENDING

    def toggled(self, column: int) -> SortState:
        """Return the state after a click on ``column``.

        Same column flips the direction; a different column starts ascending.
        """
        if self.column == column:
            flipped = (
                SortDirection.DESCENDING
                if self.direction is SortDirection.ASCENDING
                else SortDirection.ASCENDING
            )
            return SortState(column=column, direction=flipped)
        return SortState(column=column, direction=SortDirection.ASCENDING)


@dataclass(frozen=True)
class FilterState:
    """Free-text search plus exact device type match. Empty strings disable each part."""
    search_text: str = ""
    device_type: str = ""

    @property
    def is_active(self) -> bool:
        return bool(self.search_text) or bool(self.device_type)


@dataclass(frozen=True)
class PageState:
    current_page: int = 1  # 1-based
    page_size: int = DEFAULT_PAGE_SIZE
