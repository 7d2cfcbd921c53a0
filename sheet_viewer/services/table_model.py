from __future__ import annotations

import locale
import logging
import math
from collections.abc import Iterable
from functools import cmp_to_key

from sheet_viewer.config.loader import ColumnsConfig
from sheet_viewer.models.dataset import CellValue, Dataset, RowRef
from sheet_viewer.models.table_state import (
    DEFAULT_PAGE_SIZE,
    FilterState,
    PageState,
    SortDirection,
    SortState,
)
from sheet_viewer.services.columns import ROLE_DEVICE_TYPE, ColumnRoles
from sheet_viewer.services.paginator import Paginator
from sheet_viewer.services.selection import SelectionTracker

logger = logging.getLogger(__name__)

"""TableModel: authoritative dataset + derived view.

The view is a list of row identities (indexes into the loaded Dataset). Sort
and filter never touch the Dataset itself; they only rebuild the view:

    view = sort(filter(range(len(dataset))))

Rows are filtered in load order and then sorted with a stable sort, so rows
with equal keys always keep their load order.
"""

__all__ = [
    "TableModel",
    "compare_cells",
    "parse_number",
]


def parse_number(value: CellValue) -> float | None:
    """Return the numeric value of a cell if the whole cell is a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    return num if math.isfinite(num) else None


def _as_text(value: CellValue) -> str:
    return "" if value is None else str(value)


def compare_cells(a: CellValue, b: CellValue) -> int:
    """Compare two cells: numerically when both are numbers, else by locale collation."""
    a_num = parse_number(a)
    b_num = parse_number(b)
    if a_num is not None and b_num is not None:
        return (a_num > b_num) - (a_num < b_num)
    return locale.strcoll(_as_text(a), _as_text(b))


class TableModel:
    """Owns the loaded Dataset and the sort/filter/page state derived from it.

    Every operation is a no-op until ``load()`` has been called once.
    """

    def __init__(
        self,
        page_size: int = DEFAULT_PAGE_SIZE,
        columns: ColumnsConfig | None = None,
        selection: SelectionTracker | None = None,
    ) -> None:
        self._columns = columns or ColumnsConfig()
        self._dataset: Dataset | None = None
        self._roles: ColumnRoles | None = None
        self._view: list[int] = []
        self._sort = SortState()
        self._filter = FilterState()
        self.paginator = Paginator(page_size)
        self.selection = selection if selection is not None else SelectionTracker()

    # ------------------------------------------------------------------ state
    @property
    def is_loaded(self) -> bool:
        return self._dataset is not None

    @property
    def dataset(self) -> Dataset:
        return self._dataset if self._dataset is not None else Dataset()

    @property
    def headers(self) -> tuple[str, ...]:
        return self.dataset.headers

    @property
    def roles(self) -> ColumnRoles:
        if self._roles is None:
            self._roles = ColumnRoles.resolve(self.headers, self._columns)
        return self._roles

    @property
    def view(self) -> tuple[int, ...]:
        return tuple(self._view)

    @property
    def sort_state(self) -> SortState:
        return self._sort

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    @property
    def page_state(self) -> PageState:
        return self.paginator.state

    @property
    def total_count(self) -> int:
        return len(self.dataset)

    @property
    def filtered_count(self) -> int:
        return len(self._view)

    @property
    def total_pages(self) -> int:
        return self.paginator.total_pages(len(self._view))

    # ------------------------------------------------------------- operations
    def load(self, dataset: Dataset | None) -> None:
        """Replace the dataset wholesale.

        Sort, filter and page state go back to their defaults and the selection
        is cleared; callers that keep filter inputs re-apply them afterwards.
        """
        self._dataset = dataset if dataset is not None else Dataset()
        self._roles = None
        self._sort = SortState()
        self._filter = FilterState()
        self.paginator.reset()
        self.selection.clear_all()
        self._derive()
        logger.debug(f"table loaded rows={len(self._dataset)} cols={len(self._dataset.headers)}")

    def sort_by(self, column_index: int) -> None:
        """Sort by ``column_index``, toggling direction on repeated clicks.

        The current page is kept (the view length does not change).
        """
        if self._dataset is None:
            return
        if not 0 <= column_index < len(self._dataset.headers):
            logger.debug(f"sort ignored: column index out of range {column_index}")
            return
        self._sort = self._sort.toggled(column_index)
        self._derive()

    def apply_filter(self, filter_state: FilterState) -> tuple[int, int]:
        """Re-derive the view from the full dataset.

        Returns:
            (filtered_count, total_count)

        Raises:
            ConfigurationError: device type filter requested but the device type
                column is not part of the headers
        """
        if self._dataset is None:
            return (0, 0)
        if filter_state.device_type:
            self.roles.require(ROLE_DEVICE_TYPE)
        self._filter = filter_state
        self._derive()
        self.paginator.reset()
        return (len(self._view), len(self._dataset))

    def go_to_page(self, page: int) -> bool:
        if self._dataset is None:
            return False
        return self.paginator.go_to_page(page, len(self._view))

    def set_page_size(self, page_size: int) -> None:
        self.paginator.set_page_size(page_size)

    def visible_rows(self) -> tuple[list[RowRef], int]:
        """Rows on the current page and the offset of the first one in the view."""
        identities, start = self.paginator.window_for(self._view)
        dataset = self.dataset
        return [dataset.row(i) for i in identities], start

    def visible_identities(self) -> list[int]:
        identities, _ = self.paginator.window_for(self._view)
        return identities

    def rows_for(self, identities: Iterable[int]) -> list[RowRef]:
        """Resolve identities to rows, in current view order then load order."""
        dataset = self.dataset
        wanted = {i for i in identities if 0 <= i < len(dataset)}
        in_view = [i for i in self._view if i in wanted]
        rest = sorted(wanted.difference(in_view))
        return [dataset.row(i) for i in in_view + rest]

    # --------------------------------------------------------------- internal
    def _matches(self, row: tuple[CellValue, ...]) -> bool:
        search = self._filter.search_text.lower()
        if search and not any(
            cell is not None and cell != "" and search in str(cell).lower() for cell in row
        ):
            return False
        if self._filter.device_type:
            idx = self.roles.require(ROLE_DEVICE_TYPE)
            if row[idx] != self._filter.device_type:
                return False
        return True

    def _derive(self) -> None:
        dataset = self.dataset
        if self._filter.is_active:
            view = [i for i, row in enumerate(dataset.rows) if self._matches(row)]
        else:
            view = list(range(len(dataset)))

        column = self._sort.column
        if column is not None:
            sign = -1 if self._sort.direction is SortDirection.DESCENDING else 1
            rows = dataset.rows

            def cmp(a: int, b: int) -> int:
                return sign * compare_cells(rows[a][column], rows[b][column])

            # list.sort は安定ソート: 同値はロード順を維持
            view.sort(key=cmp_to_key(cmp))
        self._view = view
