from __future__ import annotations

import pytest

from sheet_viewer.models.dataset import Dataset
from sheet_viewer.models.table_state import FilterState, SortDirection
from sheet_viewer.services.errors import ConfigurationError
from sheet_viewer.services.table_model import TableModel, compare_cells, parse_number


def _column_values(model: TableModel, column: int) -> list:
    rows, _ = model.visible_rows()
    return [r.values[column] for r in rows]


def _single_column(values: list) -> Dataset:
    return Dataset(headers=("v",), rows=tuple((v,) for v in values))


def test_parse_number_whole_cell_only():
    assert parse_number("10") == 10.0
    assert parse_number(" 2.5 ") == 2.5
    assert parse_number(3) == 3.0
    assert parse_number("10a") is None
    assert parse_number("") is None
    assert parse_number(None) is None
    assert parse_number("nan") is None
    assert parse_number("inf") is None
    assert parse_number(True) is None


def test_compare_cells_numeric_vs_text():
    assert compare_cells("9", "10") < 0
    assert compare_cells("10", "9") > 0
    assert compare_cells("2", "2.0") == 0
    # 片方が数値でなければ文字列比較
    assert compare_cells("10", "9a") < 0
    assert compare_cells("b", "a") > 0


def test_operations_are_noop_before_load():
    model = TableModel()
    model.sort_by(0)
    assert model.sort_state.column is None
    assert model.apply_filter(FilterState(search_text="x")) == (0, 0)
    assert model.go_to_page(2) is False
    assert model.visible_rows() == ([], 0)
    assert model.total_count == 0
    assert model.is_loaded is False


def test_sort_numeric_ascending():
    model = TableModel()
    model.load(_single_column(["10", "9", "2"]))
    model.sort_by(0)
    assert _column_values(model, 0) == ["2", "9", "10"]
    assert model.sort_state.direction is SortDirection.ASCENDING


def test_sort_same_column_twice_reverses():
    model = TableModel()
    model.load(_single_column(["10", "9", "2"]))
    model.sort_by(0)
    model.sort_by(0)
    assert _column_values(model, 0) == ["10", "9", "2"]
    assert model.sort_state.direction is SortDirection.DESCENDING
    model.sort_by(0)
    assert model.sort_state.direction is SortDirection.ASCENDING


def test_sort_text_cells():
    model = TableModel()
    model.load(_single_column(["b", "a"]))
    model.sort_by(0)
    assert _column_values(model, 0) == ["a", "b"]


def test_sort_new_column_starts_ascending():
    model = TableModel()
    model.load(Dataset(headers=("a", "b"), rows=(("1", "y"), ("2", "x"))))
    model.sort_by(0)
    model.sort_by(0)
    model.sort_by(1)
    assert model.sort_state.column == 1
    assert model.sort_state.direction is SortDirection.ASCENDING
    assert _column_values(model, 1) == ["x", "y"]


def test_sort_is_stable_for_equal_keys():
    ds = Dataset(
        headers=("key", "order"),
        rows=(("b", "1"), ("a", "2"), ("b", "3"), ("a", "4"), ("b", "5")),
    )
    model = TableModel()
    model.load(ds)
    model.sort_by(0)
    assert _column_values(model, 1) == ["2", "4", "1", "3", "5"]
    model.sort_by(0)
    # 降順でも同値はロード順
    assert _column_values(model, 1) == ["1", "3", "5", "2", "4"]


def test_sort_out_of_range_column_ignored(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    model.sort_by(99)
    model.sort_by(-1)
    assert model.sort_state.column is None
    assert list(model.view) == [0, 1, 2, 3]


def test_sort_keeps_current_page():
    model = TableModel(page_size=2)
    model.load(_single_column([str(i) for i in range(6)]))
    assert model.go_to_page(2)
    model.sort_by(0)
    assert model.page_state.current_page == 2


def test_sort_does_not_mutate_dataset(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    model.sort_by(0)
    model.sort_by(0)
    assert model.dataset.rows == sample_dataset.rows


def test_filter_counts_and_page_reset():
    rows = [(f"R{i:03d}", "hit" if i % 15 == 0 else "miss") for i in range(100)]
    model = TableModel(page_size=10)
    model.load(Dataset(headers=("id", "memo"), rows=tuple(rows)))
    model.go_to_page(3)
    counts = model.apply_filter(FilterState(search_text="HIT"))
    assert counts == (7, 100)
    assert model.page_state.current_page == 1
    assert model.filtered_count == 7
    assert model.total_count == 100


def test_filter_empty_search_matches_all(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    assert model.apply_filter(FilterState(search_text="")) == (4, 4)


def test_filter_device_type_exact_match(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    assert model.apply_filter(FilterState(device_type="端末")) == (3, 4)
    assert model.apply_filter(FilterState(device_type="端")) == (0, 4)


def test_filter_search_and_device_type_combined(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    assert model.apply_filter(FilterState(search_text="t01", device_type="端末")) == (1, 4)
    rows, _ = model.visible_rows()
    assert rows[0].values[0] == "A001"


def test_filter_device_type_missing_column_raises():
    model = TableModel()
    model.load(Dataset(headers=("a",), rows=(("x",),)))
    with pytest.raises(ConfigurationError):
        model.apply_filter(FilterState(device_type="端末"))
    # 状態は変わらない
    assert model.filter_state == FilterState()
    assert model.filtered_count == 1


def test_filter_keeps_active_sort(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    model.sort_by(0)
    model.sort_by(0)
    model.apply_filter(FilterState(device_type="端末"))
    assert _column_values(model, 0) == ["A004", "A003", "A001"]


def test_filter_then_clear_restores_full_view(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    model.apply_filter(FilterState(search_text="プリンタ"))
    assert model.filtered_count == 1
    model.apply_filter(FilterState())
    assert list(model.view) == [0, 1, 2, 3]


def test_load_resets_state_and_selection(sample_dataset):
    model = TableModel(page_size=2)
    model.load(sample_dataset)
    model.sort_by(1)
    model.apply_filter(FilterState(search_text="A"))
    model.go_to_page(2)
    model.selection.toggle(1)
    model.load(sample_dataset)
    assert model.sort_state.column is None
    assert model.filter_state == FilterState()
    assert model.page_state.current_page == 1
    assert len(model.selection) == 0


def test_load_none_is_empty_dataset():
    model = TableModel()
    model.load(None)
    assert model.is_loaded is True
    assert model.total_count == 0
    assert model.total_pages == 1
    assert model.visible_rows() == ([], 0)


def test_visible_rows_window_and_offset():
    model = TableModel(page_size=50)
    model.load(_single_column([str(i) for i in range(125)]))
    assert model.total_pages == 3
    rows, start = model.visible_rows()
    assert start == 0
    assert [r.identity for r in rows] == list(range(50))
    assert model.go_to_page(3)
    rows, start = model.visible_rows()
    assert start == 100
    assert len(rows) == 25
    assert model.go_to_page(4) is False
    assert model.page_state.current_page == 3


def test_set_page_size_resets_to_first_page():
    model = TableModel(page_size=10)
    model.load(_single_column([str(i) for i in range(30)]))
    model.go_to_page(3)
    model.set_page_size(25)
    assert model.page_state.current_page == 1
    assert model.total_pages == 2


def test_rows_for_view_order_then_load_order(sample_dataset):
    model = TableModel()
    model.load(sample_dataset)
    model.sort_by(0)
    model.sort_by(0)  # A004, A003, A002, A001
    model.apply_filter(FilterState(device_type="端末"))
    rows = model.rows_for({0, 1, 3, 42})
    # 1 (A002) は view 外なので最後、42 は範囲外で無視
    assert [r.identity for r in rows] == [3, 0, 1]
