from __future__ import annotations

from sheet_viewer.services.summary import (
    build_summary_categories,
    render_filter_info,
    render_page_info,
    render_summary_table,
)

RECORDS = [
    {"category": "お客様による返却拒否", "location": "T02", "device_type": "端末", "count": 1},
    {"category": "返却可能", "location": "T01", "device_type": "端末", "count": 2},
    {"category": "返却可能", "location": "T01", "device_type": "プリンタ", "count": 1},
    {"category": "返却可能", "location": "T02", "device_type": "端末", "count": 3},
    {"category": "調査中", "location": "T01", "device_type": "端末", "count": 4},
]


def test_filter_info_only_when_filtered():
    assert render_filter_info(7, 100) == "フィルタ結果: 7件 / 全100件"
    assert render_filter_info(100, 100) is None
    assert render_filter_info(0, 0) is None


def test_page_info():
    assert render_page_info(2, 3, 125) == "2 / 3 ページ (125件)"


def test_build_summary_categories_order_and_totals():
    cats = build_summary_categories(RECORDS, {"T01": "東京第一", "T02": "東京第二"})
    # 既知カテゴリ順、未知カテゴリは後ろ
    assert [c.name for c in cats] == ["返却可能", "お客様による返却拒否", "調査中"]
    first = cats[0]
    assert first.device_types == ("プリンタ", "端末")
    assert [(r.name, r.counts, r.total) for r in first.locations] == [
        ("東京第一", (1, 2), 3),
        ("東京第二", (0, 3), 3),
    ]
    assert first.totals == (1, 5)
    assert first.grand_total == 6


def test_build_summary_empty():
    assert build_summary_categories([]) == []


def test_unknown_location_id_shown_as_is():
    cats = build_summary_categories(RECORDS[:1])
    assert cats[0].locations[0].name == "T02"


def test_render_summary_table():
    cats = build_summary_categories(RECORDS, {"T01": "東京第一", "T02": "東京第二"})
    text = render_summary_table(cats[0])
    lines = text.splitlines()
    assert lines[0] == "[返却可能]"
    assert "合計" in lines[1]
    # 0 件は "-" 表示
    assert "-" in lines[3]
    assert lines[-1].split() == ["合計", "1", "5", "6"]
