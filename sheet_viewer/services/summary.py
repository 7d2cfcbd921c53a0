from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import pandas as pd

"""Summary / status line rendering.

- フィルタ結果 / ページ情報の 1 行表示
- サマリーデータ (category × location × device_type の件数レコード) を
  カテゴリごとの集計表 (拠点 × デバイス種別, 行/列合計つき) に変換
"""

__all__ = [
    "SUMMARY_CATEGORIES",
    "SummaryLocationRow",
    "SummaryCategory",
    "build_summary_categories",
    "render_filter_info",
    "render_page_info",
    "render_summary_table",
]

# 既知カテゴリの表示順。未知カテゴリはこの後ろに出現順で並べる
SUMMARY_CATEGORIES = (
    "返却可能",
    "商談や金額の問題で返却不可",
    "お客様による返却拒否",
    "HW延長保守中",
)
TOTAL_LABEL = "合計"


@dataclass(frozen=True)
class SummaryLocationRow:
    name: str
    counts: tuple[int, ...]  # device_types と同じ順
    total: int


@dataclass(frozen=True)
class SummaryCategory:
    name: str
    device_types: tuple[str, ...]
    locations: tuple[SummaryLocationRow, ...]
    totals: tuple[int, ...]
    grand_total: int


def render_filter_info(filtered_count: int, total_count: int) -> str | None:
    """``フィルタ結果: 7件 / 全100件``; None when nothing is filtered out."""
    if filtered_count >= total_count:
        return None
    return f"フィルタ結果: {filtered_count}件 / 全{total_count}件"


def render_page_info(current_page: int, total_pages: int, row_count: int) -> str:
    return f"{current_page} / {total_pages} ページ ({row_count}件)"


def _category_order(names: Sequence[str]) -> list[str]:
    known = [c for c in SUMMARY_CATEGORIES if c in names]
    unknown = [c for c in dict.fromkeys(names) if c not in SUMMARY_CATEGORIES]
    return known + unknown


def build_summary_categories(
    records: Sequence[Mapping[str, Any]],
    location_names: Mapping[str, str] | None = None,
) -> list[SummaryCategory]:
    """Pivot summary records into one table per category.

    Each record has ``category``, ``location``, ``device_type`` and ``count``.
    ``location_names`` maps location ids to display names.
    """
    if not records:
        return []
    df = pd.DataFrame.from_records(list(records), columns=["category", "location", "device_type", "count"])
    df["count"] = pd.to_numeric(df["count"], errors="coerce").fillna(0).astype(int)
    names = location_names or {}

    categories = []
    for name in _category_order(df["category"].astype(str).tolist()):
        part = df[df["category"] == name]
        pivot = part.pivot_table(
            index="location", columns="device_type", values="count", aggfunc="sum", fill_value=0, sort=True
        )
        device_types = tuple(str(c) for c in pivot.columns)
        rows = tuple(
            SummaryLocationRow(
                name=names.get(str(loc), str(loc)),
                counts=tuple(int(v) for v in pivot.loc[loc].tolist()),
                total=int(pivot.loc[loc].sum()),
            )
            for loc in pivot.index
        )
        totals = tuple(int(v) for v in pivot.sum(axis=0).tolist())
        categories.append(
            SummaryCategory(
                name=name,
                device_types=device_types,
                locations=rows,
                totals=totals,
                grand_total=sum(totals),
            )
        )
    return categories


def render_summary_table(category: SummaryCategory) -> str:
    """Plain text table: 拠点 × デバイス種別 + 合計 (0 は "-" 表示)."""
    columns = ["拠点", *category.device_types, TOTAL_LABEL]
    body = [
        [row.name, *[c if c else "-" for c in row.counts], row.total]
        for row in category.locations
    ]
    body.append([TOTAL_LABEL, *category.totals, category.grand_total])
    frame = pd.DataFrame(body, columns=columns)
    return f"[{category.name}]\n" + frame.to_string(index=False)
