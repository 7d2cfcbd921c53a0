from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

import pandas as pd

from sheet_viewer.gateway.base import GatewayError
from sheet_viewer.models.dataset import Dataset

"""pandas helpers shared by the backends.

- DataFrame -> Dataset 変換 (NaN -> None, Timestamp -> 文字列)
- export 用のサーバ側フィルタ (テーブルエンジンと同じ条件)
- サマリー集計 (カテゴリ × 拠点 × デバイス種別 の件数)
"""

__all__ = [
    "dataset_from_frame",
    "filter_frame",
    "frame_to_csv",
    "summary_records",
    "category_name",
    "DATETIME_FMT",
]

DATETIME_FMT = "%Y-%m-%d %H:%M:%S"
UNKNOWN_DEVICE_TYPE = "その他"

_CATEGORY_PREFIX = re.compile(r"^\s*\d+\.\s*")


def _cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.strftime(DATETIME_FMT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    if hasattr(value, "item"):  # numpy scalar -> python
        return value.item()
    return value


def dataset_from_frame(df: pd.DataFrame) -> Dataset:
    """Convert a DataFrame (header already applied) into a Dataset."""
    if df is None or df.columns.empty:
        return Dataset()
    headers = [str(c).strip() for c in df.columns]
    clean = df.astype(object).where(df.notna(), None)
    rows = [[_cell(v) for v in row] for row in clean.itertuples(index=False, name=None)]
    return Dataset.from_records(headers, rows)


def filter_frame(
    df: pd.DataFrame, device_column: str, device_type: str, search_text: str
) -> pd.DataFrame:
    """Apply the same search / device type conditions as the table engine."""
    mask = pd.Series(True, index=df.index)
    if search_text:
        needle = search_text.lower()
        text = df.astype(object).where(df.notna(), "").astype(str)
        hits = text.apply(lambda col: col.str.lower().str.contains(needle, regex=False))
        mask &= hits.any(axis=1)
    if device_type:
        if device_column not in df.columns:
            raise GatewayError(f"device type column not found: {device_column}")
        mask &= df[device_column] == device_type
    return df[mask]


def frame_to_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False, date_format=DATETIME_FMT)


def category_name(status: Any) -> str:
    """``"1.返却可能"`` -> ``"返却可能"`` (番号プレフィックスを除去)."""
    return _CATEGORY_PREFIX.sub("", str(status)).strip()


def summary_records(
    df: pd.DataFrame, category_column: str, location_column: str, device_column: str
) -> list[dict[str, Any]]:
    """Count rows per (category, location, device type).

    Rows with an empty category are not counted. Missing device types are
    counted as その他.
    """
    for col in (category_column, location_column, device_column):
        if col not in df.columns:
            raise GatewayError(f"summary column not found: {col}")
    frame = df[[category_column, location_column, device_column]].copy()
    frame = frame[frame[category_column].notna()]
    frame = frame[frame[category_column].astype(str).str.strip() != ""]
    if frame.empty:
        return []
    frame["category"] = frame[category_column].map(category_name)
    frame["location"] = frame[location_column].fillna("").astype(str)
    frame["device_type"] = frame[device_column].fillna(UNKNOWN_DEVICE_TYPE).astype(str)
    grouped = (
        frame.groupby(["category", "location", "device_type"], sort=False)
        .size()
        .reset_index(name="count")
    )
    return [
        {
            "category": r["category"],
            "location": r["location"],
            "device_type": r["device_type"],
            "count": int(r["count"]),
        }
        for r in grouped.to_dict("records")
    ]
