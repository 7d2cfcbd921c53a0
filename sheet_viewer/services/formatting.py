from __future__ import annotations

from typing import Any

import pandas as pd

from sheet_viewer.models.dataset import CellValue, RowRef
from sheet_viewer.services.columns import ROLE_DEVICE_TYPE, ColumnRoles

"""Cell display formatting (text only).

列の種別は ColumnRoles (完全一致で解決済み) から判定する。
"""

__all__ = [
    "DEVICE_TYPE_BADGES",
    "LONG_TEXT_LIMIT",
    "device_type_badge",
    "status_badge",
    "format_datetime",
    "format_cell",
    "format_row",
]

DEVICE_TYPE_BADGES = {
    "端末": "terminal",
    "プリンタ": "printer",
    "その他": "other",
}
LONG_TEXT_LIMIT = 30
DISPLAY_DATETIME_FMT = "%Y/%m/%d %H:%M"
EMPTY_MARK = "-"


def device_type_badge(value: CellValue) -> str | None:
    """Badge key for a known device type, None otherwise."""
    return DEVICE_TYPE_BADGES.get(str(value)) if value is not None else None


def status_badge(status: CellValue) -> str:
    """Badge class for a status cell, decided by the words it contains."""
    if not status:
        return "status-empty"
    text = str(status)
    if "貸出中" in text:
        return "status-active"
    if "保管中" in text or "待機中" in text:
        return "status-pending"
    if "故障" in text or "廃棄" in text:
        return "status-inactive"
    return "status-default"


def format_datetime(value: CellValue) -> str:
    """``2024-04-01 09:30:00`` -> ``2024/04/01 09:30``; unparsable values pass through."""
    if value is None or value == "":
        return ""
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return str(value)
    return parsed.strftime(DISPLAY_DATETIME_FMT)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def format_cell(value: CellValue, index: int, roles: ColumnRoles, limit: int = LONG_TEXT_LIMIT) -> str:
    if index in roles.date_indexes:
        return format_datetime(value)
    if index in roles.status_indexes:
        return str(value) if value else EMPTY_MARK
    text = "" if value is None else str(value)
    if index == roles.index(ROLE_DEVICE_TYPE) and device_type_badge(value):
        return f"[{text}]"
    return _truncate(text, limit)


def format_row(row: RowRef, roles: ColumnRoles, limit: int = LONG_TEXT_LIMIT) -> list[Any]:
    return [format_cell(v, i, roles, limit) for i, v in enumerate(row.values)]
