from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

"""Dataset domain models for the spreadsheet viewer.

Dataset は headers + rows のみを保持する不変オブジェクト。
行の同一性 (identity) はロード時のインデックスで表し、ソート/フィルタ後も変わらない。
"""

__all__ = [
    "CellValue",
    "Dataset",
    "RowRef",
    "Location",
    "DataType",
]

CellValue = Any  # str | int | float | None


@dataclass(frozen=True)
class Dataset:
    """Authoritative tabular data as returned by the gateway.

    Attributes:
        headers: Unique column names in display order
        rows: Row tuples, each with exactly ``len(headers)`` cells
    """
    headers: tuple[str, ...] = ()
    rows: tuple[tuple[CellValue, ...], ...] = ()

    def __post_init__(self) -> None:
        if len(set(self.headers)) != len(self.headers):
            raise ValueError(f"duplicate column names: {list(self.headers)}")
        width = len(self.headers)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"row {i} has {len(row)} cells, expected {width}")

    @classmethod
    def from_records(
        cls, headers: Sequence[str] | None, rows: Sequence[Sequence[CellValue]] | None
    ) -> Dataset:
        """Build a Dataset from loosely-typed gateway output.

        Absent headers/rows is a valid "no data" response. Short rows are padded
        with ``None`` and long rows truncated so every row matches the header width.
        """
        if not headers:
            return cls()
        hdrs = tuple(str(h) for h in headers)
        width = len(hdrs)
        normalized = []
        for row in rows or ():
            cells = tuple(row)[:width]
            if len(cells) < width:
                cells = cells + (None,) * (width - len(cells))
            normalized.append(cells)
        return cls(headers=hdrs, rows=tuple(normalized))

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.headers or not self.rows

    def column_index(self, name: str) -> int | None:
        try:
            return self.headers.index(name)
        except ValueError:
            return None

    def row(self, identity: int) -> RowRef:
        return RowRef(identity=identity, values=self.rows[identity])


@dataclass(frozen=True)
class RowRef:
    """A row paired with its stable identity (index into the original load)."""
    identity: int
    values: tuple[CellValue, ...]


@dataclass(frozen=True)
class Location:
    id: str
    code: str
    name: str
    region: str | None = None

    @property
    def label(self) -> str:
        return f"{self.code} - {self.name}"


@dataclass(frozen=True)
class DataType:
    id: str
    name: str
    description: str | None = None
    # backend 側の参照先 (シート名 / テーブル名)。表示には使わない
    source: str | None = field(default=None, compare=False)
