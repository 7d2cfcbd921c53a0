from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sheet_viewer.config.loader import ColumnsConfig
from sheet_viewer.services.errors import ConfigurationError

"""Column role lookup.

ヘッダ名の部分一致 ("ステータス" を含む等) は使わず、設定された列名との完全一致で
role -> 列インデックスを一度だけ解決する。必須 role が無い場合は ConfigurationError。
"""

__all__ = [
    "ColumnRoles",
    "ROLE_ID",
    "ROLE_LOCATION",
    "ROLE_DEVICE_TYPE",
    "ROLE_EDIT_TARGET",
]

ROLE_ID = "id"
ROLE_LOCATION = "location"
ROLE_DEVICE_TYPE = "device_type"
ROLE_EDIT_TARGET = "edit_target"


@dataclass(frozen=True)
class ColumnRoles:
    """Resolved role -> column index mapping for one header list."""
    names: dict[str, str]
    indexes: dict[str, int]
    date_indexes: frozenset[int]
    status_indexes: frozenset[int]

    @classmethod
    def resolve(cls, headers: Sequence[str], columns: ColumnsConfig | None = None) -> ColumnRoles:
        columns = columns or ColumnsConfig()
        position = {name: i for i, name in enumerate(headers)}
        names = {
            ROLE_ID: columns.id,
            ROLE_LOCATION: columns.location,
            ROLE_DEVICE_TYPE: columns.device_type,
            ROLE_EDIT_TARGET: columns.edit_target,
        }
        indexes = {role: position[name] for role, name in names.items() if name in position}
        return cls(
            names=names,
            indexes=indexes,
            date_indexes=frozenset(position[n] for n in columns.date_columns if n in position),
            status_indexes=frozenset(position[n] for n in columns.status_columns if n in position),
        )

    def index(self, role: str) -> int | None:
        return self.indexes.get(role)

    def require(self, role: str) -> int:
        """Column index for ``role``; raises ConfigurationError when the header is absent."""
        idx = self.indexes.get(role)
        if idx is None:
            raise ConfigurationError(
                f"required column missing from headers: role={role} name={self.names.get(role)!r}"
            )
        return idx

    def role_of(self, index: int) -> str | None:
        for role, idx in self.indexes.items():
            if idx == index:
                return role
        return None
