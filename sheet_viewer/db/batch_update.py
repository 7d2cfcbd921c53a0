from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2 import sql
from psycopg2.extras import execute_values

"""DB batch status update.

execute_values で UPDATE ... FROM (VALUES ...) を 1 文で実行する。
トランザクション境界 (BEGIN/COMMIT/ROLLBACK) は呼び出し側 (gateway) の責務。
新ステータスが空文字の場合は NULL (ステータスなし) として保存する。
"""

__all__ = [
    "BatchUpdateError",
    "BatchMetrics",
    "UpdateResult",
    "identifier",
    "batch_update_status",
    "insert_history",
]


class BatchUpdateError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class UpdateResult:
    updated_ids: list[str]

    @property
    def updated_rows(self) -> int:
        return len(self.updated_ids)


def identifier(name: str) -> sql.Identifier:
    """``"schema.table"`` -> quoted Identifier (schema と table を個別に quote)."""
    return sql.Identifier(*name.split("."))


def batch_update_status(
    cursor: Any,
    table: str,
    id_column: str,
    target_column: str,
    updates: Sequence[tuple[str, str]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpdateResult:
    """Set ``target_column`` for each (record_id, new_status) pair.

    Parameters
    ----------
    cursor: psycopg2 cursor (トランザクション内)
    table: 対象テーブル名
    id_column: 拠点管理番号の列名 (text 比較)
    target_column: 預り機ステータス列名
    updates: (record_id, new_status) の列
    page_size: execute_values の page_size
    metrics_callback: 計測用 callback。updates が空の場合は呼ばれない
    """
    rows = [(str(rid), status) for rid, status in updates]
    if not rows:
        return UpdateResult(updated_ids=[])

    query = sql.SQL(
        "UPDATE {table} AS t SET {target} = NULLIF(v.new_status, '') "
        "FROM (VALUES %s) AS v(record_id, new_status) "
        "WHERE t.{id}::text = v.record_id "
        "RETURNING t.{id}::text"
    ).format(
        table=identifier(table),
        target=sql.Identifier(target_column),
        id=sql.Identifier(id_column),
    )

    start_time = time.time()
    try:
        returned = execute_values(cursor, query, rows, page_size=page_size, fetch=True)
    except Exception as e:
        raise BatchUpdateError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return UpdateResult(updated_ids=[r[0] for r in returned or []])


def insert_history(cursor: Any, table: str, records: Sequence[tuple[str, str, str, str]]) -> int:
    """Append (record_id, new_status, reason, changed_at) rows to the history table."""
    if not records:
        return 0
    query = sql.SQL(
        "INSERT INTO {table} (record_id, new_status, reason, changed_at) VALUES %s"
    ).format(table=identifier(table))
    try:
        execute_values(cursor, query, list(records))
    except Exception as e:
        raise BatchUpdateError(f"history insert failed: {e}") from e
    return len(records)
