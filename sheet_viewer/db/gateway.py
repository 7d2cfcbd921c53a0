from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import pandas as pd
from psycopg2 import sql

from sheet_viewer.config.loader import ColumnsConfig, DatabaseConfig
from sheet_viewer.db.batch_update import batch_update_status, identifier, insert_history
from sheet_viewer.db.connection import db_cursor
from sheet_viewer.gateway.base import ALL_LOCATIONS, BlockingGateway, GatewayError
from sheet_viewer.gateway.frames import dataset_from_frame, filter_frame, frame_to_csv, summary_records
from sheet_viewer.gateway.workbook import SUMMARY_DATA_TYPE
from sheet_viewer.models.dataset import DataType, Dataset, Location
from sheet_viewer.models.edit_request import EditRequest
from sheet_viewer.models.result import ExportResult

logger = logging.getLogger(__name__)

"""PostgreSQL-backed gateway.

- data type の source はテーブル / ビュー名
- 拠点一覧テーブルは code / name / region 列を持つ
- ステータス更新は 1 トランザクション: UPDATE (execute_values) -> 全件ヒット確認 -> 履歴 INSERT -> COMMIT
  1 件でも対象が見つからなければ ROLLBACK して失敗を返す
"""

__all__ = [
    "PostgresGateway",
]

EXPORT_STAMP_FMT = "%Y%m%d_%H%M%S"


class PostgresGateway(BlockingGateway):
    def __init__(self, config: DatabaseConfig, columns: ColumnsConfig | None = None) -> None:
        self._config = config
        self._columns = columns or ColumnsConfig()

    def _data_type(self, data_type_id: str) -> DataType:
        for dt in self._config.data_types:
            if dt.id == data_type_id:
                return dt
        raise GatewayError(f"unknown data type: {data_type_id}")

    def _query_frame(self, cur: Any, source: str, location_id: str) -> pd.DataFrame:
        query = sql.SQL("SELECT * FROM {table}").format(table=identifier(source))
        params: tuple[Any, ...] = ()
        if location_id != ALL_LOCATIONS:
            query = query + sql.SQL(" WHERE {col}::text = %s").format(
                col=sql.Identifier(self._columns.location)
            )
            params = (location_id,)
        cur.execute(query, params)
        headers = [d[0] for d in cur.description or ()]
        return pd.DataFrame.from_records(cur.fetchall(), columns=headers)

    def _table_frame(self, location_id: str, data_type_id: str) -> pd.DataFrame:
        source = self._data_type(data_type_id).source or data_type_id
        with db_cursor(self._config) as cur:
            return self._query_frame(cur, source, location_id)

    # ---------------------------------------------------------- gateway hooks
    def _fetch_locations_sync(self) -> list[Location]:
        query = sql.SQL("SELECT code, name, region FROM {table} ORDER BY region NULLS LAST, code").format(
            table=identifier(self._config.locations_table)
        )
        with db_cursor(self._config) as cur:
            cur.execute(query)
            rows = cur.fetchall()
        return [
            Location(id=str(code), code=str(code), name=str(name), region=region or None)
            for code, name, region in rows
        ]

    def _fetch_data_types_sync(self) -> list[DataType]:
        types = list(self._config.data_types)
        if all(dt.id != SUMMARY_DATA_TYPE.id for dt in types):
            types.append(SUMMARY_DATA_TYPE)
        return types

    def _fetch_table_sync(self, location_id: str, data_type_id: str) -> Dataset:
        return dataset_from_frame(self._table_frame(location_id, data_type_id))

    def _fetch_summary_sync(self, location_id: str) -> list[dict[str, Any]]:
        with db_cursor(self._config) as cur:
            df = self._query_frame(cur, self._config.records_table, location_id)
        if df.empty:
            return []
        return summary_records(
            df,
            category_column=self._columns.edit_target,
            location_column=self._columns.location,
            device_column=self._columns.device_type,
        )

    def _export_table_sync(
        self, location_id: str, data_type_id: str, device_type: str, search_text: str
    ) -> ExportResult:
        df = self._table_frame(location_id, data_type_id)
        filtered = filter_frame(df, self._columns.device_type, device_type, search_text)
        stamp = datetime.now(UTC).strftime(EXPORT_STAMP_FMT)
        return ExportResult(
            data=frame_to_csv(filtered),
            filename=f"{data_type_id}_{location_id or 'ALL'}_{stamp}.csv",
        )

    def _submit_edits_sync(self, batch: list[EditRequest]) -> int:
        if not batch:
            return 0
        wanted = {req.record_id for req in batch}
        with db_cursor(self._config) as cur:
            result = batch_update_status(
                cur,
                table=self._config.records_table,
                id_column=self._columns.id,
                target_column=self._columns.edit_target,
                updates=[(req.record_id, req.new_status) for req in batch],
            )
            missing = sorted(wanted - set(result.updated_ids))
            if missing:
                # db_cursor が ROLLBACK する
                raise GatewayError(f"records not found: {missing}")
            if self._config.history_table:
                insert_history(
                    cur,
                    self._config.history_table,
                    [(req.record_id, req.new_status, req.reason, req.timestamp) for req in batch],
                )
        updated = len(set(result.updated_ids))
        logger.info(f"status updated records={updated} table={self._config.records_table}")
        return updated

    def _report_client_error_sync(self, payload: dict[str, Any]) -> None:
        # DB 側には保存しない。ログに残すのみ
        logger.warning(f"client error reported: {payload.get('source')}: {payload.get('error')}")
