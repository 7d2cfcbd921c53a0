from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from sheet_viewer.config.loader import ColumnsConfig, WorkbookConfig
from sheet_viewer.gateway.base import ALL_LOCATIONS, BlockingGateway, GatewayError
from sheet_viewer.gateway.frames import (
    dataset_from_frame,
    filter_frame,
    frame_to_csv,
    summary_records,
)
from sheet_viewer.logging.error_log import ErrorLogBuffer
from sheet_viewer.models.dataset import DataType, Dataset, Location
from sheet_viewer.models.edit_request import EditRequest
from sheet_viewer.models.error_record import ClientErrorRecord
from sheet_viewer.models.result import ExportResult

logger = logging.getLogger(__name__)

"""File-backed gateway (Excel workbook or a directory of CSV files).

- ``path`` が .xlsx: シート名 = data type の source
- ``path`` がディレクトリ: ``<path>/<source>.csv`` を 1 シートとして扱う

全セルを文字列として読み込む (dtype=str, 空セルは "")。
ステータス更新はメモリ上のコピーへ適用し、全件成功した場合のみ書き戻す。
変更履歴は更新シートと同じ書き込みで history_sheet に追記する。
"""

__all__ = [
    "WorkbookGateway",
    "SUMMARY_DATA_TYPE",
    "LOCATION_HEADERS",
    "HISTORY_HEADERS",
]

SUMMARY_DATA_TYPE = DataType(id="SUMMARY", name="サマリー", description="預り機ステータス別の集計")

# 拠点一覧シートの列名
LOCATION_HEADERS = {"code": "拠点コード", "name": "拠点名", "region": "管轄"}

# ステータス変更履歴シートの列 (送信 payload のキー)
HISTORY_HEADERS = ("id", "newStatus", "reason", "timestamp")

EXPORT_STAMP_FMT = "%Y%m%d_%H%M%S"


class WorkbookGateway(BlockingGateway):
    def __init__(
        self,
        config: WorkbookConfig,
        columns: ColumnsConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._config = config
        self._columns = columns or ColumnsConfig()
        self._error_log = error_log or ErrorLogBuffer()
        self._path = Path(config.path)
        self._frames: dict[str, pd.DataFrame] = {}

    # ------------------------------------------------------------ file access
    @property
    def is_csv_directory(self) -> bool:
        return self._path.is_dir()

    def _read_sheet(self, sheet: str) -> pd.DataFrame | None:
        if sheet in self._frames:
            return self._frames[sheet]
        if self.is_csv_directory:
            csv_path = self._path / f"{sheet}.csv"
            if not csv_path.exists():
                return None
            df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        else:
            if not self._path.exists():
                raise GatewayError(f"workbook not found: {self._path}")
            with pd.ExcelFile(self._path) as xls:
                if sheet not in [str(n) for n in xls.sheet_names]:
                    return None
                df = xls.parse(sheet, dtype=str, keep_default_na=False)
        df.columns = [str(c).strip() for c in df.columns]
        self._frames[sheet] = df
        return df

    def _write_sheets(self, frames: dict[str, pd.DataFrame]) -> None:
        if self.is_csv_directory:
            for sheet, df in frames.items():
                df.to_csv(self._path / f"{sheet}.csv", index=False, encoding="utf-8-sig")
            return
        with pd.ExcelWriter(self._path, engine="openpyxl", mode="a", if_sheet_exists="replace") as writer:
            for sheet, df in frames.items():
                df.to_excel(writer, sheet_name=sheet, index=False)

    def _data_type(self, data_type_id: str) -> DataType:
        for dt in self._config.data_types:
            if dt.id == data_type_id:
                return dt
        raise GatewayError(f"unknown data type: {data_type_id}")

    def _records_data_type(self) -> DataType:
        # サマリー集計の対象は NORMAL (無ければ先頭の data type)
        if not self._config.data_types:
            raise GatewayError("no data types configured")
        for dt in self._config.data_types:
            if dt.id == "NORMAL":
                return dt
        return self._config.data_types[0]

    def _table_frame(self, location_id: str, data_type_id: str) -> pd.DataFrame | None:
        dt = self._data_type(data_type_id)
        df = self._read_sheet(dt.source or dt.id)
        if df is None:
            return None
        if location_id != ALL_LOCATIONS:
            loc_col = self._columns.location
            if loc_col not in df.columns:
                raise GatewayError(f"location column not found: {loc_col}")
            df = df[df[loc_col] == location_id]
        return df

    # ---------------------------------------------------------- gateway hooks
    def _fetch_locations_sync(self) -> list[Location]:
        df = self._read_sheet(self._config.locations_sheet)
        if df is None:
            return []
        missing = [h for h in (LOCATION_HEADERS["code"], LOCATION_HEADERS["name"]) if h not in df.columns]
        if missing:
            raise GatewayError(f"locations sheet missing columns: {missing}")
        locations = []
        for rec in df.to_dict("records"):
            code = str(rec[LOCATION_HEADERS["code"]]).strip()
            if not code:
                continue
            region = str(rec.get(LOCATION_HEADERS["region"], "") or "").strip()
            locations.append(
                Location(id=code, code=code, name=str(rec[LOCATION_HEADERS["name"]]).strip(), region=region or None)
            )
        return locations

    def _fetch_data_types_sync(self) -> list[DataType]:
        types = list(self._config.data_types)
        if all(dt.id != SUMMARY_DATA_TYPE.id for dt in types):
            types.append(SUMMARY_DATA_TYPE)
        return types

    def _fetch_table_sync(self, location_id: str, data_type_id: str) -> Dataset:
        df = self._table_frame(location_id, data_type_id)
        if df is None:
            return Dataset()
        return dataset_from_frame(df)

    def _fetch_summary_sync(self, location_id: str) -> list[dict[str, Any]]:
        df = self._table_frame(location_id, self._records_data_type().id)
        if df is None or df.empty:
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
        if df is None:
            raise GatewayError(f"no data for data type: {data_type_id}")
        filtered = filter_frame(df, self._columns.device_type, device_type, search_text)
        stamp = datetime.now(UTC).strftime(EXPORT_STAMP_FMT)
        filename = f"{data_type_id}_{location_id or 'ALL'}_{stamp}.csv"
        logger.debug(f"export rows={len(filtered)} file={filename}")
        return ExportResult(data=frame_to_csv(filtered), filename=filename)

    def _submit_edits_sync(self, batch: list[EditRequest]) -> int:
        if not batch:
            return 0
        id_col = self._columns.id
        target_col = self._columns.edit_target
        wanted = {req.record_id: req for req in batch}

        # 対象: id 列と更新対象列を両方持つシート
        updated: dict[str, pd.DataFrame] = {}
        found: set[str] = set()
        for dt in self._config.data_types:
            sheet = dt.source or dt.id
            df = self._read_sheet(sheet)
            if df is None or id_col not in df.columns or target_col not in df.columns:
                continue
            copy = df.copy()
            hit = copy[id_col].isin(wanted.keys())
            if not hit.any():
                continue
            copy.loc[hit, target_col] = copy.loc[hit, id_col].map(lambda rid: wanted[rid].new_status)
            found.update(copy.loc[hit, id_col].tolist())
            updated[sheet] = copy

        missing = sorted(set(wanted) - found)
        if missing:
            # 1 件でも見つからなければ何も書き込まない
            raise GatewayError(f"records not found: {missing}")

        history_sheet = self._config.history_sheet
        if history_sheet:
            updated[history_sheet] = self._history_with(history_sheet, batch)

        self._write_sheets(updated)
        self._frames.update(updated)
        logger.info(f"status updated records={len(found)} sheets={sorted(updated)}")
        return len(found)

    def _history_with(self, sheet: str, batch: list[EditRequest]) -> pd.DataFrame:
        # 送信内容 (id/newStatus/reason/timestamp) を 1 件 1 行で追記
        added = pd.DataFrame([req.to_payload() for req in batch], columns=list(HISTORY_HEADERS))
        current = self._read_sheet(sheet)
        if current is None or current.empty:
            return added
        return pd.concat([current, added], ignore_index=True)

    def _report_client_error_sync(self, payload: dict[str, Any]) -> None:
        record = ClientErrorRecord(
            timestamp=str(payload.get("timestamp", "")),
            source=str(payload.get("source", "")),
            error=str(payload.get("error", "")),
            stack=str(payload.get("stack", "")),
        )
        self._error_log.append(record)
        self._error_log.flush()
