from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pandas as pd
import pytest

from sheet_viewer.config.loader import WorkbookConfig
from sheet_viewer.gateway.workbook import HISTORY_HEADERS, SUMMARY_DATA_TYPE, WorkbookGateway
from sheet_viewer.logging.error_log import ErrorLogBuffer
from sheet_viewer.models.dataset import DataType
from sheet_viewer.models.edit_request import EditRequest, batch_timestamp
from sheet_viewer.models.error_record import ClientErrorRecord
from sheet_viewer.models.result import Err, Ok


@pytest.fixture()
def gateway(workbook_dir: Path, temp_workdir: Path) -> WorkbookGateway:
    cfg = WorkbookConfig(
        path=str(workbook_dir),
        data_types=(DataType(id="NORMAL", name="通常", source="預り機一覧"),),
    )
    return WorkbookGateway(cfg, error_log=ErrorLogBuffer(temp_workdir / "logs"))


def _request(record_id: str, status: str) -> EditRequest:
    return EditRequest(row_identity=0, record_id=record_id, new_status=status, reason="r", timestamp=batch_timestamp())


def test_fetch_locations(gateway):
    result = asyncio.run(gateway.fetch_locations())
    assert isinstance(result, Ok)
    assert [(loc.id, loc.name, loc.region) for loc in result.value] == [
        ("T01", "東京第一", "関東"),
        ("T02", "東京第二", "関東"),
        ("O01", "大阪", None),
    ]


def test_fetch_data_types_appends_summary(gateway):
    result = asyncio.run(gateway.fetch_data_types())
    assert [dt.id for dt in result.value] == ["NORMAL", SUMMARY_DATA_TYPE.id]


def test_fetch_table_all_and_by_location(gateway):
    all_rows = asyncio.run(gateway.fetch_table("", "NORMAL")).value
    assert len(all_rows) == 4
    assert all_rows.headers[0] == "拠点管理番号"
    # 空セルは "" のまま
    assert all_rows.rows[0][5] == ""
    t02 = asyncio.run(gateway.fetch_table("T02", "NORMAL")).value
    assert [r[0] for r in t02.rows] == ["A003", "A004"]


def test_fetch_table_unknown_data_type_is_err(gateway):
    result = asyncio.run(gateway.fetch_table("", "NOPE"))
    assert result == Err("unknown data type: NOPE")


def test_missing_sheet_is_empty_dataset(workbook_dir: Path):
    cfg = WorkbookConfig(path=str(workbook_dir), data_types=(DataType(id="X", name="X", source="無い"),))
    result = asyncio.run(WorkbookGateway(cfg).fetch_table("", "X"))
    assert isinstance(result, Ok) and result.value.is_empty


def test_fetch_summary(gateway):
    records = asyncio.run(gateway.fetch_summary("")).value
    assert sorted((r["category"], r["location"], r["count"]) for r in records) == [
        ("HW延長保守中", "T02", 1),
        ("返却可能", "T02", 1),
    ]


def test_export_table_filters_and_names_file(gateway):
    result = asyncio.run(gateway.export_table("T01", "NORMAL", "端末", ""))
    assert isinstance(result, Ok)
    lines = result.value.data.splitlines()
    assert len(lines) == 2
    assert lines[1].startswith("A001,")
    assert result.value.filename.startswith("NORMAL_T01_") and result.value.filename.endswith(".csv")
    all_result = asyncio.run(gateway.export_table("", "NORMAL", "", ""))
    assert "_ALL_" in all_result.value.filename


def test_submit_edits_writes_back(gateway, workbook_dir: Path):
    result = asyncio.run(gateway.submit_edits([_request("A001", "1.返却可能"), _request("A004", "")]))
    assert result == Ok(2)
    df = pd.read_csv(workbook_dir / "預り機一覧.csv", dtype=str, keep_default_na=False, encoding="utf-8-sig")
    status = dict(zip(df["拠点管理番号"], df["預り機ステータス"]))
    assert status == {"A001": "1.返却可能", "A002": "", "A003": "1.返却可能", "A004": ""}
    # キャッシュも更新済み
    table = asyncio.run(gateway.fetch_table("", "NORMAL")).value
    assert table.rows[0][5] == "1.返却可能"


def test_submit_edits_unknown_id_writes_nothing(gateway, workbook_dir: Path):
    before = (workbook_dir / "預り機一覧.csv").read_bytes()
    result = asyncio.run(gateway.submit_edits([_request("A001", "1.返却可能"), _request("ZZZ", "1.返却可能")]))
    assert isinstance(result, Err)
    assert "ZZZ" in result.error
    assert (workbook_dir / "預り機一覧.csv").read_bytes() == before
    assert not (workbook_dir / "ステータス変更履歴.csv").exists()


def test_submit_edits_appends_history(gateway, workbook_dir: Path):
    first = EditRequest(0, "A001", "1.返却可能", "返却調整済み", "2024-04-01T00:00:00Z")
    second = EditRequest(3, "A004", "", "ステータス取消", "2024-04-02T00:00:00Z")
    assert asyncio.run(gateway.submit_edits([first])) == Ok(1)
    assert asyncio.run(gateway.submit_edits([second])) == Ok(1)

    history = pd.read_csv(
        workbook_dir / "ステータス変更履歴.csv", dtype=str, keep_default_na=False, encoding="utf-8-sig"
    )
    assert list(history.columns) == list(HISTORY_HEADERS)
    assert history.to_dict("records") == [first.to_payload(), second.to_payload()]


def test_submit_edits_history_disabled(workbook_dir: Path, temp_workdir: Path):
    cfg = WorkbookConfig(
        path=str(workbook_dir),
        data_types=(DataType(id="NORMAL", name="通常", source="預り機一覧"),),
        history_sheet=None,
    )
    gw = WorkbookGateway(cfg, error_log=ErrorLogBuffer(temp_workdir / "logs"))
    assert asyncio.run(gw.submit_edits([_request("A001", "1.返却可能")])) == Ok(1)
    assert not (workbook_dir / "ステータス変更履歴.csv").exists()


def test_report_client_error_writes_json_lines(gateway, temp_workdir: Path):
    record = ClientErrorRecord.create(source="render", error="boom", stack="trace")
    asyncio.run(gateway.report_client_error(record.to_payload()))
    logs = list((temp_workdir / "logs").glob("client-errors-*.log"))
    assert len(logs) == 1
    assert json.loads(logs[0].read_text(encoding="utf-8").strip()) == record.to_payload()


def test_xlsx_workbook(temp_workdir: Path, sample_dataset):
    path = temp_workdir / "data" / "deposit.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        records = pd.DataFrame(list(sample_dataset.rows), columns=list(sample_dataset.headers))
        records.to_excel(writer, sheet_name="預り機一覧", index=False)
        pd.DataFrame([["T01", "東京第一", "関東"]], columns=["拠点コード", "拠点名", "管轄"]).to_excel(
            writer, sheet_name="拠点一覧", index=False
        )
    cfg = WorkbookConfig(path=str(path), data_types=(DataType(id="NORMAL", name="通常", source="預り機一覧"),))
    gw = WorkbookGateway(cfg)
    assert len(asyncio.run(gw.fetch_table("", "NORMAL")).value) == 4
    assert asyncio.run(gw.submit_edits([_request("A002", "3.お客様による返却拒否")])) == Ok(1)

    reread = pd.read_excel(path, sheet_name="預り機一覧", dtype=str, keep_default_na=False)
    assert reread.loc[reread["拠点管理番号"] == "A002", "預り機ステータス"].tolist() == ["3.お客様による返却拒否"]
    # 他シートは残る
    sheets = pd.ExcelFile(path).sheet_names
    assert "拠点一覧" in sheets
    assert "ステータス変更履歴" in sheets
