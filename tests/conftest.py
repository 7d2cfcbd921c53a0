# Shared pytest fixtures
from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Any

import pytest

from sheet_viewer.config.loader import ViewerConfig
from sheet_viewer.logging.init import reset_logging
from sheet_viewer.models.dataset import DataType, Dataset, Location
from sheet_viewer.models.result import Err, ExportResult, Ok

HEADERS = (
    "拠点管理番号",
    "拠点コード",
    "デバイス種別",
    "0-4.ステータス",
    "1-4.ユーザー機の預り有無",
    "預り機ステータス",
    "備考",
)

ROWS = (
    ("A001", "T01", "端末", "1.貸出中", "有り", "", "初期不良あり"),
    ("A002", "T01", "プリンタ", "1.貸出中", "無し", "", ""),
    ("A003", "T02", "端末", "2.保管中", "有り", "1.返却可能", ""),
    ("A004", "T02", "端末", "1.貸出中", "有り", "4.HW延長保守中", ""),
)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_dataset() -> Dataset:
    return Dataset(headers=HEADERS, rows=ROWS)


@pytest.fixture()
def viewer_config(tmp_path: Path) -> ViewerConfig:
    return ViewerConfig(
        backend="workbook",
        state_file=str(tmp_path / "state" / "preferences.json"),
        export_directory=str(tmp_path / "exports"),
    )


@pytest.fixture()
def sample_config_yaml() -> str:
    return """backend: workbook
page_size: 50
notifications:
  max_visible: 3
state_file: ./state/preferences.json
export_directory: ./exports
workbook:
  path: ./data
  locations_sheet: 拠点一覧
  data_types:
    - id: NORMAL
      name: 通常
      source: 預り機一覧
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "viewer.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def _write_csv(path: Path, headers, rows) -> None:
    lines = [",".join(headers)] + [",".join(r) for r in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture()
def workbook_dir(temp_workdir: Path) -> Path:
    """CSV directory backend: one file per sheet under ./data."""
    data = temp_workdir / "data"
    _write_csv(data / "預り機一覧.csv", HEADERS, ROWS)
    _write_csv(
        data / "拠点一覧.csv",
        ("拠点コード", "拠点名", "管轄"),
        (("T01", "東京第一", "関東"), ("T02", "東京第二", "関東"), ("O01", "大阪", "")),
    )
    return data


class FakeGateway:
    """In-memory RemoteGateway used by the controller / workflow tests."""

    def __init__(self, tables: dict[str, Dataset] | None = None) -> None:
        self.tables = tables or {}
        self.locations = [
            Location(id="T01", code="T01", name="東京第一", region="関東"),
            Location(id="T02", code="T02", name="東京第二", region="関東"),
        ]
        self.data_types = [DataType(id="NORMAL", name="通常"), DataType(id="SUMMARY", name="サマリー")]
        self.summary: list[dict[str, Any]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.fetch_error: str | None = None
        self.submit_result: Any = None
        self.submit_exception: Exception | None = None
        self.submitted: list[list[Any]] = []
        self.fetch_calls: list[tuple[str, str]] = []
        self.reported: list[dict[str, Any]] = []
        self.exports: list[tuple[str, str, str, str]] = []

    async def fetch_locations(self):
        return Ok(list(self.locations))

    async def fetch_data_types(self):
        return Ok(list(self.data_types))

    async def fetch_table(self, location_id: str, data_type_id: str):
        self.fetch_calls.append((location_id, data_type_id))
        gate = self.gates.get(location_id)
        if gate is not None:
            await gate.wait()
        if self.fetch_error is not None:
            return Err(self.fetch_error)
        return Ok(self.tables.get(location_id, Dataset()))

    async def fetch_summary(self, location_id: str):
        return Ok(list(self.summary))

    async def export_table(self, location_id, data_type_id, device_type, search_text):
        self.exports.append((location_id, data_type_id, device_type, search_text))
        return Ok(ExportResult(data="a,b\n1,2\n", filename=f"{data_type_id}_{location_id or 'ALL'}.csv"))

    async def submit_edits(self, batch):
        self.submitted.append(list(batch))
        if self.submit_exception is not None:
            raise self.submit_exception
        if self.submit_result is not None:
            return self.submit_result
        return Ok(len(batch))

    async def report_client_error(self, payload):
        self.reported.append(payload)


@pytest.fixture()
def fake_gateway(sample_dataset: Dataset) -> FakeGateway:
    return FakeGateway({"": sample_dataset})


@pytest.fixture()
def gateway_factory():
    return FakeGateway
