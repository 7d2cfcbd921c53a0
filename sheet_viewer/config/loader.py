from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from sheet_viewer.models.dataset import DataType
from sheet_viewer.models.table_state import DEFAULT_PAGE_SIZE

"""Config loader for the spreadsheet viewer.

Responsibilities:
- Load YAML config (default config/viewer.yml)
- Validate against config_schema.json (jsonschema)
- Apply defaults (page_size=50, max_visible=3, 既定の列名 / 編集条件)
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/viewer.yml")

DEFAULT_STATUS_OPTIONS = (
    "1.返却可能",
    "2.商談や金額の問題で返却不可",
    "3.お客様による返却拒否",
    "4.HW延長保守中",
    "",  # 空白 = ステータスなし
)
DEFAULT_ELIGIBILITY = (
    ("0-4.ステータス", "1.貸出中"),
    ("1-4.ユーザー機の預り有無", "有り"),
)


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ColumnsConfig:
    """Header names for each column role (exact match)."""
    id: str = "拠点管理番号"
    location: str = "拠点コード"
    device_type: str = "デバイス種別"
    edit_target: str = "預り機ステータス"
    date_columns: tuple[str, ...] = ()
    status_columns: tuple[str, ...] = ("0-4.ステータス",)


@dataclass(frozen=True)
class WorkbookConfig:
    path: str
    data_types: tuple[DataType, ...]
    locations_sheet: str = "拠点一覧"
    history_sheet: str | None = "ステータス変更履歴"


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None
    records_table: str = "deposit_records"
    locations_table: str = "locations"
    history_table: str | None = None
    data_types: tuple[DataType, ...] = ()


@dataclass(frozen=True)
class ViewerConfig:
    backend: str
    page_size: int = DEFAULT_PAGE_SIZE
    collation_locale: str | None = None
    max_notifications: int = 3
    state_file: str = "./state/preferences.json"
    export_directory: str = "./exports"
    columns: ColumnsConfig = field(default_factory=ColumnsConfig)
    eligibility: tuple[tuple[str, str], ...] = DEFAULT_ELIGIBILITY
    status_options: tuple[str, ...] = DEFAULT_STATUS_OPTIONS
    workbook: WorkbookConfig | None = None
    database: DatabaseConfig | None = None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _data_types(raw: list[dict[str, Any]] | None) -> tuple[DataType, ...]:
    return tuple(
        DataType(
            id=d["id"],
            name=d.get("name") or d["id"],
            description=d.get("description"),
            source=d["source"],
        )
        for d in raw or ()
    )


def _columns(raw: dict[str, Any] | None) -> ColumnsConfig:
    if not raw:
        return ColumnsConfig()
    defaults = ColumnsConfig()
    return ColumnsConfig(
        id=raw.get("id", defaults.id),
        location=raw.get("location", defaults.location),
        device_type=raw.get("device_type", defaults.device_type),
        edit_target=raw.get("edit_target", defaults.edit_target),
        date_columns=tuple(raw.get("date_columns", defaults.date_columns)),
        status_columns=tuple(raw.get("status_columns", defaults.status_columns)),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ViewerConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    # Validate against JSON schema
    _validate_config_schema(data)

    workbook = None
    wb_raw = data.get("workbook")
    if wb_raw:
        workbook = WorkbookConfig(
            path=wb_raw["path"],
            data_types=_data_types(wb_raw.get("data_types")),
            locations_sheet=wb_raw.get("locations_sheet", "拠点一覧"),
            history_sheet=wb_raw.get("history_sheet", "ステータス変更履歴"),
        )

    database = None
    db_raw = data.get("database")
    if db_raw:
        database = DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
            records_table=db_raw.get("records_table", "deposit_records"),
            locations_table=db_raw.get("locations_table", "locations"),
            history_table=db_raw.get("history_table"),
            data_types=_data_types(db_raw.get("data_types")),
        )

    eligibility = DEFAULT_ELIGIBILITY
    if "eligibility" in data:
        eligibility = tuple((e["column"], e["equals"]) for e in data["eligibility"])

    return ViewerConfig(
        backend=data["backend"],
        page_size=data.get("page_size", DEFAULT_PAGE_SIZE),
        collation_locale=data.get("collation_locale"),
        max_notifications=(data.get("notifications") or {}).get("max_visible", 3),
        state_file=data.get("state_file", "./state/preferences.json"),
        export_directory=data.get("export_directory", "./exports"),
        columns=_columns(data.get("columns")),
        eligibility=eligibility,
        status_options=tuple(data.get("status_options", DEFAULT_STATUS_OPTIONS)),
        workbook=workbook,
        database=database,
    )
