from __future__ import annotations

import argparse
import asyncio
import locale
import sys
from pathlib import Path

import pandas as pd
from dotenv import load_dotenv

from sheet_viewer.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ViewerConfig, load_config
from sheet_viewer.gateway.base import RemoteGateway
from sheet_viewer.gateway.workbook import WorkbookGateway
from sheet_viewer.logging.init import get_logger, log_summary, setup_logging
from sheet_viewer.models.result import Ok
from sheet_viewer.models.table_state import FilterState
from sheet_viewer.services.columns import ROLE_ID
from sheet_viewer.services.errors import ConfigurationError, ValidationError
from sheet_viewer.services.formatting import format_row
from sheet_viewer.services.paginator import page_numbers
from sheet_viewer.services.summary import render_summary_table
from sheet_viewer.services.viewer import SpreadsheetViewer, group_locations_by_region

"""CLI entrypoint: ``python -m sheet_viewer.cli <command>``.

Commands:
- locations    拠点一覧 (管轄ごと)
- show         1 ページ分の表示 (検索 / デバイス種別 / ソート / ページ指定)
- summary      預り機ステータス別サマリー
- export       CSV エクスポート (--all-locations で拠点ごと)
- edit-status  拠点管理番号を指定して預り機ステータスを一括更新
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_FAILED = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、DB 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _setup_collation(name: str | None) -> None:
    if not name:
        return
    try:
        locale.setlocale(locale.LC_COLLATE, name)
    except locale.Error as e:
        # 未インストールのロケールはコードポイント順で続行
        get_logger().warning(f"collation locale unavailable ({name}): {e}")


def build_gateway(cfg: ViewerConfig) -> RemoteGateway:
    if cfg.backend == "postgres":
        from sheet_viewer.db.gateway import PostgresGateway

        if cfg.database is None:
            raise ConfigError("database section is required for backend=postgres")
        return PostgresGateway(cfg.database, cfg.columns)
    if cfg.workbook is None:
        raise ConfigError("workbook section is required for backend=workbook")
    return WorkbookGateway(cfg.workbook, cfg.columns)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Spreadsheet viewer (deposit status)")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to viewer.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--location", default=None, help="Location id (omit for saved / all locations)")
    p.add_argument("--data-type", default=None, help="Data type id (default NORMAL)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("locations", help="List locations grouped by region")

    show = sub.add_parser("show", help="Print one page of the table")
    show.add_argument("--search", default="", help="Case-insensitive text search")
    show.add_argument("--device-type", default="", help="Exact device type filter")
    show.add_argument("--sort", default=None, help="Column name or 0-based index")
    show.add_argument("--desc", action="store_true", help="Sort descending")
    show.add_argument("--page", type=int, default=1)
    show.add_argument("--page-size", type=int, default=None)

    sub.add_parser("summary", help="Print the summary tables")

    export = sub.add_parser("export", help="Export CSV")
    export.add_argument("--search", default="")
    export.add_argument("--device-type", default="")
    export.add_argument("--output", default=None, help="Output directory")
    export.add_argument("--all-locations", action="store_true")

    edit = sub.add_parser("edit-status", help="Batch update the deposit status")
    edit.add_argument("--ids", nargs="+", required=True, help="拠点管理番号 values")
    edit.add_argument("--status", required=True, help='New status ("" clears the status)')
    edit.add_argument("--reason", required=True, help="Change reason (required)")
    return p.parse_args(argv)


def _resolve_column(viewer: SpreadsheetViewer, column: str) -> int | None:
    headers = viewer.model.headers
    if column in headers:
        return headers.index(column)
    if column.isdigit() and int(column) < len(headers):
        return int(column)
    return None


async def _cmd_locations(viewer: SpreadsheetViewer) -> int:
    for region, locations in group_locations_by_region(viewer.locations).items():
        print(f"{region}:")
        for loc in locations:
            print(f"  {loc.id}\t{loc.label}")
    return EXIT_SUCCESS


async def _cmd_show(args: argparse.Namespace, viewer: SpreadsheetViewer) -> int:
    logger = get_logger()
    if not await viewer.refresh():
        return EXIT_FAILED
    if viewer.model.total_count == 0:
        print("データがありません")
        return EXIT_SUCCESS
    if args.search or args.device_type:
        if viewer.apply_filter(args.search, args.device_type) is None:
            return EXIT_FAILED
    if args.sort is not None:
        column = _resolve_column(viewer, args.sort)
        if column is None:
            logger.error(f"unknown column: {args.sort}")
            return EXIT_FAILED
        viewer.sort_by(column)
        if args.desc:
            viewer.sort_by(column)
    if args.page_size:
        try:
            viewer.set_page_size(args.page_size)
        except ValidationError as e:
            logger.error(str(e))
            return EXIT_FAILED
    if args.page != 1 and not viewer.go_to_page(args.page):
        logger.warning(f"page out of range: {args.page}")

    rows, start = viewer.model.visible_rows()
    roles = viewer.model.roles
    frame = pd.DataFrame([format_row(r, roles) for r in rows], columns=list(viewer.model.headers))
    frame.index = range(start + 1, start + 1 + len(rows))
    print(frame.to_string())
    if viewer.filter_info:
        print(viewer.filter_info)
    pages = page_numbers(viewer.model.page_state.current_page, viewer.model.total_pages)
    print(viewer.page_info() + "  " + " ".join(str(p) for p in pages))
    return EXIT_SUCCESS


async def _cmd_summary(viewer: SpreadsheetViewer) -> int:
    categories = await viewer.load_summary()
    if categories is None:
        return EXIT_FAILED
    if not categories:
        print("サマリーデータがありません。")
        return EXIT_SUCCESS
    for category in categories:
        print(render_summary_table(category))
        print()
    return EXIT_SUCCESS


async def _cmd_export(args: argparse.Namespace, viewer: SpreadsheetViewer) -> int:
    viewer.filter = FilterState(search_text=args.search, device_type=args.device_type)
    output = Path(args.output) if args.output else None
    if args.all_locations:
        paths = await viewer.export_all_locations(output)
        log_summary(f"exported files={len(paths)}/{len(viewer.locations)}")
        return EXIT_SUCCESS if len(paths) == len(viewer.locations) else EXIT_FAILED
    path = await viewer.export(output)
    if path is None:
        return EXIT_FAILED
    log_summary(f"exported file={path}")
    return EXIT_SUCCESS


async def _cmd_edit_status(args: argparse.Namespace, viewer: SpreadsheetViewer) -> int:
    logger = get_logger()
    if not await viewer.refresh():
        return EXIT_FAILED
    try:
        id_index = viewer.model.roles.require(ROLE_ID)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_FAILED

    wanted = set(args.ids)
    found = set()
    for identity, row in enumerate(viewer.model.dataset.rows):
        key = "" if row[id_index] is None else str(row[id_index])
        if key in wanted:
            viewer.toggle_row(identity)
            found.add(key)
    for missing in sorted(wanted - found):
        logger.warning(f"id not found: {missing}")

    try:
        state = viewer.open_status_edit()
    except ValidationError as e:
        logger.error(str(e))
        return EXIT_FAILED
    if state is None:
        return EXIT_FAILED

    print(viewer.edit.summary_text())
    if not viewer.edit.all_eligible:
        print("編集可能な条件:")
        for condition in viewer.edit.rule.describe():
            print(f"  - {condition}")
    for rid in viewer.edit.preview_ids():
        print(f"  {rid}")

    try:
        result = await viewer.submit_status_edit(args.status, args.reason)
    except ValidationError as e:
        logger.error(str(e))
        return EXIT_FAILED
    if isinstance(result, Ok):
        log_summary(f"updated={result.value}")
        return EXIT_SUCCESS
    return EXIT_FAILED


async def _run(args: argparse.Namespace, viewer: SpreadsheetViewer) -> int:
    await viewer.load_options()
    if args.location is not None:
        viewer.location_id = args.location
    if args.data_type is not None:
        viewer.data_type_id = args.data_type

    if args.command == "locations":
        return await _cmd_locations(viewer)
    if args.command == "show":
        return await _cmd_show(args, viewer)
    if args.command == "summary":
        return await _cmd_summary(viewer)
    if args.command == "export":
        return await _cmd_export(args, viewer)
    if args.command == "edit-status":
        return await _cmd_edit_status(args, viewer)
    return EXIT_FATAL  # pragma: no cover (argparse で弾かれる)


def main(argv: list[str] | None = None) -> int:
    # None のときのみシステム引数を読む (テストで main([...]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(Path(args.config))
        gateway = build_gateway(cfg)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    _setup_collation(cfg.collation_locale)

    viewer = SpreadsheetViewer(gateway, cfg)
    return asyncio.run(_run(args, viewer))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
