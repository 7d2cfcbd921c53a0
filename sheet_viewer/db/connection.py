from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from sheet_viewer.config.loader import DatabaseConfig

"""psycopg2 connection helpers.

接続情報の解決優先順位:
    1. DATABASE_URL / PGDSN (環境変数, .env はCLI 起動時に上書きロード済み)
    2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. 設定ファイルの database セクション (不足分のフォールバック)
"""

__all__ = [
    "resolve_dsn",
    "db_cursor",
]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_cursor(db_cfg: DatabaseConfig) -> Iterator[Any]:
    """Yield a cursor inside one transaction.

    正常終了で COMMIT、例外で ROLLBACK してから再送出する。
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    try:
        conn.autocommit = False
        with conn.cursor() as cur:
            try:
                yield cur
            except Exception:
                conn.rollback()
                raise
            conn.commit()
    finally:
        conn.close()
