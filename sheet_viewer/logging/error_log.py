from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from sheet_viewer.models.error_record import ClientErrorRecord

"""Client error log buffering.

- JSON Lines 固定スキーマ (追加キー禁止)
- 起動ごとに `logs/client-errors-YYYYMMDD-HHMMSS.log` (UTC) を生成 (必要時)
- append() でバッファし flush() でまとめて追記
"""

__all__ = [
    "ClientErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for client error records. Flush writes JSON Lines.

    - ファイルパスは初回アクセスで決定
    - スレッド安全性不要 (単一イベントループ)
    """
    def __init__(self, logs_dir: Path = LOGS_DIR) -> None:
        self._records: list[ClientErrorRecord] = []
        self._logs_dir = logs_dir
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"client-errors-{stamp}.log"
        return self._file_path

    def append(self, record: ClientErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        if not self._records:
            return None  # 空ならファイルを作らない
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
