from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ClientErrorRecord model for client-side error reporting.

The record is what ``report_client_error`` ships to the backend and what the
workbook backend appends to its JSON Lines error log. The key set is fixed.
"""

__all__ = [
    "ClientErrorRecord",
]


@dataclass(frozen=True)
class ClientErrorRecord:
    """Structured diagnostic for one unexpected client error.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: Operation that failed (e.g. "refresh", "export", "submit_edits")
        error: ``str()`` of the exception or the backend error message
        stack: Formatted traceback, empty when not raised from an exception
    """
    timestamp: str  # ISO8601 UTC
    source: str
    error: str
    stack: str

    @staticmethod
    def create(source: str, error: str, stack: str = "") -> ClientErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ClientErrorRecord(timestamp=ts, source=source, error=error, stack=stack)

    def to_payload(self) -> dict[str, str]:
        return asdict(self)

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
