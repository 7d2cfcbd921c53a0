from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

"""EditRequest model for the batch status edit.

1 行 = 1 EditRequest。バッチ内の timestamp は全件共通。
"""

__all__ = [
    "EditRequest",
    "batch_timestamp",
]


def batch_timestamp() -> str:
    """ISO8601 UTC timestamp with 'Z' suffix, generated once per batch."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class EditRequest:
    """Single status change for one eligible row.

    Attributes:
        row_identity: Stable identity of the row in the loaded dataset
        record_id: Value of the id column (拠点管理番号) sent to the backend
        new_status: New deposit status. Empty string clears the status
        reason: Change reason, already trimmed and non-empty
        timestamp: Batch generation time (shared across the batch)
    """
    row_identity: int
    record_id: str
    new_status: str
    reason: str
    timestamp: str

    def to_payload(self) -> dict[str, Any]:
        # backend 互換のキー名
        return {
            "id": self.record_id,
            "newStatus": self.new_status,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }
