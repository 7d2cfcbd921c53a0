from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from sheet_viewer.config.loader import DEFAULT_STATUS_OPTIONS
from sheet_viewer.gateway.base import RemoteGateway
from sheet_viewer.models.dataset import RowRef
from sheet_viewer.models.edit_request import EditRequest, batch_timestamp
from sheet_viewer.models.result import Err, Ok, Result
from sheet_viewer.services.columns import ROLE_ID
from sheet_viewer.services.eligibility import EligibilityEvaluator, EligibilityRule
from sheet_viewer.services.errors import ValidationError
from sheet_viewer.services.notifications import NotificationCenter
from sheet_viewer.services.table_model import TableModel

logger = logging.getLogger(__name__)

"""Batch status edit workflow.

State transitions: IDLE -> OPENED -> SUBMITTING -> (SUCCEEDED -> IDLE | FAILED -> OPENED)

- open(): 選択行の編集可否を判定してダイアログを開く (0 件でも開くが送信不可)
- submit(): 変更理由必須。送信中の再 submit は無視
- 成功: 通知 -> 閉じる -> 全件再読込 -> IDLE
- 失敗: 通知 -> OPENED に戻る (選択し直さずに再送できる)
"""

__all__ = [
    "WorkflowState",
    "BatchEditWorkflow",
    "PREVIEW_LIMIT",
]

PREVIEW_LIMIT = 10  # ダイアログに列挙する対象 id の上限


class WorkflowState(Enum):
    IDLE = "idle"
    OPENED = "opened"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BatchEditWorkflow:
    def __init__(
        self,
        model: TableModel,
        gateway: RemoteGateway,
        rule: EligibilityRule,
        notifications: NotificationCenter,
        reload: Callable[[], Awaitable[None]] | None = None,
        status_options: Sequence[str] = DEFAULT_STATUS_OPTIONS,
        evaluator: EligibilityEvaluator | None = None,
        on_unexpected_error: Callable[[str, BaseException], Awaitable[None]] | None = None,
    ) -> None:
        self._model = model
        self._gateway = gateway
        self._rule = rule
        self._notifications = notifications
        self._reload = reload
        self._status_options = tuple(status_options)
        self._evaluator = evaluator or EligibilityEvaluator()
        self._on_unexpected_error = on_unexpected_error
        self._state = WorkflowState.IDLE
        self._selected_count = 0
        self._eligible: list[RowRef] = []
        self._ineligible: list[RowRef] = []
        self._id_index: int | None = None
        self.last_error: str | None = None

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def rule(self) -> EligibilityRule:
        return self._rule

    @property
    def status_options(self) -> tuple[str, ...]:
        return self._status_options

    @property
    def eligible(self) -> list[RowRef]:
        return list(self._eligible)

    @property
    def ineligible(self) -> list[RowRef]:
        return list(self._ineligible)

    @property
    def can_submit(self) -> bool:
        return self._state is WorkflowState.OPENED and bool(self._eligible)

    @property
    def all_eligible(self) -> bool:
        return not self._ineligible

    # ------------------------------------------------------------ transitions
    def open(self) -> WorkflowState:
        """Evaluate the current selection and open the edit surface.

        Raises:
            ValidationError: nothing is selected
            ConfigurationError: a rule column or the id column is missing
        """
        if self._state is WorkflowState.SUBMITTING:
            logger.debug("open ignored while submitting")
            return self._state
        identities = self._model.selection.selected()
        if not identities:
            raise ValidationError("行が選択されていません。")

        rows = self._model.rows_for(identities)
        eligible, ineligible = self._evaluator.partition(rows, self._rule, self._model.headers)
        id_index = self._model.roles.require(ROLE_ID) if eligible else None

        self._selected_count = len(rows)
        self._eligible = eligible
        self._ineligible = ineligible
        self._id_index = id_index
        self.last_error = None
        self._state = WorkflowState.OPENED
        logger.debug(f"edit opened selected={len(rows)} eligible={len(eligible)}")
        return self._state

    def cancel(self) -> None:
        if self._state is WorkflowState.SUBMITTING:
            return
        self._reset()

    async def submit(self, new_status: str, reason: str) -> Result[int] | None:
        """Submit one batch for every eligible row.

        Returns:
            None when ignored (a submit is already in flight), otherwise
            Ok(updated_count) or Err(message)

        Raises:
            ValidationError: blank reason, no eligible rows, unknown status, or
                the workflow is not open. State is left unchanged.
        """
        if self._state is WorkflowState.SUBMITTING:
            logger.debug("submit ignored: already submitting")
            return None
        if self._state is not WorkflowState.OPENED:
            raise ValidationError("編集ダイアログが開かれていません。")

        reason_text = (reason or "").strip()
        if not reason_text:
            raise ValidationError("変更理由を入力してください。")
        if not self._eligible:
            raise ValidationError("編集可能な行がありません。")
        status = new_status or ""
        if status not in self._status_options:
            raise ValidationError(f"選択できないステータスです: {status}")

        batch = self.build_requests(status, reason_text)
        self._state = WorkflowState.SUBMITTING
        try:
            try:
                result = await self._gateway.submit_edits(batch)
            except Exception as e:
                result = Err(str(e))
                if self._on_unexpected_error is not None:
                    await self._on_unexpected_error("submit_edits", e)

            if isinstance(result, Ok):
                self._state = WorkflowState.SUCCEEDED
                try:
                    self._notifications.success(f"{result.value}件のステータスを更新しました。")
                    if self._reload is not None:
                        await self._reload()
                finally:
                    self._reset()
                return result

            self._state = WorkflowState.FAILED
            self.last_error = result.error
            self._notifications.error(f"更新に失敗しました: {result.error}")
            self._state = WorkflowState.OPENED
            return result
        finally:
            # 中断 (キャンセル / 通知側の例外) 後も再送できるよう OPENED に戻す
            if self._state in (WorkflowState.SUBMITTING, WorkflowState.FAILED):
                self._state = WorkflowState.OPENED

    # ----------------------------------------------------------------- helpers
    def build_requests(self, new_status: str, reason: str) -> list[EditRequest]:
        """One EditRequest per eligible row; the timestamp is shared by the batch."""
        timestamp = batch_timestamp()
        return [
            EditRequest(
                row_identity=row.identity,
                record_id=self._record_id(row),
                new_status=new_status,
                reason=reason,
                timestamp=timestamp,
            )
            for row in self._eligible
        ]

    def summary_text(self) -> str:
        return f"選択された{self._selected_count}件中、{len(self._eligible)}件が編集可能です"

    def preview_ids(self, limit: int = PREVIEW_LIMIT) -> list[str]:
        """Target ids shown in the dialog; the rest is folded into "他 N件..."."""
        ids = [self._record_id(row) for row in self._eligible[:limit]]
        rest = len(self._eligible) - limit
        if rest > 0:
            ids.append(f"他 {rest}件...")
        return ids

    def _record_id(self, row: RowRef) -> str:
        if self._id_index is None:
            return "N/A"
        value = row.values[self._id_index]
        return "" if value is None else str(value)

    def _reset(self) -> None:
        self._state = WorkflowState.IDLE
        self._selected_count = 0
        self._eligible = []
        self._ineligible = []
        self._id_index = None
