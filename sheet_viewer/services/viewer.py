from __future__ import annotations

import asyncio
import logging
import traceback
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from sheet_viewer.config.loader import ViewerConfig
from sheet_viewer.gateway.base import ALL_LOCATIONS, RemoteGateway
from sheet_viewer.models.dataset import DataType, Location
from sheet_viewer.models.error_record import ClientErrorRecord
from sheet_viewer.models.result import Err
from sheet_viewer.models.table_state import FilterState
from sheet_viewer.services.batch_edit import BatchEditWorkflow, WorkflowState
from sheet_viewer.services.eligibility import EligibilityRule
from sheet_viewer.services.errors import ConfigurationError, StaleResponseError
from sheet_viewer.services.notifications import NotificationCenter
from sheet_viewer.services.preferences import LocationPreferenceStore
from sheet_viewer.services.progress import ProgressTracker
from sheet_viewer.services.summary import (
    SummaryCategory,
    build_summary_categories,
    render_filter_info,
    render_page_info,
)
from sheet_viewer.services.table_model import TableModel

logger = logging.getLogger(__name__)

"""Viewer controller.

Owns one TableModel (with its SelectionTracker), the notification surface, the
persisted location preference and the batch edit workflow, and drives the
gateway calls.

Every fetch that replaces the data section (table or summary) takes a token
from the RequestSequencer; a response whose token is no longer the latest is
discarded without notification.
"""

__all__ = [
    "RequestSequencer",
    "SpreadsheetViewer",
    "group_locations_by_region",
    "DEFAULT_DATA_TYPE",
    "SUMMARY_DATA_TYPE_ID",
]

DEFAULT_DATA_TYPE = "NORMAL"
SUMMARY_DATA_TYPE_ID = "SUMMARY"
OTHER_REGION = "その他"


class RequestSequencer:
    """Monotonically increasing request tokens; only the latest one is current."""

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def check(self, token: int) -> None:
        if token != self._latest:
            raise StaleResponseError(token, self._latest)


def group_locations_by_region(locations: Sequence[Location]) -> dict[str, list[Location]]:
    """Group locations by region in first-seen order; no region -> その他."""
    grouped: dict[str, list[Location]] = {}
    for location in locations:
        grouped.setdefault(location.region or OTHER_REGION, []).append(location)
    return grouped


class SpreadsheetViewer:
    def __init__(
        self,
        gateway: RemoteGateway,
        config: ViewerConfig,
        notifications: NotificationCenter | None = None,
        preferences: LocationPreferenceStore | None = None,
        model: TableModel | None = None,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self.notifications = notifications or NotificationCenter(config.max_notifications)
        self.preferences = preferences or LocationPreferenceStore(Path(config.state_file))
        self.model = model or TableModel(page_size=config.page_size, columns=config.columns)
        self.sequencer = RequestSequencer()
        self.rule = EligibilityRule.from_pairs(config.eligibility)
        self.edit = BatchEditWorkflow(
            model=self.model,
            gateway=gateway,
            rule=self.rule,
            notifications=self.notifications,
            reload=self.refresh,
            status_options=config.status_options,
            on_unexpected_error=self.handle_error,
        )
        self.locations: list[Location] = []
        self.data_types: list[DataType] = []
        self.location_id: str = ALL_LOCATIONS
        self.data_type_id: str = DEFAULT_DATA_TYPE
        self.filter = FilterState()
        self.filter_info: str | None = None
        self.summary: list[SummaryCategory] | None = None
        self.last_updated: datetime | None = None

    @property
    def selection(self):
        return self.model.selection

    @property
    def is_summary(self) -> bool:
        return self.data_type_id == SUMMARY_DATA_TYPE_ID

    # --------------------------------------------------------------- loading
    async def initialize(self) -> None:
        """Load option lists, restore the saved location, then load the data section."""
        await self.load_options()
        await self.reload()

    async def load_options(self) -> None:
        """Fetch locations and data types together and restore the saved location."""
        locations, data_types = await asyncio.gather(
            self.gateway.fetch_locations(), self.gateway.fetch_data_types()
        )
        if isinstance(locations, Err):
            await self._remote_failed("fetch_locations", locations.error)
        else:
            self.locations = list(locations.value)
        if isinstance(data_types, Err):
            await self._remote_failed("fetch_data_types", data_types.error)
        else:
            self.data_types = list(data_types.value)

        saved = self.preferences.load_location()
        if saved and any(loc.id == saved for loc in self.locations):
            self.location_id = saved
        ids = [dt.id for dt in self.data_types]
        if ids and self.data_type_id not in ids:
            self.data_type_id = ids[0]

    async def reload(self) -> bool:
        if self.is_summary:
            return await self.load_summary() is not None
        return await self.refresh()

    async def select_location(self, location_id: str) -> bool:
        self.location_id = location_id
        return await self.reload()

    async def select_data_type(self, data_type_id: str) -> bool:
        self.data_type_id = data_type_id
        return await self.reload()

    async def refresh(self) -> bool:
        """Fetch the table for the current location/data type and load it.

        Returns False when the response was stale or the fetch failed.
        """
        if self.location_id:
            self.preferences.save_location(self.location_id)
        token = self.sequencer.issue()
        result = await self.gateway.fetch_table(self.location_id, self.data_type_id)
        try:
            self.sequencer.check(token)
        except StaleResponseError as e:
            logger.debug(f"refresh response discarded: {e}")
            return False
        if isinstance(result, Err):
            await self._remote_failed("fetch_table", result.error)
            return False

        self.summary = None
        self.model.load(result.value)
        self.last_updated = datetime.now()
        self.filter_info = None
        if self.filter.is_active:
            self.apply_filter(self.filter.search_text, self.filter.device_type)
        logger.info(
            f"loaded location={self.location_id or 'ALL'} type={self.data_type_id} rows={self.model.total_count}"
        )
        return True

    async def load_summary(self) -> list[SummaryCategory] | None:
        token = self.sequencer.issue()
        result = await self.gateway.fetch_summary(self.location_id)
        try:
            self.sequencer.check(token)
        except StaleResponseError as e:
            logger.debug(f"summary response discarded: {e}")
            return None
        if isinstance(result, Err):
            await self._remote_failed("fetch_summary", result.error)
            return None
        names = {loc.id: loc.name for loc in self.locations}
        self.summary = build_summary_categories(result.value, names)
        self.last_updated = datetime.now()
        return self.summary

    # -------------------------------------------------------- view operations
    def apply_filter(self, search_text: str | None = None, device_type: str | None = None) -> tuple[int, int] | None:
        """Filter the loaded rows client-side. Returns (filtered, total) or None on error."""
        new_filter = FilterState(
            search_text=self.filter.search_text if search_text is None else search_text,
            device_type=self.filter.device_type if device_type is None else device_type,
        )
        try:
            counts = self.model.apply_filter(new_filter)
        except ConfigurationError as e:
            self.notifications.error(str(e))
            return None
        self.filter = new_filter
        self.filter_info = render_filter_info(*counts)
        return counts

    async def clear_filters(self) -> bool:
        self.filter = FilterState()
        self.filter_info = None
        return await self.refresh()

    def sort_by(self, column_index: int) -> None:
        self.model.sort_by(column_index)

    def go_to_page(self, page: int) -> bool:
        return self.model.go_to_page(page)

    def set_page_size(self, page_size: int) -> None:
        self.model.set_page_size(page_size)

    def page_info(self) -> str:
        return render_page_info(self.model.page_state.current_page, self.model.total_pages, self.model.filtered_count)

    def toggle_row(self, identity: int) -> bool:
        return self.selection.toggle(identity)

    def toggle_select_all(self, checked: bool) -> None:
        visible = self.model.visible_identities()
        if checked:
            self.selection.select_all(visible)
        else:
            self.selection.deselect_all(visible)

    # ------------------------------------------------------------- batch edit
    def open_status_edit(self) -> WorkflowState | None:
        """Open the edit surface. ConfigurationError is surfaced and swallowed here
        (returns None); ValidationError propagates to the caller for inline display."""
        try:
            return self.edit.open()
        except ConfigurationError as e:
            self.notifications.error(f"ステータス編集を開けません: {e}")
            return None

    async def submit_status_edit(self, new_status: str, reason: str):
        return await self.edit.submit(new_status, reason)

    # ----------------------------------------------------------------- export
    async def export(self, output_dir: Path | None = None, location_id: str | None = None) -> Path | None:
        """Export the current data type (with the current filters) to a CSV file."""
        target = Path(output_dir or self.config.export_directory)
        loc = self.location_id if location_id is None else location_id
        result = await self.gateway.export_table(
            loc, self.data_type_id, self.filter.device_type, self.filter.search_text
        )
        if isinstance(result, Err):
            self.notifications.error(f"エクスポートに失敗しました: {result.error}")
            return None
        target.mkdir(parents=True, exist_ok=True)
        path = target / result.value.filename
        path.write_text(result.value.data, encoding="utf-8")
        self.notifications.success("データをエクスポートしました。")
        return path

    async def export_all_locations(self, output_dir: Path | None = None) -> list[Path]:
        """Export once per known location, one after another."""
        written: list[Path] = []
        with ProgressTracker(len(self.locations), description="Exporting") as progress:
            for location in self.locations:
                progress.start_item(location.code)
                path = await self.export(output_dir, location_id=location.id)
                if path is not None:
                    written.append(path)
                progress.set_postfix(files=len(written))
                progress.finish_item()
        return written

    # ----------------------------------------------------------------- errors
    async def handle_error(self, source: str, error: BaseException) -> None:
        """Surface an unexpected error and report it to the backend (fire-and-forget)."""
        self.notifications.error(f"エラーが発生しました: {error}")
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        record = ClientErrorRecord.create(source=source, error=str(error), stack=stack)
        await self.gateway.report_client_error(record.to_payload())

    async def _remote_failed(self, source: str, message: str) -> None:
        self.notifications.error(f"エラーが発生しました: {message}")
        record = ClientErrorRecord.create(source=source, error=message)
        await self.gateway.report_client_error(record.to_payload())
