from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar

from sheet_viewer.models.dataset import DataType, Dataset, Location
from sheet_viewer.models.edit_request import EditRequest
from sheet_viewer.models.result import Err, ExportResult, Ok, Result
from sheet_viewer.services.errors import RemoteError

logger = logging.getLogger(__name__)

"""RemoteGateway interface and the thread-offloading base for blocking backends.

Every call is a coroutine returning ``Ok(value)`` or ``Err(message)``. The
table engine never sees backend exceptions: BlockingGateway converts them to
``Err`` at this boundary.
"""

__all__ = [
    "RemoteGateway",
    "BlockingGateway",
    "GatewayError",
    "ALL_LOCATIONS",
]

ALL_LOCATIONS = ""  # location_id "" = 全ての拠点

T = TypeVar("T")


class GatewayError(RemoteError):
    """Backend-reported failure (the ``success: false`` case)."""
    pass


class RemoteGateway(Protocol):
    async def fetch_locations(self) -> Result[list[Location]]: ...

    async def fetch_data_types(self) -> Result[list[DataType]]: ...

    async def fetch_table(self, location_id: str, data_type_id: str) -> Result[Dataset]: ...

    async def fetch_summary(self, location_id: str) -> Result[list[dict[str, Any]]]: ...

    async def export_table(
        self, location_id: str, data_type_id: str, device_type: str, search_text: str
    ) -> Result[ExportResult]: ...

    async def submit_edits(self, batch: Sequence[EditRequest]) -> Result[int]: ...

    async def report_client_error(self, payload: dict[str, Any]) -> None: ...


class BlockingGateway:
    """Runs synchronous backend methods in a worker thread.

    Subclasses implement the ``_*_sync`` methods; they may raise a
    RemoteError such as GatewayError (reported as-is) or any other
    exception (reported with the operation name as prefix).
    """

    async def _call(self, name: str, fn: Callable[..., T], *args: Any) -> Result[T]:
        try:
            value = await asyncio.to_thread(fn, *args)
        except RemoteError as e:
            logger.debug(f"gateway {name} failed: {e}")
            return Err(str(e))
        except Exception as e:
            logger.debug(f"gateway {name} raised {type(e).__name__}: {e}")
            return Err(f"{name}: {e}")
        return Ok(value)

    async def fetch_locations(self) -> Result[list[Location]]:
        return await self._call("fetch_locations", self._fetch_locations_sync)

    async def fetch_data_types(self) -> Result[list[DataType]]:
        return await self._call("fetch_data_types", self._fetch_data_types_sync)

    async def fetch_table(self, location_id: str, data_type_id: str) -> Result[Dataset]:
        return await self._call("fetch_table", self._fetch_table_sync, location_id, data_type_id)

    async def fetch_summary(self, location_id: str) -> Result[list[dict[str, Any]]]:
        return await self._call("fetch_summary", self._fetch_summary_sync, location_id)

    async def export_table(
        self, location_id: str, data_type_id: str, device_type: str, search_text: str
    ) -> Result[ExportResult]:
        return await self._call(
            "export_table", self._export_table_sync, location_id, data_type_id, device_type, search_text
        )

    async def submit_edits(self, batch: Sequence[EditRequest]) -> Result[int]:
        return await self._call("submit_edits", self._submit_edits_sync, list(batch))

    async def report_client_error(self, payload: dict[str, Any]) -> None:
        # fire-and-forget: 失敗しても呼び出し元には伝えない
        try:
            await asyncio.to_thread(self._report_client_error_sync, payload)
        except Exception as e:
            logger.debug(f"client error report dropped: {e}")

    # ---- backend hooks -------------------------------------------------
    def _fetch_locations_sync(self) -> list[Location]:
        raise NotImplementedError

    def _fetch_data_types_sync(self) -> list[DataType]:
        raise NotImplementedError

    def _fetch_table_sync(self, location_id: str, data_type_id: str) -> Dataset:
        raise NotImplementedError

    def _fetch_summary_sync(self, location_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _export_table_sync(
        self, location_id: str, data_type_id: str, device_type: str, search_text: str
    ) -> ExportResult:
        raise NotImplementedError

    def _submit_edits_sync(self, batch: list[EditRequest]) -> int:
        raise NotImplementedError

    def _report_client_error_sync(self, payload: dict[str, Any]) -> None:
        raise NotImplementedError
