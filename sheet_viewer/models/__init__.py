"""Domain models for the spreadsheet viewer.

This package contains the value objects shared by the table engine, the batch
edit workflow and the gateway backends.
"""

from .dataset import DataType, Dataset, Location, RowRef
from .edit_request import EditRequest
from .error_record import ClientErrorRecord
from .result import Err, ExportResult, Ok, Result
from .table_state import FilterState, PageState, SortDirection, SortState

__all__ = [
    # Data
    "Dataset",
    "RowRef",
    "Location",
    "DataType",
    # View state
    "SortDirection",
    "SortState",
    "FilterState",
    "PageState",
    # Edit / results
    "EditRequest",
    "ClientErrorRecord",
    "Ok",
    "Err",
    "Result",
    "ExportResult",
]
