from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

"""Ok / Err result type returned by every gateway coroutine."""

__all__ = [
    "Ok",
    "Err",
    "Result",
    "ExportResult",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class ExportResult:
    """CSV export payload (text already serialized by the backend)."""
    data: str
    filename: str
