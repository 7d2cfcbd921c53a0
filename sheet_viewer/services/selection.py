from __future__ import annotations

from collections.abc import Iterable

"""Checked-row tracking by stable row identity.

Identities are indexes into the original load, never positions in the sorted
view, so sorting between "select" and "edit" cannot retarget other rows.
"""

__all__ = [
    "SelectionTracker",
]


class SelectionTracker:
    def __init__(self) -> None:
        self._selected: set[int] = set()

    def toggle(self, identity: int) -> bool:
        """Flip the checked state of one row. Returns the new state."""
        if identity in self._selected:
            self._selected.discard(identity)
            return False
        self._selected.add(identity)
        return True

    def select_all(self, visible_identities: Iterable[int]) -> None:
        self._selected.update(visible_identities)

    def deselect_all(self, visible_identities: Iterable[int]) -> None:
        self._selected.difference_update(visible_identities)

    def clear_all(self) -> None:
        self._selected.clear()

    def selected(self) -> frozenset[int]:
        return frozenset(self._selected)

    def is_selected(self, identity: int) -> bool:
        return identity in self._selected

    def all_selected(self, visible_identities: Iterable[int]) -> bool:
        """True when every visible row is checked (header checkbox state)."""
        visible = list(visible_identities)
        return bool(visible) and all(i in self._selected for i in visible)

    def __len__(self) -> int:
        return len(self._selected)

    def __bool__(self) -> bool:
        return bool(self._selected)
