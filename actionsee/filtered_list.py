"""Filterable selection list shared by the workflow, run, and job panes."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterable
from typing import Generic
from typing import TypeVar

T = TypeVar("T")


class FilteredList(Generic[T]):
    """
    Ordered items with a substring filter and a single selection.

    The list keeps the full item sequence and the visible subsequence of
    items whose projected text contains the filter text (case-insensitive).
    The selection is an index into the visible subsequence and is ``-1``
    exactly when nothing is visible.

    Whenever the items or the filter change, the selection keeps its
    visible-row position if that row still exists, otherwise it is clamped
    to the last visible row.

    Attributes:
        project: Maps an item to the text the filter is matched against.
    """

    def __init__(self, project: Callable[[T], str]) -> None:
        self.project = project
        self._all: list[T] = []
        self._visible: list[T] = []
        self._filter = ""
        self._selected = -1

    def set_items(self, items: Iterable[T]) -> None:
        """Replace the backing items and recompute the visible rows."""
        self._all = list(items)
        self._recompute()

    def set_filter(self, text: str) -> None:
        """Replace the filter text; empty text shows every item."""
        self._filter = text
        self._recompute()

    def _recompute(self) -> None:
        needle = self._filter.lower()
        if needle:
            self._visible = [item for item in self._all if needle in self.project(item).lower()]
        else:
            self._visible = list(self._all)

        if not self._visible:
            self._selected = -1
        elif self._selected < 0:
            self._selected = 0
        else:
            self._selected = min(self._selected, len(self._visible) - 1)

    def select_next(self) -> bool:
        """Move the selection down one row. Returns True if it moved."""
        if self._selected < 0 or self._selected >= len(self._visible) - 1:
            return False
        self._selected += 1
        return True

    def select_prev(self) -> bool:
        """Move the selection up one row. Returns True if it moved."""
        if self._selected <= 0:
            return False
        self._selected -= 1
        return True

    def select_first(self) -> None:
        """Select the first visible row, if any."""
        self._selected = 0 if self._visible else -1

    def selected(self) -> tuple[T | None, bool]:
        """Return the selected item and whether the selection is valid."""
        if self._selected < 0:
            return None, False
        return self._visible[self._selected], True

    def items(self) -> list[T]:
        """Return a copy of the visible items."""
        return list(self._visible)

    def all_items(self) -> list[T]:
        """Return a copy of every item, ignoring the filter."""
        return list(self._all)

    @property
    def selected_index(self) -> int:
        return self._selected

    @property
    def filter_text(self) -> str:
        return self._filter

    def __len__(self) -> int:
        return len(self._visible)
