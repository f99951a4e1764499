"""Single-line text entry used while typing a filter."""

from enum import Enum

from actionsee.constants import FILTER_CHAR_LIMIT
from actionsee.keys import BACKSPACE
from actionsee.keys import ENTER
from actionsee.keys import ESC


class FilterSignal(Enum):
    """Outcome of feeding a key to :class:`FilterInput`."""

    EDIT = "edit"
    COMMIT = "commit"
    CANCEL = "cancel"


class FilterInput:
    """
    Buffered filter text.

    Enter commits, Escape cancels, Backspace deletes the last character and
    any other single printable character is appended. Other keys are ignored.
    """

    def __init__(self, char_limit: int = FILTER_CHAR_LIMIT) -> None:
        self.char_limit = char_limit
        self._buffer = ""

    @property
    def value(self) -> str:
        return self._buffer

    def reset(self, value: str = "") -> None:
        self._buffer = value[: self.char_limit]

    def handle_key(self, key: str) -> FilterSignal:
        if key == ENTER:
            return FilterSignal.COMMIT
        if key == ESC:
            return FilterSignal.CANCEL
        if key == BACKSPACE:
            self._buffer = self._buffer[:-1]
        elif len(key) == 1 and key.isprintable() and len(self._buffer) < self.char_limit:
            self._buffer += key
        return FilterSignal.EDIT
