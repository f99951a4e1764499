"""Key names and the static key binding table.

Raw terminal input is decoded into symbolic names ("up", "esc", "ctrl+u",
...) before it reaches the state machine; printable characters are passed
through unchanged.
"""

from dataclasses import dataclass

ESC = "esc"
ENTER = "enter"
TAB = "tab"
SHIFT_TAB = "shift+tab"
BACKSPACE = "backspace"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
CTRL_C = "ctrl+c"
CTRL_D = "ctrl+d"
CTRL_U = "ctrl+u"

# Single control characters
_CONTROL_KEYS = {
    "\x1b": ESC,
    "\r": ENTER,
    "\n": ENTER,
    "\t": TAB,
    "\x7f": BACKSPACE,
    "\b": BACKSPACE,
    "\x03": CTRL_C,
    "\x04": CTRL_D,
    "\x15": CTRL_U,
}

# Escape sequences, without the leading ESC
_ESCAPE_SEQUENCES = {
    "[A": UP,
    "[B": DOWN,
    "[C": RIGHT,
    "[D": LEFT,
    "OA": UP,
    "OB": DOWN,
    "OC": RIGHT,
    "OD": LEFT,
    "[Z": SHIFT_TAB,
}


def decode_key(char: str) -> str:
    """Decode a single raw character into a key name."""
    return _CONTROL_KEYS.get(char, char)


def decode_escape(seq: str) -> str:
    """
    Decode the characters that followed an ESC.

    Unknown sequences decode to a plain Escape.

    Examples:
        >>> decode_escape("[A")
        'up'
        >>> decode_escape("")
        'esc'
    """
    return _ESCAPE_SEQUENCES.get(seq, ESC)


@dataclass(frozen=True)
class KeyMap:
    """Key bindings, each action bound to one or more key names."""

    up: tuple[str, ...] = ("k", UP)
    down: tuple[str, ...] = ("j", DOWN)
    prev_pane: tuple[str, ...] = ("h", LEFT, SHIFT_TAB)
    next_pane: tuple[str, ...] = ("l", RIGHT, TAB)
    filter: tuple[str, ...] = ("/",)
    cancel: tuple[str, ...] = ("c",)
    rerun: tuple[str, ...] = ("r",)
    rerun_failed: tuple[str, ...] = ("R",)
    fullscreen: tuple[str, ...] = ("L",)
    help: tuple[str, ...] = ("?",)
    escape: tuple[str, ...] = (ESC,)
    quit: tuple[str, ...] = ("q", CTRL_C)
    confirm_yes: tuple[str, ...] = ("y", "Y")
    confirm_no: tuple[str, ...] = ("n", "N", ESC)
    scroll_up: tuple[str, ...] = (CTRL_U,)
    scroll_down: tuple[str, ...] = (CTRL_D,)
    log_top: tuple[str, ...] = ("g",)
    log_bottom: tuple[str, ...] = ("G",)


DEFAULT_KEYMAP = KeyMap()

#: (keys, description) rows for the help overlay, grouped by section
HELP_SECTIONS: list[tuple[str, list[tuple[str, str]]]] = [
    (
        "Navigation",
        [
            ("j / ↓", "Move down"),
            ("k / ↑", "Move up"),
            ("h / ←", "Previous pane"),
            ("l / →", "Next pane"),
            ("Tab / Shift+Tab", "Next/previous pane"),
        ],
    ),
    (
        "Actions",
        [
            ("c", "Cancel run (asks for confirmation)"),
            ("r", "Rerun workflow"),
            ("R", "Rerun failed jobs only"),
        ],
    ),
    (
        "View",
        [
            ("/", "Filter focused pane"),
            ("L", "Full-screen log"),
            ("Ctrl+u / Ctrl+d", "Scroll log up/down"),
            ("g / G", "Jump to top/bottom of log"),
            ("Esc", "Close help, leave full-screen, clear error"),
            ("?", "Toggle this help"),
            ("q", "Quit"),
        ],
    ),
]
