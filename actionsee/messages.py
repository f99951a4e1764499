"""Messages delivered to the application state machine, and the commands that produce them.

Every effect that leaves the state machine (a fetch, a mutating action, a
delayed status-bar update) is expressed as a :class:`Command`. The runtime
executes commands off the main loop and feeds the resulting messages back
into :meth:`actionsee.app.App.update`, one at a time and in arrival order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum

from actionsee.models import Job
from actionsee.models import Run
from actionsee.models import Workflow


class Action(Enum):
    """Mutating actions that can be issued against a run."""

    CANCEL = "cancel"
    RERUN = "rerun"
    RERUN_FAILED = "rerun_failed"


@dataclass(frozen=True)
class KeyPressed:
    """A key typed by the operator, already decoded to a symbolic name."""

    key: str


@dataclass(frozen=True)
class Resized:
    """The terminal was resized."""

    width: int
    height: int


@dataclass(frozen=True)
class WorkflowsLoaded:
    workflows: list[Workflow] = field(default_factory=list)
    error: Exception | None = None


@dataclass(frozen=True)
class RunsLoaded:
    workflow_id: int
    generation: int
    runs: list[Run] = field(default_factory=list)
    error: Exception | None = None
    keep_selection: bool = False


@dataclass(frozen=True)
class JobsLoaded:
    run_id: int
    generation: int
    jobs: list[Job] = field(default_factory=list)
    error: Exception | None = None


@dataclass(frozen=True)
class LogsLoaded:
    """Log text for a job, from a one-shot fetch or a poll tick."""

    job_id: int
    generation: int
    text: str = ""
    error: Exception | None = None


@dataclass(frozen=True)
class ActionCompleted:
    """A mutating action finished; ``error`` is None on success."""

    action: Action
    run_id: int
    error: Exception | None = None


@dataclass(frozen=True)
class FlashCleared:
    """Clears the flash message, if it is still the one identified by ``token``."""

    token: int


Message = (
    KeyPressed
    | Resized
    | WorkflowsLoaded
    | RunsLoaded
    | JobsLoaded
    | LogsLoaded
    | ActionCompleted
    | FlashCleared
)


@dataclass(frozen=True)
class Command:
    """
    A deferred unit of work that produces at most one message.

    Attributes:
        fn: Performs the work and returns the resulting message, or None.
        delay: Seconds to wait before running ``fn``.
        label: Short description used in debug logs.
    """

    fn: Callable[[], Message | None]
    delay: float = 0.0
    label: str = ""

    def __call__(self) -> Message | None:
        return self.fn()


def _quit() -> None:
    return None


#: Returned by the state machine when the operator asks to quit
QUIT = Command(_quit, label="quit")
