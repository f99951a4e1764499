"""Application state machine for the actions dashboard.

:class:`App` owns one :class:`~actionsee.filtered_list.FilteredList` per
entity level (workflows, runs, jobs), the interaction mode, the status
line, the log view and the single log poll session. All state changes
happen inside :meth:`App.update`, which is only ever called from the main
loop. Anything slow is returned as a :class:`~actionsee.messages.Command`;
its result comes back later as another message.

Selecting an entity cascades down the hierarchy: a workflow fetches its
runs, the first run fetches its jobs, and the first job fetches its log
and starts polling it. Each dependent level carries a generation counter
that is bumped whenever a cascade passes through it, and results tagged
with an outdated generation are dropped on arrival.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import ClassVar

from actionsee.constants import FLASH_DURATION
from actionsee.constants import LOG_SCROLL_STEP
from actionsee.constants import POLLER_JOIN_TIMEOUT
from actionsee.exceptions import ActionseeError
from actionsee.exceptions import ApiError
from actionsee.filter_input import FilterInput
from actionsee.filter_input import FilterSignal
from actionsee.filtered_list import FilteredList
from actionsee.github import Client
from actionsee.keys import DEFAULT_KEYMAP
from actionsee.keys import KeyMap
from actionsee.messages import QUIT
from actionsee.messages import Action
from actionsee.messages import ActionCompleted
from actionsee.messages import Command
from actionsee.messages import FlashCleared
from actionsee.messages import JobsLoaded
from actionsee.messages import KeyPressed
from actionsee.messages import LogsLoaded
from actionsee.messages import Message
from actionsee.messages import Resized
from actionsee.messages import RunsLoaded
from actionsee.messages import WorkflowsLoaded
from actionsee.models import Job
from actionsee.models import Repository
from actionsee.models import Run
from actionsee.models import Workflow
from actionsee.polling import AdaptivePoller
from actionsee.polling import PeriodicTask

logger = logging.getLogger(__name__)


class Pane(Enum):
    """Panes that can hold focus, in cycling order."""

    WORKFLOWS = "workflows"
    RUNS = "runs"
    LOGS = "logs"


PANE_ORDER = [Pane.WORKFLOWS, Pane.RUNS, Pane.LOGS]

PANE_HINTS = {
    Pane.WORKFLOWS: "[/]filter [?]help [q]uit",
    Pane.RUNS: "[c]ancel [r]erun [R]erun-failed [/]filter [?]help [q]uit",
    Pane.LOGS: "[L]fullscreen [/]filter [Esc]back [?]help [q]uit",
}

FLASH_MESSAGES = {
    Action.CANCEL: "Run cancelled",
    Action.RERUN: "Rerun triggered",
    Action.RERUN_FAILED: "Rerunning failed jobs",
}


class ModeKind(Enum):
    """Tag of the current interaction mode."""

    NORMAL = "normal"
    FILTERING = "filtering"
    CONFIRMING = "confirming"
    FULLSCREEN_LOG = "fullscreen_log"


@dataclass(frozen=True)
class NormalMode:
    kind: ClassVar[ModeKind] = ModeKind.NORMAL


@dataclass(frozen=True)
class FilteringMode:
    """Typing filter text for the list shown in ``pane``."""

    pane: Pane
    input: FilterInput
    kind: ClassVar[ModeKind] = ModeKind.FILTERING


@dataclass(frozen=True)
class ConfirmingMode:
    """Waiting for yes/no before running ``action``."""

    prompt: str
    action: Command
    kind: ClassVar[ModeKind] = ModeKind.CONFIRMING


@dataclass(frozen=True)
class FullscreenLogMode:
    kind: ClassVar[ModeKind] = ModeKind.FULLSCREEN_LOG


Mode = NormalMode | FilteringMode | ConfirmingMode | FullscreenLogMode


class _Level(Enum):
    """Dependent levels of the hierarchy, top to bottom."""

    RUNS = 0
    JOBS = 1
    LOGS = 2


@dataclass(frozen=True)
class ListView:
    """Render-ready projection of one filtered list."""

    items: list[Any]
    selected_index: int
    filter_text: str


@dataclass(frozen=True)
class Snapshot:
    """Everything the renderer needs for one frame."""

    focused_pane: Pane
    mode: ModeKind
    show_help: bool
    workflows: ListView
    runs: ListView
    jobs: ListView
    log_text: str
    log_scroll: int
    status_text: str
    status_kind: str
    prompt: str = ""
    loading: bool = False
    quota: int | None = None
    poll_interval: float | None = None
    width: int = 0
    height: int = 0
    repository: str = ""


def _run_search_text(run: Run) -> str:
    # Newline keeps a filter from matching across the two fields
    return f"{run.branch}\n{run.actor}"


def _selected_id(items: FilteredList[Any]) -> int | None:
    item, ok = items.selected()
    return item.id if ok else None


PollerFactory = Callable[..., PeriodicTask[LogsLoaded]]


class App:
    """
    The dashboard state machine.

    Attributes:
        client: Remote API; when None no fetches or actions are issued.
        repo: Repository being browsed.
        keys: Key binding table.
        poller_factory: Builds the periodic task for a log poll session.
        post: Delivers poll results to the main loop; polling is disabled
            until it is set.
        workflows: Workflow list, filtered by name.
        runs: Run list of the selected workflow, filtered by branch or actor.
        jobs: Job list of the selected run, filtered by name.
        focused_pane: Pane receiving navigation keys.
        mode: Current interaction mode.
        show_help: Whether the help overlay is shown.
        error: Most recent unacknowledged error.
        flash: Transient success message.
    """

    def __init__(
        self,
        client: Client | None,
        repo: Repository,
        keys: KeyMap = DEFAULT_KEYMAP,
        poller_factory: PollerFactory = PeriodicTask,
        post: Callable[[Message], None] | None = None,
    ) -> None:
        self.client = client
        self.repo = repo
        self.keys = keys
        self.poller_factory = poller_factory
        self.post = post

        self.workflows: FilteredList[Workflow] = FilteredList(lambda w: w.name)
        self.runs: FilteredList[Run] = FilteredList(_run_search_text)
        self.jobs: FilteredList[Job] = FilteredList(lambda j: j.name)

        self.focused_pane = Pane.WORKFLOWS
        self.mode: Mode = NormalMode()
        self.show_help = False
        self.loading = False
        self.width = 0
        self.height = 0

        # Status line: whichever of error/flash was set last is shown
        self.error: Exception | None = None
        self.flash = ""
        self._flash_token = 0

        # Log view of the selected job
        self.log_job_id: int | None = None
        self.log_text = ""
        self.log_scroll = 0  # Lines from the bottom (0 = follow the tail)

        self._generations = {level: 0 for level in _Level}
        self._poller: PeriodicTask[LogsLoaded] | None = None
        self.poll_interval: float | None = None
        self.adaptive_poller = (
            AdaptivePoller(client.remaining_quota) if client is not None else None
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def init(self) -> list[Command]:
        """Return the commands to run at startup (the workflow fetch)."""
        if self.client is None:
            return []
        self.loading = True
        return [Command(self._fetch_workflows, label="fetch workflows")]

    def _fetch_workflows(self) -> WorkflowsLoaded:
        assert self.client is not None
        try:
            workflows = self.client.fetch_workflows(self.repo)
        except ActionseeError as e:
            return WorkflowsLoaded(error=e)
        return WorkflowsLoaded(workflows=workflows)

    def update(self, message: Message) -> list[Command]:
        """
        Apply one message and return the commands it triggers.

        Args:
            message: A key press, resize, or the result of an earlier command.

        Returns:
            Commands to execute; contains :data:`~actionsee.messages.QUIT`
            when the operator asked to quit.
        """
        if isinstance(message, KeyPressed):
            return self._handle_key(message.key)
        if isinstance(message, Resized):
            self.width = message.width
            self.height = message.height
            return []
        if isinstance(message, WorkflowsLoaded):
            return self._on_workflows_loaded(message)
        if isinstance(message, RunsLoaded):
            return self._on_runs_loaded(message)
        if isinstance(message, JobsLoaded):
            return self._on_jobs_loaded(message)
        if isinstance(message, LogsLoaded):
            self._on_logs_loaded(message)
            return []
        if isinstance(message, ActionCompleted):
            return self._on_action_completed(message)
        if isinstance(message, FlashCleared):
            if message.token == self._flash_token:
                self.flash = ""
            return []
        logger.debug("Ignoring unknown message %r", message)
        return []

    def shutdown(self) -> None:
        """Stop background polling and wait briefly for the poll thread to exit."""
        poller = self._poller
        self._stop_polling()
        if poller is not None:
            poller.join(POLLER_JOIN_TIMEOUT)

    @property
    def polling(self) -> bool:
        return self._poller is not None

    # -------------------------------------------------------------------------
    # Key handling
    # -------------------------------------------------------------------------

    def _handle_key(self, key: str) -> list[Command]:
        handlers = {
            ModeKind.NORMAL: self._handle_normal_key,
            ModeKind.FILTERING: self._handle_filtering_key,
            ModeKind.CONFIRMING: self._handle_confirming_key,
            ModeKind.FULLSCREEN_LOG: self._handle_fullscreen_key,
        }
        return handlers[self.mode.kind](key)

    def _handle_escape(self) -> None:
        """Dismiss, in order: help overlay, fullscreen log, error."""
        if self.show_help:
            self.show_help = False
        elif self.mode.kind is ModeKind.FULLSCREEN_LOG:
            self.mode = NormalMode()
        elif self.error is not None:
            self.error = None

    def _handle_overlay_key(self, key: str) -> list[Command] | None:
        """Handle keys shared by normal and fullscreen mode. Returns None if not handled."""
        if key in self.keys.quit:
            return [QUIT]
        if key in self.keys.escape:
            self._handle_escape()
            return []
        if key in self.keys.help:
            self.show_help = not self.show_help
            return []
        if self.show_help:
            # Help overlay swallows everything else
            return []
        return None

    def _handle_normal_key(self, key: str) -> list[Command]:
        handled = self._handle_overlay_key(key)
        if handled is not None:
            return handled

        k = self.keys
        if key in k.up:
            return self._move_selection(forward=False)
        if key in k.down:
            return self._move_selection(forward=True)
        if key in k.prev_pane:
            self._focus_pane(-1)
            return []
        if key in k.next_pane:
            self._focus_pane(1)
            return []
        if key in k.filter:
            filter_input = FilterInput()
            filter_input.reset(self._list_for(self.focused_pane).filter_text)
            self.mode = FilteringMode(pane=self.focused_pane, input=filter_input)
            return []
        if key in k.fullscreen:
            if self.focused_pane is Pane.LOGS:
                self.mode = FullscreenLogMode()
            return []
        if key in k.cancel:
            self._confirm_cancel_run()
            return []
        if key in k.rerun:
            return self._rerun(Action.RERUN)
        if key in k.rerun_failed:
            return self._rerun(Action.RERUN_FAILED)
        if self.focused_pane is Pane.LOGS:
            self._handle_scroll_key(key)
        return []

    def _handle_filtering_key(self, key: str) -> list[Command]:
        mode = self.mode
        assert isinstance(mode, FilteringMode)
        signal = mode.input.handle_key(key)
        if signal is FilterSignal.COMMIT:
            self.mode = NormalMode()
            return self._apply_filter(mode.pane, mode.input.value)
        if signal is FilterSignal.CANCEL:
            self.mode = NormalMode()
            return self._apply_filter(mode.pane, "")
        return []

    def _handle_confirming_key(self, key: str) -> list[Command]:
        mode = self.mode
        assert isinstance(mode, ConfirmingMode)
        if key in self.keys.confirm_yes:
            self.mode = NormalMode()
            return [mode.action]
        if key in self.keys.confirm_no:
            self.mode = NormalMode()
        return []

    def _handle_fullscreen_key(self, key: str) -> list[Command]:
        handled = self._handle_overlay_key(key)
        if handled is not None:
            return handled
        if key in self.keys.up:
            self._scroll_log(1)
        elif key in self.keys.down:
            self._scroll_log(-1)
        else:
            self._handle_scroll_key(key)
        return []

    def _handle_scroll_key(self, key: str) -> None:
        if key in self.keys.scroll_up:
            self._scroll_log(LOG_SCROLL_STEP)
        elif key in self.keys.scroll_down:
            self._scroll_log(-LOG_SCROLL_STEP)
        elif key in self.keys.log_top:
            self.log_scroll = self._max_log_scroll()
        elif key in self.keys.log_bottom:
            self.log_scroll = 0

    def _max_log_scroll(self) -> int:
        return max(0, len(self.log_text.splitlines()) - 1)

    def _scroll_log(self, lines: int) -> None:
        self.log_scroll = min(self._max_log_scroll(), max(0, self.log_scroll + lines))

    def _focus_pane(self, step: int) -> None:
        index = PANE_ORDER.index(self.focused_pane) + step
        self.focused_pane = PANE_ORDER[index % len(PANE_ORDER)]

    def _list_for(self, pane: Pane) -> FilteredList[Any]:
        return {
            Pane.WORKFLOWS: self.workflows,
            Pane.RUNS: self.runs,
            Pane.LOGS: self.jobs,
        }[pane]

    def _on_selection_changed(self, pane: Pane) -> list[Command]:
        if pane is Pane.WORKFLOWS:
            return self._on_workflow_selected()
        if pane is Pane.RUNS:
            return self._on_run_selected()
        return self._on_job_selected()

    def _move_selection(self, forward: bool) -> list[Command]:
        items = self._list_for(self.focused_pane)
        moved = items.select_next() if forward else items.select_prev()
        if not moved:
            return []
        return self._on_selection_changed(self.focused_pane)

    def _apply_filter(self, pane: Pane, text: str) -> list[Command]:
        """Filter the list of ``pane``; cascade if that changed the selected item."""
        items = self._list_for(pane)
        before = _selected_id(items)
        items.set_filter(text)
        if _selected_id(items) == before:
            return []
        return self._on_selection_changed(pane)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _confirm_cancel_run(self) -> None:
        if self.focused_pane is not Pane.RUNS:
            return
        run, ok = self.runs.selected()
        if not ok or not run.is_running():
            return
        action = self._action_command(Action.CANCEL, run)
        if action is None:
            return
        self.mode = ConfirmingMode(prompt=f"Cancel run #{run.id}?", action=action)

    def _rerun(self, action: Action) -> list[Command]:
        if self.focused_pane is not Pane.RUNS:
            return []
        run, ok = self.runs.selected()
        if not ok:
            return []
        if action is Action.RERUN_FAILED and not run.is_failed():
            return []
        command = self._action_command(action, run)
        return [command] if command is not None else []

    def _action_command(self, action: Action, run: Run) -> Command | None:
        client = self.client
        if client is None:
            return None
        call = {
            Action.CANCEL: client.cancel_run,
            Action.RERUN: client.rerun_workflow,
            Action.RERUN_FAILED: client.rerun_failed_jobs,
        }[action]
        repo = self.repo

        def perform() -> ActionCompleted:
            try:
                call(repo, run.id)
            except ActionseeError as e:
                return ActionCompleted(action=action, run_id=run.id, error=e)
            return ActionCompleted(action=action, run_id=run.id)

        return Command(perform, label=f"{action.value} run {run.id}")

    def _on_action_completed(self, message: ActionCompleted) -> list[Command]:
        if message.error is not None:
            logger.warning(
                "%s of run %d failed: %s", message.action.value, message.run_id, message.error
            )
            self._set_error(message.error)
            return []
        commands = [self._set_flash(FLASH_MESSAGES[message.action])]
        workflow, ok = self.workflows.selected()
        if ok:
            commands.extend(self._start_runs_fetch(workflow.id, keep_selection=True))
        return commands

    # -------------------------------------------------------------------------
    # Status line
    # -------------------------------------------------------------------------

    def _set_error(self, error: Exception) -> None:
        self.error = error
        self.flash = ""

    def _set_flash(self, text: str) -> Command:
        """Show ``text`` and return the delayed command that clears it."""
        self.flash = text
        self.error = None
        self._flash_token += 1
        token = self._flash_token
        return Command(lambda: FlashCleared(token), delay=FLASH_DURATION, label="clear flash")

    def status_line(self) -> tuple[str, str]:
        """Return the status bar text and its kind (filter, flash, error, or hints)."""
        if isinstance(self.mode, FilteringMode):
            return f"Filter: /{self.mode.input.value}_", "filter"
        if self.flash:
            return self.flash, "flash"
        if self.error is not None:
            return f"Error: {self.error}", "error"
        return PANE_HINTS[self.focused_pane], "hints"

    # -------------------------------------------------------------------------
    # Cascade
    # -------------------------------------------------------------------------

    def _bump(self, level: _Level) -> int:
        """Invalidate in-flight results for ``level`` and every level below it."""
        for lower in _Level:
            if lower.value >= level.value:
                self._generations[lower] += 1
        return self._generations[level]

    def _is_current(self, level: _Level, generation: int) -> bool:
        return self._generations[level] == generation

    def _on_workflows_loaded(self, message: WorkflowsLoaded) -> list[Command]:
        self.loading = False
        if message.error is not None:
            logger.warning("Fetching workflows failed: %s", message.error)
            self._set_error(message.error)
            return []
        self.workflows.set_items(message.workflows)
        self.workflows.select_first()
        return self._on_workflow_selected()

    def _on_workflow_selected(self) -> list[Command]:
        workflow, ok = self.workflows.selected()
        if not ok:
            self._bump(_Level.RUNS)
            self._clear_runs()
            return []
        return self._start_runs_fetch(workflow.id)

    def _start_runs_fetch(self, workflow_id: int, keep_selection: bool = False) -> list[Command]:
        if keep_selection:
            # Jobs and the log poll stay live until the refreshed runs arrive
            self._generations[_Level.RUNS] += 1
            generation = self._generations[_Level.RUNS]
        else:
            generation = self._bump(_Level.RUNS)
            self._stop_polling()
        if self.client is None:
            return []
        self.loading = True
        client = self.client
        repo = self.repo

        def fetch() -> RunsLoaded:
            try:
                runs = client.fetch_runs(repo, workflow_id)
            except ActionseeError as e:
                return RunsLoaded(workflow_id, generation, error=e, keep_selection=keep_selection)
            return RunsLoaded(workflow_id, generation, runs=runs, keep_selection=keep_selection)

        return [Command(fetch, label=f"fetch runs for workflow {workflow_id}")]

    def _on_runs_loaded(self, message: RunsLoaded) -> list[Command]:
        if not self._is_current(_Level.RUNS, message.generation):
            logger.debug("Dropping stale runs for workflow %d", message.workflow_id)
            return []
        self.loading = False
        if message.error is not None:
            name = self._workflow_name(message.workflow_id)
            logger.warning("Fetching runs of %s failed: %s", name, message.error)
            # The runs still shown may belong to another workflow
            self._set_error(ApiError(f"Fetching runs of {name} failed", cause=message.error))
            self._resume_polling()
            return []
        self.runs.set_items(message.runs)
        if not message.keep_selection:
            self.runs.select_first()
        return self._on_run_selected()

    def _on_run_selected(self) -> list[Command]:
        generation = self._bump(_Level.JOBS)
        self._stop_polling()
        run, ok = self.runs.selected()
        if not ok:
            self._clear_jobs()
            return []
        if self.client is None:
            return []
        self.loading = True
        client = self.client
        repo = self.repo
        run_id = run.id

        def fetch() -> JobsLoaded:
            try:
                jobs = client.fetch_jobs(repo, run_id)
            except ActionseeError as e:
                return JobsLoaded(run_id, generation, error=e)
            return JobsLoaded(run_id, generation, jobs=jobs)

        return [Command(fetch, label=f"fetch jobs for run {run_id}")]

    def _on_jobs_loaded(self, message: JobsLoaded) -> list[Command]:
        if not self._is_current(_Level.JOBS, message.generation):
            logger.debug("Dropping stale jobs for run %d", message.run_id)
            return []
        self.loading = False
        if message.error is not None:
            logger.warning("Fetching jobs failed: %s", message.error)
            self._set_error(message.error)
            self._resume_polling()
            return []
        self.jobs.set_items(message.jobs)
        self.jobs.select_first()
        return self._on_job_selected()

    def _on_job_selected(self) -> list[Command]:
        generation = self._bump(_Level.LOGS)
        self._stop_polling()
        job, ok = self.jobs.selected()
        if not ok:
            self._clear_log()
            return []
        self.log_job_id = job.id
        self.log_text = ""
        self.log_scroll = 0
        if self.client is None:
            return []
        job_id = job.id
        self._start_polling(job_id, generation)
        return [
            Command(
                lambda: self._fetch_logs(job_id, generation),
                label=f"fetch logs for job {job_id}",
            )
        ]

    def _fetch_logs(
        self,
        job_id: int,
        generation: int,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> LogsLoaded | None:
        """Fetch the log of ``job_id``; runs on a worker or poller thread."""
        assert self.client is not None
        try:
            text = self.client.fetch_logs(self.repo, job_id)
        except ActionseeError as e:
            result = LogsLoaded(job_id, generation, error=e)
        else:
            result = LogsLoaded(job_id, generation, text=text)
        if is_cancelled is not None and is_cancelled():
            return None
        return result

    def _on_logs_loaded(self, message: LogsLoaded) -> None:
        if not self._is_current(_Level.LOGS, message.generation) or (
            message.job_id != self.log_job_id
        ):
            logger.debug("Dropping stale log for job %d", message.job_id)
            return
        if message.error is not None:
            logger.warning("Fetching log of job %d failed: %s", message.job_id, message.error)
            self._set_error(message.error)
            return
        self.log_text = message.text
        self.log_scroll = min(self.log_scroll, self._max_log_scroll())

    def _workflow_name(self, workflow_id: int) -> str:
        for workflow in self.workflows.all_items():
            if workflow.id == workflow_id:
                return workflow.name
        return f"workflow {workflow_id}"

    def _clear_runs(self) -> None:
        self.runs.set_items([])
        self._bump(_Level.JOBS)
        self._clear_jobs()

    def _clear_jobs(self) -> None:
        self.jobs.set_items([])
        self._bump(_Level.LOGS)
        self._clear_log()

    def _clear_log(self) -> None:
        self._stop_polling()
        self.log_job_id = None
        self.log_text = ""
        self.log_scroll = 0

    # -------------------------------------------------------------------------
    # Log polling
    # -------------------------------------------------------------------------

    def _start_polling(self, job_id: int, generation: int) -> None:
        """Start a poll session bound to ``job_id``; the caller stops any previous one."""
        if self.post is None or self.adaptive_poller is None:
            return
        interval = self.adaptive_poller.next_interval()

        def work(is_cancelled: Callable[[], bool]) -> LogsLoaded | None:
            return self._fetch_logs(job_id, generation, is_cancelled)

        self._poller = self.poller_factory(interval, work, self.post, name=f"log-poller-{job_id}")
        self._poller.start()
        self.poll_interval = interval
        logger.debug("Polling log of job %d every %.1fs", job_id, interval)

    def _resume_polling(self) -> None:
        """Restart polling of the still-selected job after a failed refresh stopped it."""
        if self.polling or self.client is None:
            return
        job, ok = self.jobs.selected()
        if not ok or job.id != self.log_job_id:
            return
        self._start_polling(job.id, self._bump(_Level.LOGS))

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
        self.poll_interval = None

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        """Return a render-ready view of the current state."""
        status_text, status_kind = self.status_line()
        prompt = self.mode.prompt if isinstance(self.mode, ConfirmingMode) else ""
        quota = self.adaptive_poller.last_quota if self.adaptive_poller is not None else None
        return Snapshot(
            focused_pane=self.focused_pane,
            mode=self.mode.kind,
            show_help=self.show_help,
            workflows=ListView(
                self.workflows.items(),
                self.workflows.selected_index,
                self.workflows.filter_text,
            ),
            runs=ListView(self.runs.items(), self.runs.selected_index, self.runs.filter_text),
            jobs=ListView(self.jobs.items(), self.jobs.selected_index, self.jobs.filter_text),
            log_text=self.log_text,
            log_scroll=self.log_scroll,
            status_text=status_text,
            status_kind=status_kind,
            prompt=prompt,
            loading=self.loading,
            quota=quota,
            poll_interval=self.poll_interval,
            width=self.width,
            height=self.height,
            repository=self.repo.full_name,
        )
