"""Rich TUI for browsing GitHub Actions workflows, runs, jobs, and logs."""

from __future__ import annotations

import logging
import queue
import sys
import threading
from collections.abc import Iterable
from concurrent.futures import Executor
from concurrent.futures import ThreadPoolExecutor

from rich.align import Align
from rich.console import Console
from rich.console import Group
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from actionsee.app import App
from actionsee.app import ListView
from actionsee.app import ModeKind
from actionsee.app import Pane
from actionsee.app import Snapshot
from actionsee.constants import INPUT_TIMEOUT
from actionsee.constants import MAX_WORKERS
from actionsee.keys import ESC
from actionsee.keys import HELP_SECTIONS
from actionsee.keys import decode_escape
from actionsee.keys import decode_key
from actionsee.messages import QUIT
from actionsee.messages import Command
from actionsee.messages import KeyPressed
from actionsee.messages import Message
from actionsee.messages import Resized
from actionsee.models import format_age
from actionsee.models import status_icon
from actionsee.models import status_style

logger = logging.getLogger(__name__)

# Brand colors
ACCENT = "#2188ff"
ACCENT_DIM = "grey50"

# Share of the terminal width given to each pane
PANE_RATIOS = {Pane.WORKFLOWS: 20, Pane.RUNS: 25, Pane.LOGS: 55}

STATUS_STYLES = {
    "filter": "bold yellow",
    "flash": "bold green",
    "error": "bold red",
    "hints": "dim",
}


def _pane_border(snapshot: Snapshot, pane: Pane) -> str:
    return f"bold {ACCENT}" if snapshot.focused_pane is pane else ACCENT_DIM


def _scroll_position(view: ListView) -> str:
    if not view.items:
        return "0/0"
    return f"{view.selected_index + 1}/{len(view.items)}"


def _title(name: str, view: ListView | None = None, loading: bool = False) -> str:
    title = f"[bold]{name}[/bold]"
    if view is not None and view.filter_text:
        title += f" [yellow]/{escape(view.filter_text)}[/yellow]"
    if loading:
        title += " [dim]…[/dim]"
    return title


def log_window(text: str, scroll: int, height: int) -> list[str]:
    """
    Return the lines of ``text`` visible in a window of ``height`` lines.

    Args:
        text: Full log text.
        scroll: Lines from the bottom; 0 shows the tail.
        height: Number of lines that fit in the window.
    """
    lines = text.splitlines()
    if height <= 0 or not lines:
        return []
    end = max(0, len(lines) - scroll)
    start = max(0, end - height)
    return lines[start:end]


def make_workflows_panel(snapshot: Snapshot) -> Panel:
    """Create the workflow list pane."""
    view = snapshot.workflows
    table = Table(show_header=False, box=None, padding=(0, 1), expand=True)
    table.add_column("Name", no_wrap=True, overflow="ellipsis")
    for i, workflow in enumerate(view.items):
        style = "reverse" if i == view.selected_index else ("" if workflow.enabled else "dim")
        table.add_row(Text(workflow.name, style=style))
    loading = snapshot.loading and snapshot.focused_pane is Pane.WORKFLOWS
    return Panel(
        table,
        title=_title("Workflows", view, loading),
        subtitle=_scroll_position(view),
        border_style=_pane_border(snapshot, Pane.WORKFLOWS),
        padding=0,
    )


def make_runs_panel(snapshot: Snapshot) -> Panel:
    """Create the run list pane."""
    view = snapshot.runs
    table = Table(show_header=False, box=None, padding=(0, 1), expand=True)
    table.add_column("Status", width=1)
    table.add_column("Run", no_wrap=True, overflow="ellipsis")
    table.add_column("Age", justify="right", style="dim", no_wrap=True)
    for i, run in enumerate(view.items):
        row_style = "reverse" if i == view.selected_index else ""
        icon = Text(
            status_icon(run.status, run.conclusion),
            style=status_style(run.status, run.conclusion),
        )
        label = Text(f"#{run.id} {run.branch}", style=row_style)
        if run.actor:
            label.append(f" {run.actor}", style=f"{row_style} dim".strip())
        table.add_row(icon, label, format_age(run.created_at))
    loading = snapshot.loading and snapshot.focused_pane is Pane.RUNS
    return Panel(
        table,
        title=_title("Runs", view, loading),
        subtitle=_scroll_position(view),
        border_style=_pane_border(snapshot, Pane.RUNS),
        padding=0,
    )


def _make_log_text(snapshot: Snapshot, height: int) -> Text:
    if not snapshot.log_text:
        return Text("No log output yet." if snapshot.jobs.items else "", style="dim")
    return Text("\n".join(log_window(snapshot.log_text, snapshot.log_scroll, height)))


def make_logs_panel(snapshot: Snapshot) -> Panel:
    """Create the job list and log pane."""
    view = snapshot.jobs
    jobs = Table(show_header=False, box=None, padding=(0, 1), expand=True)
    jobs.add_column("Status", width=1)
    jobs.add_column("Job", no_wrap=True, overflow="ellipsis")
    for i, job in enumerate(view.items):
        row_style = "reverse" if i == view.selected_index else ""
        icon = Text(
            status_icon(job.status, job.conclusion),
            style=status_style(job.status, job.conclusion),
        )
        jobs.add_row(icon, Text(job.name, style=row_style))

    # Borders, title, job rows, blank separator, status bar
    log_height = max(1, snapshot.height - len(view.items) - 6)
    subtitle = ""
    if snapshot.poll_interval is not None:
        subtitle = f"polling every {snapshot.poll_interval:g}s"
    return Panel(
        Group(jobs, Text(""), _make_log_text(snapshot, log_height)),
        title=_title("Logs", view),
        subtitle=subtitle,
        border_style=_pane_border(snapshot, Pane.LOGS),
        padding=0,
    )


def make_fullscreen_log_panel(snapshot: Snapshot) -> Panel:
    """Create the log pane filling the whole screen."""
    height = max(1, snapshot.height - 3)
    title = "[bold]Logs (fullscreen)[/bold]"
    if snapshot.log_scroll:
        title += f" [dim]↑{snapshot.log_scroll}[/dim]"
    return Panel(
        _make_log_text(snapshot, height),
        title=title,
        subtitle="Esc to exit",
        border_style=f"bold {ACCENT}",
        padding=0,
    )


def make_help_panel() -> Panel:
    """Create the help overlay panel."""
    help_text = Table(show_header=False, box=None, padding=(0, 2))
    help_text.add_column("Key", style="bold cyan")
    help_text.add_column("Action")

    for i, (section, rows) in enumerate(HELP_SECTIONS):
        if i:
            help_text.add_row("", "")
        help_text.add_row("", f"[bold]{section}[/bold]")
        for keys, description in rows:
            help_text.add_row(keys, description)

    return Panel(
        help_text,
        title="[bold]Keyboard Shortcuts[/bold]",
        subtitle="Press Esc or ? to close",
        border_style="cyan",
    )


def make_confirm_panel(prompt: str) -> Panel:
    """Create the yes/no confirmation dialog."""
    body = Text(justify="center")
    body.append(prompt, style="bold")
    body.append("\n\n")
    body.append("[y] Yes  [n] No", style="dim")
    return Panel(body, title="[bold]Confirm[/bold]", border_style="yellow", width=40)


def make_status_bar(snapshot: Snapshot) -> Text:
    """Create the one-line status bar."""
    status = Text(snapshot.status_text, style=STATUS_STYLES.get(snapshot.status_kind, ""))
    status.append("  │  ", style="dim")
    status.append(snapshot.repository, style=ACCENT)
    if snapshot.quota is not None:
        status.append("  │  ", style="dim")
        status.append(f"Quota: {snapshot.quota}", style="dim")
    return status


def make_layout(snapshot: Snapshot) -> Layout:
    """Create the complete TUI layout for one frame."""
    layout = Layout()

    if snapshot.mode is ModeKind.FULLSCREEN_LOG and not snapshot.show_help:
        layout.split_column(Layout(name="log"), Layout(name="status", size=1))
        layout["log"].update(make_fullscreen_log_panel(snapshot))
        layout["status"].update(make_status_bar(snapshot))
        return layout

    layout.split_column(Layout(name="body"), Layout(name="status", size=1))
    layout["status"].update(make_status_bar(snapshot))

    if snapshot.show_help:
        layout["body"].update(Align.center(make_help_panel(), vertical="middle"))
        return layout

    if snapshot.mode is ModeKind.CONFIRMING:
        dialog = make_confirm_panel(snapshot.prompt)
        layout["body"].update(Align.center(dialog, vertical="middle"))
        return layout

    layout["body"].split_row(
        Layout(name="workflows", ratio=PANE_RATIOS[Pane.WORKFLOWS]),
        Layout(name="runs", ratio=PANE_RATIOS[Pane.RUNS]),
        Layout(name="logs", ratio=PANE_RATIOS[Pane.LOGS]),
    )
    layout["workflows"].update(make_workflows_panel(snapshot))
    layout["runs"].update(make_runs_panel(snapshot))
    layout["logs"].update(make_logs_panel(snapshot))
    return layout


class DashboardTUI:
    """
    Terminal runtime for :class:`~actionsee.app.App`.

    Reads single keys from a terminal in cbreak mode, executes the commands
    returned by the state machine on a thread pool (delayed commands on
    timers), and feeds every resulting message back through a queue. The
    main loop is the only caller of :meth:`App.update`, so messages are
    applied one at a time in arrival order.

    Keyboard Controls (vim-like):
        q: Quit
        ?: Toggle help
        j/k: Move selection down/up
        h/l, Tab/Shift+Tab: Previous/next pane
        /: Filter the focused pane
        c: Cancel the selected run (with confirmation)
        r: Rerun the selected run
        R: Rerun failed jobs of the selected run
        L: Full-screen log
        Esc: Close help, leave full-screen, clear error

    Attributes:
        app: The state machine being driven.
        console: Rich console used for output.
    """

    def __init__(
        self,
        app: App,
        console: Console | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.app = app
        self.console = console or Console()
        self._executor = executor
        self._owns_executor = executor is None
        self._messages: queue.Queue[Message] = queue.Queue()
        self._timers: list[threading.Timer] = []
        self._running = True
        self._force_refresh = True
        self._size: tuple[int, int] = (0, 0)
        app.post = self.post

    def post(self, message: Message) -> None:
        """Queue a message for the main loop; safe to call from any thread."""
        self._messages.put(message)

    def _execute(self, command: Command) -> None:
        try:
            message = command()
        except Exception:
            logger.exception("Command '%s' failed", command.label)
            return
        if message is not None:
            self.post(message)

    def dispatch(self, commands: Iterable[Command]) -> bool:
        """
        Schedule commands returned by the state machine.

        Returns:
            True if one of the commands asked to quit.
        """
        for command in commands:
            if command is QUIT:
                return True
            logger.debug("Scheduling %s", command.label or "command")
            if command.delay > 0:
                timer = threading.Timer(command.delay, self._execute, args=(command,))
                timer.daemon = True
                timer.start()
                self._timers = [t for t in self._timers if t.is_alive()]
                self._timers.append(timer)
            else:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=MAX_WORKERS, thread_name_prefix="actionsee"
                    )
                self._executor.submit(self._execute, command)
        return False

    def handle(self, message: Message) -> bool:
        """Apply one message and schedule its commands. Returns True to quit."""
        self._force_refresh = True
        return self.dispatch(self.app.update(message))

    def process_pending(self) -> bool:
        """Apply every queued message. Returns True to quit."""
        while True:
            try:
                message = self._messages.get_nowait()
            except queue.Empty:
                return False
            if self.handle(message):
                return True

    def _check_resize(self) -> bool:
        size = (self.console.width, self.console.height)
        if size == self._size:
            return False
        self._size = size
        return self.handle(Resized(*size))

    def shutdown(self) -> None:
        """Stop polling, pending timers, and worker threads."""
        self._running = False
        self.app.shutdown()
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def run(self) -> None:
        """
        Run the TUI main loop.

        Continuously processes keys and results until the user presses 'q'.
        """
        # Check if we're in a terminal that supports the TUI
        if not self.console.is_terminal:
            self.console.print(
                "[yellow]Warning:[/yellow] Not running in an interactive terminal.",
            )
            return

        try:
            import select
            import termios
            import tty
        except ImportError:
            # termios/tty not available (Windows without WSL)
            self.console.print(
                "[red]Error:[/red] keyboard input is not supported on this platform."
            )
            return

        # Save terminal settings and switch to cbreak mode for single-key input
        fd = sys.stdin.fileno()
        old_settings = termios.tcgetattr(fd)

        try:
            tty.setcbreak(fd)
            self._check_resize()
            if self.dispatch(self.app.init()):
                return

            with Live(
                make_layout(self.app.snapshot()),
                console=self.console,
                auto_refresh=False,
                screen=True,
            ) as live:
                while self._running:
                    # Check for keyboard input (non-blocking)
                    if sys.stdin in select.select([sys.stdin], [], [], INPUT_TIMEOUT)[0]:
                        key = decode_key(sys.stdin.read(1))

                        # Handle escape sequences (arrow keys, Shift+Tab)
                        if key == ESC:
                            seq = ""
                            if sys.stdin in select.select([sys.stdin], [], [], 0.05)[0]:
                                seq = sys.stdin.read(2)
                            key = decode_escape(seq)

                        if self.handle(KeyPressed(key)):
                            break

                    if self._check_resize() or self.process_pending():
                        break

                    if self._force_refresh:
                        live.update(make_layout(self.app.snapshot()), refresh=True)
                        self._force_refresh = False

        except KeyboardInterrupt:
            pass  # Clean exit on Ctrl+C
        finally:
            self.shutdown()
            # Restore terminal settings
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
