"""Shared test fixtures for actionsee tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from actionsee.app import App
from actionsee.messages import Command
from actionsee.messages import Message
from actionsee.models import Job
from actionsee.models import Repository
from actionsee.models import Run
from actionsee.models import Step
from actionsee.models import Workflow

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

REPO = Repository(owner="test", name="repo")


def make_workflows() -> list[Workflow]:
    """Three workflows, the last one disabled."""
    return [
        Workflow(id=1, name="CI", path=".github/workflows/ci.yml", state="active"),
        Workflow(id=2, name="Deploy", path=".github/workflows/deploy.yml", state="active"),
        Workflow(
            id=3, name="Release", path=".github/workflows/release.yml", state="disabled_manually"
        ),
    ]


def make_run(
    run_id: int = 100,
    status: str = "completed",
    conclusion: str = "success",
    branch: str = "main",
    actor: str = "user1",
) -> Run:
    return Run(
        id=run_id,
        name="CI",
        status=status,
        conclusion=conclusion,
        branch=branch,
        event="push",
        actor=actor,
        created_at=NOW - timedelta(minutes=30),
        url=f"https://github.com/test/repo/actions/runs/{run_id}",
    )


def running_run(run_id: int = 101) -> Run:
    return make_run(run_id, status="in_progress", conclusion="", branch="feature/test")


def failed_run(run_id: int = 102) -> Run:
    return make_run(run_id, status="completed", conclusion="failure", branch="fix/bug")


def make_runs() -> list[Run]:
    """Runs with branches main, feature/test, fix/bug, main."""
    return [
        make_run(100),
        running_run(101),
        failed_run(102),
        make_run(103, status="queued", conclusion="", actor="user3"),
    ]


def make_job(job_id: int = 1001, name: str = "build", status: str = "completed") -> Job:
    conclusion = "success" if status == "completed" else ""
    return Job(
        id=job_id,
        name=name,
        status=status,
        conclusion=conclusion,
        steps=(
            Step(name="Checkout", number=1, status="completed", conclusion="success"),
            Step(name="Build", number=2, status=status, conclusion=conclusion),
        ),
    )


def make_jobs() -> list[Job]:
    return [
        make_job(1001, "build"),
        make_job(1002, "test", status="in_progress"),
        make_job(1003, "lint"),
    ]


class FakePoller:
    """Stands in for PeriodicTask; records its lifecycle instead of starting a thread."""

    def __init__(
        self,
        interval: float,
        work: Callable[[Callable[[], bool]], Any],
        deliver: Callable[[Any], None],
        name: str = "",
    ) -> None:
        self.interval = interval
        self.work = work
        self.deliver = deliver
        self.name = name
        self.started = False
        self.stopped = False
        self.joined = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined = True

    def tick(self) -> None:
        """Run one execution the way PeriodicTask does."""
        result = self.work(lambda: self.stopped)
        if result is not None and not self.stopped:
            self.deliver(result)

    @property
    def running(self) -> bool:
        return self.started and not self.stopped


@pytest.fixture
def mock_client() -> MagicMock:
    """A client whose fetches return the default fixtures."""
    client = MagicMock()
    client.fetch_workflows.return_value = make_workflows()
    client.fetch_runs.return_value = make_runs()
    client.fetch_jobs.return_value = make_jobs()
    client.fetch_logs.return_value = "line 1\nline 2\nline 3"
    client.remaining_quota.return_value = 5000
    client.cancel_run.return_value = None
    client.rerun_workflow.return_value = None
    client.rerun_failed_jobs.return_value = None
    return client


@pytest.fixture
def posted() -> list[Message]:
    """Messages delivered by pollers."""
    return []


@pytest.fixture
def pollers() -> list[FakePoller]:
    """Every poll session the app started, oldest first."""
    return []


@pytest.fixture
def app(mock_client: MagicMock, posted: list[Message], pollers: list[FakePoller]) -> App:
    """An App wired to the mock client and fake pollers."""

    def poller_factory(*args: Any, **kwargs: Any) -> FakePoller:
        poller = FakePoller(*args, **kwargs)
        pollers.append(poller)
        return poller

    return App(mock_client, REPO, poller_factory=poller_factory, post=posted.append)


def run_commands(app: App, commands: list[Command]) -> list[Message]:
    """
    Execute commands synchronously and feed their results back, breadth first.

    Delayed commands are skipped. Returns every message that was applied.
    """
    applied: list[Message] = []
    pending = list(commands)
    while pending:
        command = pending.pop(0)
        if command.delay > 0:
            continue
        message = command()
        if message is None:
            continue
        applied.append(message)
        pending.extend(app.update(message))
    return applied


def start(app: App) -> list[Message]:
    """Run the startup cascade to completion."""
    return run_commands(app, app.init())
