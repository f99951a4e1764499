"""Data models for GitHub Actions entities."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from typing import Any

from actionsee.exceptions import ConfigurationError

# Statuses reported by the API for work that has not finished yet
RUNNING_STATUSES = frozenset({"queued", "in_progress", "waiting", "requested", "pending"})

# Conclusions that count as a failed run or job
FAILED_CONCLUSIONS = frozenset({"failure", "timed_out", "startup_failure"})


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as returned by the API."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class Repository:
    """A GitHub repository, identified by owner and name."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> Repository:
        """
        Parse an ``owner/name`` string.

        Raises:
            ConfigurationError: If the value is not of the form ``owner/name``.
        """
        owner, sep, name = value.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ConfigurationError("repository", f"Expected 'owner/name', got '{value}'")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class Workflow:
    """
    A workflow definition in a repository.

    Attributes:
        id: Numeric workflow identifier.
        name: Display name.
        path: Path of the workflow file in the repository.
        state: "active" or one of the disabled states.
    """

    id: int
    name: str
    path: str = ""
    state: str = "active"

    @property
    def enabled(self) -> bool:
        return self.state == "active"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Workflow:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or data.get("path", ""),
            path=data.get("path", ""),
            state=data.get("state", "active"),
        )


@dataclass(frozen=True)
class Run:
    """
    One execution of a workflow.

    Attributes:
        id: Numeric run identifier.
        name: Workflow name at the time of the run.
        status: Lifecycle status (queued, in_progress, completed, ...).
        conclusion: Terminal outcome; empty while the run is not completed.
        branch: Head branch the run was triggered on.
        event: Triggering event (push, pull_request, ...).
        actor: Login of the user who triggered the run.
        created_at: Creation time, if known.
        url: Canonical web URL of the run.
    """

    id: int
    name: str = ""
    status: str = ""
    conclusion: str = ""
    branch: str = ""
    event: str = ""
    actor: str = ""
    created_at: datetime | None = None
    url: str = ""

    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    def is_failed(self) -> bool:
        return self.conclusion in FAILED_CONCLUSIONS

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Run:
        actor = data.get("actor") or {}
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            status=data.get("status") or "",
            conclusion=data.get("conclusion") or "",
            branch=data.get("head_branch") or "",
            event=data.get("event") or "",
            actor=actor.get("login", ""),
            created_at=_parse_timestamp(data.get("created_at")),
            url=data.get("html_url") or "",
        )


@dataclass(frozen=True)
class Step:
    """A single step of a job."""

    name: str
    number: int
    status: str = ""
    conclusion: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Step:
        return cls(
            name=data.get("name", ""),
            number=int(data.get("number", 0)),
            status=data.get("status") or "",
            conclusion=data.get("conclusion") or "",
        )


@dataclass(frozen=True)
class Job:
    """
    One unit of work within a run.

    Attributes:
        id: Numeric job identifier.
        name: Display name.
        status: Lifecycle status.
        conclusion: Terminal outcome; empty while the job is not completed.
        steps: Steps in execution order.
        started_at: Start time, if started.
        completed_at: Completion time, if completed.
    """

    id: int
    name: str
    status: str = ""
    conclusion: str = ""
    steps: tuple[Step, ...] = field(default_factory=tuple)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    def is_failed(self) -> bool:
        return self.conclusion in FAILED_CONCLUSIONS

    @property
    def duration(self) -> float | None:
        """Elapsed seconds between start and completion, if both are known."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Job:
        steps = sorted(
            (Step.from_api(s) for s in data.get("steps") or []),
            key=lambda s: s.number,
        )
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            status=data.get("status") or "",
            conclusion=data.get("conclusion") or "",
            steps=tuple(steps),
            started_at=_parse_timestamp(data.get("started_at")),
            completed_at=_parse_timestamp(data.get("completed_at")),
        )


def status_icon(status: str, conclusion: str) -> str:
    """Return a single-character icon for a status/conclusion pair."""
    if status in RUNNING_STATUSES:
        return "●" if status == "in_progress" else "◌"
    if conclusion == "success":
        return "✓"
    if conclusion in FAILED_CONCLUSIONS:
        return "✗"
    if conclusion == "cancelled":
        return "⊘"
    if conclusion == "skipped":
        return "-"
    return "?"


def status_style(status: str, conclusion: str) -> str:
    """Return the rich style used to render a status/conclusion pair."""
    if status in RUNNING_STATUSES:
        return "yellow"
    if conclusion == "success":
        return "green"
    if conclusion in FAILED_CONCLUSIONS:
        return "red"
    return "dim"


def format_duration(seconds: float) -> str:
    """
    Format a duration as a short human-readable string.

    Examples:
        >>> format_duration(42)
        '42s'
        >>> format_duration(125)
        '2m 5s'
        >>> format_duration(3725)
        '1h 2m'
    """
    if seconds < 0:
        return "-"
    total = int(seconds)
    if total < 60:
        return f"{total}s"
    minutes, secs = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_age(created_at: datetime | None, now: datetime | None = None) -> str:
    """Format the time elapsed since ``created_at`` (e.g. ``"5m ago"``)."""
    if created_at is None:
        return ""
    now = now or datetime.now(timezone.utc)
    elapsed = (now - created_at).total_seconds()
    if elapsed < 60:
        return "just now"
    return f"{format_duration(elapsed).split()[0]} ago"
