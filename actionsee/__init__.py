"""actionsee: A terminal UI for browsing GitHub Actions workflows, runs, and logs."""

from importlib.metadata import version

from actionsee.app import App
from actionsee.app import ModeKind
from actionsee.app import Pane
from actionsee.filtered_list import FilteredList
from actionsee.github import Client
from actionsee.github import GitHubClient
from actionsee.models import Job
from actionsee.models import Repository
from actionsee.models import Run
from actionsee.models import Step
from actionsee.models import Workflow
from actionsee.polling import AdaptivePoller
from actionsee.polling import PeriodicTask
from actionsee.polling import poll_interval

__version__ = version("actionsee")

__all__ = [
    "AdaptivePoller",
    "App",
    "Client",
    "FilteredList",
    "GitHubClient",
    "Job",
    "ModeKind",
    "Pane",
    "PeriodicTask",
    "Repository",
    "Run",
    "Step",
    "Workflow",
    "poll_interval",
]
