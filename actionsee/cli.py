"""Command-line entry point for actionsee."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path

import click

from actionsee.app import App
from actionsee.exceptions import ConfigurationError
from actionsee.github import GitHubClient
from actionsee.models import Repository

logger = logging.getLogger(__name__)

# Matches https://github.com/owner/name(.git) and git@github.com:owner/name(.git)
REMOTE_URL_PATTERN = re.compile(
    r"(?:https?://|ssh://git@|git@)[^/:]+[/:](?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"
)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def parse_remote_url(url: str) -> Repository | None:
    """Extract the repository from a git remote URL, or None if it is not recognised."""
    match = REMOTE_URL_PATTERN.match(url.strip())
    if match is None:
        return None
    return Repository(owner=match.group("owner"), name=match.group("name"))


def detect_repository(cwd: Path | None = None) -> Repository:
    """
    Detect the repository from the ``origin`` remote of the git checkout in ``cwd``.

    Raises:
        ConfigurationError: If there is no usable ``origin`` remote.
    """
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ConfigurationError(
            "repository", "No repository given and no git 'origin' remote found"
        ) from e
    repo = parse_remote_url(result.stdout)
    if repo is None:
        raise ConfigurationError(
            "repository", f"Cannot parse git remote URL '{result.stdout.strip()}'"
        )
    return repo


def resolve_token(token: str | None = None) -> str | None:
    """
    Find an API token.

    Checks, in order: the explicit value, ``GITHUB_TOKEN``, ``GH_TOKEN``,
    and ``gh auth token`` when the GitHub CLI is installed.
    """
    if token:
        return token
    for name in TOKEN_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    if shutil.which("gh") is None:
        return None
    try:
        result = subprocess.run(
            ["gh", "auth", "token"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError):
        logger.debug("'gh auth token' failed", exc_info=True)
        return None
    return result.stdout.strip() or None


def configure_logging(log_file: Path | None, verbose: bool) -> None:
    """Send logs to ``log_file``; the terminal belongs to the dashboard."""
    if log_file is None:
        logging.getLogger().addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )


@click.command()
@click.argument("repository", required=False)
@click.option(
    "--token",
    envvar="GITHUB_TOKEN",
    show_envvar=True,
    help="GitHub token (falls back to GH_TOKEN, then 'gh auth token').",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write logs to this file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages.")
@click.version_option(package_name="actionsee")
def main(
    repository: str | None,
    token: str | None,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Browse GitHub Actions workflows, runs, jobs, and logs of REPOSITORY (owner/name).

    REPOSITORY defaults to the 'origin' remote of the current git checkout.
    """
    from actionsee.tui import DashboardTUI

    configure_logging(log_file, verbose)
    try:
        repo = Repository.parse(repository) if repository else detect_repository()
    except ConfigurationError as e:
        raise click.UsageError(e.message) from e

    resolved = resolve_token(token)
    if resolved is None:
        click.echo("Warning: no GitHub token found; using unauthenticated requests.", err=True)

    logger.info("Browsing %s", repo)
    with GitHubClient(resolved) as client:
        DashboardTUI(App(client, repo)).run()


if __name__ == "__main__":
    main()
