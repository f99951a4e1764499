"""GitHub Actions REST client.

The state machine only depends on the :class:`Client` protocol; this module
also provides :class:`GitHubClient`, the HTTP implementation used by the
command line tool. Every method is synchronous and raises an
:class:`~actionsee.exceptions.ApiError` subclass on failure. The state
machine always calls them from worker threads.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any
from typing import Protocol
from typing import TypeVar

import httpx

from actionsee.constants import API_TIMEOUT
from actionsee.constants import DEFAULT_QUOTA
from actionsee.constants import GITHUB_API_URL
from actionsee.constants import MAX_LOG_BYTES
from actionsee.constants import RUNS_PER_PAGE
from actionsee.constants import WORKFLOWS_PER_PAGE
from actionsee.exceptions import ApiError
from actionsee.exceptions import AuthenticationError
from actionsee.exceptions import NotFoundError
from actionsee.exceptions import RateLimitExceededError
from actionsee.models import Job
from actionsee.models import Repository
from actionsee.models import Run
from actionsee.models import Workflow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Client(Protocol):
    """Operations the dashboard needs from the remote API."""

    def fetch_workflows(self, repo: Repository) -> list[Workflow]: ...

    def fetch_runs(self, repo: Repository, workflow_id: int) -> list[Run]: ...

    def fetch_jobs(self, repo: Repository, run_id: int) -> list[Job]: ...

    def fetch_logs(self, repo: Repository, job_id: int) -> str: ...

    def cancel_run(self, repo: Repository, run_id: int) -> None: ...

    def rerun_workflow(self, repo: Repository, run_id: int) -> None: ...

    def rerun_failed_jobs(self, repo: Repository, run_id: int) -> None: ...

    def remaining_quota(self) -> int:
        """Return the last known remaining quota; never performs a request."""
        ...


def _headers(token: str | None) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _tail(text: str, max_bytes: int = MAX_LOG_BYTES) -> str:
    """Keep at most ``max_bytes`` of the end of ``text``, cut at a line boundary."""
    data = text.encode("utf-8", errors="replace")
    if len(data) <= max_bytes:
        return text
    tail = data[-max_bytes:].decode("utf-8", errors="ignore")
    newline = tail.find("\n")
    return tail[newline + 1 :] if newline >= 0 else tail


class GitHubClient:
    """
    HTTP implementation of :class:`Client` backed by ``httpx``.

    The remaining rate-limit quota is read from the ``X-RateLimit-Remaining``
    header of every response, so :meth:`remaining_quota` is always local.

    Attributes:
        base_url: API root URL.
    """

    def __init__(
        self,
        token: str | None,
        base_url: str = GITHUB_API_URL,
        timeout: float = API_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            headers=_headers(token),
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )
        self._quota = DEFAULT_QUOTA
        self._quota_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def remaining_quota(self) -> int:
        with self._quota_lock:
            return self._quota

    def _track_quota(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is None:
            return
        try:
            value = int(remaining)
        except ValueError:
            logger.debug("Ignoring malformed rate limit header: %s", remaining)
            return
        with self._quota_lock:
            self._quota = value

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, path)
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed", cause=e) from e

        self._track_quota(response)
        if not response.is_error:
            return response

        detail = f"{response.status_code} {response.reason_phrase}".strip()
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                detail = f"{detail}: {body['message']}"
        except ValueError:
            pass

        status = response.status_code
        if status == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset")
            raise RateLimitExceededError(
                f"Rate limit exceeded ({detail})",
                status_code=status,
                reset_at=int(reset) if reset and reset.isdigit() else None,
            )
        if status in (401, 403):
            raise AuthenticationError(f"Not authorized: {detail}", status_code=status)
        if status == 404:
            raise NotFoundError(f"Not found: {path}", status_code=status)
        raise ApiError(f"{method} {path} failed: {detail}", status_code=status)

    def _get_json(self, path: str, **params: Any) -> dict[str, Any]:
        response = self._request("GET", path, params=params or None)
        try:
            result = response.json()
        except ValueError as e:
            raise ApiError(
                f"GET {path} returned invalid JSON", status_code=response.status_code, cause=e
            ) from e
        if not isinstance(result, dict):
            raise ApiError(
                f"GET {path} returned a JSON {type(result).__name__}, expected an object",
                status_code=response.status_code,
            )
        return result

    def _get_list(
        self, path: str, key: str, from_api: Callable[[dict[str, Any]], T], **params: Any
    ) -> list[T]:
        """GET ``path`` and build one entity per element of the ``key`` array."""
        data = self._get_json(path, **params)
        try:
            return [from_api(item) for item in data.get(key) or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ApiError(f"GET {path} returned malformed {key}", cause=e) from e

    def fetch_workflows(self, repo: Repository) -> list[Workflow]:
        return self._get_list(
            f"/repos/{repo.full_name}/actions/workflows",
            "workflows",
            Workflow.from_api,
            per_page=WORKFLOWS_PER_PAGE,
        )

    def fetch_runs(self, repo: Repository, workflow_id: int) -> list[Run]:
        return self._get_list(
            f"/repos/{repo.full_name}/actions/workflows/{workflow_id}/runs",
            "workflow_runs",
            Run.from_api,
            per_page=RUNS_PER_PAGE,
        )

    def fetch_jobs(self, repo: Repository, run_id: int) -> list[Job]:
        return self._get_list(
            f"/repos/{repo.full_name}/actions/runs/{run_id}/jobs", "jobs", Job.from_api
        )

    def fetch_logs(self, repo: Repository, job_id: int) -> str:
        response = self._request("GET", f"/repos/{repo.full_name}/actions/jobs/{job_id}/logs")
        return _tail(response.text)

    def cancel_run(self, repo: Repository, run_id: int) -> None:
        self._request("POST", f"/repos/{repo.full_name}/actions/runs/{run_id}/cancel")

    def rerun_workflow(self, repo: Repository, run_id: int) -> None:
        self._request("POST", f"/repos/{repo.full_name}/actions/runs/{run_id}/rerun")

    def rerun_failed_jobs(self, repo: Repository, run_id: int) -> None:
        self._request("POST", f"/repos/{repo.full_name}/actions/runs/{run_id}/rerun-failed-jobs")
