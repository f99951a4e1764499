"""Periodic background work and the quota-aware poll interval.

:class:`PeriodicTask` runs a unit of work on a fixed interval on a daemon
thread until it is stopped. It knows nothing about what the work produces;
results are handed to a ``deliver`` callback, which the runtime wires to
the message queue of the state machine.

:func:`poll_interval` maps the remaining API quota to a wait between log
fetches so that tailing a single log cannot exhaust the quota shared with
every other call.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic
from typing import TypeVar

from actionsee.constants import FAST_POLL_INTERVAL
from actionsee.constants import IDLE_POLL_INTERVAL
from actionsee.constants import LOW_POLL_INTERVAL
from actionsee.constants import LOW_QUOTA_THRESHOLD
from actionsee.constants import SAFE_QUOTA_THRESHOLD
from actionsee.constants import WARNING_POLL_INTERVAL
from actionsee.constants import WARNING_QUOTA_THRESHOLD

logger = logging.getLogger(__name__)

R = TypeVar("R")


def poll_interval(remaining: int) -> float:
    """
    Choose how long to wait between log polls.

    The interval never decreases as quota shrinks, is never zero, and is
    always finite so that quota is eventually re-checked.

    Args:
        remaining: Remaining API calls in the current quota window.

    Returns:
        Seconds to wait between polls.
    """
    if remaining > SAFE_QUOTA_THRESHOLD:
        return FAST_POLL_INTERVAL
    if remaining > WARNING_QUOTA_THRESHOLD:
        return WARNING_POLL_INTERVAL
    if remaining > LOW_QUOTA_THRESHOLD:
        return LOW_POLL_INTERVAL
    return IDLE_POLL_INTERVAL


class AdaptivePoller:
    """
    Samples the remaining quota and turns it into a poll interval.

    The quota is sampled once per call, i.e. once per poll session; changes
    during a session do not affect the interval already in use.

    Attributes:
        quota_source: Returns the remaining quota without a network call.
    """

    def __init__(self, quota_source: Callable[[], int]) -> None:
        self.quota_source = quota_source
        self.last_quota: int | None = None

    def next_interval(self) -> float:
        """Sample the quota and return the interval for a new session."""
        self.last_quota = self.quota_source()
        interval = poll_interval(self.last_quota)
        logger.debug("Quota %d remaining, polling every %.1fs", self.last_quota, interval)
        return interval


class PeriodicTask(Generic[R]):
    """
    Runs ``work`` every ``interval`` seconds until stopped.

    The first execution happens one interval after :meth:`start`. ``work``
    receives an ``is_cancelled`` callable and should check it after any slow
    operation; a result produced after cancellation is never delivered.
    A ``None`` result is not delivered either.

    Attributes:
        interval: Seconds between executions.
        work: Produces one result per execution.
        deliver: Receives each result that survives cancellation.
        name: Thread name, used in logs.
    """

    def __init__(
        self,
        interval: float,
        work: Callable[[Callable[[], bool]], R | None],
        deliver: Callable[[R], None],
        name: str = "periodic-task",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.work = work
        self.deliver = deliver
        self.name = name
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stopped.is_set()

    def is_cancelled(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> None:
        """Begin executing ``work`` on a background thread."""
        if self._thread is not None:
            raise RuntimeError(f"{self.name} was already started")
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Signal cancellation; no further executions will begin."""
        self._stopped.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background thread to exit."""
        if self._thread is not None:
            self._thread.join(timeout)

    def run_once(self) -> bool:
        """
        Execute ``work`` once and deliver its result.

        Returns:
            True if a result was delivered.
        """
        if self._stopped.is_set():
            return False
        try:
            result = self.work(self.is_cancelled)
        except Exception:
            logger.exception("%s: execution failed", self.name)
            return False
        if result is None or self._stopped.is_set():
            return False
        self.deliver(result)
        return True

    def _loop(self) -> None:
        while not self._stopped.wait(self.interval):
            self.run_once()
        logger.debug("%s: stopped", self.name)
