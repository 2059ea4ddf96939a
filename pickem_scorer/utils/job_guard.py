"""In-process re-entrancy guards with cooperative cancellation.

Each periodic job owns one ``JobGuard``. The guard is a small state machine
(idle -> running -> cancelling -> idle) protected by a mutex. Acquiring it
hands out a ``CancellationToken`` that long passes check between weeks or
results, so a shutdown or a cancel-and-restart request stops them promptly.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from ..logging import logger


class JobState(str, Enum):
    idle = "idle"
    running = "running"
    cancelling = "cancelling"


class CancellationToken:
    """Thread-safe flag checked between units of work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class JobGuard:
    def __init__(self, name: str) -> None:
        self.name = name
        self._cond = threading.Condition(threading.Lock())
        self._state = JobState.idle
        self._token: CancellationToken | None = None

    @property
    def state(self) -> JobState:
        with self._cond:
            return self._state

    def acquire(self, *, restart: bool = False, wait_seconds: float = 30.0) -> CancellationToken | None:
        """Move idle -> running and return a fresh token.

        If the job is already running the tick is skipped (returns None),
        unless ``restart`` is set: then the current run is cancelled and we
        wait up to ``wait_seconds`` for it to release.
        """
        with self._cond:
            if self._state is not JobState.idle:
                if not restart:
                    logger.info("job_guard_skipped", job=self.name, state=self._state.value)
                    return None
                if self._token is not None:
                    self._token.cancel()
                self._state = JobState.cancelling
                logger.info("job_guard_cancel_for_restart", job=self.name)
                if not self._cond.wait_for(lambda: self._state is JobState.idle, wait_seconds):
                    logger.warning("job_guard_restart_timeout", job=self.name, waited=wait_seconds)
                    return None
            self._state = JobState.running
            self._token = CancellationToken()
            return self._token

    def release(self) -> None:
        with self._cond:
            self._state = JobState.idle
            self._token = None
            self._cond.notify_all()

    def cancel(self) -> bool:
        """Request cancellation of the current run. Returns False when idle."""
        with self._cond:
            if self._state is JobState.idle or self._token is None:
                return False
            self._token.cancel()
            self._state = JobState.cancelling
            return True

    @contextmanager
    def running(self, *, restart: bool = False, wait_seconds: float = 30.0) -> Iterator[CancellationToken | None]:
        token = self.acquire(restart=restart, wait_seconds=wait_seconds)
        try:
            yield token
        finally:
            if token is not None:
                self.release()


_guards: dict[str, JobGuard] = {}
_registry_lock = threading.Lock()


def get_guard(name: str) -> JobGuard:
    with _registry_lock:
        guard = _guards.get(name)
        if guard is None:
            guard = _guards[name] = JobGuard(name)
        return guard


def cancel_all() -> list[str]:
    """Cancel every running job. Returns the names that were signalled."""
    with _registry_lock:
        guards = list(_guards.values())
    return [guard.name for guard in guards if guard.cancel()]
