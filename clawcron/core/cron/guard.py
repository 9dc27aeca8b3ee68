"""ExecutionGuard — at most one concurrent execution per cron id."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger


class ExecutionGuard:
    """Registry of cron ids currently executing.

    Construct one per process and hand the same instance to every runner
    (periodic tick, HTTP, CLI) so they all serialize on it. A caller that
    fails ``try_acquire`` must not run the job: it is treated as
    "already running, skipped this cycle", not as an error.
    """

    def __init__(self) -> None:
        self._running: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, cron_id: str) -> bool:
        """Atomically claim ``cron_id``. False if someone already holds it."""
        with self._lock:
            if cron_id in self._running:
                return False
            self._running.add(cron_id)
            return True

    def release(self, cron_id: str) -> None:
        with self._lock:
            if cron_id not in self._running:
                logger.warning(f"ExecutionGuard: release of unheld cron {cron_id}")
                return
            self._running.discard(cron_id)

    def is_running(self, cron_id: str) -> bool:
        with self._lock:
            return cron_id in self._running

    def running(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._running)

    @contextmanager
    def hold(self, cron_id: str) -> Iterator[bool]:
        """Scoped acquisition: yields whether the guard was taken, always releases it."""
        acquired = self.try_acquire(cron_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(cron_id)
