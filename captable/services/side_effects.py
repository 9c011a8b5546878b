"""Best-effort outbound tasks run after a transaction commits.

Tasks are at-least-once: a failing task is retried up to ``max_attempts``
times and then dropped. Failures are logged and counted; they never reach
the caller that submitted the task.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from captable.obs.metrics import SIDE_EFFECT_COUNTER

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OutboundTask:
    name: str
    action: Callable[[], Any]
    context: dict[str, Any] = field(default_factory=dict)


def run_with_retries(task: OutboundTask, *, max_attempts: int, retry_delay_seconds: float = 0.0) -> bool:
    """Run ``task`` until it succeeds or attempts run out; returns whether it succeeded."""

    for attempt in range(1, max_attempts + 1):
        try:
            task.action()
        except Exception:
            if attempt >= max_attempts:
                SIDE_EFFECT_COUNTER.labels(task=task.name, outcome="failed").inc()
                logger.exception(
                    "Outbound task failed",
                    extra={"task": task.name, "attempt": attempt, **task.context},
                )
                return False
            SIDE_EFFECT_COUNTER.labels(task=task.name, outcome="retried").inc()
            logger.warning(
                "Outbound task attempt failed; retrying",
                extra={"task": task.name, "attempt": attempt, **task.context},
            )
            if retry_delay_seconds:
                time.sleep(retry_delay_seconds * attempt)
        else:
            SIDE_EFFECT_COUNTER.labels(task=task.name, outcome="succeeded").inc()
            return True
    return False


class TaskRunner(Protocol):
    def submit(self, task: OutboundTask) -> None:
        """Schedule ``task``; must not raise on task failure."""

    def shutdown(self) -> None:
        """Release any worker resources."""


class InlineTaskRunner:
    """Runs tasks synchronously in the caller's thread."""

    def __init__(self, *, max_attempts: int = 3, retry_delay_seconds: float = 0.0) -> None:
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds

    def submit(self, task: OutboundTask) -> None:
        run_with_retries(task, max_attempts=self._max_attempts, retry_delay_seconds=self._retry_delay)

    def shutdown(self) -> None:
        return None


class ThreadPoolTaskRunner:
    """Runs tasks on a bounded worker pool without blocking the caller."""

    def __init__(self, *, max_workers: int = 4, max_attempts: int = 3, retry_delay_seconds: float = 0.5) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="captable-side-effect")
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds

    def submit(self, task: OutboundTask) -> None:
        future: Future[bool] = self._executor.submit(
            run_with_retries, task, max_attempts=self._max_attempts, retry_delay_seconds=self._retry_delay
        )
        future.add_done_callback(_log_unexpected)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def _log_unexpected(future: Future[bool]) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Outbound task runner crashed", exc_info=exc)


__all__ = ["InlineTaskRunner", "OutboundTask", "TaskRunner", "ThreadPoolTaskRunner", "run_with_retries"]
