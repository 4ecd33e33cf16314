"""
Progress reporting for the drain loop.

Observers register a callback and receive one ProgressEvent per processed
chunk. Callbacks may be plain functions or coroutine functions:

    reporter = ProgressReporter()
    unsubscribe = reporter.subscribe(lambda event: print(event.progress))
    ...
    unsubscribe()

An observer that raises is logged and skipped; it never interrupts delivery
to the remaining observers or the drain itself.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from docflow.schemas.documents import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


def compute_progress(index: int, total: int) -> float:
    """Percentage complete once the chunk at `index` of `total` is processed."""
    return (index + 1) / total * 100


class ProgressReporter:
    """Fan-out of progress events to registered observers."""

    def __init__(self) -> None:
        self._observers: list[ProgressCallback] = []
        self.last_event: ProgressEvent | None = None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register `callback`; returns a function that removes it again."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._observers.remove(callback)
            except ValueError:
                pass   # already removed

        return _unsubscribe

    async def emit(self, event: ProgressEvent) -> None:
        """Deliver `event` to every observer in registration order."""
        self.last_event = event
        for callback in list(self._observers):
            try:
                outcome: Any = callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                logger.warning(
                    "Progress observer failed | observer=%r chunk=%d error=%s",
                    callback, event.current_chunk, exc, exc_info=True,
                )


def log_progress(event: ProgressEvent) -> None:
    """Observer that writes each event to the module logger."""
    logger.info(
        "Progress | generation=%d chunk=%d/%d tokens=%d progress=%.1f%%",
        event.generation, event.current_chunk, event.total_chunks,
        event.tokens, event.progress,
    )
