"""
Observability Tracing — span logging for pipeline steps.

Decorator `@traced(name)` wraps a coroutine and writes one span line per call
through the standard logging module:

  trace | span=process_document elapsed_ms=12.4 outcome=ok chunks=3
  trace | span=process_document elapsed_ms=0.8 outcome=failed error_code=UNSUPPORTED_FILE_TYPE
  trace | span=process_document elapsed_ms=0.2 outcome=raised error=TypeError: ...

Results that look like a ProcessingResult (`success`, `error_code`,
`chunk_count`) are summarized on the span line. An exception is logged at
ERROR with its traceback and re-raised unchanged, so the decorator belongs on
the innermost step that can still raise.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def _summarize(result: Any) -> tuple[int, str]:
    """Log level and outcome fields for a returned value."""
    success = getattr(result, "success", None)
    if success is False:
        return logging.WARNING, f"outcome=failed error_code={getattr(result, 'error_code', None)}"
    chunk_count = getattr(result, "chunk_count", None)
    if chunk_count is not None:
        return logging.DEBUG, f"outcome=ok chunks={chunk_count}"
    return logging.DEBUG, "outcome=ok"


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Usage::

        @traced("process_document")
        async def _process(self, content, content_type, filename):
            ...

        @traced()   # span name defaults to the function qualname
        async def drain(self) -> int:
            ...
    """
    def decorator(func: F) -> F:
        span = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.error(
                    "trace | span=%s elapsed_ms=%.1f outcome=raised error=%s: %s",
                    span, (time.perf_counter() - started) * 1000,
                    type(exc).__name__, exc, exc_info=True,
                )
                raise
            level, outcome = _summarize(result)
            logger.log(
                level, "trace | span=%s elapsed_ms=%.1f %s",
                span, (time.perf_counter() - started) * 1000, outcome,
            )
            return result

        return wrapper  # type: ignore[return-value]
    return decorator
