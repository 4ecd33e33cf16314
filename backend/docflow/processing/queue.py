"""
Processing Queue  —  Single-Flight Chunk Drain
═══════════════════════════════════════════════

The queue holds the chunks of the most recently submitted document. A
drainer works through it in the background, one chunk at a time:

  ┌──────────────────────────────────────────────────────────────────┐
  │  peek head ──► tokenize ──► chunk_handler ──► emit progress      │
  │      ▲                                            │              │
  │      │                                 pop head (same batch only)│
  │      └────────────── sleep(yield_interval) ◄──────┘              │
  └──────────────────────────────────────────────────────────────────┘

Invariants:
  - At most one drain is active per QueueDrainer (single-flight). The flag
    is set before the first await and cleared in `finally`, so the empty
    queue early return, errors and cancellation all leave it idle.
  - A chunk leaves the queue only after it has been processed.
  - Every submit() bumps `generation`. A drain that finishes a chunk after
    the queue was replaced leaves the new head alone and carries on with
    the new batch.
  - A failing chunk is logged and skipped; the drain never aborts on it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from typing import Awaitable, Callable, Iterable

from docflow.core.exceptions import ChunkProcessingError
from docflow.processing.chunking import DocumentChunk
from docflow.processing.progress import ProgressReporter, compute_progress
from docflow.processing.tokenizer import tokenize
from docflow.schemas.documents import ProgressEvent

logger = logging.getLogger(__name__)

ChunkHandler = Callable[[DocumentChunk, list[str]], Awaitable[None]]

DEFAULT_YIELD_INTERVAL = 0.05


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------

class ProcessingQueue:
    """FIFO of chunks awaiting processing, replaced wholesale on submit."""

    def __init__(self) -> None:
        self._chunks: deque[DocumentChunk] = deque()
        self.generation = 0

    def __len__(self) -> int:
        return len(self._chunks)

    def submit(self, chunks: Iterable[DocumentChunk]) -> int:
        """
        Replace the queue contents with `chunks`.
        Returns how many chunks of the previous batch were still waiting.
        """
        discarded = len(self._chunks)
        self._chunks = deque(chunks)
        self.generation += 1
        return discarded

    def peek(self) -> DocumentChunk | None:
        return self._chunks[0] if self._chunks else None

    def pop_head(self) -> DocumentChunk:
        return self._chunks.popleft()

    def snapshot(self) -> list[DocumentChunk]:
        return list(self._chunks)

    def progress(self) -> float:
        """
        Point-in-time completion of the current batch, from the remaining
        length relative to the head chunk's batch total. 100 when empty.
        """
        head = self.peek()
        if head is None:
            return 100.0
        if head.total < 1:
            return 0.0
        done = max(0, head.total - len(self._chunks))
        return done / head.total * 100


# ---------------------------------------------------------------------------
# Drainer
# ---------------------------------------------------------------------------

class QueueDrainer:
    """
    Drains a ProcessingQueue on the running event loop.

    Constructor args:
        queue          : the queue to drain
        reporter       : receives one ProgressEvent per processed chunk
        yield_interval : seconds to sleep between chunks (backpressure)
        max_tokens     : chunks above this token count are logged as oversized
        chunk_handler  : optional coroutine awaited with (chunk, tokens)
    """

    def __init__(
        self,
        queue:          ProcessingQueue,
        reporter:       ProgressReporter,
        *,
        yield_interval: float = DEFAULT_YIELD_INTERVAL,
        max_tokens:     int | None = None,
        chunk_handler:  ChunkHandler | None = None,
        tokenizer:      Callable[[str], list[str]] = tokenize,
    ) -> None:
        if yield_interval < 0:
            raise ValueError("yield_interval must be >= 0")
        self._queue          = queue
        self._reporter       = reporter
        self._yield_interval = yield_interval
        self._max_tokens     = max_tokens
        self._chunk_handler  = chunk_handler
        self._tokenizer      = tokenizer
        self._draining       = False
        self._task: asyncio.Task[int] | None = None

    @property
    def is_draining(self) -> bool:
        return self._draining or (self._task is not None and not self._task.done())

    def start_drain_if_idle(self) -> asyncio.Task[int] | None:
        """
        Schedule a drain on the running loop unless one is already active.
        Returns the new task, or None when nothing was started.
        """
        if self.is_draining:
            logger.debug("Drain already active | queued=%d", len(self._queue))
            return None
        if len(self._queue) == 0:
            return None
        self._task = asyncio.create_task(self.drain(), name="docflow-drain")
        return self._task

    async def drain(self) -> int:
        """Process chunks until the queue is empty. Returns chunks processed."""
        if self._draining or len(self._queue) == 0:
            return 0

        self._draining = True
        processed = 0
        logger.info(
            "Drain start | generation=%d queued=%d",
            self._queue.generation, len(self._queue),
        )
        try:
            while len(self._queue) > 0:
                chunk = self._queue.peek()
                generation = self._queue.generation

                if await self._process_chunk(chunk, generation):
                    processed += 1

                if self._queue.generation == generation:
                    self._queue.pop_head()
                else:
                    logger.warning(
                        "Drain | batch superseded generation=%d→%d at chunk=%d/%d",
                        generation, self._queue.generation,
                        chunk.index + 1, chunk.total,
                    )

                await asyncio.sleep(self._yield_interval)
        except Exception:
            logger.exception("Queue processing error | generation=%d", self._queue.generation)
        finally:
            self._draining = False

        logger.info("Drain complete | processed=%d", processed)
        return processed

    async def _process_chunk(self, chunk: DocumentChunk, generation: int) -> bool:
        """Process one chunk. Failures are logged and reported as False."""
        try:
            try:
                if chunk.total < 1:
                    raise ChunkProcessingError(chunk.index, "Chunk batch was never finalized.")

                tokens = self._tokenizer(chunk.text)
                if self._max_tokens is not None and len(tokens) > self._max_tokens:
                    logger.warning(
                        "Oversized chunk | chunk=%d/%d tokens=%d max_tokens=%d",
                        chunk.index + 1, chunk.total, len(tokens), self._max_tokens,
                    )

                if self._chunk_handler is not None:
                    await self._chunk_handler(chunk, tokens)

                event = ProgressEvent(
                    progress=compute_progress(chunk.index, chunk.total),
                    current_chunk=chunk.index + 1,
                    total_chunks=chunk.total,
                    tokens=len(tokens),
                    generation=generation,
                )
            except ChunkProcessingError:
                raise
            except Exception as exc:
                raise ChunkProcessingError(chunk.index, str(exc)) from exc

            await self._reporter.emit(event)
        except ChunkProcessingError as exc:
            logger.error("Chunk processing error | %s", exc, exc_info=exc.__cause__ is not None)
            return False
        return True

    async def join(self) -> None:
        """Wait for the active background drain, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Cancel the background drain. Queued chunks stay in the queue."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("Drain cancelled | queued=%d", len(self._queue))
