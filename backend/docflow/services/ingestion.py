"""
Document Pipeline Service

Orchestrates the processing of one uploaded document:
  1. Validate that content was supplied (and is within the size limit)
  2. Resolve the extraction strategy from the declared content type
  3. Extract text (PyMuPDF for PDF, byte decoding for plain text)
  4. Split the text into sentence-bounded chunks
  5. Replace the processing queue with the new chunks
  6. Start draining in the background if no drain is active
  7. Return a ProcessingResult — draining continues after the return

Failure invariants enforced here:
  - Steps 1–4 failing returns a failed ProcessingResult and never touches
    the queue.
  - Errors raised while draining are contained in the drainer; the caller
    has already received its result by then.

Concurrent submissions:
  With submission_policy="replace" (default) a new document replaces any
  chunks of the previous one still waiting; the count is reported as
  `superseded_chunks`. With "reject" the new document fails with
  PIPELINE_BUSY while a running drain still has work queued; chunks
  stranded by a cancelled drain are replaced like under "replace".
"""

from __future__ import annotations

import logging
from functools import lru_cache

from docflow.core.config import Settings, get_settings
from docflow.core.exceptions import (
    ExtractionError,
    InvalidInputError,
    PipelineBusyError,
    UnsupportedTypeError,
)
from docflow.observability.tracing import traced
from docflow.processing.chunking import SentenceChunker
from docflow.processing.extractor import TextExtractorOrchestrator, normalize_content_type
from docflow.processing.progress import ProgressCallback, ProgressReporter, log_progress
from docflow.processing.queue import ChunkHandler, ProcessingQueue, QueueDrainer
from docflow.processing.tokenizer import tokenize
from docflow.schemas.documents import (
    PDF_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
    ProcessingErrors,
    ProcessingResult,
    QueueProgressResponse,
)

logger = logging.getLogger(__name__)

# (success message, failure message) per content type
_RESULT_MESSAGES: dict[str, tuple[str, str]] = {
    PDF_CONTENT_TYPE:  ("PDF processed successfully", "Failed to process PDF"),
    TEXT_CONTENT_TYPE: ("Text file processed successfully", "Failed to process text file"),
}
_DEFAULT_MESSAGES = ("Document processed successfully", "Failed to process document")


def _content_size(content: bytes | str) -> int:
    if isinstance(content, str):
        return len(content.encode("utf-8"))
    return len(content)


class DocumentPipeline:
    """
    Owns one processing queue, its drainer and its progress reporter.
    Independent instances share no state.

    Constructor args:
        settings      : chunking / draining configuration (defaults to env settings)
        extractor     : content-type → strategy dispatcher
        reporter      : progress fan-out; a fresh one is created when omitted
        chunk_handler : optional coroutine awaited per drained chunk, e.g. an
                        embedding step
    """

    def __init__(
        self,
        settings:      Settings | None = None,
        *,
        extractor:     TextExtractorOrchestrator | None = None,
        reporter:      ProgressReporter | None = None,
        chunk_handler: ChunkHandler | None = None,
    ) -> None:
        self._settings  = settings or get_settings()
        self._chunker   = SentenceChunker(self._settings.chunk_size)
        self._extractor = extractor or TextExtractorOrchestrator()
        self._reporter  = reporter or ProgressReporter()
        self._reporter.subscribe(log_progress)
        self._queue     = ProcessingQueue()
        self._drainer   = QueueDrainer(
            self._queue,
            self._reporter,
            yield_interval=self._settings.drain_yield_seconds,
            max_tokens=self._settings.max_tokens,
            chunk_handler=chunk_handler,
        )

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def process_document(
        self,
        content:      bytes | str | None,
        content_type: str,
        filename:     str = "",
    ) -> ProcessingResult:
        """
        Extract, chunk and enqueue a document. Never raises: every failure
        comes back as a ProcessingResult with success=False.
        """
        try:
            return await self._process(content, content_type, filename)
        except Exception as exc:
            logger.exception(
                "Unhandled processing error | file=%s type=%s", filename or "-", content_type,
            )
            return ProcessingErrors.internal_error(str(exc) or None)

    @traced("process_document")
    async def _process(
        self,
        content:      bytes | str | None,
        content_type: str,
        filename:     str,
    ) -> ProcessingResult:
        # ---- Step 1: Validate content ----------------------------------
        if content is None:
            logger.warning("Process rejected | no content supplied file=%s", filename or "-")
            return ProcessingErrors.missing_file()

        size_bytes = _content_size(content)
        if size_bytes > self._settings.max_document_bytes:
            exc = InvalidInputError(
                f"Received {size_bytes:,} bytes; limit is "
                f"{self._settings.max_document_bytes:,} bytes."
            )
            logger.warning("Process rejected | file=%s %s", filename or "-", exc.message)
            return ProcessingErrors.from_error("Document too large", exc)

        # ---- Step 2: Resolve extraction strategy -----------------------
        try:
            self._extractor.resolve(content_type)
        except UnsupportedTypeError as exc:
            logger.warning("Process rejected | unsupported type=%s file=%s", content_type, filename or "-")
            return ProcessingErrors.from_error("Unsupported file type", exc)

        normalized = normalize_content_type(content_type)
        ok_message, failed_message = _RESULT_MESSAGES.get(normalized, _DEFAULT_MESSAGES)

        logger.info(
            "Process start | file=%s type=%s size_bytes=%d",
            filename or "-", normalized, size_bytes,
        )

        # ---- Step 3: Extract text --------------------------------------
        try:
            extraction = await self._extractor.extract(content, content_type)
        except ExtractionError as exc:
            logger.error(
                "Extraction failed | file=%s type=%s strategy=%s error=%s",
                filename or "-", normalized, exc.strategy, exc.message,
            )
            return ProcessingErrors.from_error(failed_message, exc)

        # ---- Step 4: Chunk ---------------------------------------------
        chunks = self._chunker.chunk(extraction.full_text)

        # ---- Step 5: Replace queue contents ----------------------------
        # Chunks left behind by a cancelled or aborted drain do not count as busy
        busy_draining = self._drainer.is_draining and len(self._queue) > 0
        if self._settings.submission_policy == "reject" and busy_draining:
            busy = PipelineBusyError(remaining=len(self._queue))
            logger.warning("Process rejected | pipeline busy remaining=%d", busy.remaining)
            return ProcessingErrors.from_error("Pipeline busy", busy)

        superseded = self._queue.submit(chunks)
        if superseded:
            logger.warning(
                "Queue replaced | superseded_chunks=%d generation=%d",
                superseded, self._queue.generation,
            )

        # ---- Step 6: Drain if idle -------------------------------------
        self._drainer.start_drain_if_idle()

        logger.info(
            "Process complete | file=%s chunks=%d generation=%d",
            filename or "-", len(chunks), self._queue.generation,
        )
        return ProcessingResult(
            success=True,
            message=ok_message,
            chunks=chunks,
            generation=self._queue.generation,
            superseded_chunks=superseded,
        )

    # ------------------------------------------------------------------
    # Progress & queue state
    # ------------------------------------------------------------------

    @staticmethod
    def tokenize(text: str) -> list[str]:
        return tokenize(text)

    def subscribe(self, callback: ProgressCallback):
        """Register a progress observer; returns an unsubscribe function."""
        return self._reporter.subscribe(callback)

    def get_processing_progress(self) -> float:
        return self._queue.progress()

    def progress_snapshot(self) -> QueueProgressResponse:
        return QueueProgressResponse(
            progress=self._queue.progress(),
            queued_chunks=len(self._queue),
            draining=self._drainer.is_draining,
            generation=self._queue.generation,
        )

    @property
    def is_draining(self) -> bool:
        return self._drainer.is_draining

    @property
    def queued_chunks(self) -> int:
        return len(self._queue)

    @property
    def generation(self) -> int:
        return self._queue.generation

    @property
    def settings(self) -> Settings:
        return self._settings

    async def join(self) -> None:
        """Wait until the background drain finishes."""
        await self._drainer.join()

    async def aclose(self) -> None:
        """Cancel background draining (application shutdown)."""
        await self._drainer.aclose()


@lru_cache(maxsize=1)
def get_pipeline() -> DocumentPipeline:
    """Process-wide default pipeline used by the HTTP layer."""
    return DocumentPipeline()
