"""
Document Processing — Pydantic Result/Event Schemas

Covers the full lifecycle of a processed document:
  - ProcessingResult returned synchronously by DocumentPipeline.process_document
  - ProgressEvent emitted once per drained chunk
  - QueueProgressResponse returned by GET /documents/progress
  - Structured error bodies for the HTTP layer

Design decisions:
  - A failed ProcessingResult never carries chunks; a successful one always does
    (possibly an empty list for empty text).
  - ProgressEvent serializes with camelCase aliases (currentChunk, totalChunks)
    so UI consumers can use the payload as-is.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from docflow.core.exceptions import DocflowError
from docflow.processing.chunking import DocumentChunk


# ---------------------------------------------------------------------------
# Supported MIME types — anything else fails before extraction
# ---------------------------------------------------------------------------

PDF_CONTENT_TYPE = "application/pdf"
TEXT_CONTENT_TYPE = "text/plain"


# ---------------------------------------------------------------------------
# Processing result — returned by the pipeline entry point
# ---------------------------------------------------------------------------

class ProcessingResult(BaseModel):
    """
    Outcome of a single process_document call.

    On success the chunks have already been handed to the processing queue;
    draining continues after the result is returned.
    """
    success:           bool
    message:           str
    chunks:            list[DocumentChunk] | None = None
    error:             str | None = None
    error_code:        str | None = Field(None, description="Stable machine-readable code on failure")
    generation:        int | None = Field(None, description="Queue generation the chunks were submitted under")
    superseded_chunks: int = Field(0, description="Unprocessed chunks of a previous document discarded by this submission")

    @property
    def chunk_count(self) -> int:
        return len(self.chunks or [])


# ---------------------------------------------------------------------------
# Progress event — emitted once per drained chunk
# ---------------------------------------------------------------------------

class ProgressEvent(BaseModel):
    """
    Delivered to every observer registered on the ProgressReporter.
    event: document_progress
    data: <json of this model, by alias>
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    progress:      float = Field(..., ge=0.0, le=100.0)
    current_chunk: int   = Field(..., alias="currentChunk", ge=1)
    total_chunks:  int   = Field(..., alias="totalChunks", ge=1)
    tokens:        int   = Field(..., ge=0)
    generation:    int   = Field(0, description="Queue generation of the batch this chunk belongs to")


# ---------------------------------------------------------------------------
# Queue snapshot — GET /documents/progress
# ---------------------------------------------------------------------------

class QueueProgressResponse(BaseModel):
    """Point-in-time view of the processing queue."""
    progress:      float = Field(..., ge=0.0, le=100.0)
    queued_chunks: int
    draining:      bool
    generation:    int


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined failure factories (keeps the pipeline thin)
# ---------------------------------------------------------------------------

class ProcessingErrors:
    """Factories for every failed ProcessingResult."""

    @staticmethod
    def missing_file() -> ProcessingResult:
        return ProcessingResult(
            success=False,
            message="No file provided",
            error="File is required",
            error_code="INVALID_INPUT",
        )

    @staticmethod
    def from_error(message: str, exc: DocflowError) -> ProcessingResult:
        return ProcessingResult(
            success=False,
            message=message,
            error=exc.message,
            error_code=exc.error_code,
        )

    @staticmethod
    def internal_error(detail: str | None = None) -> ProcessingResult:
        return ProcessingResult(
            success=False,
            message="Failed to process document",
            error=detail or "Unknown error occurred",
            error_code="INTERNAL_ERROR",
        )

    @staticmethod
    def to_error_response(
        result: ProcessingResult,
        request_id: str | None = None,
    ) -> ErrorResponse:
        """Wrap a failed ProcessingResult in the HTTP error envelope."""
        code = result.error_code or "INTERNAL_ERROR"
        return ErrorResponse(
            error_code=code,
            message=result.message,
            details=(
                [ErrorDetail(field="file", message=result.error, code=code)]
                if result.error
                else []
            ),
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# Error code → HTTP status mapping
# ---------------------------------------------------------------------------

HTTP_STATUS_BY_ERROR_CODE: dict[str, int] = {
    "INVALID_INPUT":          400,   # no file, or file too large
    "UNSUPPORTED_FILE_TYPE":  415,   # declared type has no extraction path
    "PIPELINE_BUSY":          409,   # reject policy and a drain is active
    "EXTRACTION_FAILED":      422,   # PDF unreadable / text undecodable
    "VALIDATION_ERROR":       422,   # FastAPI Pydantic validation failure
    "INTERNAL_ERROR":         500,   # unhandled exception
}
