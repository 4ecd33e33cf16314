"""
Exception hierarchy for the document pipeline.

Terminal errors (invalid input, unsupported type, extraction failure, busy
pipeline) are raised inside the pipeline and converted into a failed
ProcessingResult before reaching the caller; any that escape a route are
mapped to an HTTP status by the app's exception handler.
ChunkProcessingError is raised inside the drain loop only and never
escapes it.
"""

from __future__ import annotations


class DocflowError(Exception):
    """Base class for all docflow errors."""

    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "An unspecified docflow error occurred.") -> None:
        self.message = message
        super().__init__(message)


class InvalidInputError(DocflowError):
    """No document content was supplied, or the content is unusable."""

    error_code = "INVALID_INPUT"

    def __init__(self, message: str = "File is required") -> None:
        super().__init__(message)


class UnsupportedTypeError(DocflowError):
    """The declared mime type has no extraction path."""

    error_code = "UNSUPPORTED_FILE_TYPE"

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type
        super().__init__(
            f"File type {content_type} is not supported. Please use PDF or TXT files."
        )


class ExtractionError(DocflowError):
    """Text extraction from the raw document bytes failed."""

    error_code = "EXTRACTION_FAILED"

    def __init__(self, strategy: str = "unknown", message: str = "Text extraction failed.") -> None:
        self.strategy = strategy
        super().__init__(message)


class ChunkProcessingError(DocflowError):
    """A single chunk failed while the queue was being drained."""

    error_code = "CHUNK_PROCESSING_FAILED"

    def __init__(self, index: int, message: str = "Chunk processing failed.") -> None:
        self.index = index
        super().__init__(f"{message} Chunk index: {index}")


class PipelineBusyError(DocflowError):
    """A drain is active and the pipeline is configured to reject new work."""

    error_code = "PIPELINE_BUSY"

    def __init__(self, remaining: int = 0) -> None:
        self.remaining = remaining
        super().__init__(
            f"A document is still being processed ({remaining} chunks remaining). "
            "Retry once processing completes."
        )
