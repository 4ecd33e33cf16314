"""
Document Processing API Router

  POST /api/v1/documents                   upload + process a document
  GET  /api/v1/documents/progress          point-in-time queue progress
  GET  /api/v1/documents/progress/stream   Server-Sent Events per processed chunk

Request lifecycle (POST):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Multipart parsing (FastAPI) — `file` field required  │
  │ 2. Declared Content-Type taken from the file part       │
  │ 3. DocumentPipeline.process_document → ProcessingResult │
  │ 4. success → 200 + ProcessingResult                     │
  │    failure → ErrorResponse with mapped status code      │
  └─────────────────────────────────────────────────────────┘

SSE stream (GET /progress/stream):
  Emits one `queue_snapshot` event on connect, then one `document_progress`
  event per processed chunk:
      { progress, currentChunk, totalChunks, tokens, generation }
  The stream closes once the drain is idle and every event was delivered.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from docflow.schemas.documents import (
    HTTP_STATUS_BY_ERROR_CODE,
    ErrorResponse,
    ProcessingErrors,
    ProcessingResult,
    ProgressEvent,
    QueueProgressResponse,
)
from docflow.services.ingestion import DocumentPipeline, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["Document Processing"],
)

# Seconds between keep-alive comments while waiting for the next event
_STREAM_POLL_SECONDS = 1.0


# ---------------------------------------------------------------------------
# POST /documents
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ProcessingResult,
    status_code=status.HTTP_200_OK,
    summary="Upload a document for chunking and processing",
    description=(
        "Accepts PDF or plain text files. Returns the produced chunks once the "
        "document has been extracted and queued; draining continues in the "
        "background. Follow GET /documents/progress/stream for progress."
    ),
    responses={
        200: {"model": ProcessingResult, "description": "Document chunked and queued"},
        400: {"model": ErrorResponse, "description": "No content or document too large"},
        409: {"model": ErrorResponse, "description": "Pipeline busy (reject policy)"},
        415: {"model": ErrorResponse, "description": "Unsupported content type"},
        422: {"model": ErrorResponse, "description": "Text extraction failed"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def upload_document(
    request:  Request,
    file:     UploadFile       = File(..., description="Document file (PDF or TXT)"),
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> JSONResponse:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    content = await file.read()
    content_type = file.content_type or ""

    result = await pipeline.process_document(
        content, content_type, filename=file.filename or "upload",
    )

    if not result.success:
        status_code = HTTP_STATUS_BY_ERROR_CODE.get(
            result.error_code or "", status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        logger.info(
            "Upload rejected | file=%s code=%s status=%d request_id=%s",
            file.filename, result.error_code, status_code, request_id,
        )
        return JSONResponse(
            status_code=status_code,
            content=ProcessingErrors.to_error_response(result, request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=result.model_dump(mode="json"),
        headers={
            "X-Request-ID":   request_id,
            "X-Chunk-Count":  str(result.chunk_count),
            "X-Generation":   str(result.generation),
        },
    )


# ---------------------------------------------------------------------------
# GET /documents/progress
# ---------------------------------------------------------------------------

@router.get(
    "/progress",
    response_model=QueueProgressResponse,
    summary="Poll processing progress",
)
async def get_progress(
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> QueueProgressResponse:
    return pipeline.progress_snapshot()


# ---------------------------------------------------------------------------
# GET /documents/progress/stream
# ---------------------------------------------------------------------------

def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def progress_event_stream(pipeline: DocumentPipeline) -> AsyncGenerator[str, None]:
    """
    Subscribe to the pipeline and yield SSE frames until the drain is idle.
    The observer is removed when the client disconnects.
    """
    events: asyncio.Queue[ProgressEvent] = asyncio.Queue()
    unsubscribe = pipeline.subscribe(events.put_nowait)
    try:
        yield _sse("queue_snapshot", pipeline.progress_snapshot().model_dump_json())

        while pipeline.is_draining or not events.empty():
            try:
                event = await asyncio.wait_for(events.get(), timeout=_STREAM_POLL_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield _sse("document_progress", event.model_dump_json(by_alias=True))
    finally:
        unsubscribe()


@router.get(
    "/progress/stream",
    summary="Stream processing progress (Server-Sent Events)",
    response_class=StreamingResponse,
)
async def stream_progress(
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    return StreamingResponse(
        progress_event_stream(pipeline),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
