"""
FastAPI Application — Entry Point

Document processing API: upload a PDF or text file, get its sentence-bounded
chunks back, and follow the background drain through progress polling or a
Server-Sent Events stream.

Middleware stack (innermost → outermost):
  1. CORS — open in development, closed otherwise
  2. Request tracing — X-Request-ID echoed or generated, one log line per request
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docflow.api.v1.documents import router as documents_router
from docflow.core.config import settings
from docflow.core.exceptions import DocflowError
from docflow.schemas.documents import HTTP_STATUS_BY_ERROR_CODE, ErrorDetail, ErrorResponse
from docflow.services.ingestion import get_pipeline

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration; cancel the background drain on shutdown."""
    logger.info(
        "Starting docflow | env=%s chunk_size=%d max_tokens=%d yield=%.3fs policy=%s",
        settings.app_env, settings.chunk_size, settings.max_tokens,
        settings.drain_yield_seconds, settings.submission_policy,
    )
    yield
    logger.info("Shutting down docflow")
    await get_pipeline().aclose()


# ---------------------------------------------------------------------------
# Error envelopes
# ---------------------------------------------------------------------------

def _error_json(status_code: int, body: ErrorResponse) -> JSONResponse:
    headers = {"X-Request-ID": body.request_id} if body.request_id else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Multipart/query validation failures, e.g. a missing `file` field."""
    details = [
        ErrorDetail(
            field=".".join(str(part) for part in err["loc"]),
            message=err["msg"],
            code="VALIDATION_ERROR",
        )
        for err in exc.errors()
    ]
    return _error_json(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
            request_id=request.headers.get("X-Request-ID"),
        ),
    )


async def _on_docflow_error(request: Request, exc: DocflowError) -> JSONResponse:
    """Domain errors that escape a route are mapped through the same status table."""
    logger.warning("Domain error | path=%s code=%s %s", request.url.path, exc.error_code, exc.message)
    return _error_json(
        HTTP_STATUS_BY_ERROR_CODE.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            request_id=request.headers.get("X-Request-ID"),
        ),
    )


async def _on_unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    logger.exception("Unhandled exception | path=%s request_id=%s", request.url.path, request_id)
    return _error_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        ),
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    docs_enabled = not settings.is_production
    app = FastAPI(
        title="docflow",
        description=(
            "Sentence-bounded chunking of PDF and text uploads with a "
            "single-flight background drain and progress events."
        ),
        version="1.0.0",
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app_env == "development" else [],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Chunk-Count", "X-Generation"],
    )

    @app.middleware("http")
    async def trace_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        t0 = time.perf_counter()
        response = await call_next(request)
        # Upload responses carry their own id
        response.headers.setdefault("X-Request-ID", request_id)
        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - t0) * 1000,
        )
        return response

    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(DocflowError, _on_docflow_error)
    app.add_exception_handler(Exception, _on_unhandled_error)

    app.include_router(documents_router, prefix="/api/v1")

    @app.get("/health", tags=["Operations"], summary="Liveness probe")
    async def health() -> dict:
        return {"status": "ok", "service": "docflow-api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "docflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
    )
