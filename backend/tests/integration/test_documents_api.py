"""
Integration Tests — Document Processing API
════════════════════════════════════════════
Full HTTP round-trips through the FastAPI app with an isolated pipeline.

Coverage targets:
  ✅ POST /api/v1/documents — text upload → 200, chunks, headers
  ✅ POST /api/v1/documents — PDF upload → 200
  ✅ POST /api/v1/documents — unsupported type → 415 UNSUPPORTED_FILE_TYPE
  ✅ POST /api/v1/documents — corrupt PDF → 422 EXTRACTION_FAILED
  ✅ POST /api/v1/documents — missing file field → 422 VALIDATION_ERROR
  ✅ POST /api/v1/documents — reject policy while busy → 409 PIPELINE_BUSY
  ✅ GET  /api/v1/documents/progress — idle and after drain
  ✅ GET  /api/v1/documents/progress/stream — SSE framing
  ✅ GET  /health
"""

from __future__ import annotations

import asyncio

import pytest

UPLOAD_URL = "/api/v1/documents"


@pytest.mark.integration
class TestUploadDocument:

    async def test_text_upload(self, async_client, sample_txt_bytes):
        response = await async_client.post(
            UPLOAD_URL,
            files={"file": ("notes.txt", sample_txt_bytes, "text/plain")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Text file processed successfully"
        assert body["chunks"] == [
            {
                "text": "This is a test document. It has two sentences.",
                "index": 0,
                "total": 1,
            }
        ]
        assert response.headers["X-Chunk-Count"] == "1"
        assert response.headers["X-Generation"] == "1"
        assert "X-Request-ID" in response.headers

    async def test_client_request_id_echoed(self, async_client, sample_txt_bytes):
        ok = await async_client.post(
            UPLOAD_URL,
            files={"file": ("notes.txt", sample_txt_bytes, "text/plain")},
            headers={"X-Request-ID": "client-42"},
        )
        rejected = await async_client.post(
            UPLOAD_URL,
            files={"file": ("data.json", b"{}", "application/json")},
            headers={"X-Request-ID": "client-43"},
        )

        assert ok.headers["X-Request-ID"] == "client-42"
        assert rejected.headers["X-Request-ID"] == "client-43"
        assert rejected.json()["request_id"] == "client-43"

    async def test_pdf_upload(self, async_client, sample_pdf_bytes):
        response = await async_client.post(
            UPLOAD_URL,
            files={"file": ("report.pdf", sample_pdf_bytes, "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "PDF processed successfully"

    async def test_unsupported_type(self, async_client, pipeline):
        response = await async_client.post(
            UPLOAD_URL,
            files={"file": ("data.json", b"{}", "application/json")},
        )

        assert response.status_code == 415
        body = response.json()
        assert body["error_code"] == "UNSUPPORTED_FILE_TYPE"
        assert body["message"] == "Unsupported file type"
        assert body["details"][0]["message"] == (
            "File type application/json is not supported. Please use PDF or TXT files."
        )
        assert pipeline.generation == 0

    async def test_corrupt_pdf(self, async_client, corrupt_pdf_bytes):
        response = await async_client.post(
            UPLOAD_URL,
            files={"file": ("broken.pdf", corrupt_pdf_bytes, "application/pdf")},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "EXTRACTION_FAILED"
        assert body["message"] == "Failed to process PDF"

    async def test_missing_file_field(self, async_client):
        response = await async_client.post(UPLOAD_URL, data={"other": "value"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    async def test_reject_policy_returns_conflict(
        self, async_client, app_with_overrides, make_pipeline, make_settings, long_text,
    ):
        from docflow.services.ingestion import get_pipeline

        gate = asyncio.Event()
        started = asyncio.Event()

        async def slow_handler(chunk, tokens):
            started.set()
            await gate.wait()

        busy = make_pipeline(
            make_settings(chunk_size=3, submission_policy="reject"),
            chunk_handler=slow_handler,
        )
        app_with_overrides.dependency_overrides[get_pipeline] = lambda: busy
        await busy.process_document(long_text, "text/plain")
        await started.wait()

        response = await async_client.post(
            UPLOAD_URL,
            files={"file": ("notes.txt", b"Another one.", "text/plain")},
        )
        gate.set()

        assert response.status_code == 409
        assert response.json()["error_code"] == "PIPELINE_BUSY"
        assert busy.generation == 1


@pytest.mark.integration
class TestProgressEndpoints:

    async def test_progress_idle(self, async_client):
        response = await async_client.get(f"{UPLOAD_URL}/progress")

        assert response.status_code == 200
        assert response.json() == {
            "progress": 100.0,
            "queued_chunks": 0,
            "draining": False,
            "generation": 0,
        }

    async def test_progress_after_drain(self, async_client, pipeline, sample_txt_bytes):
        await async_client.post(
            UPLOAD_URL,
            files={"file": ("notes.txt", sample_txt_bytes, "text/plain")},
        )
        await pipeline.join()

        body = (await async_client.get(f"{UPLOAD_URL}/progress")).json()

        assert body["progress"] == 100.0
        assert body["queued_chunks"] == 0
        assert body["generation"] == 1

    async def test_stream_idle(self, async_client):
        response = await asyncio.wait_for(
            async_client.get(f"{UPLOAD_URL}/progress/stream"), timeout=5,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text.startswith("event: queue_snapshot\ndata: ")
        assert "document_progress" not in response.text


@pytest.mark.integration
async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "docflow-api"}


@pytest.mark.integration
async def test_domain_error_escaping_a_route_is_mapped():
    from httpx import ASGITransport, AsyncClient

    from docflow.core.exceptions import PipelineBusyError
    from docflow.main import create_app

    app = create_app()

    @app.get("/boom")
    async def boom():
        raise PipelineBusyError(remaining=3)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/boom", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 409
    assert response.json()["error_code"] == "PIPELINE_BUSY"
    assert response.headers["X-Request-ID"] == "req-1"
