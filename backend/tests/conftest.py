"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, pipeline, recorder, sample texts/bytes,
                    app_with_overrides, async_client

Environment strategy:
  - DOCFLOW_* variables are set before any docflow import so module-level
    settings read test config.
  - The drain yield interval is 0 in tests; draining still suspends between
    chunks but never sleeps.
  - PDF extraction uses real PyMuPDF on small in-memory documents.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # HTTP layer tests
"""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any docflow imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DOCFLOW_APP_ENV",             "development")
os.environ.setdefault("DOCFLOW_DEBUG",               "true")
os.environ.setdefault("DOCFLOW_DRAIN_YIELD_SECONDS", "0")


# ─────────────────────────────────────────────────────────────────────────────
# Settings + pipeline
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_settings():
    """
    Factory fixture: build a Settings object with overrides.

    Usage:
        cfg = make_settings(chunk_size=5)
        cfg = make_settings(submission_policy="reject")
    """
    from docflow.core.config import Settings

    def _build(**overrides) -> Settings:
        values = {"drain_yield_seconds": 0.0, **overrides}
        return Settings(**values)

    return _build


@pytest.fixture
def test_settings(make_settings):
    return make_settings()


@pytest_asyncio.fixture
async def make_pipeline(make_settings):
    """
    Factory: build an isolated DocumentPipeline.
    Background drains still running at teardown are cancelled.
    """
    from docflow.services.ingestion import DocumentPipeline

    created = []

    def _build(settings=None, **kwargs) -> DocumentPipeline:
        pipeline = DocumentPipeline(settings or make_settings(), **kwargs)
        created.append(pipeline)
        return pipeline

    yield _build

    for pipeline in created:
        await pipeline.aclose()


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


# ─────────────────────────────────────────────────────────────────────────────
# Progress recorder
# ─────────────────────────────────────────────────────────────────────────────

class EventRecorder:
    """Observer that keeps every ProgressEvent it receives."""

    def __init__(self) -> None:
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def progress(self) -> list[float]:
        return [e.progress for e in self.events]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


# ─────────────────────────────────────────────────────────────────────────────
# Sample documents
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def sample_text() -> str:
    return "Hello world. This is a test."


@pytest.fixture
def long_text() -> str:
    """Twelve short sentences, three tokens each."""
    return " ".join(f"Sentence number {i}." for i in range(12))


@pytest.fixture
def sample_txt_bytes() -> bytes:
    """Plain text content."""
    return b"This is a test document. It has two sentences.\n"


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Two-page PDF built with PyMuPDF."""
    import fitz

    doc = fitz.open()
    for line in ("First page sentence. Another one here.", "Second page text!"):
        page = doc.new_page()
        page.insert_text((72, 72), line)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def corrupt_pdf_bytes() -> bytes:
    """Passes the %PDF magic check but is not a parsable document."""
    return b"%PDF-1.4\nthis is not really a pdf\n%%EOF"


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with pipeline dependency override
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(pipeline):
    """
    FastAPI app whose DocumentPipeline dependency is an isolated instance,
    so HTTP tests never share queue state.
    """
    from docflow.main import app
    from docflow.services.ingestion import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: pipeline

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app."""
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
