"""
Text Extraction Orchestrator
════════════════════════════

Selects the extraction strategy for a declared content type and wraps the
strategy output in a single ExtractionResult.

  content type        strategy
  ─────────────────   ──────────────────
  application/pdf     PyMuPDFExtractor
  text/plain          PlainTextExtractor
  anything else       UnsupportedTypeError

Content-type parameters (`text/plain; charset=utf-8`) and letter case are
ignored when matching. This module is the only place that knows the mapping;
the pipeline only sees ExtractionResult or an error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from docflow.core.exceptions import UnsupportedTypeError
from docflow.processing.extraction import (
    BaseTextExtractor,
    PlainTextExtractor,
    PyMuPDFExtractor,
)
from docflow.schemas.documents import PDF_CONTENT_TYPE, TEXT_CONTENT_TYPE

logger = logging.getLogger(__name__)


def normalize_content_type(content_type: str | None) -> str:
    """`Text/Plain; charset=utf-8` → `text/plain`."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class ExtractionResult:
    """
    Extraction output handed to the chunker.

    full_text     : all pages concatenated
    page_count    : number of pages (1 for plain text)
    strategy_used : "pymupdf" | "plaintext"
    total_chars   : total character count
    elapsed_ms    : total extraction wall time (ms)
    size_bytes    : size of the original upload
    content_type  : normalized declared content type
    """
    full_text:     str
    page_count:    int
    strategy_used: str
    total_chars:   int
    elapsed_ms:    float
    size_bytes:    int
    content_type:  str


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TextExtractorOrchestrator:
    """
    Stateless dispatcher from content type to extraction strategy.

    Usage:
        orchestrator = TextExtractorOrchestrator()
        result = await orchestrator.extract(pdf_bytes, "application/pdf")

    Strategies can be replaced per content type (tests, alternative PDF
    backends) via the `extractors` argument.
    """

    def __init__(self, extractors: dict[str, BaseTextExtractor] | None = None) -> None:
        self._extractors: dict[str, BaseTextExtractor] = {
            PDF_CONTENT_TYPE:  PyMuPDFExtractor(),
            TEXT_CONTENT_TYPE: PlainTextExtractor(),
        }
        if extractors:
            self._extractors.update(
                {normalize_content_type(k): v for k, v in extractors.items()}
            )

    @property
    def supported_types(self) -> frozenset[str]:
        return frozenset(self._extractors)

    def resolve(self, content_type: str | None) -> BaseTextExtractor:
        """Return the strategy for `content_type` or raise UnsupportedTypeError."""
        extractor = self._extractors.get(normalize_content_type(content_type))
        if extractor is None:
            raise UnsupportedTypeError(content_type if content_type is not None else "")
        return extractor

    async def extract(self, content: bytes | str, content_type: str) -> ExtractionResult:
        """Run the strategy for `content_type`. Raises ExtractionError on failure."""
        extractor = self.resolve(content_type)
        t0 = time.monotonic()

        strategy_result = await extractor.extract(content)

        size_bytes = (
            len(content.encode("utf-8")) if isinstance(content, str) else len(content)
        )
        result = ExtractionResult(
            full_text=strategy_result.full_text,
            page_count=len(strategy_result.pages),
            strategy_used=strategy_result.strategy_name,
            total_chars=strategy_result.total_chars,
            elapsed_ms=(time.monotonic() - t0) * 1000,
            size_bytes=size_bytes,
            content_type=normalize_content_type(content_type),
        )
        logger.info(
            "Extraction | strategy=%s type=%s size_bytes=%d pages=%d total_chars=%d",
            result.strategy_used, result.content_type, result.size_bytes,
            result.page_count, result.total_chars,
        )
        return result
