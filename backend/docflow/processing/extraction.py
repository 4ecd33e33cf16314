"""
Text Extraction Strategies
══════════════════════════

Design: Strategy
────────────────
Each supported content type has one strategy that turns raw upload bytes
into text:

  PyMuPDFExtractor   application/pdf
    - Native PDF text layer extraction via PyMuPDF (fitz)
    - Runs in a thread executor so the event loop is never blocked
    - Image-only pages yield empty text (no OCR)

  PlainTextExtractor text/plain
    - UTF-8 decode, falling back to Latin-1 for legacy encodings

Unlike a best-effort cascade, a strategy here raises ExtractionError when it
cannot produce text; the pipeline reports that to the caller and leaves the
processing queue untouched.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from docflow.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class PageText:
    """
    Text extracted from a single page.

    page_number : 1-based page index
    text        : raw extracted text (may be empty for image-only pages)
    """
    page_number: int
    text:        str


@dataclass
class ExtractionStrategyResult:
    """
    Full result from a single strategy run.

    pages         : list of PageText (one per page; plain text is one page)
    strategy_name : which strategy produced this result
    elapsed_ms    : wall-clock time for the strategy (ms)
    """
    pages:         list[PageText]
    strategy_name: str
    elapsed_ms:    float = 0.0

    @property
    def total_chars(self) -> int:
        return sum(len(p.text) for p in self.pages)

    @property
    def full_text(self) -> str:
        """Concatenate all non-empty pages with page separators."""
        return "\n\n".join(p.text for p in self.pages if p.text.strip())


# ---------------------------------------------------------------------------
# Abstract strategy
# ---------------------------------------------------------------------------

class BaseTextExtractor(ABC):
    """
    Abstract base for text extraction strategies.

    All implementations:
      - Accept the raw upload content (bytes, or already-decoded str)
      - Return ExtractionStrategyResult
      - Raise ExtractionError on failure
    """

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    async def extract(self, content: bytes | str) -> ExtractionStrategyResult:
        """Extract text from `content`."""


# ---------------------------------------------------------------------------
# PDF: PyMuPDF (fitz)
# ---------------------------------------------------------------------------

class PyMuPDFExtractor(BaseTextExtractor):
    """
    Reads the native PDF text layer with PyMuPDF.

    Limitations:
      - Cannot OCR image-only pages (returns empty string for those)
      - Multi-column layouts may come back in column order
      - Encrypted PDFs are rejected

    Thread-safety: fitz.open() returns an independent document object
    per call — safe for concurrent use.
    """

    @property
    def strategy_name(self) -> str:
        return "pymupdf"

    async def extract(self, content: bytes | str) -> ExtractionStrategyResult:
        if not isinstance(content, (bytes, bytearray)):
            raise ExtractionError(self.strategy_name, "PDF content must be raw bytes.")

        loop = asyncio.get_running_loop()
        t0 = time.monotonic()

        try:
            result = await loop.run_in_executor(None, self._extract_sync, bytes(content))
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning("PyMuPDF extraction failed: %s", exc)
            raise ExtractionError(self.strategy_name, str(exc) or type(exc).__name__) from exc

        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "PyMuPDF | pages=%d total_chars=%d elapsed_ms=%.0f",
            len(result.pages), result.total_chars, result.elapsed_ms,
        )
        return result

    def _extract_sync(self, pdf_bytes: bytes) -> ExtractionStrategyResult:
        """Blocking extraction — runs in thread executor."""
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        pages: list[PageText] = []

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.needs_pass:
                raise ExtractionError(self.strategy_name, "PDF is password protected.")
            if doc.page_count == 0:
                raise ExtractionError(self.strategy_name, "PDF contains no pages.")
            for page_num, page in enumerate(doc, start=1):
                raw = page.get_text("text") or ""
                pages.append(PageText(page_number=page_num, text=raw.strip()))

        return ExtractionStrategyResult(pages=pages, strategy_name=self.strategy_name)


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------

class PlainTextExtractor(BaseTextExtractor):
    """Decode plain text uploads; str content is passed through unchanged."""

    @property
    def strategy_name(self) -> str:
        return "plaintext"

    async def extract(self, content: bytes | str) -> ExtractionStrategyResult:
        t0 = time.monotonic()
        if isinstance(content, str):
            text = content
        elif isinstance(content, (bytes, bytearray)):
            text = _decode_text(bytes(content))
        else:
            raise ExtractionError(
                self.strategy_name,
                f"Unsupported content object {type(content).__name__}.",
            )

        return ExtractionStrategyResult(
            pages=[PageText(page_number=1, text=text)],
            strategy_name=self.strategy_name,
            elapsed_ms=(time.monotonic() - t0) * 1000,
        )


def _decode_text(data: bytes) -> str:
    """UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("Text is not valid UTF-8, decoding as latin-1")
        return data.decode("latin-1", errors="replace")
