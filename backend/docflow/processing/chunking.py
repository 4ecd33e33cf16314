"""
Sentence Chunker  —  Token-Bounded Text Segmentation
═════════════════════════════════════════════════════

Why sentence boundaries?
────────────────────────
  Fixed-size windows split mid-sentence:

    "The defendant pleaded guilty to
    [CHUNK BREAK]
    fraud charges in..."

  Downstream consumers (embedding, LLM prompts) get an orphaned fragment.
  Splitting only at sentence terminators keeps every sentence whole.

Algorithm
─────────
  1. Split the text into sentence-like units. A unit runs up to and including
     a run of terminators (`.`, `!`, `?`). Text after the last terminator is
     its own unit, so nothing is dropped.
  2. Greedily pack units into a buffer. If adding the next unit would push
     the buffer over `max_tokens` (measured with the shared tokenizer) and
     the buffer already holds something, the buffer is closed as a chunk and
     the unit starts the next one.
  3. Flush the last buffer, then stamp every chunk with the batch total.

The bound is soft: a single sentence longer than `max_tokens` becomes its
own oversized chunk rather than being cut.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docflow.processing.tokenizer import count_tokens

logger = logging.getLogger(__name__)

# `total` of a chunk whose batch is still being built
UNFINALIZED_TOTAL = -1

# Every character of the input belongs to exactly one match:
#   - non-terminators followed by a run of terminators  ("Hello world.")
#   - trailing non-terminators at the end of the text    ("no period")
#   - a stray run of terminators                         ("...")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+|[^.!?]+\Z|[.!?]+")


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class DocumentChunk:
    """
    A bounded span of document text awaiting processing.

    text  : chunk content, stripped of leading/trailing whitespace
    index : 0-based position in the batch, fixed at creation
    total : number of chunks in the batch (-1 until the batch is finalized)
    """
    text:  str
    index: int
    total: int = UNFINALIZED_TOTAL


# ---------------------------------------------------------------------------
# Core chunker
# ---------------------------------------------------------------------------

def split_sentences(text: str) -> list[str]:
    """
    Split `text` into sentence-like units, terminators kept attached.
    Text without any terminator comes back as a single unit.
    """
    if not text:
        return []
    return _SENTENCE_RE.findall(text) or [text]


def chunk_text(text: str, max_tokens: int) -> list[DocumentChunk]:
    """
    Pack the sentences of `text` into chunks of at most ~`max_tokens` tokens.

    Returns the chunks in order with `index` 0..n-1 and `total` = n.
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")

    chunks: list[DocumentChunk] = []
    buffer = ""

    for sentence in split_sentences(text):
        candidate = buffer + sentence
        if buffer.strip() and count_tokens(candidate) > max_tokens:
            chunks.append(DocumentChunk(text=buffer.strip(), index=len(chunks)))
            buffer = sentence
        else:
            buffer = candidate

    if buffer.strip():
        chunks.append(DocumentChunk(text=buffer.strip(), index=len(chunks)))

    total = len(chunks)
    for chunk in chunks:
        chunk.total = total

    return chunks


class SentenceChunker:
    """
    Stateless chunker bound to a token target.

    Usage:
        chunker = SentenceChunker(max_tokens=1000)
        chunks = chunker.chunk(extracted_text)
    """

    def __init__(self, max_tokens: int) -> None:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        self.max_tokens = max_tokens

    def chunk(self, text: str) -> list[DocumentChunk]:
        chunks = chunk_text(text, self.max_tokens)
        if chunks:
            logger.info(
                "SentenceChunker | chunks=%d max_tokens=%d avg_chars=%.0f",
                len(chunks), self.max_tokens,
                sum(len(c.text) for c in chunks) / len(chunks),
            )
        else:
            logger.warning("SentenceChunker: no content to chunk")
        return chunks
