"""
Document Processing Package
════════════════════════════

The core of the pipeline:

  Text Extraction → Sentence Chunking → Queue Drain → Progress Events

Modules
───────
  tokenizer.py   Word tokenizer used for sizing and token accounting
  chunking.py    Sentence chunker with a soft token bound
  extraction.py  Strategy classes for PDF (PyMuPDF) and plain text
  extractor.py   Content-type dispatcher that selects the strategy
  progress.py    Progress observer registry
  queue.py       Processing queue and single-flight drainer

Only the leaf modules are re-exported here; the schema module imports
DocumentChunk through this package.

Design principles
─────────────────
  • Tokenizer and chunker are pure functions of their input.
  • Queue state lives on instances, never in module globals.
  • Every step emits structured log lines.
"""

from docflow.processing.tokenizer import count_tokens, tokenize
from docflow.processing.chunking import DocumentChunk, SentenceChunker, chunk_text

__all__ = [
    "tokenize",
    "count_tokens",
    "DocumentChunk",
    "SentenceChunker",
    "chunk_text",
]
