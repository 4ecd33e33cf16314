"""
Unit Tests — SentenceChunker
════════════════════════════

Coverage targets:
  ✅ Sentence splitting keeps terminators attached
  ✅ Text without terminators is one unit; trailing fragment kept
  ✅ Greedy packing under the token bound
  ✅ Oversized single sentence emitted as its own chunk
  ✅ index contiguous 0..total-1 and total finalized on every chunk
  ✅ No sentence dropped or duplicated across chunks
  ✅ Empty / whitespace-only input → no chunks
  ✅ Invalid max_tokens rejected
"""

from __future__ import annotations

import re

import pytest

from docflow.processing.chunking import (
    UNFINALIZED_TOTAL,
    DocumentChunk,
    SentenceChunker,
    chunk_text,
    split_sentences,
)
from docflow.processing.tokenizer import count_tokens


def _normalize(text: str) -> str:
    return re.sub(r"\s+", "", text)


# ─────────────────────────────────────────────────────────────────────────────
# Sentence splitting
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestSplitSentences:

    def test_terminators_attached(self):
        assert split_sentences("Hi there. How are you? Great!") == [
            "Hi there.", " How are you?", " Great!",
        ]

    def test_terminator_runs_stay_together(self):
        assert split_sentences("Wait... What?!") == ["Wait...", " What?!"]

    def test_no_terminator_is_single_unit(self):
        assert split_sentences("no punctuation at all") == ["no punctuation at all"]

    def test_trailing_fragment_kept(self):
        assert split_sentences("Done. And then") == ["Done.", " And then"]

    def test_every_character_accounted_for(self):
        text = "...Leading dots. Middle! ?? tail without end"
        assert "".join(split_sentences(text)) == text

    def test_empty(self):
        assert split_sentences("") == []


# ─────────────────────────────────────────────────────────────────────────────
# Chunk packing
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestChunkText:

    def test_scenario_single_chunk(self):
        chunks = chunk_text("Hello world. This is a test.", max_tokens=100)

        assert chunks == [DocumentChunk(text="Hello world. This is a test.", index=0, total=1)]

    def test_scenario_two_chunks_when_combined_exceeds(self):
        """Two 4-token sentences, bound 6: each fits alone, together they do not."""
        text = "One two three four. Five six seven eight."
        chunks = chunk_text(text, max_tokens=6)

        assert [c.text for c in chunks] == ["One two three four.", "Five six seven eight."]
        assert chunks[1].index == 1
        assert chunks[1].total == 2

    def test_bound_is_inclusive(self):
        text = "One two three. Four five six."
        assert len(chunk_text(text, max_tokens=6)) == 1
        assert len(chunk_text(text, max_tokens=5)) == 2

    def test_oversized_sentence_is_own_chunk(self):
        long_sentence = " ".join(["word"] * 20) + "."
        text = f"Short one. {long_sentence} Short two."
        chunks = chunk_text(text, max_tokens=5)

        assert [c.text for c in chunks] == ["Short one.", long_sentence, "Short two."]
        assert count_tokens(chunks[1].text) == 20

    def test_oversized_sentence_alone(self):
        text = " ".join(["word"] * 50) + "."
        chunks = chunk_text(text, max_tokens=10)

        assert len(chunks) == 1
        assert chunks[0].text == text
        assert chunks[0].total == 1

    def test_chunks_are_trimmed(self):
        chunks = chunk_text("   Padded sentence.   Another.  ", max_tokens=2)
        assert [c.text for c in chunks] == ["Padded sentence.", "Another."]

    def test_indices_contiguous_and_totals_final(self, long_text):
        chunks = chunk_text(long_text, max_tokens=7)

        assert len(chunks) > 1
        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(c.total == len(chunks) for c in chunks)
        assert all(c.total != UNFINALIZED_TOTAL for c in chunks)

    @pytest.mark.parametrize("max_tokens", [1, 3, 4, 10, 1000])
    def test_content_reconstructed(self, long_text, max_tokens):
        """Concatenated chunk texts equal the input, ignoring whitespace."""
        chunks = chunk_text(long_text, max_tokens=max_tokens)
        assert _normalize("".join(c.text for c in chunks)) == _normalize(long_text)

    def test_sentences_not_split_across_chunks(self, long_text):
        chunks = chunk_text(long_text, max_tokens=4)
        sentences = [s.strip() for s in split_sentences(long_text)]
        for chunk in chunks:
            for unit in split_sentences(chunk.text):
                assert unit.strip() in sentences

    def test_respects_bound_when_sentences_fit(self, long_text):
        chunks = chunk_text(long_text, max_tokens=7)
        assert all(count_tokens(c.text) <= 7 for c in chunks)

    @pytest.mark.parametrize("text", ["", "   ", "\n\n"])
    def test_empty_input(self, text):
        assert chunk_text(text, max_tokens=10) == []

    def test_text_without_punctuation(self):
        chunks = chunk_text("just some words without an ending", max_tokens=100)
        assert [c.text for c in chunks] == ["just some words without an ending"]

    @pytest.mark.parametrize("max_tokens", [0, -5])
    def test_invalid_bound(self, max_tokens):
        with pytest.raises(ValueError):
            chunk_text("Anything.", max_tokens=max_tokens)


@pytest.mark.unit
class TestSentenceChunker:

    def test_uses_configured_bound(self, long_text):
        chunker = SentenceChunker(max_tokens=3)
        chunks = chunker.chunk(long_text)

        assert len(chunks) == 12
        assert chunks[0].text == "Sentence number 0."
        assert chunks[-1].index == 11

    def test_rejects_invalid_bound(self):
        with pytest.raises(ValueError):
            SentenceChunker(max_tokens=0)

    def test_empty_text(self):
        assert SentenceChunker(max_tokens=10).chunk("") == []
