"""
Word tokenizer used for chunk sizing and per-chunk token accounting.

Tokens are lower-cased word-like runs. Any character that is not a word
character, whitespace or a hyphen is treated as a separator:

    tokenize("Hello, world! Re-use it.")  ->  ["hello", "world", "re-use", "it"]

Hyphenated words stay whole. `\\w` is Unicode-aware, so accented letters and
non-Latin scripts survive as word characters. Token counts for non-ASCII
text differ from an ASCII-only `\\w` tokenizer such as JavaScript's:
"café" is one token here and two there.
"""

from __future__ import annotations

import re

_NON_WORD_RE = re.compile(r"[^\w\s-]")


def tokenize(text: str) -> list[str]:
    """Return the ordered list of normalized tokens in `text`."""
    return _NON_WORD_RE.sub(" ", text.lower()).split()


def count_tokens(text: str) -> int:
    return len(tokenize(text))
