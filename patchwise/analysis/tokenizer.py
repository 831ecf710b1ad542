"""
Tokenizer — splits text into atomic lexical tokens for approximate matching.

Whitespace carries no meaning for the matcher, so it is dropped; offsets let
every token be mapped back to the exact characters it came from.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass

# Identifier runs (Unicode word characters plus ``$``) or any single
# non-whitespace, non-word character.
_TOKEN_RE = re.compile(r"[\w$]+|[^\w\s]")

_QUOTE_CHARS = frozenset({'"', "'", "`"})
CANONICAL_QUOTE = '"'


@dataclass(frozen=True)
class Token:
    """A lexical token: raw text, normalized form and [start, end) offsets."""
    text: str
    normalized: str
    start: int
    end: int

    @property
    def is_word(self) -> bool:
        return self.text[0].isalnum() or self.text[0] in "_$"


def normalize_token(text: str) -> str:
    """Collapse stylistic variants so they compare equal (quote style)."""
    if text in _QUOTE_CHARS:
        return CANONICAL_QUOTE
    return text


def tokenize(text: str) -> list[Token]:
    """Return the ordered token list for *text*."""
    return [
        Token(m.group(0), normalize_token(m.group(0)), m.start(), m.end())
        for m in _TOKEN_RE.finditer(text)
    ]


def tokens_in_range(tokens: list[Token], start: int, end: int) -> tuple[int, int]:
    """Return ``(lo, hi)`` so that ``tokens[lo:hi]`` lie fully inside [start, end)."""
    starts = [t.start for t in tokens]
    lo = bisect.bisect_left(starts, start)
    hi = lo
    while hi < len(tokens) and tokens[hi].end <= end:
        hi += 1
    return lo, hi
