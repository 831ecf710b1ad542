"""
Token-sequence alignment helpers for the matcher.

``lcs_match`` aligns a window of source tokens against snippet tokens and
reports how many tokens matched and the tightest window slice holding such
a match. Plain equality goes through rapidfuzz's LCS implementation; custom
equality falls back to a dynamic-programming table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from rapidfuzz.distance import LCSseq, Levenshtein


@dataclass(frozen=True)
class Alignment:
    """LCS alignment of a source window against a snippet."""
    length: int
    first: int   # window index of the first matched token
    last: int    # window index of the last matched token

    @property
    def span(self) -> int:
        return self.last - self.first + 1

    def score(self, snippet_len: int) -> float:
        """Gap-penalized similarity ``2L / (M + S)``."""
        return (2 * self.length) / (snippet_len + self.span)


def lcs_match(
    window: Sequence[str],
    snippet: Sequence[str],
    eq: Optional[Callable[[str, str], bool]] = None,
) -> Optional[Alignment]:
    """Align *window* against *snippet*; None when nothing matches.

    The reported slice ends as early as possible and, for that end, starts
    as late as possible, so unrelated tokens around the match stay out.
    """
    if not window or not snippet:
        return None
    window, snippet = list(window), list(snippet)

    if eq is None:
        def lcs_len(lo: int, hi: int) -> int:
            return int(LCSseq.similarity(window[lo:hi], snippet))
    else:
        same = [[eq(w, s) for s in snippet] for w in window]

        def lcs_len(lo: int, hi: int) -> int:
            return _dp_length(same, lo, hi, len(snippet))

    length = lcs_len(0, len(window))
    if length == 0:
        return None
    end = _first_true(lambda e: lcs_len(0, e) == length, 1, len(window))
    start = _last_true(lambda s: lcs_len(s, end) == length, 0, end - 1)
    return Alignment(length, start, end - 1)


def _dp_length(same: list[list[bool]], lo: int, hi: int, n: int) -> int:
    """LCS length of window rows ``[lo, hi)`` against the snippet."""
    prev = [0] * (n + 1)
    for i in range(lo, hi):
        row = [0] * (n + 1)
        hits = same[i]
        for j in range(1, n + 1):
            if hits[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = prev[j] if prev[j] >= row[j - 1] else row[j - 1]
        prev = row
    return prev[n]


def _first_true(pred: Callable[[int], bool], lo: int, hi: int) -> int:
    """Smallest x in [lo, hi] with pred(x); pred is monotone and pred(hi) holds."""
    while lo < hi:
        mid = (lo + hi) // 2
        if pred(mid):
            hi = mid
        else:
            lo = mid + 1
    return lo


def _last_true(pred: Callable[[int], bool], lo: int, hi: int) -> int:
    """Largest x in [lo, hi] with pred(x); pred is monotone and pred(lo) holds."""
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if pred(mid):
            lo = mid
        else:
            hi = mid - 1
    return lo


def fuzzy_token_equal(a: str, b: str) -> bool:
    """Identifier tokens of length >= 3 tolerate small typos; others compare exactly.

    Up to one edit for tokens of at most five characters, two for longer ones.
    """
    if a == b:
        return True
    if len(a) < 3 or len(b) < 3:
        return False
    if not (_is_word(a) and _is_word(b)):
        return False
    limit = 1 if max(len(a), len(b)) <= 5 else 2
    return Levenshtein.distance(a, b, score_cutoff=limit) <= limit


def _is_word(text: str) -> bool:
    return text[0].isalnum() or text[0] in "_$"
