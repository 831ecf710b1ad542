"""
Matcher — locates an LLM-written search snippet inside the current document.

The snippet is usually a near-copy of real code (drifted whitespace, quote
style, a typo, a dropped comment). Strategies are tried in a fixed order and
the first one that produces a span wins, so an exact occurrence is always
preferred over an approximate one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..analysis.region import extract_code_region
from ..analysis.scanner import blank_non_code, scan_top_level
from ..analysis.tokenizer import Token, tokenize, tokens_in_range
from ..config import Config
from ..errors import snippet_prefix
from .alignment import fuzzy_token_equal, lcs_match

logger = logging.getLogger(__name__)

_COMMON_SYMBOL_RE = re.compile(r"^[{}(),;=.\[\]<>+\-*/]$")
_COMMON_KEYWORDS = frozenset({
    "if", "else", "return", "const", "let", "var", "import", "export", "from",
})

# JSX comments first so their braces go with them
_COMMENT_RES = [
    re.compile(r"\{\s*/\*.*?\*/\s*\}", re.DOTALL),
    re.compile(r"/\*.*?\*/", re.DOTALL),
    re.compile(r"<!--.*?-->", re.DOTALL),
    re.compile(r"(?<![:\\])//[^\n]*"),
]

_DECL_HEAD_RE = re.compile(
    r"^\s*(?:export\s+(?:default\s+)?)?(?:async\s+)?"
    r"(?:function\s*\*?\s*(?P<fn>[A-Za-z_$][\w$]*)"
    r"|class\s+(?P<cls>[A-Za-z_$][\w$]*)"
    r"|(?:const|let|var)\s+(?P<var>[A-Za-z_$][\w$]*))"
)
_IDENT_CHAR_RE = re.compile(r"[\w$]")


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass
class MatchSpan:
    """Where a snippet was found: inclusive token indices plus char offsets."""
    start_token: int
    end_token: int
    score: float
    strategy: str
    start: int = 0
    end: int = 0


@dataclass
class MatchRequest:
    """Everything a strategy may look at to locate one snippet."""
    source: str
    search: str
    replace: str = ""
    line_hint: Optional[tuple[int, int]] = None
    allowed_ranges: Optional[list[tuple[int, int]]] = None
    relaxed: bool = False
    tree_provider: Optional[Callable[[], object]] = None
    source_tokens: list[Token] = field(default=None)
    search_tokens: list[Token] = field(default=None)

    def __post_init__(self):
        if self.source_tokens is None:
            self.source_tokens = tokenize(self.source)
        if self.search_tokens is None:
            self.search_tokens = tokenize(self.search)
        self._tree = None

    def tree(self):
        """The syntax tree of the source, built on first use (or None)."""
        if self._tree is None and self.tree_provider is not None:
            self._tree = self.tree_provider()
        return self._tree

    def segments(self) -> list[tuple[int, int]]:
        """Token index ranges ``[lo, hi)`` a strategy may search."""
        if self.allowed_ranges is None:
            return [(0, len(self.source_tokens))]
        return [tokens_in_range(self.source_tokens, s, e) for s, e in self.allowed_ranges]

    def within_allowed(self, start: int, end: int) -> bool:
        if self.allowed_ranges is None:
            return True
        return any(s <= start and end <= e for s, e in self.allowed_ranges)

    def span(self, first: int, last: int, score: float, strategy: str) -> MatchSpan:
        tokens = self.source_tokens
        return MatchSpan(first, last, score, strategy, tokens[first].start, tokens[last].end)


@dataclass
class MatchOutcome:
    """Result of running the cascade: a span, or None with a reason."""
    span: Optional[MatchSpan]
    attempts: list[str] = field(default_factory=list)
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.span is not None


# ---------------------------------------------------------------------------
# Shared search routines
# ---------------------------------------------------------------------------

def strip_comments(text: str) -> str:
    for pattern in _COMMENT_RES:
        text = pattern.sub("", text)
    return text


def _char_span_to_tokens(req: MatchRequest, start: int, end: int) -> Optional[tuple[int, int]]:
    lo, hi = tokens_in_range(req.source_tokens, start, end)
    if hi <= lo:
        return None
    return lo, hi - 1


def _anchored_search(
    req: MatchRequest,
    snippet: list[Token],
    threshold: float,
    config: Config,
    strategy: str,
    eq: Optional[Callable[[str, str], bool]] = None,
) -> Optional[MatchSpan]:
    """Anchor + LCS search over every allowed segment; best score above *threshold*."""
    m = len(snippet)
    if m == 0:
        return None
    snippet_norm = [t.normalized for t in snippet]
    best: Optional[tuple[float, int, int]] = None

    for lo, hi in req.segments():
        if hi <= lo:
            continue
        norm = [t.normalized for t in req.source_tokens[lo:hi]]
        positions: dict[str, list[int]] = {}
        for i, text in enumerate(norm):
            positions.setdefault(text, []).append(i)

        candidates = _candidate_starts(snippet, positions, config)
        checked: set[int] = set()
        windows = 0
        for start in candidates:
            # Neighbouring starts share a window
            bucket = start // 5
            if bucket in checked:
                continue
            checked.add(bucket)
            windows += 1
            if windows > config.MAX_CANDIDATE_WINDOWS:
                break
            w_start = max(0, start - 5)
            w_end = min(len(norm), start + m + max(10, int(m * 0.5)))
            alignment = lcs_match(norm[w_start:w_end], snippet_norm, eq)
            if alignment is None:
                continue
            score = alignment.score(m)
            first = lo + w_start + alignment.first
            last = lo + w_start + alignment.last
            if best is None or score > best[0]:
                best = (score, first, last)

    if best is None:
        return None
    score, first, last = best
    if score > threshold:
        return req.span(first, last, score, strategy)
    logger.debug("[Match] %s best score %.3f <= %.2f", strategy, score, threshold)
    return None


def _candidate_starts(snippet: list[Token], positions: dict[str, list[int]],
                      config: Config) -> list[int]:
    """Estimated snippet start positions, from the rarest anchors outward."""
    ranked = sorted(
        range(len(snippet)),
        key=lambda i: (-len(snippet[i].normalized), len(positions.get(snippet[i].normalized, ()))),
    )
    starts: list[int] = []

    def add(index: int, strict: bool) -> bool:
        text = snippet[index].normalized
        if strict and (len(text) < 3 or _COMMON_SYMBOL_RE.match(text) or text in _COMMON_KEYWORDS):
            return False
        hits = positions.get(text)
        if not hits:
            return False
        starts.extend(max(0, pos - index) for pos in hits)
        return True

    anchors = 0
    for index in ranked:
        if anchors >= config.MAX_ANCHORS:
            break
        if add(index, strict=True):
            anchors += 1

    if not starts:
        last = len(snippet) - 1
        for index in dict.fromkeys((0, last // 2, last)):
            add(index, strict=False)
    return starts


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class LineHintStrategy:
    """Trust the ``@Lstart-Lend`` hint when the hinted lines agree with the snippet."""

    name = "line_hint"

    def __init__(self, config: Config):
        self._config = config

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        if not req.line_hint:
            return None
        snippet = [line.strip() for line in req.search.strip("\n").split("\n")]
        k = len(snippet)
        lines = req.source.split("\n")
        line_starts = [0]
        for line in lines:
            line_starts.append(line_starts[-1] + len(line) + 1)

        hint_start = req.line_hint[0] - 1
        slack = self._config.LINE_HINT_SLACK
        best: Optional[tuple[float, int]] = None
        for offset in sorted(range(-slack, slack + 1), key=abs):
            begin = hint_start + offset
            if begin < 0 or begin + k > len(lines):
                continue
            candidate = [line.strip() for line in lines[begin:begin + k]]
            agreement = sum(a == b for a, b in zip(candidate, snippet)) / k
            if best is None or agreement > best[0]:
                best = (agreement, begin)

        if best is None or best[0] < self._config.LINE_HINT_AGREEMENT:
            return None
        agreement, begin = best
        start, end = line_starts[begin], line_starts[begin + k] - 1
        tokens = _char_span_to_tokens(req, start, end)
        if tokens is None:
            return None
        span = req.span(tokens[0], tokens[1], agreement, self.name)
        if not req.within_allowed(span.start, span.end):
            return None
        return span


class ExactStrategy:
    """Contiguous equality on normalized tokens; first occurrence wins."""

    name = "exact"

    def __init__(self, config: Config):
        self._config = config

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        needle = [t.normalized for t in req.search_tokens]
        m = len(needle)
        if m == 0:
            return None
        for lo, hi in req.segments():
            norm = [t.normalized for t in req.source_tokens[lo:hi]]
            head = needle[0]
            for i in range(len(norm) - m + 1):
                if norm[i] == head and norm[i:i + m] == needle:
                    return req.span(lo + i, lo + i + m - 1, 1.0, self.name)
        return None


class AnchoredLcsStrategy:
    """Anchor-seeded windows scored by gap-penalized LCS."""

    name = "anchored_lcs"

    def __init__(self, config: Config):
        self._config = config

    def threshold(self, req: MatchRequest) -> float:
        if req.relaxed:
            return self._config.RELAXED_THRESHOLD
        return self._config.ANCHORED_THRESHOLD

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        return _anchored_search(req, req.search_tokens, self.threshold(req),
                                self._config, self.name)


class CommentInsensitiveStrategy(AnchoredLcsStrategy):
    """Anchored LCS again with comments removed from the snippet."""

    name = "comment_insensitive"

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        stripped = strip_comments(req.search)
        if stripped == req.search:
            return None
        tokens = tokenize(stripped)
        if [t.normalized for t in tokens] == [t.normalized for t in req.search_tokens]:
            return None
        return _anchored_search(req, tokens, self.threshold(req), self._config, self.name)


class FuzzyTokenStrategy:
    """LCS where identifier tokens may differ by a small edit distance."""

    name = "fuzzy_token"

    def __init__(self, config: Config):
        self._config = config

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        return _anchored_search(req, req.search_tokens, self._config.FUZZY_TOKEN_THRESHOLD,
                                self._config, self.name, eq=fuzzy_token_equal)


class StructuralStrategy:
    """Replace a whole declaration by name when the replacement is one."""

    name = "structural"

    def __init__(self, config: Config):
        self._config = config

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        name = declared_name(req.replace)
        if not name:
            return None
        if not re.search(rf"(?<![\w$]){re.escape(name)}(?![\w$])", req.search):
            return None
        located = locate_declaration(req.source, name, req.tree())
        if located is None:
            return None
        tokens = _char_span_to_tokens(req, *located)
        if tokens is None:
            return None
        span = req.span(tokens[0], tokens[1], 1.0, self.name)
        if not req.within_allowed(span.start, span.end):
            return None
        return span


class AnchorLineStrategy:
    """Use the snippet's first and last lines as unique literal anchors."""

    name = "anchor_line"

    def __init__(self, config: Config):
        self._config = config

    def find(self, req: MatchRequest) -> Optional[MatchSpan]:
        snippet = [line.strip() for line in req.search.split("\n") if line.strip()]
        if len(snippet) < 2 or snippet[0] == snippet[-1]:
            return None
        first, last = snippet[0], snippet[-1]
        if not (_IDENT_CHAR_RE.search(first) and _IDENT_CHAR_RE.search(last)):
            return None

        lines = req.source.split("\n")
        stripped = [line.strip() for line in lines]
        first_hits = [i for i, line in enumerate(stripped) if line == first]
        last_hits = [i for i, line in enumerate(stripped) if line == last]
        if len(first_hits) != 1 or len(last_hits) != 1:
            return None
        begin, finish = first_hits[0], last_hits[0]
        if finish <= begin or finish - begin > self._config.ANCHOR_LINE_MAX_DISTANCE:
            return None

        start = sum(len(line) + 1 for line in lines[:begin])
        end = start + sum(len(line) + 1 for line in lines[begin:finish + 1]) - 1
        tokens = _char_span_to_tokens(req, start, end)
        if tokens is None:
            return None
        span = req.span(tokens[0], tokens[1], 0.5, self.name)
        if not req.within_allowed(span.start, span.end):
            return None
        return span


# ---------------------------------------------------------------------------
# Declaration helpers (shared with the applier)
# ---------------------------------------------------------------------------

def declared_name(text: str) -> Optional[str]:
    """Name declared by *text* when it is one complete top-level declaration."""
    m = _DECL_HEAD_RE.match(text)
    if not m:
        return None
    name = m.group("fn") or m.group("cls") or m.group("var")
    code = blank_non_code(text)
    if code.count("{") != code.count("}") or code.count("(") != code.count(")"):
        return None
    decls = scan_top_level(text)
    if not decls or not decls[0].is_declaration or decls[0].name != name:
        return None
    return name


def locate_declaration(source: str, name: str, tree=None) -> Optional[tuple[int, int]]:
    """Char span of the top-level declaration of *name* in *source*.

    Uses the syntax tree when one is available, otherwise scans the code
    region with the brace-balance scanner.
    """
    if tree is not None and getattr(tree, "available", False):
        decl = tree.find_declaration(name)
        return (decl.start, decl.end) if decl else None
    region = extract_code_region(source)
    found = None
    for decl in scan_top_level(region.text):
        if decl.is_declaration and name in decl.names:
            found = decl
    if found is None:
        return None
    return region.start + found.start, region.start + found.end


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------

def default_strategies(config: Config) -> list:
    return [
        LineHintStrategy(config),
        ExactStrategy(config),
        AnchoredLcsStrategy(config),
        CommentInsensitiveStrategy(config),
        FuzzyTokenStrategy(config),
        StructuralStrategy(config),
        AnchorLineStrategy(config),
    ]


class Matcher:
    """Runs the strategy cascade for one snippet at a time."""

    def __init__(self, strategies: Optional[list] = None, config: Config | None = None):
        self._config = config or Config()
        self.strategies = strategies if strategies is not None else default_strategies(self._config)

    def find(self, request: MatchRequest) -> MatchOutcome:
        """
        Locate ``request.search`` in ``request.source``.

        Parameters
        ----------
        request:
            The snippet, its source and the constraints on where it may match.

        Returns
        -------
        MatchOutcome
            ``span`` is the first strategy's result; ``attempts`` lists every
            strategy tried; ``reason`` is set when nothing matched.
        """
        if not request.search_tokens:
            return MatchOutcome(None, [], "search block is empty")

        attempts: list[str] = []
        for strategy in self.strategies:
            attempts.append(strategy.name)
            span = strategy.find(request)
            if span is not None:
                logger.debug(
                    "[Match] %s matched tokens %d-%d (score %.3f)",
                    strategy.name, span.start_token, span.end_token, span.score,
                )
                return MatchOutcome(span, attempts)

        reason = f"search block not found: {snippet_prefix(request.search)!r}"
        logger.info("[Match] %s", reason)
        return MatchOutcome(None, attempts, reason)
