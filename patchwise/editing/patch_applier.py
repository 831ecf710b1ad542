"""
Patch applier — applies a batch of search/replace edits to a document
transactionally: every edit is matched, applied to a working copy and
validated on its own, and the batch as a whole is validated before it is
committed.
"""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional, Union

from ..analysis.syntax import SyntaxAnalyzer
from ..config import Config
from ..errors import DocumentBusyError, EditFailure, FailureKind, snippet_prefix
from .edit_parser import Edit, contains_full_document, parse_edits
from .matcher import Matcher, MatchRequest, locate_declaration
from .scope_resolver import ScopeResolver
from .validator import Validator

logger = logging.getLogger(__name__)

# Placeholders the compressor (or an LLM) writes in place of real code
STUB_ARTIFACT_PATTERN = re.compile(
    r"/\*\s*\.\.\.\s*\d+\s*(?:lines?|statements?)\s*hidden"
    r"|//\s*\.\.\.\s*\d+\s*lines?\s*(?:truncated|omitted)"
    r"|/\*\s*\d+\s+(?:items|keys)\b"
    r"|/\*\s*\.\.\.\s*code omitted"
    r"|//\s*\.\.\.\s*existing code"
    r"|//\s*\[Component:.*?\]\s*-\s*Code omitted",
    re.IGNORECASE,
)
_BRACKETS_ONLY = re.compile(r"[\s{}()\[\];,]*")
_MAX_SEAM_LINES = 10


@dataclass
class PatchStats:
    """Per-batch accounting: ``succeeded + failed == total`` once a batch ends."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[EditFailure] = field(default_factory=list)

    @property
    def failure_reasons(self) -> list[str]:
        return [f.describe() for f in self.failures]

    @property
    def total_failure(self) -> bool:
        return self.total > 0 and self.succeeded == 0


@dataclass
class EditReport:
    """What happened to one edit."""
    index: int
    status: str  # "applied"|"noop"|"failed"|"reverted"
    strategy: str = ""
    score: float = 0.0


@dataclass
class ApplyResult:
    """Result of applying one batch of edits."""
    text: str
    stats: PatchStats
    reports: list[EditReport] = field(default_factory=list)
    reverted: bool = False
    warnings: list[str] = field(default_factory=list)
    corrections: list[str] = field(default_factory=list)
    full_document: str = ""

    @property
    def success(self) -> bool:
        return self.stats.succeeded > 0 and not self.reverted


class Document:
    """Owner of a document's text; at most one batch may edit it at a time.

    ``pristine`` keeps the text the document was created with.
    """

    def __init__(self, text: str):
        self.text = text
        self.pristine = text
        self._lock = threading.Lock()

    @contextmanager
    def batch(self):
        if not self._lock.acquire(blocking=False):
            raise DocumentBusyError("another edit batch is already in flight for this document")
        try:
            yield self
        finally:
            self._lock.release()

    def restore_pristine(self) -> None:
        with self.batch():
            self.text = self.pristine


# ---------------------------------------------------------------------------
# Seam deduplication
# ---------------------------------------------------------------------------

def _same_lines(a: list[str], b: list[str]) -> bool:
    return all(x.strip() == y.strip() for x, y in zip(a, b)) and len(a) == len(b)


def _meaningful(lines: list[str]) -> bool:
    """Duplicated lines count only if they are more than blank lines and brackets."""
    return any(line.strip() for line in lines) and not all(
        _BRACKETS_ONLY.fullmatch(line) for line in lines
    )


def dedupe_seams(before: str, replacement: str, after: str) -> tuple[str, int]:
    """Drop replacement lines that duplicate the text around the insertion point.

    LLMs often repeat the line right after (or right before) their search
    block at the end (start) of the replacement. Returns the trimmed
    replacement and how many lines were removed.
    """
    lines = replacement.split("\n")
    removed = 0

    after_lines = after.split("\n")
    if len(after_lines) > 1 and not after_lines[0].strip():
        head = after_lines[1:]
        for k in range(min(_MAX_SEAM_LINES, len(lines) - 1, len(head)), 0, -1):
            if _same_lines(lines[-k:], head[:k]) and _meaningful(lines[-k:]):
                lines = lines[:-k]
                removed += k
                break

    before_lines = before.split("\n")
    if len(before_lines) > 1 and not before_lines[-1].strip():
        tail = before_lines[:-1]
        for k in range(min(_MAX_SEAM_LINES, len(lines) - 1, len(tail)), 0, -1):
            if _same_lines(lines[:k], tail[-k:]) and _meaningful(lines[:k]):
                lines = lines[k:]
                lines[0] = lines[0].lstrip()
                removed += k
                break

    return "\n".join(lines), removed


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------

class PatchApplier:
    """Apply batches of edits with per-edit and per-batch validation."""

    def __init__(
        self,
        config: Config | None = None,
        analyzer: SyntaxAnalyzer | None = None,
        matcher: Matcher | None = None,
        validator: Validator | None = None,
        scope_resolver: ScopeResolver | None = None,
    ) -> None:
        self._config = config or Config()
        self._analyzer = analyzer or SyntaxAnalyzer(self._config)
        self._matcher = matcher or Matcher(config=self._config)
        self._validator = validator or Validator(self._analyzer, self._config)
        self._scope_resolver = scope_resolver or ScopeResolver(self._analyzer)

    @property
    def config(self) -> Config:
        return self._config

    def apply(
        self,
        document: Union[str, Document],
        edits: list[Edit],
        relaxed_matching: bool = False,
        scope_targets: Optional[list[str]] = None,
    ) -> ApplyResult:
        """Apply *edits* in order to *document*.

        Parameters
        ----------
        document:
            Document text, or a ``Document`` which is updated only when the
            batch succeeds.
        edits:
            Edits to apply, in order; each sees the result of the previous ones.
        relaxed_matching:
            Lower the anchored-LCS acceptance threshold.
        scope_targets:
            Top-level declaration names the edits may touch.

        Returns
        -------
        ApplyResult
            The resulting text (the original on total failure) and stats.
        """
        if isinstance(document, Document):
            with document.batch():
                result = self._apply_text(document.text, edits, relaxed_matching, scope_targets)
                if result.success:
                    document.text = result.text
            return result
        return self._apply_text(document, edits, relaxed_matching, scope_targets)

    # ------------------------------------------------------------------
    # Batch state machine
    # ------------------------------------------------------------------

    def _apply_text(self, original: str, edits: list[Edit], relaxed: bool,
                    scope_targets: Optional[list[str]]) -> ApplyResult:
        stats = PatchStats(total=len(edits))
        result = ApplyResult(text=original, stats=stats)
        # Targets are pinned at batch start; only those are re-resolved per edit
        pinned: list[str] = []
        if scope_targets:
            scope = self._scope_resolver.resolve(original, scope_targets)
            result.warnings.extend(scope.warnings)
            pinned = [s.symbol_name for s in scope.symbols]

        working = original
        for index, edit in enumerate(edits):
            allowed = None
            if pinned:
                allowed = self._scope_resolver.resolve(working, pinned, warn=False).ranges
            if pinned and allowed is None:
                outcome = EditFailure(
                    index, FailureKind.MATCH_NOT_FOUND,
                    f"scope target no longer present: {', '.join(pinned)}",
                    snippet_prefix(edit.search or edit.replace))
            else:
                heuristic = self._heuristic(working, len(edit.search) + len(edit.replace))
                outcome = self._apply_one(index, edit, working, relaxed, allowed, heuristic)
            if isinstance(outcome, EditFailure):
                stats.failed += 1
                stats.failures.append(outcome)
                result.reports.append(EditReport(index, "failed"))
                logger.info("[Patch] %s", outcome.describe())
                continue
            working, report, corrections = outcome
            stats.succeeded += 1
            result.reports.append(report)
            result.corrections.extend(corrections)

        if stats.succeeded and working != original:
            edit_size = sum(len(e.search) + len(e.replace) for e in edits)
            verdict = self._validator.check_batch(original, working, self._heuristic(original, edit_size))
            if not verdict.ok:
                logger.warning("[Patch] Batch rejected, reverting: %s", verdict.reason)
                stats.failures.append(EditFailure(-1, verdict.kind, verdict.reason))
                stats.succeeded = 0
                stats.failed = stats.total
                for report in result.reports:
                    if report.status != "failed":
                        report.status = "reverted"
                result.reverted = True
                working = original

        result.text = working
        logger.info("[Patch] Applied %d/%d edit(s)%s", stats.succeeded, stats.total,
                    " (batch reverted)" if result.reverted else "")
        return result

    def _heuristic(self, document: str, edit_size: int) -> bool:
        """Large documents with small edits skip full tree re-validation."""
        if len(document) <= self._config.LARGE_DOCUMENT_CHARS:
            return False
        return edit_size < self._config.SMALL_EDIT_RATIO * len(document)

    def _apply_one(self, index: int, edit: Edit, working: str, relaxed: bool,
                   allowed: Optional[list[tuple[int, int]]], heuristic: bool):
        """Apply one edit; returns ``(text, report, corrections)`` or an ``EditFailure``."""
        snippet = snippet_prefix(edit.search or edit.replace)
        if edit.is_noop:
            return working, EditReport(index, "noop", "noop", 1.0), []

        if contains_full_document(edit.replace):
            return EditFailure(index, FailureKind.PROTOCOL_VIOLATION,
                               "replacement contains a full HTML document", snippet)

        if edit.target_identifier is None and STUB_ARTIFACT_PATTERN.search(edit.search):
            return EditFailure(index, FailureKind.MATCH_NOT_FOUND,
                               "search block contains compression placeholders that are "
                               "not in the source", snippet)

        replacement = edit.replace.strip()
        if edit.target_identifier is not None:
            located = locate_declaration(working, edit.target_identifier,
                                         self._analyzer.parse(working))
            if located is None or (allowed is not None and not any(
                    s <= located[0] and located[1] <= e for s, e in allowed)):
                return EditFailure(index, FailureKind.MATCH_NOT_FOUND,
                                   f"declaration {edit.target_identifier!r} not found", snippet)
            start, end = located
            report = EditReport(index, "applied", "ast_replace", 1.0)
        else:
            request = MatchRequest(
                source=working,
                search=edit.search.strip(),
                replace=replacement,
                line_hint=edit.line_hint,
                allowed_ranges=allowed,
                relaxed=relaxed,
                tree_provider=lambda: self._analyzer.parse(working),
            )
            outcome = self._matcher.find(request)
            if not outcome.found:
                return EditFailure(index, FailureKind.MATCH_NOT_FOUND, outcome.reason, snippet)
            start, end = outcome.span.start, outcome.span.end
            replacement, removed = dedupe_seams(working[:start], replacement, working[end:])
            if removed:
                logger.debug("[Patch] Edit #%d: removed %d duplicated seam line(s)",
                             index + 1, removed)
            report = EditReport(index, "applied", outcome.span.strategy, outcome.span.score)

        candidate = working[:start] + replacement + working[end:]
        verdict = self._validator.check_edit(working, candidate, heuristic)
        if not verdict.ok:
            return EditFailure(index, verdict.kind, verdict.reason, snippet)
        logger.debug("[Patch] Edit #%d applied via %s", index + 1, report.strategy)
        return verdict.text, report, verdict.corrections


# ---------------------------------------------------------------------------
# Convenience entry points
# ---------------------------------------------------------------------------

def apply_edits(
    document: Union[str, Document],
    edits: list[Edit],
    relaxed_matching: bool = False,
    scope_targets: Optional[list[str]] = None,
    config: Config | None = None,
) -> ApplyResult:
    return PatchApplier(config).apply(document, edits, relaxed_matching, scope_targets)


def apply_patch_text(
    document: Union[str, Document],
    patch_text: str,
    relaxed_matching: bool = False,
    scope_targets: Optional[list[str]] = None,
    applier: PatchApplier | None = None,
) -> ApplyResult:
    """Parse LLM wire text and apply the edits it contains.

    A response that carries no edit blocks is reported as a protocol
    violation; when it carries a full HTML page instead, the page is
    returned in ``full_document`` for the caller to adopt on confirmation.
    """
    applier = applier or PatchApplier()
    parsed = parse_edits(patch_text)
    if not parsed.edits:
        text = document.text if isinstance(document, Document) else document
        reason = ("response is a full document instead of edit blocks"
                  if parsed.protocol_violation else "no edit blocks found")
        stats = PatchStats(total=1, failed=1, failures=[
            EditFailure(-1, FailureKind.PROTOCOL_VIOLATION, reason, snippet_prefix(patch_text)),
        ])
        return ApplyResult(text=text, stats=stats, warnings=list(parsed.errors),
                           full_document=parsed.full_document)
    result = applier.apply(document, parsed.edits, relaxed_matching, scope_targets)
    result.warnings[:0] = parsed.errors
    return result
