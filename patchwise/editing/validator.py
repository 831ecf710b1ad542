"""
Validator — the gate every candidate document must pass before it replaces
the working copy.

Per-edit checks run in order: truncation sanity, structural parse, reference
integrity, definition loss, then the corrective duplicate-binding cleanup.
Batch checks add the size ratio and re-run the structural and reference
checks for the whole batch against the pre-batch document.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ..analysis.region import extract_code_region
from ..analysis.scanner import blank_non_code, scan_top_level
from ..analysis.syntax import SyntaxAnalyzer
from ..config import Config
from ..errors import FailureKind

logger = logging.getLogger(__name__)

# Environment globals a generated single-page app may call without defining
ALLOWED_GLOBALS = frozenset({
    "window", "document", "console", "fetch", "setTimeout", "setInterval",
    "clearTimeout", "clearInterval", "Promise", "JSON", "Math", "Date",
    "Array", "Object", "String", "Number", "Boolean", "Function", "BigInt",
    "Map", "Set", "WeakMap", "WeakSet", "Symbol", "Proxy", "Reflect", "Intl",
    "Error", "TypeError", "SyntaxError", "ReferenceError", "RangeError",
    "React", "ReactDOM", "useState", "useEffect", "useRef", "useCallback", "useMemo",
    "useContext", "useReducer", "useLayoutEffect", "useImperativeHandle",
    "createContext", "forwardRef", "memo", "lazy", "Suspense", "Fragment",
    "require", "module", "exports", "process", "global", "globalThis", "Buffer",
    "alert", "confirm", "prompt", "location", "history", "navigator",
    "localStorage", "sessionStorage", "indexedDB",
    "XMLHttpRequest", "FormData", "Blob", "File", "FileReader",
    "URL", "URLSearchParams", "Headers", "Request", "Response", "AbortController",
    "Event", "CustomEvent", "MouseEvent", "KeyboardEvent",
    "HTMLElement", "Element", "Node", "NodeList", "Image", "Audio", "AudioContext",
    "requestAnimationFrame", "cancelAnimationFrame", "WebSocket", "Worker",
    "getComputedStyle", "matchMedia", "ResizeObserver", "IntersectionObserver",
    "MutationObserver", "TextEncoder", "TextDecoder", "ArrayBuffer", "DataView",
    "Uint8Array", "Int32Array", "Float32Array", "Float64Array", "Notification",
    "performance", "crypto", "atob", "btoa",
    "axios", "lodash", "_", "moment", "dayjs",
})

_CALL_RE = re.compile(r"(?<![\w$.])([A-Z][\w$]*)\s*\(")
_JSX_RE = re.compile(r"<([A-Z][\w$]*)")
_NEW_RE = re.compile(r"\bnew\s+([A-Z][\w$]*)")
_BINDING_RE = re.compile(r"\b(?:const|let|var|function\s*\*?|class)\s+([A-Za-z_$][\w$]*)")
_IMPORT_DEFAULT_RE = re.compile(r"\bimport\s+([A-Za-z_$][\w$]*)")
_IMPORT_NAMED_RE = re.compile(r"\bimport\s*(?:[\w$]+\s*,\s*)?\{([^}]*)\}")


@dataclass
class ValidationResult:
    """Outcome of a validation pass.

    ``text`` is the candidate after corrective cleanup; ``check`` names the
    failing check (empty when ``ok``).
    """
    ok: bool
    reason: str = ""
    check: str = ""
    text: str = ""
    corrections: list[str] = field(default_factory=list)
    parse_unavailable: bool = False

    @property
    def kind(self) -> FailureKind:
        if self.parse_unavailable:
            return FailureKind.PARSE_UNAVAILABLE
        return FailureKind.VALIDATION_REJECTED


class _Facts:
    """Names and references of one document, from the tree or from regexes."""

    def __init__(self, document: str, tree=None):
        self.document = document
        self.tree = tree if tree is not None and tree.available else None
        self._region = None
        self._code = None

    @property
    def region(self):
        if self._region is None:
            self._region = extract_code_region(self.document)
        return self._region

    @property
    def code(self) -> str:
        if self._code is None:
            self._code = blank_non_code(self.region.text)
        return self._code

    def top_level(self) -> list[tuple[str, int, int, int]]:
        """``(name, start, end, names_in_statement)`` per top-level binding."""
        if self.tree is not None:
            decls = self.tree.top_level_declarations()
            per_stmt: dict[int, int] = {}
            for d in decls:
                per_stmt[d.start] = per_stmt.get(d.start, 0) + 1
            return [(d.name, d.start, d.end, per_stmt[d.start]) for d in decls]
        base = self.region.start
        out = []
        for decl in scan_top_level(self.region.text):
            if decl.is_declaration:
                for name in decl.names:
                    out.append((name, base + decl.start, base + decl.end, len(decl.names)))
        return out

    def capitalized_top_level(self) -> set[str]:
        return {name for name, *_ in self.top_level() if name[:1].isupper()}

    def references(self) -> set[str]:
        if self.tree is not None:
            return self.tree.call_like_references()
        refs: set[str] = set()
        for pattern in (_CALL_RE, _JSX_RE, _NEW_RE):
            refs.update(pattern.findall(self.code))
        return refs

    def definitions(self) -> set[str]:
        if self.tree is not None:
            return self.tree.defined_names()
        names = {name for name, *_ in self.top_level()}
        names.update(_BINDING_RE.findall(self.code))
        names.update(_IMPORT_DEFAULT_RE.findall(self.code))
        for group in _IMPORT_NAMED_RE.findall(self.code):
            for part in group.split(","):
                bound = part.split(" as ")[-1].strip()
                if bound:
                    names.add(bound)
        return names

    def unresolved(self, allowed: frozenset[str]) -> set[str]:
        return self.references() - self.definitions() - allowed


class Validator:
    """Multi-check gate for candidate documents.

    Parameters
    ----------
    analyzer:
        Shared ``SyntaxAnalyzer`` (its parse cache makes repeated baselines cheap).
    config:
        Thresholds and extra allow-listed globals.
    """

    def __init__(self, analyzer: SyntaxAnalyzer | None = None, config: Config | None = None):
        self._config = config or Config()
        self._analyzer = analyzer or SyntaxAnalyzer(self._config)
        self._allowed = ALLOWED_GLOBALS | frozenset(self._config.EXTRA_GLOBALS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_edit(self, before: str, candidate: str, heuristic: bool = False) -> ValidationResult:
        """Run the per-edit checks on *candidate* relative to *before*.

        Parameters
        ----------
        before:
            The working copy the edit was applied to.
        candidate:
            The working copy with the edit applied.
        heuristic:
            Skip the structural parse and resolve names without a tree.

        Returns
        -------
        ValidationResult
            On success ``text`` holds the candidate after duplicate cleanup.
        """
        failure = self._check_truncation(before, candidate)
        if failure:
            return failure

        before_facts, after_facts, failure = self._facts(before, candidate, heuristic)
        if failure:
            return failure

        failure = self._check_references(before_facts, after_facts)
        if failure:
            return failure

        failure = self._check_definition_loss(before_facts, after_facts)
        if failure:
            return failure

        text, corrections = self._dedupe_bindings(after_facts)
        return ValidationResult(True, text=text, corrections=corrections)

    def check_batch(self, original: str, final: str, heuristic: bool = False) -> ValidationResult:
        """Run the whole-batch checks on *final* relative to the pre-batch *original*."""
        failure = self._check_truncation(original, final) or self._check_size_ratio(original, final)
        if failure:
            return failure

        before_facts, after_facts, failure = self._facts(original, final, heuristic)
        if failure:
            return failure

        failure = self._check_references(before_facts, after_facts)
        if failure:
            return failure
        return ValidationResult(True, text=final)

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _check_truncation(self, before: str, candidate: str) -> Optional[ValidationResult]:
        if (len(candidate) < self._config.TRUNCATION_MIN_CHARS
                and len(before) > self._config.TRUNCATION_ORIGINAL_CHARS):
            reason = (f"candidate looks truncated ({len(candidate)} chars, "
                      f"was {len(before)})")
            logger.warning("[Validate] %s", reason)
            return ValidationResult(False, reason, "truncation")
        return None

    def _check_size_ratio(self, original: str, final: str) -> Optional[ValidationResult]:
        if not original:
            return None
        ratio = len(final) / len(original)
        if not (self._config.SIZE_RATIO_MIN <= ratio <= self._config.SIZE_RATIO_MAX):
            reason = (f"size ratio {ratio:.2f} outside "
                      f"[{self._config.SIZE_RATIO_MIN}, {self._config.SIZE_RATIO_MAX}]")
            logger.warning("[Validate] %s", reason)
            return ValidationResult(False, reason, "size_ratio")
        return None

    def _facts(self, before: str, candidate: str, heuristic: bool):
        """Build both documents' facts; runs the structural parse check unless heuristic."""
        if heuristic:
            return _Facts(before), _Facts(candidate), None

        before_tree = self._analyzer.parse(before)
        if not before_tree.available:
            # No structural baseline to compare against
            logger.debug("[Validate] Baseline unparseable (%s); using heuristics",
                         before_tree.reason)
            return _Facts(before), _Facts(candidate), None

        after_tree = self._analyzer.parse(candidate)
        if not after_tree.available:
            reason = f"candidate does not parse: {after_tree.reason}"
            logger.info("[Validate] %s", reason)
            return None, None, ValidationResult(False, reason, "syntax", parse_unavailable=True)
        if after_tree.error_count > before_tree.error_count:
            reason = (f"candidate introduces syntax errors "
                      f"({after_tree.error_count} vs {before_tree.error_count})")
            logger.info("[Validate] %s", reason)
            return None, None, ValidationResult(False, reason, "syntax")
        return _Facts(before, before_tree), _Facts(candidate, after_tree), None

    def _check_references(self, before: _Facts, after: _Facts) -> Optional[ValidationResult]:
        # Only names that resolved before the edit can fail it
        broken = after.unresolved(self._allowed) - before.unresolved(self._allowed)
        if broken:
            names = ", ".join(sorted(broken))
            reason = f"unresolved reference(s): {names}"
            logger.info("[Validate] %s", reason)
            return ValidationResult(False, reason, "references")
        return None

    def _check_definition_loss(self, before: _Facts, after: _Facts) -> Optional[ValidationResult]:
        lost = before.capitalized_top_level() - after.capitalized_top_level()
        region_text = after.region.text
        still_used = sorted(
            name for name in lost
            if re.search(rf"(?<![\w$]){re.escape(name)}(?![\w$])", region_text)
        )
        if still_used:
            reason = f"definition removed but still referenced: {', '.join(still_used)}"
            logger.info("[Validate] %s", reason)
            return ValidationResult(False, reason, "definition_loss")
        return None

    def _dedupe_bindings(self, facts: _Facts) -> tuple[str, list[str]]:
        """Drop earlier duplicate top-level definitions, keeping the later one."""
        entries = facts.top_level()
        last_seen: dict[str, int] = {}
        for name, start, _end, _count in entries:
            last_seen[name] = start
        spans: dict[int, tuple[int, str]] = {}
        for name, start, end, count in entries:
            # Statements binding several names are only dropped when one is duplicated
            if start != last_seen[name] and count == 1:
                spans[start] = (end, name)

        text = facts.document
        if not spans:
            return text, []
        corrections = []
        for start in sorted(spans, reverse=True):
            end, name = spans[start]
            if text[end:end + 1] == "\n":
                end += 1
            text = text[:start] + text[end:]
            corrections.append(f"removed earlier duplicate definition of {name}")
            logger.info("[Validate] Removed earlier duplicate definition of %s", name)
        corrections.reverse()
        return text, corrections
