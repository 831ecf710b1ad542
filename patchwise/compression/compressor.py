"""
Structural compressor — shrinks a document before it is shown to the LLM by
collapsing large function bodies into stub comments.

The stubs are recognizable placeholders; the patch applier rejects any
search snippet that copies one, so compressed views never leak back into
real edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..analysis.region import extract_code_region
from ..analysis.scanner import scan_top_level
from ..analysis.syntax import FUNCTION_LIKE_TYPES, SyntaxAnalyzer, SyntaxTree
from ..config import Config
from .data_summary import is_pure_data, summarize_declarations
from .intent import EditIntent, profile_for

logger = logging.getLogger(__name__)


@dataclass
class SkeletonNode:
    """A function-like node considered for collapsing."""
    name: str
    kind: str
    start: int
    end: int
    body_start: int
    body_end: int
    size: int  # body size in lines
    hidden: bool = False


@dataclass
class CompressionStats:
    original_lines: int
    result_lines: int
    hidden: int = 0
    strategy: str = "skipped"  # "skipped"|"tree"|"data"|"truncate"|"unchanged"
    saved_percent: float = 0.0

    def to_dict(self) -> dict:
        return {
            "original_lines": self.original_lines,
            "result_lines": self.result_lines,
            "hidden": self.hidden,
            "strategy": self.strategy,
            "saved_percent": self.saved_percent,
        }


@dataclass
class CompressionResult:
    code: str
    stats: CompressionStats
    nodes: list[SkeletonNode] = field(default_factory=list)


def _line_count(text: str) -> int:
    return text.count("\n") + 1 if text else 0


def _function_name(tree: SyntaxTree, node) -> str:
    name = node.child_by_field_name("name")
    if name is not None:
        return tree.node_text(name)
    parent = node.parent
    if parent is None:
        return "anonymous"
    if parent.type == "variable_declarator":
        target = parent.child_by_field_name("name")
    elif parent.type == "pair":
        target = parent.child_by_field_name("key")
    elif parent.type == "assignment_expression":
        target = parent.child_by_field_name("left")
    elif parent.type == "arguments" and parent.parent is not None:
        callee = parent.parent.child_by_field_name("function")
        return f"{tree.node_text(callee)} callback" if callee is not None else "callback"
    else:
        return "anonymous"
    return tree.node_text(target) if target is not None else "anonymous"


def _splice(document: str, replacements: Iterable[tuple[int, int, str]]) -> str:
    """Apply non-overlapping ``(start, end, text)`` replacements back to front."""
    result = document
    for start, end, text in sorted(replacements, key=lambda r: r[0], reverse=True):
        result = result[:start] + text + result[end:]
    return result


class StructuralCompressor:
    """Intent-tuned document compressor.

    Parameters
    ----------
    config:
        Supplies the size floor, truncation length, data-summary size and
        maximum hide fraction.
    analyzer:
        Shared ``SyntaxAnalyzer``; a private one is created otherwise.
    """

    def __init__(self, config: Config | None = None, analyzer: SyntaxAnalyzer | None = None):
        self._config = config or Config()
        self._analyzer = analyzer or SyntaxAnalyzer(self._config)

    def compress(
        self,
        code: str,
        intent: EditIntent = EditIntent.UNKNOWN,
        min_lines_floor: Optional[int] = None,
        keep_names: Iterable[str] = (),
    ) -> CompressionResult:
        """
        Compress *code* for display to the LLM.

        Parameters
        ----------
        code:
            The full document (HTML page or bare source).
        intent:
            Selects the collapse threshold (see ``IntentProfile``).
        min_lines_floor:
            Documents shorter than this are returned untouched.
        keep_names:
            Functions/constants that must stay fully visible.

        Returns
        -------
        CompressionResult
            The compressed text and its stats; ``stats.hidden == 0`` means
            the text is identical to the input.
        """
        original_lines = _line_count(code)
        floor = self._config.COMPRESSION_MIN_LINES if min_lines_floor is None else min_lines_floor
        if original_lines < floor:
            return CompressionResult(code, CompressionStats(original_lines, original_lines))

        keep = frozenset(keep_names)
        region = extract_code_region(code)
        declarations = scan_top_level(region.text)

        if is_pure_data(region.text, declarations):
            stubs = summarize_declarations(region.text, declarations,
                                           self._config.DATA_SUMMARY_MIN_CHARS, keep)
            replacements = [(region.start + s, region.start + e, t) for s, e, t in stubs]
            return self._guard(code, _splice(code, replacements), len(replacements), "data")

        tree = self._analyzer.parse(code)
        if not tree.available:
            logger.info("[Compress] Parse unavailable (%s); truncating", tree.reason)
            return self._truncate(code)

        threshold = profile_for(intent).compression_threshold
        nodes = self._collapsible_nodes(tree, threshold, keep, region.line_count())
        replacements = [
            (n.body_start, n.body_end, f"{{ /* ... {n.size} lines hidden: {n.name} */ }}")
            for n in nodes
        ]
        result = self._guard(code, _splice(code, replacements), len(replacements), "tree")
        result.nodes = nodes
        return result

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _collapsible_nodes(self, tree: SyntaxTree, threshold: int, keep: frozenset[str],
                           region_lines: int) -> list[SkeletonNode]:
        max_size = self._config.MAX_HIDE_FRACTION * region_lines
        nodes: list[SkeletonNode] = []

        def consider(node):
            if node.type not in FUNCTION_LIKE_TYPES:
                return None
            body = node.child_by_field_name("body")
            if body is None or body.type != "statement_block":
                return None
            size = tree.line_span(body)
            name = _function_name(tree, node)
            if size < threshold or size > max_size or name in keep:
                return None
            start, end = tree.node_span(node)
            body_start, body_end = tree.node_span(body)
            nodes.append(SkeletonNode(name, node.type, start, end, body_start, body_end,
                                      size, hidden=True))
            # Nested functions go with the collapsed body
            return False

        tree.visit(consider)
        return nodes

    def _truncate(self, code: str) -> CompressionResult:
        lines = code.split("\n")
        keep = self._config.TRUNCATE_LINES
        if len(lines) <= keep:
            return CompressionResult(code, CompressionStats(len(lines), len(lines), strategy="unchanged"))
        dropped = len(lines) - keep
        truncated = "\n".join(lines[:keep] + [f"// ... {dropped} lines truncated"])
        return self._guard(code, truncated, 1, "truncate")

    def _guard(self, original: str, candidate: str, hidden: int, strategy: str) -> CompressionResult:
        """Keep the candidate only if it hides something and is strictly smaller."""
        original_lines = _line_count(original)
        result_lines = _line_count(candidate)
        if hidden == 0 or len(candidate) >= len(original) or result_lines > original_lines:
            return CompressionResult(
                original, CompressionStats(original_lines, original_lines, strategy="unchanged")
            )
        saved = round((1 - len(candidate) / len(original)) * 100, 1)
        logger.info("[Compress] %s: %d -> %d lines, %d hidden (%.1f%% saved)",
                    strategy, original_lines, result_lines, hidden, saved)
        return CompressionResult(
            candidate, CompressionStats(original_lines, result_lines, hidden, strategy, saved)
        )


def compress(
    code: str,
    intent: EditIntent = EditIntent.UNKNOWN,
    min_lines_floor: Optional[int] = None,
    keep_names: Iterable[str] = (),
    config: Config | None = None,
) -> CompressionResult:
    return StructuralCompressor(config).compress(code, intent, min_lines_floor, keep_names)
