"""
Scope resolver — turns scope target names (``["Header", "useCart"]``) into
the character ranges an edit is allowed to touch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import Optional

from ..analysis.region import extract_code_region
from ..analysis.scanner import scan_top_level
from ..analysis.syntax import FUNCTION_LIKE_TYPES

logger = logging.getLogger(__name__)


@dataclass
class SymbolRange:
    """A named declaration and the document range it covers."""
    symbol_name: str
    symbol_type: str  # "function"|"class"|"const"|"let"|"var"|"nested"
    start: int
    end: int
    line_start: int
    line_end: int


@dataclass
class EditScope:
    """The resolved scope of a batch of edits."""
    symbols: list[SymbolRange] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    resolution_method: str = "unrestricted"  # "top_level_scan"|"tree_lookup"|"unrestricted"

    @property
    def ranges(self) -> Optional[list[tuple[int, int]]]:
        """Allowed ``[start, end)`` ranges, or None when edits are unrestricted."""
        if not self.symbols:
            return None
        return [(s.start, s.end) for s in self.symbols]


class ScopeResolver:
    """Resolve scope target names against a document."""

    def __init__(self, analyzer=None) -> None:
        """
        Parameters
        ----------
        analyzer:
            Optional ``SyntaxAnalyzer``; used to find nested declarations
            (inner functions, methods) the top-level scan cannot see.
        """
        self._analyzer = analyzer

    def resolve(self, document: str, targets: Optional[list[str]],
                warn: bool = True) -> EditScope:
        """Resolve *targets* to character ranges of *document*.

        Unknown names become warnings (logged unless *warn* is False) and
        are ignored. When no target resolves, the scope is unrestricted.
        """
        scope = EditScope()
        if not targets:
            return scope

        region = extract_code_region(document)
        declarations = [d for d in scan_top_level(region.text) if d.is_declaration]
        known: dict[str, object] = {}
        for decl in declarations:
            for name in decl.names:
                known[name] = decl

        for target in dict.fromkeys(targets):
            decl = known.get(target)
            if decl is not None:
                start, end = region.start + decl.start, region.start + decl.end
                scope.symbols.append(self._make_range(document, target, decl.kind, start, end))
                scope.resolution_method = "top_level_scan"
                continue
            nested = self._resolve_nested(document, target)
            if nested is not None:
                scope.symbols.append(nested)
                if scope.resolution_method == "unrestricted":
                    scope.resolution_method = "tree_lookup"
                continue
            scope.unresolved.append(target)
            close = get_close_matches(target, list(known), n=1)
            hint = f" (did you mean {close[0]!r}?)" if close else ""
            scope.warnings.append(f"unknown scope target {target!r}{hint}")
            if warn:
                logger.warning("[Patch] Unknown scope target %r%s", target, hint)

        if not scope.symbols:
            scope.resolution_method = "unrestricted"
        return scope

    def _resolve_nested(self, document: str, target: str) -> Optional[SymbolRange]:
        if self._analyzer is None:
            return None
        tree = self._analyzer.parse(document)
        if not tree.available:
            return None
        for node in tree.walk():
            if node.type in FUNCTION_LIKE_TYPES or node.type == "class_declaration":
                name_node = node.child_by_field_name("name")
            elif node.type == "variable_declarator":
                name_node = node.child_by_field_name("name")
            else:
                continue
            if name_node is not None and tree.node_text(name_node) == target:
                start, end = tree.node_span(node)
                return self._make_range(document, target, "nested", start, end)
        return None

    @staticmethod
    def _make_range(document: str, name: str, kind: str, start: int, end: int) -> SymbolRange:
        line_start = document.count("\n", 0, start) + 1
        line_end = line_start + document.count("\n", start, end)
        return SymbolRange(name, kind, start, end, line_start, line_end)
