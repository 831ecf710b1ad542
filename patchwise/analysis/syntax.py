"""
Syntax-tree analyzer built on tree-sitter.

Parses the code region of a document with the JavaScript (JSX), TSX and
TypeScript grammars and exposes the handful of structural queries the rest of
the engine needs: top-level declarations, call-like references, defined
names, error counts.

Uses tree-sitter >= 0.22 API with individual language packages.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

import tree_sitter as ts
import tree_sitter_javascript
import tree_sitter_typescript

from ..cache import BoundedCache, text_key
from ..config import Config
from .region import CodeRegion, extract_code_region

logger = logging.getLogger(__name__)

# Grammar order for the strict pass: JSX-capable JavaScript first
GRAMMAR_ORDER: tuple[str, ...] = ("javascript", "tsx", "typescript")

_GRAMMAR_FUNCS: dict[str, Callable[[], object]] = {
    "javascript": tree_sitter_javascript.language,
    "tsx": tree_sitter_typescript.language_tsx,
    "typescript": tree_sitter_typescript.language_typescript,
}

FUNCTION_LIKE_TYPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
})

_DECLARATION_KINDS = {
    "function_declaration": "function",
    "generator_function_declaration": "function",
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "enum",
}

_PATTERN_NAME_TYPES = frozenset({"identifier", "shorthand_property_identifier_pattern"})


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Declaration:
    """A top-level binding and the span of the statement that introduces it."""
    name: str
    kind: str
    start: int
    end: int
    node: object = None


@dataclass
class ParseUnavailable:
    """No acceptable syntax tree could be produced for a document."""
    reason: str
    available: bool = False


class SyntaxTree:
    """A parsed code region, addressed in document character offsets."""

    available = True

    def __init__(self, document: str, region: CodeRegion, tree, language: str,
                 error_count: int = 0):
        self.document = document
        self.region = region
        self.tree = tree
        self.root = tree.root_node
        self.language = language
        self.error_count = error_count
        self._char_starts: Optional[list[int]] = None
        encoded = region.text.encode("utf-8")
        if len(encoded) != len(region.text):
            # Byte offset of every character, for byte -> char mapping
            starts, pos = [], 0
            for ch in region.text:
                starts.append(pos)
                pos += len(ch.encode("utf-8"))
            self._char_starts = starts

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def walk(self, node=None) -> Iterator:
        """Yield *node* (default: root) and every descendant in pre-order."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def visit(self, callback: Callable[[object], Optional[bool]], node=None) -> None:
        """Call *callback* on every node; a False return skips that node's children."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            if callback(current) is False:
                continue
            stack.extend(reversed(current.children))

    # ------------------------------------------------------------------
    # Offsets
    # ------------------------------------------------------------------

    def _to_char(self, byte_offset: int) -> int:
        if self._char_starts is None:
            return byte_offset
        return bisect.bisect_left(self._char_starts, byte_offset)

    def node_span(self, node) -> tuple[int, int]:
        """Return the ``[start, end)`` document character offsets of *node*."""
        base = self.region.start
        return base + self._to_char(node.start_byte), base + self._to_char(node.end_byte)

    def node_text(self, node) -> str:
        start, end = self.node_span(node)
        return self.document[start:end]

    def line_span(self, node) -> int:
        """Number of source lines *node* covers."""
        return node.end_point[0] - node.start_point[0] + 1

    # ------------------------------------------------------------------
    # Structural queries
    # ------------------------------------------------------------------

    def top_level_declarations(self) -> list[Declaration]:
        """Return every top-level declaration in source order.

        Exported declarations report the span of the whole ``export``
        statement. A ``const``/``let``/``var`` statement with several
        declarators yields one entry per bound name.
        """
        results: list[Declaration] = []
        for stmt in self.root.children:
            inner = stmt
            if stmt.type == "export_statement":
                inner = stmt.child_by_field_name("declaration")
                if inner is None:
                    continue
            start, end = self.node_span(stmt)
            if inner.type in ("lexical_declaration", "variable_declaration"):
                kind = inner.children[0].type if inner.children else "var"
                for child in inner.children:
                    if child.type != "variable_declarator":
                        continue
                    name_node = child.child_by_field_name("name")
                    if name_node is None:
                        continue
                    for ident in self._pattern_identifiers(name_node):
                        results.append(Declaration(ident, kind, start, end, stmt))
            elif inner.type in _DECLARATION_KINDS:
                name_node = inner.child_by_field_name("name")
                if name_node is not None:
                    results.append(Declaration(
                        self.node_text(name_node), _DECLARATION_KINDS[inner.type],
                        start, end, stmt,
                    ))
        return results

    def find_declaration(self, name: str) -> Optional[Declaration]:
        """Return the last top-level declaration of *name*, or None."""
        found = None
        for decl in self.top_level_declarations():
            if decl.name == name:
                found = decl
        return found

    def capitalized_top_level_names(self) -> set[str]:
        return {d.name for d in self.top_level_declarations() if d.name[:1].isupper()}

    def call_like_references(self) -> set[str]:
        """Capitalized identifiers used as callee, ``new`` target or JSX element."""
        refs: set[str] = set()
        for node in self.walk():
            target = None
            if node.type == "call_expression":
                target = node.child_by_field_name("function")
            elif node.type == "new_expression":
                target = node.child_by_field_name("constructor")
            elif node.type in ("jsx_opening_element", "jsx_self_closing_element"):
                target = node.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                name = self.node_text(target)
                if name[:1].isupper():
                    refs.add(name)
        return refs

    def defined_names(self) -> set[str]:
        """Every name bound anywhere in the region (declarations, params, imports)."""
        names: set[str] = set()
        for node in self.walk():
            t = node.type
            if t == "variable_declarator":
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    names.update(self._pattern_identifiers(name_node))
            elif t in _DECLARATION_KINDS or t in ("function_expression", "function",
                                                  "generator_function", "class"):
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    names.add(self.node_text(name_node))
            elif t == "import_specifier":
                alias = node.child_by_field_name("alias") or node.child_by_field_name("name")
                if alias is not None:
                    names.add(self.node_text(alias))
            elif t in ("import_clause", "namespace_import"):
                for child in node.children:
                    if child.type == "identifier":
                        names.add(self.node_text(child))
            elif t == "formal_parameters":
                names.update(self._pattern_identifiers(node))
            elif t == "catch_clause":
                param = node.child_by_field_name("parameter")
                if param is not None:
                    names.update(self._pattern_identifiers(param))
            elif t == "for_in_statement":
                left = node.child_by_field_name("left")
                if left is not None:
                    names.update(self._pattern_identifiers(left))
            elif t == "arrow_function":
                param = node.child_by_field_name("parameter")
                if param is not None:
                    names.add(self.node_text(param))
        return names

    def _pattern_identifiers(self, node) -> list[str]:
        if node.type in _PATTERN_NAME_TYPES:
            return [self.node_text(node)]
        found: list[str] = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in _PATTERN_NAME_TYPES:
                found.append(self.node_text(current))
                continue
            if current.type == "pair_pattern":
                value = current.child_by_field_name("value")
                if value is not None:
                    stack.append(value)
                continue
            if current.type in ("assignment_pattern", "object_assignment_pattern"):
                left = current.child_by_field_name("left")
                if left is not None:
                    stack.append(left)
                continue
            stack.extend(reversed(current.children))
        return found


ParseResult = Union[SyntaxTree, ParseUnavailable]


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

def _count_errors(root) -> tuple[int, int]:
    """Return ``(error_nodes, error_bytes)`` for the tree under *root*."""
    if not root.has_error:
        return 0, 0
    count = size = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_error:
            count += 1
            size += node.end_byte - node.start_byte
            continue
        if node.is_missing:
            count += 1
            size += 1
            continue
        if node.has_error:
            stack.extend(node.children)
    return count, size


class SyntaxAnalyzer:
    """Produces syntax trees for documents, never raising.

    Parameters
    ----------
    config:
        Supplies ``PARSE_ERROR_TOLERANCE`` and ``PARSE_CACHE_SIZE``.
    cache:
        Optional injected cache for parse results; a private one is created
        otherwise.
    """

    def __init__(self, config: Config | None = None, cache: BoundedCache | None = None):
        self._config = config or Config()
        self._cache = cache if cache is not None else BoundedCache(
            self._config.PARSE_CACHE_SIZE, name="parse")
        self._parsers: dict[str, object] = {}

    def _get_parser(self, grammar: str):
        if grammar in self._parsers:
            return self._parsers[grammar]
        parser = None
        try:
            parser = ts.Parser(ts.Language(_GRAMMAR_FUNCS[grammar]()))
        except Exception as exc:
            logger.warning("[Syntax] Cannot load %s grammar: %s", grammar, exc)
        self._parsers[grammar] = parser
        return parser

    def parse(self, document: str) -> ParseResult:
        """
        Parse the code region of *document*.

        Parameters
        ----------
        document:
            Full document text (HTML page or bare JS/JSX/TS source).

        Returns
        -------
        A ``SyntaxTree`` when a strict or acceptably-recovered parse exists,
        otherwise ``ParseUnavailable`` with the reason.
        """
        key = text_key(document)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        result = self._parse_uncached(document)
        self._cache.put(key, result)
        return result

    def _parse_uncached(self, document: str) -> ParseResult:
        region = extract_code_region(document)
        source = region.text.encode("utf-8")
        recovered: list[tuple[int, int, str, object]] = []

        # Strict pass: first grammar yielding an error-free tree wins
        for grammar in GRAMMAR_ORDER:
            parser = self._get_parser(grammar)
            if parser is None:
                continue
            try:
                tree = parser.parse(source)
            except Exception as exc:
                logger.warning("[Syntax] %s parse raised: %s", grammar, exc)
                continue
            errors, error_bytes = _count_errors(tree.root_node)
            if errors == 0:
                return SyntaxTree(document, region, tree, grammar)
            recovered.append((errors, error_bytes, grammar, tree))

        if not recovered:
            return ParseUnavailable("no grammar could parse the code region")

        # Permissive pass: the fewest-error recovery, if errors stay marginal
        errors, error_bytes, grammar, tree = min(recovered, key=lambda r: (r[0], r[1]))
        coverage = error_bytes / max(1, len(source))
        if coverage < self._config.PARSE_ERROR_TOLERANCE:
            logger.debug(
                "[Syntax] Accepted %s tree with %d error node(s) (%.1f%% of region)",
                grammar, errors, coverage * 100,
            )
            return SyntaxTree(document, region, tree, grammar, error_count=errors)

        reason = f"{errors} syntax error(s) covering {coverage:.0%} of the code region"
        logger.debug("[Syntax] Parse unavailable: %s", reason)
        return ParseUnavailable(reason)
