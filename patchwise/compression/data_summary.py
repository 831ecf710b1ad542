"""
Pure-data summarization: documents that only declare constants keep every
name, but long array/object literals are reduced to a count stub.
"""

from __future__ import annotations

import re

from ..analysis.scanner import ScannedDeclaration, blank_non_code

_FUNCTION_MARKERS = re.compile(r"=>|\bfunction\b|\bclass\b")
_MAX_LISTED_KEYS = 10


def is_pure_data(code: str, declarations: list[ScannedDeclaration]) -> bool:
    """True when every top-level statement is a non-function variable declaration."""
    if not declarations:
        return False
    blanked = blank_non_code(code)
    for decl in declarations:
        if decl.kind not in ("const", "let", "var"):
            return False
        if _FUNCTION_MARKERS.search(blanked[decl.start:decl.end]):
            return False
    return True


def split_top_level(body: str) -> list[str]:
    """Split the inside of a literal on depth-0 commas (string-aware)."""
    blanked = blank_non_code(body)
    parts: list[str] = []
    depth = 0
    last = 0
    for i, ch in enumerate(blanked):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(body[last:i])
            last = i + 1
    parts.append(body[last:])
    return [p for p in parts if p.strip()]


def _encloses_whole(value: str) -> bool:
    """The bracket opening *value* closes at its last character."""
    blanked = blank_non_code(value)
    depth = 0
    for i, ch in enumerate(blanked):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return i == len(blanked.rstrip()) - 1
    return False


def _key_of(entry: str) -> str:
    entry = entry.strip()
    if entry.startswith("..."):
        return entry
    blanked = blank_non_code(entry)
    depth = 0
    for i, ch in enumerate(blanked):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == ":" and depth == 0:
            return entry[:i].strip().strip("\"'`")
    return entry.split("(")[0].strip()


def summarize_literal(value: str) -> str | None:
    """Return the stub for an array/object literal, or None if *value* is not one."""
    value = value.strip()
    if not value or value[0] not in "[{" or not _encloses_whole(value):
        return None
    entries = split_top_level(value[1:-1])
    if value[0] == "[":
        return f"[/* {len(entries)} items */]"
    keys = [_key_of(e) for e in entries]
    listed = ", ".join(keys[:_MAX_LISTED_KEYS])
    if len(keys) > _MAX_LISTED_KEYS:
        listed += ", ..."
    return f"{{ /* {len(keys)} keys: {listed} */ }}"


def summarize_declarations(
    code: str,
    declarations: list[ScannedDeclaration],
    min_chars: int,
    keep_names: frozenset[str] = frozenset(),
) -> list[tuple[int, int, str]]:
    """Return ``(start, end, stub)`` replacements (offsets into *code*)."""
    replacements = []
    for decl in declarations:
        if decl.value_start < 0 or keep_names.intersection(decl.names):
            continue
        value = code[decl.value_start:decl.value_end]
        if len(value) < min_chars:
            continue
        stub = summarize_literal(value)
        if stub is not None:
            replacements.append((decl.value_start, decl.value_end, stub))
    return replacements
