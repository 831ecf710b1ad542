"""
Brace-balance scanner — a cheap, tree-free view of top-level statements.

Used where a full parse is unnecessary or unavailable: resolving scope
targets to byte ranges, the pure-data compression path, and the validator's
heuristic mode for large documents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_DECL_RE = re.compile(
    r"(?:export\s+(?:default\s+)?)?(?:async\s+)?"
    r"(?P<kind>function\b\s*\*?|class\b|const\b|let\b|var\b)\s*"
    r"(?P<name>[A-Za-z_$][\w$]*|\{[^}]*\}|\[[^\]]*\])?"
)
_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*")
_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}

# A following line starting with one of these continues the statement
_CONTINUATION_STARTS = (".", "?", ":", "+", "-", "*", "/", "&", "|", ",", ")", "]",
                        "}", "=", ">", "<", "else", "catch", "finally")
# A line ending with one of these continues onto the next line
_CONTINUATION_ENDS = ("=", ",", "(", "[", "{", "+", "-", "*", "/", "?", ":", "&&",
                      "||", "=>", ".", "??")


@dataclass
class ScannedDeclaration:
    """A top-level statement found by the scanner.

    ``kind`` is ``function``/``class``/``const``/``let``/``var`` for
    declarations and ``statement`` for anything else. ``value_start`` and
    ``value_end`` delimit the initializer of variable declarations.
    """
    kind: str
    names: list[str] = field(default_factory=list)
    start: int = 0
    end: int = 0
    value_start: int = -1
    value_end: int = -1

    @property
    def name(self) -> str:
        return self.names[0] if self.names else ""

    @property
    def is_declaration(self) -> bool:
        return self.kind != "statement"


def blank_non_code(text: str) -> str:
    """Replace string, template and comment contents with spaces.

    Length and newlines are preserved, so offsets into the result are
    offsets into *text*. Template ``${...}`` substitutions stay visible.
    """
    out = list(text)
    n = len(text)
    i = 0
    # Each frame is a brace depth inside a ``${`` substitution
    template_stack: list[int] = []
    brace_depth = 0

    def blank(a: int, b: int) -> None:
        for k in range(a, min(b, n)):
            if out[k] != "\n":
                out[k] = " "

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
        elif ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
            blank(i, end)
            i = end
        elif ch in ("'", '"'):
            j = i + 1
            while j < n and text[j] != ch and text[j] != "\n":
                j += 2 if text[j] == "\\" else 1
            blank(i + 1, j)
            i = j + 1
        elif ch == "`" or (ch == "}" and template_stack and brace_depth == template_stack[-1]):
            if ch == "}":
                template_stack.pop()
            j = i + 1
            while j < n:
                if text[j] == "\\":
                    j += 2
                    continue
                if text[j] == "`":
                    break
                if text[j] == "$" and j + 1 < n and text[j + 1] == "{":
                    break
                j += 1
            blank(i + 1, j)
            if j < n and text[j] == "$":
                template_stack.append(brace_depth)
                i = j + 2
            else:
                i = j + 1
        else:
            if ch == "{":
                brace_depth += 1
            elif ch == "}":
                brace_depth -= 1
            i += 1
    return "".join(out)


def _line_end(code: str, pos: int) -> int:
    end = code.find("\n", pos)
    return len(code) if end == -1 else end


def _next_nonblank_line(code: str, pos: int) -> str:
    """Return the stripped text of the first non-blank line after *pos*."""
    i = pos
    while i < len(code):
        end = _line_end(code, i)
        stripped = code[i:end].strip()
        if stripped:
            return stripped
        i = end + 1
    return ""


def _statement_end(code: str, start: int, block_end: bool = False) -> int:
    """Return the end offset of the statement starting at *start*.

    With *block_end*, the statement ends right after the first top-level
    ``{...}`` block (function and class declarations).
    """
    depth = 0
    i = start
    n = len(code)
    seen_block = False
    while i < n:
        ch = code[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth <= 0 and ch == "}" and block_end:
                return i + 1
            if depth < 0:
                return i
            if depth == 0 and ch == "}":
                seen_block = True
        elif depth == 0:
            if ch == ";":
                return i + 1
            if ch == "\n":
                line = code[code.rfind("\n", 0, i) + 1:i].strip()
                if line and not line.endswith(_CONTINUATION_ENDS):
                    following = _next_nonblank_line(code, i + 1)
                    if not following.startswith(_CONTINUATION_STARTS):
                        return i
                elif not line and seen_block:
                    return i
        i += 1
    return n


def _pattern_names(pattern: str) -> list[str]:
    """Extract bound names from a destructuring pattern like ``{ a, b: c }``."""
    names: list[str] = []
    for part in pattern.strip("{}[] ").split(","):
        part = part.split("=")[0]
        if ":" in part:
            part = part.split(":", 1)[1]
        m = _IDENT_RE.search(part.replace("...", ""))
        if m:
            names.append(m.group(0))
    return names


def scan_top_level(text: str) -> list[ScannedDeclaration]:
    """Return every top-level statement of *text* in order."""
    code = blank_non_code(text)
    results: list[ScannedDeclaration] = []
    n = len(code)
    i = 0
    while i < n:
        if code[i].isspace():
            i += 1
            continue
        if code[i] in _CLOSERS:
            # Stray closer at top level (broken input); skip it
            i += 1
            continue
        m = _DECL_RE.match(code, i)
        if m and m.group("name"):
            kind = re.sub(r"[\s*]", "", m.group("kind"))
            raw_name = m.group("name")
            names = _pattern_names(raw_name) if raw_name[0] in "{[" else [raw_name]
            if kind in ("function", "class"):
                end = _statement_end(code, m.end(), block_end=True)
                decl = ScannedDeclaration(kind, names, i, end)
            else:
                end = _statement_end(code, m.end())
                decl = ScannedDeclaration(kind, names, i, end)
                eq = code.find("=", m.end(), end)
                if eq != -1:
                    v_start = eq + 1
                    while v_start < end and code[v_start].isspace():
                        v_start += 1
                    v_end = end
                    while v_end > v_start and (code[v_end - 1].isspace() or code[v_end - 1] == ";"):
                        v_end -= 1
                    decl.value_start, decl.value_end = v_start, v_end
            results.append(decl)
            i = max(end, i + 1)
            continue
        end = _statement_end(code, i)
        results.append(ScannedDeclaration("statement", [], i, end))
        i = max(end, i + 1)
    return results


def find_top_level(text: str, name: str) -> ScannedDeclaration | None:
    """Return the last top-level declaration binding *name*, or None."""
    found = None
    for decl in scan_top_level(text):
        if decl.is_declaration and name in decl.names:
            found = decl
    return found
