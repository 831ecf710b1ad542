"""
Code region extraction — locates the script body inside an HTML document.

Generated apps are single HTML files whose logic lives in one inline
``<script>`` (usually ``type="text/babel"``). Everything structural (parsing,
reference checks, compression) works on that region; plain JS/JSX sources
are their own region.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SCRIPT_RE = re.compile(
    r"<script(?P<attrs>[^>]*)>(?P<body>.*?)</script\s*>",
    re.IGNORECASE | re.DOTALL,
)
_SRC_ATTR_RE = re.compile(r"\bsrc\s*=", re.IGNORECASE)
_TYPE_ATTR_RE = re.compile(r"\btype\s*=\s*[\"']?([\w/+.-]+)", re.IGNORECASE)
_HTML_MARKERS = re.compile(r"<!doctype|<html[\s>]|<head[\s>]|<body[\s>]", re.IGNORECASE)

# Script types whose content is data, not code
_NON_CODE_TYPES = {"application/json", "application/ld+json", "importmap", "text/template"}


@dataclass(frozen=True)
class CodeRegion:
    """The code portion of a document: ``document[start:end] == text``."""
    start: int
    end: int
    text: str

    @property
    def is_whole_document(self) -> bool:
        return self.start == 0

    def line_count(self) -> int:
        return self.text.count("\n") + 1 if self.text else 0


def looks_like_html(document: str) -> bool:
    """Return True when *document* is an HTML page rather than bare code."""
    return bool(_HTML_MARKERS.search(document[:4096])) or "<script" in document.lower()


def extract_code_region(document: str) -> CodeRegion:
    """Return the largest inline script body, or the whole text for bare code."""
    if not looks_like_html(document):
        return CodeRegion(0, len(document), document)

    best: CodeRegion | None = None
    for m in _SCRIPT_RE.finditer(document):
        attrs = m.group("attrs")
        if _SRC_ATTR_RE.search(attrs):
            continue
        type_match = _TYPE_ATTR_RE.search(attrs)
        if type_match and type_match.group(1).lower() in _NON_CODE_TYPES:
            continue
        body = m.group("body")
        if not body.strip():
            continue
        if best is None or len(body) > len(best.text):
            best = CodeRegion(m.start("body"), m.end("body"), body)

    if best is None:
        # HTML with no inline code: nothing structural to analyze
        return CodeRegion(len(document), len(document), "")
    return best
