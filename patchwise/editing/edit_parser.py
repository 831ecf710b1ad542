"""
Edit parser — parses the search/replace block format returned by the LLM
into ``Edit`` operations.

Accepted forms::

    <<<<SEARCH @L42-L58>>>>          (hint and closing >>>> optional)
    ...code to find...
    ====                             (also =======, ==== REPLACE, >>>>REPLACE)
    ...replacement...
    >>>>                             (optional at end of input / before next block)

    <<<<AST_REPLACE: Name>>>>
    ...complete new definition of Name...
    >>>>                             (or <<<<AST_REPLACE_END>>>>)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

# Block openers
_OPENER_PATTERN = re.compile(
    r"<<<<\s*(?:"
    r"SEARCH(?:[ \t]*@L(?P<l1>\d+)(?:[ \t]*-[ \t]*L?(?P<l2>\d+))?)?[ \t]*(?:>>>>)?"
    r"|AST_REPLACE[ \t]*:[ \t]*(?P<target>[A-Za-z_$][\w$]*)[ \t]*(?:>>>>)?"
    r")"
)
# Separators, own-line form first, then inline
_SEPARATOR_LINE = re.compile(r"^[ \t]*(?:={4,}[ \t]*(?:REPLACE)?|>>>>[ \t]*REPLACE)[ \t]*$",
                             re.MULTILINE)
_SEPARATOR_INLINE = re.compile(r"={4,}(?:[ \t]*REPLACE)?|>>>>[ \t]*REPLACE")
_CLOSER_LINE = re.compile(r"^[ \t]*>{4,}[ \t]*$", re.MULTILINE)
_AST_END = re.compile(r"<<<<\s*AST_REPLACE_END\s*>>>>")

_NOISE_LINE = re.compile(r"^(?:///|summary:|changes:)", re.IGNORECASE)
_HTML_DOC = re.compile(r"(?:<!DOCTYPE\s+html|<html[\s>]).*?</html\s*>", re.IGNORECASE | re.DOTALL)


@dataclass
class Edit:
    """A single search/replace operation.

    ``line_hint`` is a 1-indexed ``(start, end)`` line pair. When
    ``target_identifier`` is set the edit replaces that top-level declaration
    and ``search`` may be empty.
    """
    search: str
    replace: str
    line_hint: Optional[tuple[int, int]] = None
    target_identifier: Optional[str] = None

    @property
    def is_noop(self) -> bool:
        return self.target_identifier is None and self.search == self.replace


@dataclass
class ParsedEdits:
    """Everything recovered from one LLM response."""
    edits: list[Edit] = field(default_factory=list)
    protocol_violation: bool = False
    full_document: str = ""
    errors: list[str] = field(default_factory=list)

    @property
    def parse_successful(self) -> bool:
        return bool(self.edits)


def contains_full_document(text: str) -> bool:
    """True when *text* embeds a complete HTML page."""
    return _HTML_DOC.search(text) is not None


def extract_full_document(text: str) -> str:
    m = _HTML_DOC.search(text)
    return m.group(0) if m else ""


class EditParser:
    """Parse search/replace blocks from LLM responses."""

    def parse(self, llm_response: str) -> ParsedEdits:
        """Parse every edit block in the LLM response.

        Parameters
        ----------
        llm_response:
            The raw LLM response text.

        Returns
        -------
        ParsedEdits
            The edits in order of appearance. A response without any block
            that carries a full HTML page instead is flagged as a protocol
            violation, with the page in ``full_document``.
        """
        result = ParsedEdits()
        openers = list(_OPENER_PATTERN.finditer(llm_response))

        for i, opener in enumerate(openers):
            body_end = openers[i + 1].start() if i + 1 < len(openers) else len(llm_response)
            body = llm_response[opener.end():body_end]
            if opener.group("target"):
                edit = self._parse_ast_block(opener.group("target"), body)
            else:
                edit = self._parse_search_block(body, opener, i, result.errors)
            if edit is not None:
                result.edits.append(edit)

        if not result.edits:
            if contains_full_document(llm_response):
                result.protocol_violation = True
                result.full_document = extract_full_document(llm_response)
                logger.warning("[Patch] Response is a full document instead of edit blocks")
            elif not openers:
                result.errors.append("no edit blocks found")
                logger.warning("[Patch] No edit blocks found in LLM response")
        return result

    # ------------------------------------------------------------------
    # Block parsing
    # ------------------------------------------------------------------

    def _parse_search_block(self, body: str, opener, index: int,
                            errors: list[str]) -> Optional[Edit]:
        sep = _SEPARATOR_LINE.search(body) or _SEPARATOR_INLINE.search(body)
        if sep is None:
            errors.append(f"block #{index + 1}: missing ==== separator")
            logger.warning("[Patch] Missing separator in block #%d", index + 1)
            return None

        search_text = body[:sep.start()]
        remaining = body[sep.end():]
        closer = _CLOSER_LINE.search(remaining)
        if closer:
            replace_text = remaining[:closer.start()]
        else:
            replace_text = remaining.rstrip()
            if replace_text.endswith(">>>>"):
                replace_text = replace_text.rstrip(">")

        line_hint = None
        if opener.group("l1"):
            start = int(opener.group("l1"))
            end = int(opener.group("l2") or start)
            line_hint = (start, max(start, end))

        return Edit(
            search=self._clean(self._drop_noise(search_text)),
            replace=self._clean(replace_text),
            line_hint=line_hint,
        )

    def _parse_ast_block(self, target: str, body: str) -> Edit:
        end = _AST_END.search(body)
        if end:
            body = body[:end.start()]
        else:
            closer = _CLOSER_LINE.search(body)
            if closer:
                body = body[:closer.start()]
        return Edit(search="", replace=self._clean(body), target_identifier=target)

    @staticmethod
    def _drop_noise(text: str) -> str:
        return "\n".join(
            line for line in text.split("\n") if not _NOISE_LINE.match(line.strip())
        )

    @staticmethod
    def _clean(text: str) -> str:
        """Remove leading/trailing empty lines but preserve internal ones."""
        lines = text.split("\n")
        while lines and not lines[0].strip():
            lines.pop(0)
        while lines and not lines[-1].strip():
            lines.pop()
        return "\n".join(line.rstrip() for line in lines)


def parse_edits(text: str) -> ParsedEdits:
    return EditParser().parse(text)
