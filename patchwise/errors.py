"""
Failure taxonomy — every engine condition is reported as data.

Only caller-contract violations (``DocumentBusyError``) are raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    """Why a single edit (or a whole batch) did not land."""
    MATCH_NOT_FOUND = "match_not_found"
    VALIDATION_REJECTED = "validation_rejected"
    PARSE_UNAVAILABLE = "parse_unavailable"
    PROTOCOL_VIOLATION = "protocol_violation"


@dataclass
class EditFailure:
    """One failed edit. ``index`` is -1 for batch-level failures."""
    index: int
    kind: FailureKind
    reason: str
    snippet: str = ""

    def describe(self) -> str:
        where = "batch" if self.index < 0 else f"edit #{self.index + 1}"
        return f"{where}: {self.kind.value}: {self.reason}"


class DocumentBusyError(RuntimeError):
    """Raised when a second batch is started on a Document already being edited."""


def snippet_prefix(text: str, limit: int = 60) -> str:
    """Return a one-line prefix of *text* suitable for failure reasons."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
