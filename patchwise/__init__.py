"""patchwise — applies LLM-authored search/replace edits to single-file documents."""

from .config import Config
from .errors import FailureKind, EditFailure, DocumentBusyError
from .editing import (
    Edit, ParsedEdits, parse_edits, PatchApplier, ApplyResult, PatchStats, Document,
    apply_edits, apply_patch_text, SelfRepairLoop, RepairResult,
)
from .compression import (
    EditIntent, Classification, CompressionResult, classify, compress,
)

__version__ = "0.1.0"

__all__ = [
    "Config", "FailureKind", "EditFailure", "DocumentBusyError",
    "Edit", "ParsedEdits", "parse_edits", "PatchApplier", "ApplyResult", "PatchStats",
    "Document", "apply_edits", "apply_patch_text", "SelfRepairLoop", "RepairResult",
    "EditIntent", "Classification", "CompressionResult", "classify", "compress",
]
