"""Search/replace editing — matching, validation and transactional application."""

from .edit_parser import Edit, EditParser, ParsedEdits, parse_edits
from .matcher import Matcher, MatchRequest, MatchOutcome, MatchSpan, default_strategies
from .scope_resolver import ScopeResolver, EditScope, SymbolRange
from .validator import Validator, ValidationResult, ALLOWED_GLOBALS
from .patch_applier import (
    PatchApplier, ApplyResult, PatchStats, EditReport, Document,
    apply_edits, apply_patch_text,
)
from .self_repair import (
    SelfRepairLoop, RepairResult, RepairPrompt, RepairStats,
    analyze_failure, build_repair_prompt, llm_collaborator,
)
from .metrics import log_edit_metric, read_edit_stats, batch_metric

__all__ = [
    "Edit", "EditParser", "ParsedEdits", "parse_edits",
    "Matcher", "MatchRequest", "MatchOutcome", "MatchSpan", "default_strategies",
    "ScopeResolver", "EditScope", "SymbolRange",
    "Validator", "ValidationResult", "ALLOWED_GLOBALS",
    "PatchApplier", "ApplyResult", "PatchStats", "EditReport", "Document",
    "apply_edits", "apply_patch_text",
    "SelfRepairLoop", "RepairResult", "RepairPrompt", "RepairStats",
    "analyze_failure", "build_repair_prompt", "llm_collaborator",
    "log_edit_metric", "read_edit_stats", "batch_metric",
]
