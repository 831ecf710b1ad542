"""
Self-repair loop — when every edit of a batch fails, try cheap local fixes,
then ask the collaborator for a corrected patch a bounded number of times.

The collaborator is any callable taking a ``RepairPrompt`` and returning new
wire text; ``llm_collaborator`` adapts an ``LLMClient``.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from functools import reduce
from math import gcd
from typing import Callable, Optional, Union

from ..config import Config
from ..errors import FailureKind
from .edit_parser import parse_edits
from .patch_applier import ApplyResult, Document, PatchApplier, PatchStats, apply_patch_text

logger = logging.getLogger(__name__)

SEARCH_MISMATCH = "search_mismatch"
SYNTAX_ERROR = "syntax_error"
REFERENCE_BROKEN = "reference_broken"
PROTOCOL = "protocol"
UNKNOWN = "unknown"

_FENCE_RE = re.compile(r"```(?:[\w-]+)?\s*\n(.*?)```", re.DOTALL)

REPAIR_SYSTEM_PROMPT = """You are a code patch repair specialist. Your task is to fix failed patches.

## Rules
1. The SEARCH block must match the code in the source exactly
2. Do NOT assume code exists - use ONLY what is shown in the source
3. Output ONLY the corrected patch in the format: <<<<SEARCH ... ==== ... >>>>
4. Never output a full HTML document
5. If the original change is impossible, output a minimal working alternative

## Common Failure Causes
- SEARCH block does not match actual code (extra/missing lines, different quotes)
- SEARCH block copied a compression placeholder such as /* ... 40 lines hidden */
- Code structure changed since last generation
- The replacement removed a component that is still used"""


@dataclass
class FailureAnalysis:
    failure_type: str
    details: str = ""
    suggested_fix: str = ""
    match_context: str = ""


@dataclass
class RepairPrompt:
    """Prompt for the collaborator; ``context_size`` is an estimated token count."""
    system: str
    user: str
    context_size: int = 0


@dataclass
class RepairLogEntry:
    attempt: int
    action: str  # "apply"|"quick_fix"|"analyze"|"repair_request"|"success"|"give_up"
    message: str
    details: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class RepairResult:
    success: bool
    text: str
    attempts: int
    final_stats: PatchStats
    repair_log: list[RepairLogEntry] = field(default_factory=list)
    needs_full_regeneration: bool = False
    full_document: str = ""
    strategy: str = ""  # "first_try"|"quick_fix"|"repair"|""


@dataclass
class RepairStats:
    """Outcome counters across every ``run`` of one loop instance."""
    total_runs: int = 0
    success_first_try: int = 0
    success_quick_fix: int = 0
    success_after_repair: int = 0
    gave_up: int = 0
    repair_requests: int = 0

    def record(self, outcome: str) -> None:
        self.total_runs += 1
        if outcome == "first_try":
            self.success_first_try += 1
        elif outcome == "quick_fix":
            self.success_quick_fix += 1
        elif outcome == "repair":
            self.success_after_repair += 1
        else:
            self.gave_up += 1

    @property
    def success_rate(self) -> float:
        if not self.total_runs:
            return 0.0
        return (self.total_runs - self.gave_up) / self.total_runs

    def summary(self) -> dict:
        return {
            "total_runs": self.total_runs,
            "success_first_try": self.success_first_try,
            "success_quick_fix": self.success_quick_fix,
            "success_after_repair": self.success_after_repair,
            "gave_up": self.gave_up,
            "repair_requests": self.repair_requests,
            "success_rate": round(self.success_rate, 3),
        }


# ---------------------------------------------------------------------------
# Failure analysis
# ---------------------------------------------------------------------------

def find_most_similar_code(source: str, target: str, context_lines: int = 3,
                           fallback_chars: int = 500) -> str:
    """Return the source lines around the best match for *target*'s first line."""
    target_lines = [line for line in target.split("\n") if line.strip()]
    if not target_lines:
        return ""
    first = target_lines[0].strip()
    source_lines = source.split("\n")

    best_index, best_score = -1, 0.0
    matcher = SequenceMatcher(autojunk=False)
    matcher.set_seq2(first)
    for i, line in enumerate(source_lines):
        stripped = line.strip()
        if not stripped:
            continue
        matcher.set_seq1(stripped)
        if matcher.real_quick_ratio() <= best_score or matcher.quick_ratio() <= best_score:
            continue
        score = matcher.ratio()
        if score > best_score:
            best_index, best_score = i, score

    if best_index < 0:
        return source[:fallback_chars]
    start = max(0, best_index - context_lines)
    end = min(len(source_lines), best_index + len(target_lines) + context_lines)
    return "\n".join(source_lines[start:end])


def _classify(kind: FailureKind, reason: str) -> str:
    lowered = reason.lower()
    if kind == FailureKind.MATCH_NOT_FOUND:
        return SEARCH_MISMATCH
    if kind == FailureKind.PROTOCOL_VIOLATION:
        return PROTOCOL
    if kind == FailureKind.PARSE_UNAVAILABLE or "syntax" in lowered or "parse" in lowered:
        return SYNTAX_ERROR
    if "unresolved" in lowered or "definition" in lowered or "referenc" in lowered:
        return REFERENCE_BROKEN
    return UNKNOWN


def analyze_failure(source: str, patch_text: str, stats: PatchStats) -> FailureAnalysis:
    """Classify why a batch failed and gather the most relevant source context."""
    failure_type = UNKNOWN
    for failure in stats.failures:
        failure_type = _classify(failure.kind, failure.reason)
        if failure_type != UNKNOWN:
            break

    analysis = FailureAnalysis(failure_type)
    if failure_type == SEARCH_MISMATCH:
        analysis.details = "A SEARCH block could not be located in the source."
        searches = [e.search for e in parse_edits(patch_text).edits if e.search.strip()]
        if searches:
            analysis.match_context = find_most_similar_code(source, searches[0])
            analysis.suggested_fix = ("Copy the SEARCH block verbatim from the most similar "
                                      "section of the source shown below.")
    elif failure_type == SYNTAX_ERROR:
        analysis.details = "Applying the patch produced code that does not parse."
        analysis.suggested_fix = "Make sure brackets, quotes and template literals are balanced."
    elif failure_type == REFERENCE_BROKEN:
        analysis.details = "Applying the patch left references to undefined names."
        analysis.suggested_fix = ("Keep every component and function that is still used, "
                                  "or define it in the replacement.")
    elif failure_type == PROTOCOL:
        analysis.details = "The response was not a set of SEARCH/REPLACE blocks."
        analysis.suggested_fix = "Answer with edit blocks only, never with a full document."
    else:
        analysis.details = "; ".join(stats.failure_reasons)
        analysis.suggested_fix = "Check that the patch format is correct."
    return analysis


def build_repair_prompt(
    source: str,
    failed_patch: str,
    errors: list[str],
    analysis: FailureAnalysis,
    attempt: int,
    max_source_chars: int = 3000,
) -> RepairPrompt:
    """Build the collaborator prompt for one repair round."""
    if len(source) > max_source_chars:
        shown = source[:max_source_chars] + "\n// ... (truncated) ..."
    else:
        shown = source

    parts = [
        f"## Failed Patch (Attempt {attempt})",
        f"```\n{failed_patch}\n```",
        "",
        "## Error Messages",
        "\n".join(f"- {e}" for e in errors) or "- (none reported)",
        "",
        f"## Diagnosis ({analysis.failure_type})",
        analysis.details,
        analysis.suggested_fix,
        "",
    ]
    if analysis.match_context:
        parts += [
            "## Actual Code (Most Similar Section)",
            f"```javascript\n{analysis.match_context}\n```",
            "",
        ]
    parts += [
        "## Full Source Code",
        f"```html\n{shown}\n```",
        "",
        "## Task",
        "Generate a CORRECTED patch that will apply to the source code above.",
        "Use the EXACT text from the source code in your SEARCH block.",
        "Output only the patch, no explanations.",
    ]
    user = "\n".join(parts)
    context_size = -(-(len(REPAIR_SYSTEM_PROMPT) + len(user)) // 4)
    return RepairPrompt(REPAIR_SYSTEM_PROMPT, user, context_size)


def extract_patch_from_response(response: str) -> str:
    """Strip markdown fences around the edit blocks, if any."""
    for block in _FENCE_RE.findall(response):
        if "<<<<" in block:
            return block
    if "<<<<" in response:
        return response
    fenced = _FENCE_RE.search(response)
    return fenced.group(1) if fenced else response


# ---------------------------------------------------------------------------
# Indentation normalization
# ---------------------------------------------------------------------------

def detect_indent_style(code: str) -> tuple[str, int]:
    """Return ``("tabs", 1)`` or ``("spaces", unit)`` for *code*."""
    tabs = 0
    sizes: list[int] = []
    for line in code.split("\n"):
        indent = line[:len(line) - len(line.lstrip())]
        if not indent or not line.strip():
            continue
        if "\t" in indent:
            tabs += 1
        else:
            sizes.append(len(indent))
    if tabs > len(sizes):
        return "tabs", 1
    if sizes:
        return "spaces", reduce(gcd, sizes) or 2
    return "spaces", 2


def normalize_indentation(patch_text: str, source: str) -> str:
    """Rewrite the patch's indentation in the source's style."""
    source_style = detect_indent_style(source)
    patch_style = detect_indent_style(patch_text)
    if source_style == patch_style:
        return patch_text
    if source_style[0] == "spaces" and patch_style[0] == "tabs":
        return patch_text.replace("\t", " " * source_style[1])
    if source_style[0] == "tabs" and patch_style[0] == "spaces":
        unit = patch_style[1]
        return re.sub(
            rf"^((?: {{{unit}}})+)",
            lambda m: "\t" * (len(m.group(1)) // unit),
            patch_text,
            flags=re.MULTILINE,
        )
    return patch_text


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------

Collaborator = Callable[[RepairPrompt], str]


def llm_collaborator(client) -> Collaborator:
    """Adapt an ``LLMClient`` into a repair collaborator."""
    def ask(prompt: RepairPrompt) -> str:
        return client.generate_response(prompt.user, system=prompt.system)
    return ask


class SelfRepairLoop:
    """Bounded apply → analyze → ask → re-apply loop.

    Parameters
    ----------
    applier:
        The ``PatchApplier`` used for every attempt.
    collaborator:
        Callable returning corrected wire text for a ``RepairPrompt``.
    max_retries:
        Collaborator rounds after the local quick fix (default from config).
    """

    def __init__(
        self,
        applier: PatchApplier,
        collaborator: Optional[Collaborator],
        max_retries: Optional[int] = None,
        config: Config | None = None,
    ) -> None:
        self._applier = applier
        self._collaborator = collaborator
        self._config = config or applier.config
        self.max_retries = self._config.MAX_REPAIR_RETRIES if max_retries is None else max_retries
        self.stats = RepairStats()

    def run(
        self,
        document: Union[str, Document],
        patch_text: str,
        relaxed_matching: bool = False,
        scope_targets: Optional[list[str]] = None,
    ) -> RepairResult:
        """
        Apply *patch_text*, repairing it on total failure.

        Parameters
        ----------
        document:
            Document text, or a ``Document`` updated only on success.
        patch_text:
            Wire text produced by the collaborator.

        Returns
        -------
        RepairResult
            ``needs_full_regeneration`` is set when every attempt failed.
        """
        if isinstance(document, Document):
            # Held across collaborator rounds
            with document.batch():
                result = self._run(document.text, patch_text, relaxed_matching, scope_targets)
                if result.success:
                    document.text = result.text
            return result
        return self._run(document, patch_text, relaxed_matching, scope_targets)

    def _run(self, source: str, patch_text: str, relaxed_matching: bool,
             scope_targets: Optional[list[str]]) -> RepairResult:
        log: list[RepairLogEntry] = []

        def note(attempt: int, action: str, message: str, details: str = "") -> None:
            log.append(RepairLogEntry(attempt, action, message, details))
            logger.info("[Repair] [%s] %s", action, message)

        def finish(result: ApplyResult, attempts: int, outcome: str) -> RepairResult:
            self.stats.record(outcome)
            success = outcome != "give_up"
            return RepairResult(
                success=success,
                text=result.text if success else source,
                attempts=attempts,
                final_stats=result.stats,
                repair_log=log,
                needs_full_regeneration=not success,
                full_document=result.full_document,
                strategy="" if not success else outcome,
            )

        attempt = 1
        note(attempt, "apply", "Applying patch")
        result = self._apply(source, patch_text, relaxed_matching, scope_targets)
        if not result.stats.total_failure:
            note(attempt, "success", f"{result.stats.succeeded}/{result.stats.total} edit(s) applied")
            return finish(result, attempt, "first_try")

        quick = self.try_quick_fix(source, patch_text, relaxed_matching, scope_targets)
        if quick is not None:
            note(attempt, "quick_fix", "Quick fix succeeded")
            return finish(quick, attempt, "quick_fix")

        current_patch = patch_text
        for _ in range(self.max_retries):
            if self._collaborator is None:
                break
            attempt += 1
            analysis = analyze_failure(source, current_patch, result.stats)
            note(attempt, "analyze", f"Failure type: {analysis.failure_type}", analysis.details)
            prompt = build_repair_prompt(
                source, current_patch, result.stats.failure_reasons, analysis, attempt - 1,
                self._config.REPAIR_MAX_SOURCE_CHARS,
            )
            note(attempt, "repair_request",
                 f"Requesting repaired patch (context: ~{prompt.context_size} tokens)")
            self.stats.repair_requests += 1
            try:
                response = self._collaborator(prompt)
            except Exception as exc:
                note(attempt, "repair_request", f"Repair request failed: {exc}")
                break
            if not response or not response.strip():
                note(attempt, "repair_request", "Collaborator returned an empty response")
                continue

            current_patch = extract_patch_from_response(response)
            result = self._apply(source, current_patch, relaxed_matching, scope_targets)
            if not result.stats.total_failure:
                note(attempt, "success",
                     f"Repaired patch applied ({result.stats.succeeded}/{result.stats.total})")
                return finish(result, attempt, "repair")

        note(attempt, "give_up", "Repair exhausted; full regeneration needed",
             "; ".join(result.stats.failure_reasons))
        return finish(result, attempt, "give_up")

    def try_quick_fix(
        self,
        source: str,
        patch_text: str,
        relaxed_matching: bool = False,
        scope_targets: Optional[list[str]] = None,
    ) -> Optional[ApplyResult]:
        """Retry without the collaborator: indentation normalization, then relaxed mode."""
        normalized = normalize_indentation(patch_text, source)
        if normalized != patch_text:
            result = self._apply(source, normalized, True, scope_targets)
            if not result.stats.total_failure:
                logger.info("[Repair] Quick fix succeeded: indentation normalization")
                return result
        if not relaxed_matching:
            result = self._apply(source, patch_text, True, scope_targets)
            if not result.stats.total_failure:
                logger.info("[Repair] Quick fix succeeded: relaxed mode")
                return result
        return None

    def _apply(self, source: str, patch_text: str, relaxed: bool,
               scope_targets: Optional[list[str]]) -> ApplyResult:
        return apply_patch_text(source, patch_text, relaxed, scope_targets, self._applier)
