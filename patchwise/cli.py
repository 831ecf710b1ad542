"""
CLI entry point — apply LLM patches to files, compress documents for
prompting, classify requests and report edit metrics.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import shutil
import sys
from datetime import datetime

from .compression import EditIntent, IntentClassifier, StructuralCompressor
from .config import Config
from .editing import (
    PatchApplier, SelfRepairLoop, apply_patch_text, batch_metric, llm_collaborator,
    log_edit_metric, read_edit_stats,
)
from .llm import create_client


def setup_logger(log_dir: str = ".patchwise/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"patchwise_{timestamp}.log")

    logger = logging.getLogger("patchwise")
    logger.setLevel(logging.DEBUG)

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def safe_write(file_path: str, content: str) -> None:
    """Write content to file atomically via temp file + rename."""
    abs_path = os.path.abspath(file_path)
    tmp_path = abs_path + ".patchwise_tmp"

    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)

        # On Windows, os.rename fails if destination exists
        if os.path.exists(abs_path):
            shutil.move(tmp_path, abs_path)
        else:
            os.rename(tmp_path, abs_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_apply(args, cfg: Config) -> int:
    document = _read(args.document)
    patch_text = _read(args.patch)
    applier = PatchApplier(cfg)
    scope = args.scope or None

    repaired = False
    if args.repair:
        collaborator = llm_collaborator(create_client(cfg)) if cfg.LLM_API_KEY else None
        if collaborator is None:
            print("  [WARN] No LLM API key configured; repair limited to local quick fixes.",
                  file=sys.stderr)
        loop = SelfRepairLoop(applier, collaborator, config=cfg)
        outcome = loop.run(document, patch_text, args.relaxed, scope)
        result_text = outcome.text
        stats = outcome.final_stats
        success = outcome.success
        repaired = outcome.strategy in ("quick_fix", "repair")
        full_document = outcome.full_document
        metric = {
            "document": args.document, "total": stats.total, "succeeded": stats.succeeded,
            "failed": stats.failed, "reverted": False, "repaired": repaired,
            "strategies": [], "failure_kinds": [f.kind.value for f in stats.failures],
        }
    else:
        result = apply_patch_text(document, patch_text, args.relaxed, scope, applier)
        result_text = result.text
        stats = result.stats
        success = result.success
        full_document = result.full_document
        metric = batch_metric(result, args.document)
        for warning in result.warnings:
            print(f"  [WARN] {warning}", file=sys.stderr)

    log_edit_metric(metric, metrics_dir=cfg.METRICS_DIR)

    print(f"  Applied {stats.succeeded}/{stats.total} edit(s)", file=sys.stderr)
    for reason in stats.failure_reasons:
        print(f"  [FAIL] {reason}", file=sys.stderr)
    if full_document:
        print("  [WARN] Response contained a full document instead of edit blocks; "
              "not adopted.", file=sys.stderr)

    if not success:
        return 1
    if args.in_place:
        safe_write(args.document, result_text)
    elif args.output:
        safe_write(args.output, result_text)
    else:
        sys.stdout.write(result_text)
    return 0


def cmd_compress(args, cfg: Config) -> int:
    code = _read(args.document)
    if args.intent:
        intent = EditIntent(args.intent)
    elif args.request:
        intent = IntentClassifier(config=cfg).classify(args.request).intent
    else:
        intent = EditIntent.UNKNOWN
    result = StructuralCompressor(cfg).compress(code, intent, args.min_lines, args.keep or ())
    stats = result.stats
    print(f"  [{intent.value}] {stats.strategy}: {stats.original_lines} -> "
          f"{stats.result_lines} lines ({stats.saved_percent:.1f}% saved)", file=sys.stderr)
    sys.stdout.write(result.code)
    return 0


def cmd_classify(args, cfg: Config) -> int:
    result = IntentClassifier(config=cfg).classify(args.text)
    print(json.dumps({
        "intent": result.intent.value,
        "confidence": round(result.confidence, 3),
        "compression_threshold": result.profile.compression_threshold,
        "top_k": result.profile.top_k,
    }, ensure_ascii=False))
    return 0


def cmd_stats(args, cfg: Config) -> int:
    stats = read_edit_stats(args.last, metrics_dir=cfg.METRICS_DIR)
    print(json.dumps(stats, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="patchwise: LLM search/replace patch engine")
    parser.add_argument("--config", default=None,
                        help="Path to .patchwise.yaml config file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_apply = sub.add_parser("apply", help="Apply a search/replace patch to a document")
    p_apply.add_argument("document", help="Document to patch")
    p_apply.add_argument("patch", help="File holding the LLM response ('-' for stdin)")
    p_apply.add_argument("--relaxed", action="store_true",
                         help="Lower the anchored match threshold")
    p_apply.add_argument("--scope", nargs="+", default=None,
                         help="Restrict edits to these top-level declarations")
    p_apply.add_argument("--repair", action="store_true",
                         help="Run the self-repair loop on total failure")
    out = p_apply.add_mutually_exclusive_group()
    out.add_argument("-o", "--output", default=None, help="Write the result here")
    out.add_argument("--in-place", action="store_true", help="Overwrite the document")

    p_compress = sub.add_parser("compress", help="Compress a document for prompting")
    p_compress.add_argument("document", help="Document to compress")
    group = p_compress.add_mutually_exclusive_group()
    group.add_argument("--request", default=None,
                       help="Change request used to pick the intent")
    group.add_argument("--intent", choices=[i.value for i in EditIntent], default=None)
    p_compress.add_argument("--min-lines", type=int, default=None,
                            help="Skip documents shorter than this")
    p_compress.add_argument("--keep", nargs="+", default=None,
                            help="Names that must stay fully visible")

    p_classify = sub.add_parser("classify", help="Classify a change request")
    p_classify.add_argument("text")

    p_stats = sub.add_parser("stats", help="Show rolling edit statistics")
    p_stats.add_argument("--last", type=int, default=50)

    return parser


_COMMANDS = {
    "apply": cmd_apply,
    "compress": cmd_compress,
    "classify": cmd_classify,
    "stats": cmd_stats,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = Config.load(args.config)
    setup_logger(cfg.LOG_DIR)
    try:
        return _COMMANDS[args.command](args, cfg)
    except OSError as exc:
        print(f"\n  [ERROR] {exc}\n", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
