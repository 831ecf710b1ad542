"""
Edit metrics — tracks patch-batch outcomes in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".patchwise/metrics"
_METRICS_FILE = "edit_metrics.jsonl"


def _metrics_path(project_root: str | None = None, metrics_dir: str | None = None) -> str:
    """Return the absolute path to the metrics file."""
    base = project_root or os.getcwd()
    return os.path.join(base, metrics_dir or _METRICS_DIR, _METRICS_FILE)


def batch_metric(result, document: str = "", repaired: bool = False) -> dict:
    """Build a metric entry from an ``ApplyResult``."""
    stats = result.stats
    return {
        "document": document,
        "total": stats.total,
        "succeeded": stats.succeeded,
        "failed": stats.failed,
        "reverted": result.reverted,
        "repaired": repaired,
        "strategies": [r.strategy for r in result.reports if r.strategy],
        "failure_kinds": [f.kind.value for f in stats.failures],
    }


def log_edit_metric(data: dict, project_root: str | None = None,
                    metrics_dir: str | None = None) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (see ``batch_metric``).
    project_root:
        Optional project root directory. Defaults to CWD.
    metrics_dir:
        Directory under the root holding the log.
    """
    path = _metrics_path(project_root, metrics_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Patch] Failed to write metrics: %s", exc)


def read_edit_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str | None = None,
) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    last_n:
        Number of most-recent entries to include.
    project_root:
        Optional project root directory.

    Returns
    -------
    dict
        ``total_batches``, ``success_rate`` and ``repair_rate`` (percent),
        ``avg_failures`` per batch, ``strategy_usage`` (percent of applied
        edits) and ``failure_kinds`` (counts).
    """
    path = _metrics_path(project_root, metrics_dir)

    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Patch] Failed to read metrics: %s", exc)

    # Take last N entries
    entries = entries[-last_n:]

    if not entries:
        return {
            "total_batches": 0,
            "success_rate": 0.0,
            "repair_rate": 0.0,
            "avg_failures": 0.0,
            "strategy_usage": {},
            "failure_kinds": {},
        }

    total = len(entries)
    successes = sum(1 for e in entries if e.get("succeeded", 0) > 0 and not e.get("reverted"))
    repaired = sum(1 for e in entries if e.get("repaired", False))
    failures = [e.get("failed", 0) for e in entries]

    strategies = Counter(s for e in entries for s in e.get("strategies", []))
    used = sum(strategies.values())
    kinds = Counter(k for e in entries for k in e.get("failure_kinds", []))

    return {
        "total_batches": total,
        "success_rate": successes / total * 100,
        "repair_rate": repaired / total * 100,
        "avg_failures": sum(failures) / total,
        "strategy_usage": {
            name: count / used * 100
            for name, count in strategies.most_common()
        },
        "failure_kinds": dict(kinds.most_common()),
    }
