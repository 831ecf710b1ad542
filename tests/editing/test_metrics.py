"""Tests for edit metrics logging and stats."""

import json
import os

import pytest

from patchwise.editing.edit_parser import Edit
from patchwise.editing.metrics import batch_metric, log_edit_metric, read_edit_stats
from patchwise.editing.patch_applier import PatchApplier


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temp project root with the metrics directory."""
    metrics_dir = tmp_path / ".patchwise" / "metrics"
    metrics_dir.mkdir(parents=True)
    return str(tmp_path)


def _entry(succeeded=1, failed=0, reverted=False, repaired=False,
           strategies=("exact",), failure_kinds=()):
    return {
        "document": "index.html",
        "total": succeeded + failed,
        "succeeded": succeeded,
        "failed": failed,
        "reverted": reverted,
        "repaired": repaired,
        "strategies": list(strategies),
        "failure_kinds": list(failure_kinds),
    }


class TestLogEditMetric:
    def test_creates_file_and_writes_entry(self, tmp_project):
        log_edit_metric(_entry(), project_root=tmp_project)

        path = os.path.join(tmp_project, ".patchwise", "metrics", "edit_metrics.jsonl")
        assert os.path.isfile(path)

        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 1

        entry = json.loads(lines[0])
        assert entry["document"] == "index.html"
        assert entry["strategies"] == ["exact"]
        assert "timestamp" in entry

    def test_appends_multiple_entries(self, tmp_project):
        for _ in range(3):
            log_edit_metric(_entry(), project_root=tmp_project)

        path = os.path.join(tmp_project, ".patchwise", "metrics", "edit_metrics.jsonl")
        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 3

    def test_custom_metrics_dir(self, tmp_path):
        log_edit_metric(_entry(), project_root=str(tmp_path), metrics_dir="logs/m")
        assert (tmp_path / "logs" / "m" / "edit_metrics.jsonl").is_file()


class TestReadEditStats:
    def test_empty_stats(self, tmp_project):
        stats = read_edit_stats(project_root=tmp_project)

        assert stats["total_batches"] == 0
        assert stats["success_rate"] == 0.0
        assert stats["repair_rate"] == 0.0
        assert stats["strategy_usage"] == {}

    def test_stats_from_entries(self, tmp_project):
        entries = [
            _entry(succeeded=2, strategies=("exact", "anchored_lcs")),
            _entry(succeeded=1, failed=1, repaired=True, strategies=("exact",),
                   failure_kinds=("match_not_found",)),
            _entry(succeeded=0, failed=2, reverted=True, strategies=(),
                   failure_kinds=("validation_rejected",)),
        ]
        for e in entries:
            log_edit_metric(e, project_root=tmp_project)

        stats = read_edit_stats(last_n=50, project_root=tmp_project)

        assert stats["total_batches"] == 3
        # 2 successes / 3 total ≈ 66.7%
        assert 66 <= stats["success_rate"] <= 67
        assert 33 <= stats["repair_rate"] <= 34
        assert stats["avg_failures"] == 1.0
        # exact used twice out of three applied edits
        assert 66 <= stats["strategy_usage"]["exact"] <= 67
        assert stats["failure_kinds"] == {"match_not_found": 1, "validation_rejected": 1}

    def test_last_n_limits(self, tmp_project):
        for _ in range(10):
            log_edit_metric(_entry(), project_root=tmp_project)

        stats = read_edit_stats(last_n=5, project_root=tmp_project)
        assert stats["total_batches"] == 5

    def test_corrupt_lines_skipped(self, tmp_project):
        log_edit_metric(_entry(), project_root=tmp_project)
        path = os.path.join(tmp_project, ".patchwise", "metrics", "edit_metrics.jsonl")
        with open(path, "a") as f:
            f.write("{not json\n")
        assert read_edit_stats(project_root=tmp_project)["total_batches"] == 1


class TestBatchMetric:
    def test_from_apply_result(self):
        source = "function f() {\n  return 1;\n}\n"
        result = PatchApplier().apply(source, [
            Edit("return 1;", "return 2;"),
            Edit("missingEverywhere(42, 'zzz');", "x();"),
        ])
        metric = batch_metric(result, "app.js")
        assert metric["document"] == "app.js"
        assert (metric["total"], metric["succeeded"], metric["failed"]) == (2, 1, 1)
        assert metric["strategies"] == ["exact"]
        assert metric["failure_kinds"] == ["match_not_found"]
        assert metric["reverted"] is False
