"""Tests for the command-line entry point."""

import json

import pytest

from patchwise.cli import main, safe_write

DOC = "function greet(name) {\n  return 'hi ' + name;\n}\n\ngreet('ada');\n"
PATCH = "<<<<SEARCH>>>>\n  return 'hi ' + name;\n====\n  return 'hey ' + name;\n>>>>\n"


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("OPENAI_API_KEY", "PATCHWISE_LLM_API_KEY", "PATCHWISE_METRICS_DIR",
                "PATCHWISE_LOG_DIR"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "app.js").write_text(DOC, encoding="utf-8")
    (tmp_path / "fix.txt").write_text(PATCH, encoding="utf-8")
    return tmp_path


class TestApply:
    def test_writes_output_and_metric(self, workspace):
        code = main(["apply", "app.js", "fix.txt", "-o", "out.js"])
        assert code == 0
        assert "return 'hey ' + name;" in (workspace / "out.js").read_text(encoding="utf-8")
        # input untouched
        assert (workspace / "app.js").read_text(encoding="utf-8") == DOC

        metrics = workspace / ".patchwise" / "metrics" / "edit_metrics.jsonl"
        entry = json.loads(metrics.read_text(encoding="utf-8").splitlines()[0])
        assert entry["document"] == "app.js"
        assert entry["succeeded"] == 1
        assert entry["strategies"] == ["exact"]

    def test_in_place(self, workspace):
        assert main(["apply", "app.js", "fix.txt", "--in-place"]) == 0
        assert "'hey '" in (workspace / "app.js").read_text(encoding="utf-8")
        assert not (workspace / "app.js.patchwise_tmp").exists()

    def test_failure_exits_nonzero(self, workspace, capsys):
        (workspace / "bad.txt").write_text(
            "<<<<SEARCH>>>>\nlaunchRockets(9000, 'mars');\n====\nx();\n>>>>\n", encoding="utf-8")
        assert main(["apply", "app.js", "bad.txt", "--in-place"]) == 1
        assert (workspace / "app.js").read_text(encoding="utf-8") == DOC
        assert "match_not_found" in capsys.readouterr().err

    def test_missing_file(self, workspace):
        assert main(["apply", "nope.js", "fix.txt"]) == 2


class TestOtherCommands:
    def test_classify(self, workspace, capsys):
        assert main(["classify", "fix the crash in the login function"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["intent"] == "LOGIC_FIX"
        assert out["compression_threshold"] == 40

    def test_compress_small_document_passthrough(self, workspace, capsys):
        assert main(["compress", "app.js", "--intent", "CONFIG_HELP"]) == 0
        assert capsys.readouterr().out == DOC

    def test_stats(self, workspace, capsys):
        main(["apply", "app.js", "fix.txt", "-o", "out.js"])
        capsys.readouterr()
        assert main(["stats"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_batches"] == 1
        assert stats["success_rate"] == 100.0


def test_safe_write_replaces_content(tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("old", encoding="utf-8")
    safe_write(str(target), "new")
    assert target.read_text(encoding="utf-8") == "new"
