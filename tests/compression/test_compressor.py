"""Tests for the structural compressor."""

import pytest

from patchwise.compression import EditIntent, StructuralCompressor, compress
from patchwise.config import Config


def _big_function(name, statements=20):
    body = "\n".join(f"  const v{i} = {i} * 2;" for i in range(statements))
    return f"function {name}() {{\n{body}\n  return v0;\n}}\n"


def _filler(count=40):
    return "".join(f"const setting{i} = {i};\n" for i in range(count))


@pytest.fixture
def document():
    return (
        _big_function("renderDashboard")
        + "function helper(x) {\n  return x + 1;\n}\n"
        + _filler()
    )


@pytest.fixture
def compressor():
    return StructuralCompressor(Config())


class TestCompress:
    def test_below_floor_is_untouched(self, compressor, document):
        result = compressor.compress(document, EditIntent.CONFIG_HELP, min_lines_floor=1000)
        assert result.code == document
        assert result.stats.strategy == "skipped"
        assert result.stats.hidden == 0

    def test_collapses_large_body(self, compressor, document):
        result = compressor.compress(document, EditIntent.CONFIG_HELP, min_lines_floor=0)
        assert result.stats.strategy == "tree"
        assert result.stats.hidden == 1
        assert "function renderDashboard() { /* ... 23 lines hidden: renderDashboard */ }" \
            in result.code
        # small functions and top-level code stay visible
        assert "return x + 1;" in result.code
        assert "const setting39 = 39;" in result.code
        assert len(result.code) < len(document)
        assert result.stats.saved_percent > 0
        assert [n.name for n in result.nodes] == ["renderDashboard"]

    def test_never_grows(self, compressor, document):
        for intent in EditIntent:
            result = compressor.compress(document, intent, min_lines_floor=0)
            assert len(result.code) <= len(document)
            assert result.stats.result_lines <= result.stats.original_lines

    def test_unknown_intent_threshold_keeps_body(self, compressor, document):
        result = compressor.compress(document, EditIntent.UNKNOWN, min_lines_floor=0)
        assert result.code == document
        assert result.stats.strategy == "unchanged"

    def test_keep_names(self, compressor, document):
        result = compressor.compress(document, EditIntent.CONFIG_HELP, min_lines_floor=0,
                                     keep_names=["renderDashboard"])
        assert result.code == document
        assert result.stats.hidden == 0

    def test_body_over_half_the_region_is_kept(self, compressor):
        code = _big_function("main", statements=30)
        result = compressor.compress(code, EditIntent.CONFIG_HELP, min_lines_floor=0)
        assert result.code == code

    def test_html_page_compresses_script_only(self, compressor, document):
        page = ("<!DOCTYPE html>\n<html><body>\n<div id=\"root\"></div>\n"
                f"<script type=\"text/babel\">\n{document}</script>\n</body></html>\n")
        result = compressor.compress(page, EditIntent.CONFIG_HELP, min_lines_floor=0)
        assert "lines hidden: renderDashboard" in result.code
        assert result.code.startswith("<!DOCTYPE html>")
        assert result.code.rstrip().endswith("</html>")


class TestDataPath:
    def test_pure_data_summarized(self, compressor):
        rows = ",\n".join(f'  {{ id: {i}, label: "item number {i}" }}' for i in range(30))
        code = f"const ROWS = [\n{rows}\n];\nconst TITLE = \"Inventory\";\n"
        result = compressor.compress(code, min_lines_floor=0)
        assert result.stats.strategy == "data"
        assert "const ROWS = [/* 30 items */];" in result.code
        assert 'const TITLE = "Inventory";' in result.code


class TestTruncatePath:
    def test_unparseable_is_truncated(self):
        cfg = Config({"compression": {"truncate_lines": 10}})
        code = "\n".join("@@ ~~ !! %% ^^" for _ in range(30))
        result = StructuralCompressor(cfg).compress(code, min_lines_floor=0)
        assert result.stats.strategy == "truncate"
        lines = result.code.split("\n")
        assert len(lines) == 11
        assert lines[-1] == "// ... 20 lines truncated"


def test_module_level_compress(document):
    result = compress(document, EditIntent.CONFIG_HELP, min_lines_floor=0)
    assert result.stats.hidden == 1
