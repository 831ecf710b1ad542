"""Tests for pure-data literal summarization."""

from patchwise.analysis.scanner import scan_top_level
from patchwise.compression.data_summary import (
    is_pure_data, split_top_level, summarize_declarations, summarize_literal,
)


class TestIsPureData:
    def test_constants_only(self):
        code = "const A = [1, 2];\nconst B = { x: 1 };\n"
        assert is_pure_data(code, scan_top_level(code))

    def test_arrow_function_disqualifies(self):
        code = "const A = [1, 2];\nconst f = () => A;\n"
        assert not is_pure_data(code, scan_top_level(code))

    def test_statement_disqualifies(self):
        code = "const A = 1;\nrender(A);\n"
        assert not is_pure_data(code, scan_top_level(code))

    def test_arrow_inside_string_is_fine(self):
        code = 'const A = ["=>", "function"];\n'
        assert is_pure_data(code, scan_top_level(code))


class TestSummarizeLiteral:
    def test_array(self):
        assert summarize_literal("[1, [2, 3], {a: 4}]") == "[/* 3 items */]"

    def test_object_keys(self):
        assert summarize_literal('{ "a": 1, b: [1, 2], ...rest }') == \
            "{ /* 3 keys: a, b, ...rest */ }"

    def test_not_a_literal(self):
        assert summarize_literal("makeList()") is None
        assert summarize_literal("[1].concat([2])") is None

    def test_split_respects_strings(self):
        assert split_top_level('"a,b", c') == ['"a,b"', " c"]


class TestSummarizeDeclarations:
    def test_only_long_values_are_replaced(self):
        big = "[" + ", ".join(str(i) for i in range(100)) + "]"
        code = f"const SMALL = [1, 2];\nconst BIG = {big};\n"
        stubs = summarize_declarations(code, scan_top_level(code), min_chars=50)
        assert len(stubs) == 1
        start, end, text = stubs[0]
        assert code[start:end] == big
        assert text == "[/* 100 items */]"

    def test_kept_names_untouched(self):
        big = "[" + ", ".join(str(i) for i in range(100)) + "]"
        code = f"const BIG = {big};\n"
        assert summarize_declarations(code, scan_top_level(code), 50, frozenset({"BIG"})) == []
