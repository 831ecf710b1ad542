"""Tests for the brace-balance top-level scanner."""

from patchwise.analysis.scanner import blank_non_code, find_top_level, scan_top_level


SOURCE = """\
import React from 'react';

const COLORS = { primary: '#fff', accent: '}' };

function Header({ title }) {
  const label = `Title: ${title}`;
  return <h1>{label}</h1>;
}

const App = () => {
  return <Header title="hi" />;
}

let { a, b: renamed, ...rest } = props;
class Store extends Base {
  get size() { return 1; }
}
ReactDOM.render(<App />, root);
"""


class TestBlankNonCode:
    def test_preserves_length_and_newlines(self):
        text = "a = 'x\\'y'; // note\nb = \"q\";"
        blanked = blank_non_code(text)
        assert len(blanked) == len(text)
        assert blanked.count("\n") == text.count("\n")
        assert "note" not in blanked
        assert "x" not in blanked

    def test_block_comment(self):
        blanked = blank_non_code("a /* { */ b")
        assert "{" not in blanked
        assert blanked.startswith("a ")
        assert blanked.endswith(" b")

    def test_template_substitution_stays_visible(self):
        blanked = blank_non_code("`pre ${value} post`")
        assert "value" in blanked
        assert "pre" not in blanked
        assert "post" not in blanked


class TestScanTopLevel:
    def test_statement_kinds_in_order(self):
        decls = scan_top_level(SOURCE)
        kinds = [(d.kind, d.name) for d in decls]
        assert kinds == [
            ("statement", ""),
            ("const", "COLORS"),
            ("function", "Header"),
            ("const", "App"),
            ("let", "a"),
            ("class", "Store"),
            ("statement", ""),
        ]

    def test_function_span_covers_body(self):
        header = find_top_level(SOURCE, "Header")
        text = SOURCE[header.start:header.end]
        assert text.startswith("function Header")
        assert text.endswith("}")
        assert "return <h1>" in text

    def test_brace_inside_string_ignored(self):
        colors = find_top_level(SOURCE, "COLORS")
        assert SOURCE[colors.start:colors.end].endswith("};")
        assert SOURCE[colors.value_start:colors.value_end] == "{ primary: '#fff', accent: '}' }"

    def test_destructuring_names(self):
        decl = find_top_level(SOURCE, "renamed")
        assert decl.names == ["a", "renamed", "rest"]

    def test_arrow_function_without_semicolon(self):
        app = find_top_level(SOURCE, "App")
        text = SOURCE[app.start:app.end]
        assert text.startswith("const App")
        assert text.rstrip().endswith("}")
        assert "class Store" not in text

    def test_keyword_prefixed_identifiers_are_statements(self):
        decls = scan_top_level("constant = 1;\nclasses.push(x);\n")
        assert [d.kind for d in decls] == ["statement", "statement"]

    def test_export_and_async(self):
        decls = scan_top_level("export default async function load() {\n  return 1;\n}\n")
        assert decls[0].kind == "function"
        assert decls[0].name == "load"

    def test_multiline_chain_is_one_statement(self):
        text = "const total = items\n  .map(x => x)\n  .length;\nconst other = 2;\n"
        decls = scan_top_level(text)
        assert [d.name for d in decls] == ["total", "other"]


class TestFindTopLevel:
    def test_last_declaration_wins(self):
        text = "function f() { return 1; }\nfunction f() { return 2; }\n"
        decl = find_top_level(text, "f")
        assert "return 2" in text[decl.start:decl.end]

    def test_unknown_name(self):
        assert find_top_level(SOURCE, "Missing") is None

    def test_nested_names_are_not_top_level(self):
        assert find_top_level(SOURCE, "label") is None
