"""Tests for the tree-sitter syntax analyzer."""

import pytest

from patchwise.analysis.syntax import SyntaxAnalyzer, _count_errors
from patchwise.cache import BoundedCache
from patchwise.config import Config


APP_SOURCE = """\
import React, { useState as useLocalState } from 'react';

const THEME = { color: 'red' };
const [first, second] = pair;

function Header({ title }) {
  return <h1>{title}</h1>;
}

const App = () => {
  const [count, setCount] = useLocalState(0);
  const store = new Store();
  return <div><Header title="x" />{Math.max(count, 1)}</div>;
};

export function Footer() {
  return <footer />;
}
"""

HTML_PAGE = """<!DOCTYPE html>
<html>
<body>
<div id="root"></div>
<script type="text/babel">
function Header() {
  return <h1>Hi</h1>;
}
function App() {
  return <Header />;
}
ReactDOM.render(<App />, document.getElementById('root'));
</script>
</body>
</html>
"""


@pytest.fixture
def analyzer():
    return SyntaxAnalyzer(Config())


class TestParse:
    def test_jsx_parses_with_javascript_grammar(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        assert tree.available
        assert tree.language == "javascript"
        assert tree.error_count == 0

    def test_typescript_falls_through_to_tsx(self, analyzer):
        source = "interface Props {\n  title: string;\n}\nconst n: number = 1;\n"
        tree = analyzer.parse(source)
        assert tree.available
        assert tree.language in ("tsx", "typescript")
        assert tree.find_declaration("Props").kind == "interface"

    def test_garbage_is_unavailable(self, analyzer):
        result = analyzer.parse("<<<< >>>> ))) ]]] }}} @@@ === ;;; <<<< ))) ]]]")
        assert not result.available
        assert "syntax error" in result.reason

    def test_results_are_cached(self):
        cache = BoundedCache(4)
        analyzer = SyntaxAnalyzer(Config(), cache=cache)
        assert analyzer._cache is cache
        first = analyzer.parse(APP_SOURCE)
        second = analyzer.parse(APP_SOURCE)
        assert first is second
        assert len(cache) == 1

    def test_error_count_of_clean_tree(self, analyzer):
        tree = analyzer.parse("const a = 1;")
        assert _count_errors(tree.root) == (0, 0)


class TestDeclarations:
    def test_top_level_names(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        names = [d.name for d in tree.top_level_declarations()]
        assert names == ["THEME", "first", "second", "Header", "App", "Footer"]

    def test_declaration_span(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        header = tree.find_declaration("Header")
        text = APP_SOURCE[header.start:header.end]
        assert text.startswith("function Header")
        assert text.endswith("}")
        assert header.kind == "function"

    def test_export_covers_whole_statement(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        footer = tree.find_declaration("Footer")
        assert APP_SOURCE[footer.start:footer.end].startswith("export function Footer")

    def test_last_declaration_wins(self, analyzer):
        source = "function f() { return 1; }\nfunction f() { return 2; }\n"
        tree = analyzer.parse(source)
        decl = tree.find_declaration("f")
        assert "return 2" in source[decl.start:decl.end]

    def test_capitalized_names(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        assert tree.capitalized_top_level_names() == {"THEME", "Header", "App", "Footer"}


class TestReferences:
    def test_call_like_references(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        refs = tree.call_like_references()
        assert "Header" in refs
        assert "Store" in refs
        # Member calls and lowercase callees are not call-like references
        assert "Math" not in refs
        assert "useLocalState" not in refs

    def test_defined_names(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        names = tree.defined_names()
        for name in ("React", "useLocalState", "THEME", "first", "second", "title",
                     "count", "setCount", "store", "Header", "App", "Footer"):
            assert name in names


class TestOffsets:
    def test_html_region_offsets_are_document_offsets(self, analyzer):
        tree = analyzer.parse(HTML_PAGE)
        assert tree.available
        app = tree.find_declaration("App")
        assert HTML_PAGE[app.start:app.end].startswith("function App()")
        assert tree.call_like_references() >= {"Header", "App"}

    def test_non_ascii_text(self, analyzer):
        source = "const label = '日本語テキスト';\nfunction Greet() {\n  return 1;\n}\n"
        tree = analyzer.parse(source)
        greet = tree.find_declaration("Greet")
        assert source[greet.start:greet.end].startswith("function Greet()")
        assert source[greet.start:greet.end].endswith("}")

    def test_line_span(self, analyzer):
        tree = analyzer.parse(APP_SOURCE)
        header = tree.find_declaration("Header")
        assert tree.line_span(header.node) == 3
