"""Tests for code-region extraction from HTML documents."""

from patchwise.analysis.region import extract_code_region, looks_like_html


PAGE = """<!DOCTYPE html>
<html>
<head>
  <script src="https://unpkg.com/react/umd/react.production.min.js"></script>
  <script type="application/json">{"big": "config", "values": [1, 2, 3, 4, 5, 6, 7]}</script>
</head>
<body>
  <div id="root"></div>
  <script>console.log(1);</script>
  <script type="text/babel">
function App() {
  return <div>Hello</div>;
}
  </script>
</body>
</html>
"""


class TestLooksLikeHtml:
    def test_html(self):
        assert looks_like_html(PAGE)

    def test_bare_code(self):
        assert not looks_like_html("function f() { return 1 < 2; }")


class TestExtractCodeRegion:
    def test_bare_code_is_whole_document(self):
        code = "const a = 1;\n"
        region = extract_code_region(code)
        assert region.is_whole_document
        assert region.text == code
        assert region.line_count() == 2

    def test_largest_inline_script(self):
        region = extract_code_region(PAGE)
        assert "function App()" in region.text
        assert PAGE[region.start:region.end] == region.text
        assert not region.is_whole_document

    def test_skips_src_and_json_scripts(self):
        region = extract_code_region(PAGE)
        assert '"big"' not in region.text
        assert "react.production" not in region.text

    def test_html_without_inline_script(self):
        page = "<html><body><p>hi</p></body></html>"
        region = extract_code_region(page)
        assert region.text == ""
        assert region.start == len(page)
        assert region.line_count() == 0
