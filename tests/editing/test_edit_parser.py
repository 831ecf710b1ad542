"""Tests for the search/replace wire-format parser."""

from patchwise.editing.edit_parser import Edit, EditParser, parse_edits


class TestSearchBlocks:
    def test_basic_block(self):
        text = (
            "Here is the fix:\n"
            "<<<<SEARCH>>>>\n"
            "const a = 1;\n"
            "====\n"
            "const a = 2;\n"
            ">>>>\n"
        )
        parsed = parse_edits(text)
        assert parsed.parse_successful
        assert parsed.edits == [Edit("const a = 1;", "const a = 2;")]

    def test_line_hint(self):
        text = "<<<<SEARCH @L42-L58>>>>\nfoo();\n====\nbar();\n>>>>"
        edit = parse_edits(text).edits[0]
        assert edit.line_hint == (42, 58)

    def test_single_line_hint(self):
        text = "<<<< SEARCH @L7 >>>>\nfoo();\n====\nbar();\n>>>>"
        assert parse_edits(text).edits[0].line_hint == (7, 7)

    def test_separator_variants(self):
        for sep in ("====", "=======", "==== REPLACE", ">>>>REPLACE"):
            text = f"<<<<SEARCH>>>>\nold();\n{sep}\nnew();\n>>>>\n"
            edits = parse_edits(text).edits
            assert edits == [Edit("old();", "new();")], sep

    def test_missing_closer_at_end_and_between_blocks(self):
        text = (
            "<<<<SEARCH>>>>\na();\n====\nb();\n"
            "<<<<SEARCH>>>>\nc();\n====\nd();"
        )
        edits = parse_edits(text).edits
        assert [(e.search, e.replace) for e in edits] == [("a();", "b();"), ("c();", "d();")]

    def test_missing_opener_suffix(self):
        text = "<<<<SEARCH\nx = 1;\n====\nx = 2;\n>>>>"
        assert parse_edits(text).edits == [Edit("x = 1;", "x = 2;")]

    def test_noise_lines_dropped_from_search(self):
        text = (
            "<<<<SEARCH>>>>\n"
            "/// locate the handler\n"
            "summary: tweak click\n"
            "onClick();\n"
            "====\n"
            "onClick(event);\n"
            ">>>>"
        )
        assert parse_edits(text).edits[0].search == "onClick();"

    def test_edge_blank_lines_removed_internal_kept(self):
        text = "<<<<SEARCH>>>>\n\n  a();\n\n  b();   \n\n====\n\nc();\n\n>>>>"
        edit = parse_edits(text).edits[0]
        assert edit.search == "  a();\n\n  b();"
        assert edit.replace == "c();"

    def test_empty_replacement_deletes(self):
        text = "<<<<SEARCH>>>>\nremoveMe();\n====\n>>>>"
        assert parse_edits(text).edits == [Edit("removeMe();", "")]

    def test_missing_separator_is_reported(self):
        text = "<<<<SEARCH>>>>\nfoo();\n>>>>\n<<<<SEARCH>>>>\na();\n====\nb();\n>>>>"
        parsed = parse_edits(text)
        assert len(parsed.edits) == 1
        assert any("separator" in e for e in parsed.errors)


class TestAstReplace:
    def test_ast_block(self):
        text = (
            "<<<<AST_REPLACE: Header>>>>\n"
            "function Header() {\n  return <h1>New</h1>;\n}\n"
            ">>>>"
        )
        edit = parse_edits(text).edits[0]
        assert edit.target_identifier == "Header"
        assert edit.search == ""
        assert edit.replace.startswith("function Header()")
        assert not edit.is_noop

    def test_ast_end_marker(self):
        text = (
            "<<<<AST_REPLACE: App>>>>\n"
            "const App = () => null;\n"
            "<<<<AST_REPLACE_END>>>>\n"
            "trailing commentary"
        )
        edit = parse_edits(text).edits[0]
        assert edit.replace == "const App = () => null;"


class TestProtocol:
    def test_no_blocks(self):
        parsed = EditParser().parse("Sure! I updated the colors for you.")
        assert not parsed.parse_successful
        assert not parsed.protocol_violation
        assert parsed.errors == ["no edit blocks found"]

    def test_full_document_is_protocol_violation(self):
        page = "<!DOCTYPE html>\n<html><body><script>go()</script></body></html>"
        parsed = parse_edits("Here is the whole file:\n```html\n" + page + "\n```")
        assert parsed.protocol_violation
        assert parsed.full_document == page
        assert parsed.edits == []

    def test_noop_edit(self):
        assert Edit("a", "a").is_noop
        assert not Edit("a", "b").is_noop
