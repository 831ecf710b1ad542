"""Tests for the lexical tokenizer."""

from patchwise.analysis.tokenizer import normalize_token, tokenize, tokens_in_range


class TestTokenize:
    def test_words_and_punctuation(self):
        tokens = tokenize("const x = foo(1);")
        assert [t.text for t in tokens] == ["const", "x", "=", "foo", "(", "1", ")", ";"]

    def test_whitespace_is_dropped_offsets_kept(self):
        text = "a   +\n\tbb"
        tokens = tokenize(text)
        assert [t.text for t in tokens] == ["a", "+", "bb"]
        for t in tokens:
            assert text[t.start:t.end] == t.text

    def test_identifier_with_dollar_and_unicode(self):
        tokens = tokenize("$el.名前_1")
        assert [t.text for t in tokens] == ["$el", ".", "名前_1"]

    def test_quotes_normalize(self):
        single = tokenize("'a'")
        double = tokenize('"a"')
        assert [t.normalized for t in single] == [t.normalized for t in double]
        assert normalize_token("`") == '"'
        assert normalize_token("x") == "x"

    def test_is_word(self):
        tokens = tokenize("foo + _x")
        assert [t.is_word for t in tokens] == [True, False, True]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("   \n ") == []


class TestTokensInRange:
    def test_range(self):
        text = "aa bb cc dd"
        tokens = tokenize(text)
        lo, hi = tokens_in_range(tokens, 3, 8)
        assert [t.text for t in tokens[lo:hi]] == ["bb", "cc"]

    def test_partial_token_excluded(self):
        tokens = tokenize("aaaa bbbb")
        lo, hi = tokens_in_range(tokens, 0, 6)
        assert [t.text for t in tokens[lo:hi]] == ["aaaa"]
