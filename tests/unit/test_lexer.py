"""
Unit tests for the DSL lexer.
"""
import pytest

from swarf.core.lexer import Lexer, TokenType
from swarf.utils.errors import LexError


def kinds(source):
    return [(t.type, t.value) for t in Lexer(source).tokenize()]


class TestLexer:
    """Token recognition."""

    def test_keywords_are_lowercased(self):
        tokens = Lexer("SETUP Zero LEFT").tokenize()
        assert [t.value for t in tokens[:-1]] == ["setup", "zero", "left"]
        assert all(t.type == TokenType.KEYWORD for t in tokens[:-1])

    def test_hyphenated_keywords(self):
        assert kinds("z-min y-limit max-rpm")[:3] == [
            (TokenType.KEYWORD, "z-min"),
            (TokenType.KEYWORD, "y-limit"),
            (TokenType.KEYWORD, "max-rpm"),
        ]

    def test_numbers(self):
        values = [t.value for t in Lexer("1 0.5 .25 -2 3.").tokenize() if t.type == TokenType.NUMBER]
        assert values == ["1", "0.5", ".25", "-2", "3."]

    def test_fraction(self):
        tokens = Lexer("5/8").tokenize()
        assert tokens[0].type == TokenType.FRACTION
        assert tokens[0].value == "5/8"

    def test_zero_denominator_is_error(self):
        with pytest.raises(LexError):
            Lexer("drill 1/0").tokenize()

    def test_axis_symbols(self):
        tokens = Lexer("x+ Y- Z+ z-").tokenize()
        assert [(t.type, t.value) for t in tokens[:-1]] == [
            (TokenType.SYMBOL, "X+"),
            (TokenType.SYMBOL, "Y-"),
            (TokenType.SYMBOL, "Z+"),
            (TokenType.SYMBOL, "Z-"),
        ]

    def test_string_literal(self):
        tokens = Lexer('material "6061-T6"').tokenize()
        assert tokens[1].type == TokenType.STRING
        assert tokens[1].value == "6061-T6"

    def test_identifier(self):
        tokens = Lexer("tool roughing").tokenize()
        assert tokens[1].type == TokenType.IDENTIFIER
        assert tokens[1].value == "roughing"

    def test_braces(self):
        tokens = Lexer("{}").tokenize()
        assert tokens[0].is_symbol("{")
        assert tokens[1].is_symbol("}")

    def test_ends_with_eof(self):
        assert Lexer("").tokenize()[-1].type == TokenType.EOF
        assert Lexer("face 0.1").tokenize()[-1].type == TokenType.EOF


class TestComments:
    def test_line_comments(self):
        tokens = Lexer("face // skim\n; whole line\n0.1").tokenize()
        assert [t.value for t in tokens[:-1]] == ["face", "0.1"]

    def test_block_comment_tracks_lines(self):
        tokens = Lexer("/* one\ntwo */\nface").tokenize()
        assert tokens[0].value == "face"
        assert tokens[0].line == 3

    def test_unterminated_block_comment(self):
        with pytest.raises(LexError):
            Lexer("/* never closed").tokenize()


class TestPositionsAndErrors:
    def test_line_and_column(self):
        tokens = Lexer("setup {\n  zero left").tokenize()
        zero = tokens[2]
        assert (zero.line, zero.column) == (2, 3)

    def test_unexpected_character(self):
        with pytest.raises(LexError) as excinfo:
            Lexer("face 0.1 @").tokenize()
        assert excinfo.value.line == 1
        assert excinfo.value.column == 10

    def test_unterminated_string(self):
        with pytest.raises(LexError):
            Lexer('material "6061').tokenize()

    def test_restartable(self):
        lexer = Lexer("setup { zero left front top }")
        assert [str(t) for t in lexer] == [str(t) for t in lexer]


SPAN_PROGRAM = """// bracket
setup {
    zero left front top   ; datum
    material "6061-T6"
    stock 4 3 3/4
}
/* roughing
   tool */
tool 1 dia 5/8 flutes 3 carbide
cut X+ 1 .5 0.1 Z+ at 0 0
tap 1/4 pitch 1/20 at 1 1 depth 0.4
"""


class TestSpans:
    def test_spans_relex_to_the_same_tokens(self):
        tokens = Lexer(SPAN_PROGRAM).tokenize()
        rebuilt = " ".join(SPAN_PROGRAM[t.start:t.end] for t in tokens[:-1])
        assert kinds(rebuilt) == kinds(SPAN_PROGRAM)

    def test_each_span_is_one_token(self):
        for token in Lexer(SPAN_PROGRAM).tokenize()[:-1]:
            [again, eof] = Lexer(SPAN_PROGRAM[token.start:token.end]).tokenize()
            assert (again.type, again.value) == (token.type, token.value)
            assert eof.type == TokenType.EOF

    def test_spans_skip_comments(self):
        tokens = Lexer(SPAN_PROGRAM).tokenize()
        assert not any(SPAN_PROGRAM[t.start:t.end].startswith(("//", ";", "/*")) for t in tokens)
        assert [SPAN_PROGRAM[t.start:t.end] for t in tokens if t.type == TokenType.FRACTION] == [
            "3/4", "5/8", "1/4", "1/20"]
