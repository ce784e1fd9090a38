"""
Lexer for the swarf machining DSL.

Produces a lazy, restartable token sequence: iterating a Lexer twice
scans the source twice and yields identical tokens.
"""
import re
from enum import Enum
from dataclasses import dataclass
from typing import List, Iterator
from swarf.utils.errors import LexError


class TokenType(Enum):
    KEYWORD = "KEYWORD"
    NUMBER = "NUMBER"
    FRACTION = "FRACTION"
    IDENTIFIER = "IDENTIFIER"
    SYMBOL = "SYMBOL"
    STRING = "STRING"
    EOF = "EOF"


KEYWORDS = {
    # Structure
    "setup", "zero", "material", "z-min", "y-limit", "units", "inch", "mm",
    "stock", "wcs", "clearance",
    # Tools
    "tool", "dia", "flutes", "hss", "carbide", "cobalt", "ceramic",
    "length", "stickout", "max-rpm", "coating", "coolant",
    "flood", "mist", "air", "none",
    # Operations
    "face", "drill", "pocket", "profile", "cut", "chamfer", "deburr", "tap",
    # Geometry and positions
    "at", "rect", "circle", "hole", "thru", "depth", "offset", "pitch",
    "inside", "outside", "on",
    "left", "right", "center", "front", "back", "top", "bottom",
    # Modifiers
    "feed", "rpm", "stepdown", "stepover", "plunge", "finish", "peck", "dwell",
}


@dataclass
class Token:
    """Represents a single token with its source span."""
    type: TokenType
    value: str
    line: int
    column: int
    start: int
    end: int

    def __str__(self):
        return f"{self.type.value}:{self.value}"

    def is_keyword(self, *words: str) -> bool:
        return self.type == TokenType.KEYWORD and self.value in words

    def is_symbol(self, *symbols: str) -> bool:
        return self.type == TokenType.SYMBOL and self.value in symbols


class Lexer:
    """Tokenizes DSL source text."""

    WHITESPACE_PATTERN = re.compile(r'[ \t\r\f]+')
    LINE_COMMENT_PATTERN = re.compile(r'(?://|;)[^\n]*')
    BLOCK_COMMENT_PATTERN = re.compile(r'/\*.*?\*/', re.DOTALL)
    # Axis direction and Z constraint words; must not swallow z-min or a signed number.
    AXIS_SYMBOL_PATTERN = re.compile(r'[XYZxyz][+-](?![\w.])')
    FRACTION_PATTERN = re.compile(r'\d+/\d+(?![\d./])')
    NUMBER_PATTERN = re.compile(r'[+-]?(?:\d+\.\d*|\.\d+|\d+)(?![\w/])')
    STRING_PATTERN = re.compile(r'"([^"\n]*)"')
    WORD_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*(?:-[A-Za-z0-9_]+)*')
    PUNCTUATION = "{}"

    def __init__(self, source: str):
        self.source = source

    def __iter__(self) -> Iterator[Token]:
        return self._scan()

    def tokenize(self) -> List[Token]:
        """Tokenize the whole source, ending with an EOF token."""
        return list(self)

    def _scan(self) -> Iterator[Token]:
        text = self.source
        pos = 0
        line = 1
        line_start = 0

        while pos < len(text):
            char = text[pos]

            if char == '\n':
                pos += 1
                line += 1
                line_start = pos
                continue

            match = self.WHITESPACE_PATTERN.match(text, pos)
            if match:
                pos = match.end()
                continue

            if text.startswith('/*', pos):
                match = self.BLOCK_COMMENT_PATTERN.match(text, pos)
                if not match:
                    raise LexError("Unterminated block comment", line, pos - line_start + 1, '/*')
                newlines = match.group(0).count('\n')
                if newlines:
                    line += newlines
                    line_start = pos + match.group(0).rfind('\n') + 1
                pos = match.end()
                continue

            match = self.LINE_COMMENT_PATTERN.match(text, pos)
            if match:
                pos = match.end()
                continue

            column = pos - line_start + 1
            token = self._match_token(text, pos, line, column)
            if token is None:
                if char == '"':
                    raise LexError("Unterminated string literal", line, column, char)
                raise LexError(f"Unexpected character '{char}'", line, column, char)
            yield token
            pos = token.end

        yield Token(TokenType.EOF, "", line, pos - line_start + 1, pos, pos)

    def _match_token(self, text: str, pos: int, line: int, column: int):
        """Try each token pattern at pos; None if nothing matches."""
        char = text[pos]

        if char in self.PUNCTUATION:
            return Token(TokenType.SYMBOL, char, line, column, pos, pos + 1)

        match = self.STRING_PATTERN.match(text, pos)
        if match:
            return Token(TokenType.STRING, match.group(1), line, column, pos, match.end())

        match = self.AXIS_SYMBOL_PATTERN.match(text, pos)
        if match:
            return Token(TokenType.SYMBOL, match.group(0).upper(), line, column, pos, match.end())

        match = self.FRACTION_PATTERN.match(text, pos)
        if match:
            denominator = match.group(0).split('/')[1]
            if int(denominator) == 0:
                raise LexError("Fraction with zero denominator", line, column, match.group(0))
            return Token(TokenType.FRACTION, match.group(0), line, column, pos, match.end())

        match = self.NUMBER_PATTERN.match(text, pos)
        if match:
            return Token(TokenType.NUMBER, match.group(0), line, column, pos, match.end())

        match = self.WORD_PATTERN.match(text, pos)
        if match:
            word = match.group(0)
            if word.lower() in KEYWORDS:
                return Token(TokenType.KEYWORD, word.lower(), line, column, pos, match.end())
            return Token(TokenType.IDENTIFIER, word, line, column, pos, match.end())

        return None
