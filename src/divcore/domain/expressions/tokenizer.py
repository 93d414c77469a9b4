"""
Tokenizer for the ``@{...}`` expression language.

Converts the text of one span into a sequence of typed tokens. Positions
are absolute offsets into the enclosing bound string so that errors point
at the right character.
"""

from __future__ import annotations

import re
from enum import StrEnum, auto

from divcore.domain.errors import ParseError


class TokenKind(StrEnum):
    """Token types for the expression language."""

    # Literals
    INTEGER = auto()
    NUMBER = auto()
    STRING = auto()

    # Identifiers and keywords
    IDENT = auto()
    TRUE = auto()
    FALSE = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    EQ = auto()
    NE = auto()
    LT = auto()
    GT = auto()
    LE = auto()
    GE = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    QUESTION = auto()
    COLON = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    DOT = auto()

    EOF = auto()


class Token:
    """A single token from the expression tokenizer."""

    __slots__ = ("kind", "value", "pos")

    def __init__(self, kind: TokenKind, value: str, pos: int) -> None:
        self.kind = kind
        self.value = value
        self.pos = pos

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.value!r}, pos={self.pos})"


_KEYWORDS: dict[str, TokenKind] = {
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
}

_TWO_CHAR: dict[str, TokenKind] = {
    "==": TokenKind.EQ,
    "!=": TokenKind.NE,
    "<=": TokenKind.LE,
    ">=": TokenKind.GE,
    "&&": TokenKind.AND,
    "||": TokenKind.OR,
}

_SINGLE_CHAR: dict[str, TokenKind] = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "!": TokenKind.NOT,
    "?": TokenKind.QUESTION,
    ":": TokenKind.COLON,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
}

# Fraction needs a digit after the dot so ``items.0`` style access stays DOT.
_NUMBER_RE = re.compile(r"\d+(?P<frac>\.\d+)?(?P<exp>[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


def tokenize(text: str, *, base: int = 0, source: str | None = None) -> list[Token]:
    """Tokenize expression *text*.

    *base* is the offset of ``text[0]`` inside *source* (the full bound
    string); both are used only for error reporting and token positions.
    """
    full = text if source is None else source
    tokens: list[Token] = []
    i = 0
    n = len(text)

    while i < n:
        c = text[i]

        if c in " \t\n\r":
            i += 1
            continue

        if c == "'":
            i, tok = _read_string(text, i, base, full)
            tokens.append(tok)
            continue

        if c.isascii() and c.isdigit():
            m = _NUMBER_RE.match(text, i)
            assert m is not None
            kind = TokenKind.NUMBER if m.group("frac") or m.group("exp") else TokenKind.INTEGER
            tokens.append(Token(kind, m.group(0), base + i))
            i = m.end()
            continue

        if c.isascii() and (c.isalpha() or c == "_"):
            m = _IDENT_RE.match(text, i)
            assert m is not None
            word = m.group(0)
            tokens.append(Token(_KEYWORDS.get(word, TokenKind.IDENT), word, base + i))
            i = m.end()
            continue

        two = text[i : i + 2]
        if two in _TWO_CHAR:
            tokens.append(Token(_TWO_CHAR[two], two, base + i))
            i += 2
            continue

        if c in _SINGLE_CHAR:
            tokens.append(Token(_SINGLE_CHAR[c], c, base + i))
            i += 1
            continue

        raise ParseError(f"Unexpected character: {c!r}", full, base + i)

    tokens.append(Token(TokenKind.EOF, "", base + n))
    return tokens


def _read_string(text: str, start: int, base: int, full: str) -> tuple[int, Token]:
    """Read a single-quoted literal. Only ``\\'`` and ``\\\\`` are escapes."""
    i = start + 1
    n = len(text)
    chars: list[str] = []

    while i < n:
        c = text[i]
        if c == "\\":
            if i + 1 < n and text[i + 1] in ("'", "\\"):
                chars.append(text[i + 1])
                i += 2
                continue
            raise ParseError("Invalid escape sequence", full, base + i)
        if c == "'":
            return i + 1, Token(TokenKind.STRING, "".join(chars), base + start)
        chars.append(c)
        i += 1

    raise ParseError("Unterminated string literal", full, base + start)
