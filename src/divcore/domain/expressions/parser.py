"""
Recursive descent parser for bound strings and ``@{...}`` spans.

Grammar (precedence low to high):
    ternary        → or ("?" ternary ":" ternary)?
    or             → and ("||" and)*
    and            → equality ("&&" equality)*
    equality       → comparison (("==" | "!=") comparison)*
    comparison     → additive (("<" | "<=" | ">" | ">=") additive)*
    additive       → multiplicative (("+" | "-") multiplicative)*
    multiplicative → unary (("*" | "/" | "%") unary)*
    unary          → ("!" | "-") unary | postfix
    postfix        → primary ("." (IDENT | INTEGER) | "[" ternary "]")*
    primary        → INTEGER | NUMBER | STRING | "true" | "false"
                   | IDENT "(" (ternary ("," ternary)*)? ")"
                   | IDENT | "(" ternary ")"

Outside spans, ``\\@{`` is a literal ``@{`` and ``\\\\`` a literal backslash.
"""

from __future__ import annotations

import functools
import math
from collections.abc import Callable

from divcore.domain.errors import ParseError
from divcore.domain.expressions.nodes import (
    BinaryExpr,
    BinaryOp,
    Expr,
    ExprPart,
    FuncCall,
    Literal,
    MemberAccess,
    Template,
    TernaryExpr,
    TextPart,
    UnaryExpr,
    UnaryOp,
    VariableRef,
)
from divcore.domain.expressions.tokenizer import Token, TokenKind, tokenize

SPAN_OPEN = "@{"

_EQUALITY_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.EQ: BinaryOp.EQ,
    TokenKind.NE: BinaryOp.NE,
}
_COMPARISON_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.LT: BinaryOp.LT,
    TokenKind.LE: BinaryOp.LE,
    TokenKind.GT: BinaryOp.GT,
    TokenKind.GE: BinaryOp.GE,
}
_ADDITIVE_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.PLUS: BinaryOp.ADD,
    TokenKind.MINUS: BinaryOp.SUB,
}
_MULTIPLICATIVE_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.STAR: BinaryOp.MUL,
    TokenKind.SLASH: BinaryOp.DIV,
    TokenKind.PERCENT: BinaryOp.MOD,
}


class _Parser:
    """Recursive descent parser over one span's tokens."""

    def __init__(self, tokens: list[Token], source: str) -> None:
        self.tokens = tokens
        self.source = source
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]  # EOF

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def expect(self, kind: TokenKind) -> Token:
        tok = self.current
        if tok.kind != kind:
            raise self.error(f"Expected {kind}, got {_describe(tok)}", tok)
        return self.advance()

    def match(self, *kinds: TokenKind) -> Token | None:
        if self.current.kind in kinds:
            return self.advance()
        return None

    def error(self, message: str, tok: Token | None = None) -> ParseError:
        tok = tok or self.current
        return ParseError(message, self.source, tok.pos)

    # -- Grammar rules --

    def parse(self) -> Expr:
        if self.current.kind == TokenKind.EOF:
            raise self.error("Empty expression")
        node = self.parse_ternary()
        if self.current.kind != TokenKind.EOF:
            raise self.error(f"Unexpected {_describe(self.current)}")
        return node

    def parse_ternary(self) -> Expr:
        condition = self.parse_or()
        if not self.match(TokenKind.QUESTION):
            return condition
        then_expr = self.parse_ternary()
        self.expect(TokenKind.COLON)
        else_expr = self.parse_ternary()
        return TernaryExpr(condition=condition, then_expr=then_expr, else_expr=else_expr)

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.match(TokenKind.OR):
            left = BinaryExpr(op=BinaryOp.OR, left=left, right=self.parse_and())
        return left

    def parse_and(self) -> Expr:
        left = self.parse_binary(_EQUALITY_OPS, self.parse_comparison)
        while self.match(TokenKind.AND):
            right = self.parse_binary(_EQUALITY_OPS, self.parse_comparison)
            left = BinaryExpr(op=BinaryOp.AND, left=left, right=right)
        return left

    def parse_comparison(self) -> Expr:
        return self.parse_binary(_COMPARISON_OPS, self.parse_additive)

    def parse_additive(self) -> Expr:
        return self.parse_binary(_ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self) -> Expr:
        return self.parse_binary(_MULTIPLICATIVE_OPS, self.parse_unary)

    def parse_binary(self, ops: dict[TokenKind, BinaryOp], operand: Callable[[], Expr]) -> Expr:
        """Left-associative chain of *ops* over *operand*."""
        left = operand()
        while self.current.kind in ops:
            op = ops[self.advance().kind]
            left = BinaryExpr(op=op, left=left, right=operand())
        return left

    def parse_unary(self) -> Expr:
        if self.match(TokenKind.NOT):
            return UnaryExpr(op=UnaryOp.NOT, operand=self.parse_unary())
        if self.match(TokenKind.MINUS):
            return UnaryExpr(op=UnaryOp.NEG, operand=self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        node = self.parse_primary()
        while True:
            if self.match(TokenKind.DOT):
                index = self.match(TokenKind.INTEGER)
                if index is not None:
                    member = Literal(value=int(index.value))
                else:
                    member = Literal(value=self.expect(TokenKind.IDENT).value)
                node = MemberAccess(target=node, key=member, dotted=True)
            elif self.match(TokenKind.LBRACKET):
                key = self.parse_ternary()
                self.expect(TokenKind.RBRACKET)
                node = MemberAccess(target=node, key=key)
            else:
                return node

    def parse_primary(self) -> Expr:
        tok = self.current

        if tok.kind == TokenKind.INTEGER:
            self.advance()
            return Literal(value=int(tok.value))

        if tok.kind == TokenKind.NUMBER:
            self.advance()
            number = float(tok.value)
            if not math.isfinite(number):
                raise self.error("Number literal out of range", tok)
            return Literal(value=number)

        if tok.kind == TokenKind.STRING:
            self.advance()
            return Literal(value=tok.value)

        if tok.kind in (TokenKind.TRUE, TokenKind.FALSE):
            self.advance()
            return Literal(value=tok.kind == TokenKind.TRUE)

        if tok.kind == TokenKind.IDENT:
            self.advance()
            if self.current.kind == TokenKind.LPAREN:
                return self.parse_call(tok.value)
            return VariableRef(name=tok.value, pos=tok.pos)

        if self.match(TokenKind.LPAREN):
            inner = self.parse_ternary()
            self.expect(TokenKind.RPAREN)
            return inner

        raise self.error(f"Unexpected {_describe(tok)}", tok)

    def parse_call(self, name: str) -> FuncCall:
        self.expect(TokenKind.LPAREN)
        args: list[Expr] = []
        if self.current.kind != TokenKind.RPAREN:
            args.append(self.parse_ternary())
            while self.match(TokenKind.COMMA):
                args.append(self.parse_ternary())
        self.expect(TokenKind.RPAREN)
        return FuncCall(name=name, args=args)


def _describe(tok: Token) -> str:
    if tok.kind == TokenKind.EOF:
        return "end of expression"
    return f"{tok.kind} ({tok.value!r})"


# ---------------------------------------------------------------------------
# Bound strings
# ---------------------------------------------------------------------------


def _find_span_end(source: str, start: int, open_at: int) -> int:
    """Index of the ``}`` closing the span whose body begins at *start*."""
    depth = 0
    in_string = False
    i = start
    n = len(source)
    while i < n:
        c = source[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == "'":
                in_string = False
        elif c == "'":
            in_string = True
        elif c == "{":
            depth += 1
        elif c == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    if depth:
        raise ParseError("Unbalanced braces in expression", source, open_at)
    raise ParseError("Unterminated expression: missing '}'", source, open_at)


def _compile(source: str) -> Template:
    parts: list[TextPart | ExprPart] = []
    buf: list[str] = []
    i = 0
    n = len(source)

    while i < n:
        c = source[i]
        if c == "\\" and source.startswith(SPAN_OPEN, i + 1):
            buf.append(SPAN_OPEN)
            i += 3
            continue
        if c == "\\" and source.startswith("\\", i + 1):
            buf.append("\\")
            i += 2
            continue
        if source.startswith(SPAN_OPEN, i):
            if buf:
                parts.append(TextPart(text="".join(buf)))
                buf = []
            body = i + len(SPAN_OPEN)
            end = _find_span_end(source, body, i)
            if not source[body:end].strip():
                raise ParseError("Empty expression", source, i)
            tokens = tokenize(source[body:end], base=body, source=source)
            parts.append(ExprPart(node=_Parser(tokens, source).parse(), offset=i))
            i = end + 1
            continue
        buf.append(c)
        i += 1

    if buf:
        parts.append(TextPart(text="".join(buf)))
    return Template(source=source, parts=parts)


def has_expression(source: str) -> bool:
    """Cheap pre-check: could *source* contain a span at all?"""
    return SPAN_OPEN in source


class TemplateCache:
    """LRU cache of compiled bound strings. Failures are not cached."""

    def __init__(self, maxsize: int = 1024) -> None:
        self.maxsize = maxsize
        self._compile = functools.lru_cache(maxsize=maxsize)(_compile)

    def __call__(self, source: str) -> Template:
        return self._compile(source)

    def clear(self) -> None:
        self._compile.cache_clear()

    @property
    def currsize(self) -> int:
        return self._compile.cache_info().currsize


@functools.lru_cache(maxsize=1024)
def parse_template(source: str) -> Template:
    """Compile a bound string. Raises :class:`ParseError` on malformed spans."""
    return _compile(source)


def parse_expression(source: str) -> Expr:
    """Parse a bare expression (no ``@{}`` wrapper)."""
    return _Parser(tokenize(source), source).parse()
