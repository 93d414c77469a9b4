"""Tests for the bound-string compiler and expression parser."""

import pytest

from divcore.domain.errors import ParseError
from divcore.domain.expressions.nodes import (
    BinaryExpr,
    BinaryOp,
    ExprPart,
    FuncCall,
    Literal,
    MemberAccess,
    TernaryExpr,
    TextPart,
    UnaryExpr,
    VariableRef,
)
from divcore.domain.expressions.parser import (
    TemplateCache,
    has_expression,
    parse_expression,
    parse_template,
)
from divcore.domain.expressions.tokenizer import TokenKind, tokenize


class TestTokenizer:
    def test_kinds(self) -> None:
        kinds = [t.kind for t in tokenize("a >= 1.5 && !b")]
        assert kinds == [
            TokenKind.IDENT,
            TokenKind.GE,
            TokenKind.NUMBER,
            TokenKind.AND,
            TokenKind.NOT,
            TokenKind.IDENT,
            TokenKind.EOF,
        ]

    def test_string_escapes(self) -> None:
        (tok, _eof) = tokenize(r"'it\'s \\ ok'")
        assert tok.value == "it's \\ ok"

    def test_invalid_escape(self) -> None:
        with pytest.raises(ParseError, match="Invalid escape"):
            tokenize(r"'\n'")

    def test_unexpected_character_offset(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            tokenize("a # b")
        assert exc_info.value.offset == 2

    @pytest.mark.parametrize(
        ("source", "offset"),
        [("@{é}", 2), ("@{café}", 5), ("@{²}", 2), ("@{1٣}", 3)],
    )
    def test_non_ascii_is_unexpected(self, source: str, offset: int) -> None:
        with pytest.raises(ParseError, match="Unexpected character") as exc_info:
            parse_template(source)
        assert exc_info.value.offset == offset


class TestTemplates:
    def test_plain_text(self) -> None:
        template = parse_template("Hello")
        assert not template.has_expression
        assert template.parts == [TextPart(text="Hello")]
        assert not has_expression("Hello")

    def test_mixed_parts(self) -> None:
        template = parse_template("Hi @{name}!")
        assert [type(p) for p in template.parts] == [TextPart, ExprPart, TextPart]
        assert not template.is_single_expression
        expr = template.parts[1]
        assert isinstance(expr, ExprPart)
        assert expr.offset == 3
        assert expr.node == VariableRef(name="name", pos=5)

    def test_single_expression(self) -> None:
        assert parse_template("@{counter + 1}").is_single_expression

    def test_escaped_span_is_text(self) -> None:
        template = parse_template(r"cost \@{price}")
        assert template.parts == [TextPart(text="cost @{price}")]

    def test_braces_inside_strings(self) -> None:
        template = parse_template("@{'}' + '{'}")
        assert template.is_single_expression

    def test_unterminated_span(self) -> None:
        with pytest.raises(ParseError, match="missing '}'") as exc_info:
            parse_template("ab @{name")
        assert exc_info.value.offset == 3
        assert exc_info.value.source == "ab @{name"

    def test_empty_span(self) -> None:
        with pytest.raises(ParseError, match="Empty expression"):
            parse_template("x @{  } y")

    def test_illegal_token_position(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_template("ok @{a $ b}")
        assert exc_info.value.offset == 7

    def test_trailing_tokens(self) -> None:
        with pytest.raises(ParseError, match="Unexpected"):
            parse_template("@{a b}")

    def test_cache(self) -> None:
        cache = TemplateCache(maxsize=4)
        first = cache("@{a}")
        assert cache("@{a}") is first
        assert cache.currsize == 1
        cache.clear()
        assert cache.currsize == 0


class TestExpressions:
    def test_precedence(self) -> None:
        node = parse_expression("1 + 2 * 3")
        assert isinstance(node, BinaryExpr)
        assert node.op is BinaryOp.ADD
        assert isinstance(node.right, BinaryExpr)
        assert node.right.op is BinaryOp.MUL

    def test_left_associative(self) -> None:
        assert str(parse_expression("a - b - c")) == "((a - b) - c)"

    def test_and_binds_tighter_than_or(self) -> None:
        assert str(parse_expression("a || b && c")) == "(a || (b && c))"

    def test_ternary_is_right_associative(self) -> None:
        node = parse_expression("a ? b : c ? d : e")
        assert isinstance(node, TernaryExpr)
        assert isinstance(node.else_expr, TernaryExpr)

    def test_unary(self) -> None:
        node = parse_expression("!-x")
        assert isinstance(node, UnaryExpr)
        assert isinstance(node.operand, UnaryExpr)

    def test_member_access(self) -> None:
        node = parse_expression("profile.city")
        assert isinstance(node, MemberAccess)
        assert node.dotted
        assert node.key == Literal(value="city")
        assert str(parse_expression("items[0].name")) == "items[0].name"

    def test_dotted_index(self) -> None:
        node = parse_expression("items.1")
        assert isinstance(node, MemberAccess)
        assert node.key == Literal(value=1)

    def test_call(self) -> None:
        node = parse_expression("max(1, len(name))")
        assert isinstance(node, FuncCall)
        assert node.name == "max"
        assert len(node.args) == 2

    def test_literals(self) -> None:
        assert parse_expression("true") == Literal(value=True)
        assert parse_expression("'x'") == Literal(value="x")
        assert parse_expression("2.5e1") == Literal(value=25.0)

    def test_missing_colon(self) -> None:
        with pytest.raises(ParseError, match="Expected"):
            parse_expression("a ? b")

    def test_number_out_of_range(self) -> None:
        with pytest.raises(ParseError, match="out of range"):
            parse_expression("1e999")
