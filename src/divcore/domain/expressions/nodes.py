"""
Expression AST for bound strings.

A bound string compiles to a :class:`Template`: literal text interleaved
with expression parts. Expression nodes are frozen pydantic models and
render back to source form with ``str()``.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


class BinaryOp(StrEnum):
    """Binary operators for expressions."""

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    # Logical
    AND = "&&"
    OR = "||"


class UnaryOp(StrEnum):
    """Unary operators for expressions."""

    NEG = "-"
    NOT = "!"


# ---------------------------------------------------------------------------
# AST node types
# ---------------------------------------------------------------------------


class Literal(BaseModel):
    """A literal value: integer, number, string or boolean."""

    value: bool | int | float | str = Field(description="The literal value")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        if isinstance(self.value, str):
            escaped = self.value.replace("\\", "\\\\").replace("'", "\\'")
            return f"'{escaped}'"
        return repr(self.value)


class VariableRef(BaseModel):
    """Reference to a store variable by name."""

    name: str
    pos: int = Field(default=0, description="Offset in the bound string")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.name


class UnaryExpr(BaseModel):
    """Unary operation: op operand."""

    op: UnaryOp
    operand: Expr

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.op.value}{self.operand}"


class BinaryExpr(BaseModel):
    """Binary operation: left op right."""

    op: BinaryOp
    left: Expr
    right: Expr

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"({self.left} {self.op.value} {self.right})"


class TernaryExpr(BaseModel):
    """Conditional: condition ? then_expr : else_expr."""

    condition: Expr
    then_expr: Expr
    else_expr: Expr

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"({self.condition} ? {self.then_expr} : {self.else_expr})"


class MemberAccess(BaseModel):
    """``target.key`` (dotted, key is a Literal string) or ``target[key]``."""

    target: Expr
    key: Expr
    dotted: bool = False

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.dotted and isinstance(self.key, Literal):
            return f"{self.target}.{self.key.value}"
        return f"{self.target}[{self.key}]"


class FuncCall(BaseModel):
    """Function call: name(arg1, arg2, ...)."""

    name: str
    args: list[Expr] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        args_str = ", ".join(str(a) for a in self.args)
        return f"{self.name}({args_str})"


Expr = Literal | VariableRef | UnaryExpr | BinaryExpr | TernaryExpr | MemberAccess | FuncCall

UnaryExpr.model_rebuild()
BinaryExpr.model_rebuild()
TernaryExpr.model_rebuild()
MemberAccess.model_rebuild()
FuncCall.model_rebuild()


# ---------------------------------------------------------------------------
# Bound strings
# ---------------------------------------------------------------------------


class TextPart(BaseModel):
    """Literal text between spans, with escapes already applied."""

    text: str

    model_config = ConfigDict(frozen=True)


class ExprPart(BaseModel):
    """One ``@{...}`` span. ``offset`` is the position of its ``@``."""

    node: Expr
    offset: int

    model_config = ConfigDict(frozen=True)


class Template(BaseModel):
    """A compiled bound string."""

    source: str
    parts: list[TextPart | ExprPart] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def has_expression(self) -> bool:
        return any(isinstance(p, ExprPart) for p in self.parts)

    @property
    def is_single_expression(self) -> bool:
        """Exactly one span and nothing else: evaluation keeps its type."""
        return len(self.parts) == 1 and isinstance(self.parts[0], ExprPart)

    def __str__(self) -> str:
        return self.source
