"""
Evaluator for compiled bound strings.

Evaluation is pure: it reads a snapshot of variable values, records every
variable it actually touched, and returns a typed result. Short-circuit
operators skip the unevaluated side, so that side contributes no
dependencies.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from divcore.domain.errors import (
    DivError,
    EvaluationError,
    OutOfBounds,
    TypeMismatch,
    VariableNotFound,
)
from divcore.domain.expressions.functions import FunctionRegistry
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
    UnaryExpr,
    UnaryOp,
    VariableRef,
)
from divcore.domain.expressions.parser import parse_template
from divcore.domain.values import TypedValue, ValueType

_default_functions: FunctionRegistry | None = None


def default_functions() -> FunctionRegistry:
    """Shared built-in registry used when the caller supplies none."""
    global _default_functions
    if _default_functions is None:
        _default_functions = FunctionRegistry.with_builtins()
    return _default_functions


@dataclass(frozen=True, slots=True)
class EvalResult:
    """Typed outcome of one evaluation plus the variables it read."""

    typed: TypedValue
    used_variables: frozenset[str]

    @property
    def type(self) -> ValueType:
        return self.typed.type

    @property
    def value(self) -> Any:
        return self.typed.value


class Evaluator:
    """Evaluates templates against one variable snapshot.

    ``used`` keeps the variables read so far even when evaluation fails,
    so a failing binding can still watch what it depends on.
    """

    def __init__(
        self,
        variables: Mapping[str, TypedValue],
        functions: FunctionRegistry | None = None,
    ) -> None:
        self.variables = variables
        self.functions = functions if functions is not None else default_functions()
        self.used: set[str] = set()

    def run(self, template: Template) -> EvalResult:
        try:
            typed = self._render(template)
        except DivError as exc:
            exc.with_context(expression=template.source)
            raise
        return EvalResult(typed, frozenset(self.used))

    def _render(self, template: Template) -> TypedValue:
        if template.is_single_expression:
            part = template.parts[0]
            assert isinstance(part, ExprPart)
            return self.eval(part.node)
        chunks: list[str] = []
        for part in template.parts:
            if isinstance(part, ExprPart):
                chunks.append(self.eval(part.node).to_text())
            else:
                chunks.append(part.text)
        return TypedValue(ValueType.STRING, "".join(chunks))

    # -- nodes --

    def eval(self, node: Expr) -> TypedValue:
        if isinstance(node, Literal):
            return TypedValue.infer(node.value)
        if isinstance(node, VariableRef):
            return self._variable(node)
        if isinstance(node, UnaryExpr):
            return self._unary(node)
        if isinstance(node, BinaryExpr):
            return self._binary(node)
        if isinstance(node, TernaryExpr):
            condition = _require_boolean(self.eval(node.condition), "?:")
            return self.eval(node.then_expr if condition else node.else_expr)
        if isinstance(node, MemberAccess):
            return self._member(node)
        if isinstance(node, FuncCall):
            args = [self.eval(arg) for arg in node.args]
            return self.functions.call(node.name, args)
        raise EvaluationError(f"Unsupported expression node: {type(node).__name__}")

    def _variable(self, node: VariableRef) -> TypedValue:
        self.used.add(node.name)
        try:
            return self.variables[node.name]
        except KeyError:
            raise VariableNotFound(node.name) from None

    def _unary(self, node: UnaryExpr) -> TypedValue:
        operand = self.eval(node.operand)
        if node.op is UnaryOp.NOT:
            return TypedValue(ValueType.BOOLEAN, not _require_boolean(operand, "!"))
        if operand.type is ValueType.INTEGER:
            return TypedValue(ValueType.INTEGER, -operand.value)
        if operand.type is ValueType.NUMBER:
            return TypedValue(ValueType.NUMBER, -operand.value)
        raise _mismatch("-", operand)

    def _binary(self, node: BinaryExpr) -> TypedValue:
        op = node.op
        if op in (BinaryOp.AND, BinaryOp.OR):
            left = _require_boolean(self.eval(node.left), op.value)
            if left == (op is BinaryOp.OR):
                return TypedValue(ValueType.BOOLEAN, left)
            right = _require_boolean(self.eval(node.right), op.value)
            return TypedValue(ValueType.BOOLEAN, right)

        left_value = self.eval(node.left)
        right_value = self.eval(node.right)
        if op in (BinaryOp.EQ, BinaryOp.NE):
            equal = _equals(left_value, right_value)
            return TypedValue(ValueType.BOOLEAN, equal if op is BinaryOp.EQ else not equal)
        if op in (BinaryOp.LT, BinaryOp.LE, BinaryOp.GT, BinaryOp.GE):
            return TypedValue(ValueType.BOOLEAN, _compare(op, left_value, right_value))
        return _arithmetic(op, left_value, right_value)

    def _member(self, node: MemberAccess) -> TypedValue:
        target = self.eval(node.target)
        key = self.eval(node.key)
        if target.type is ValueType.DICT:
            if key.type is not ValueType.STRING:
                raise TypeMismatch(
                    f"Dict key must be string, got {key.type}", key=key.to_text()
                )
            if key.value not in target.value:
                raise EvaluationError(f"Missing property \"{key.value}\" in the dict", key=key.value)
            return _member_value(target.value[key.value], key.value)
        if target.type is ValueType.ARRAY:
            if key.type is not ValueType.INTEGER:
                raise TypeMismatch(
                    f"Array index must be integer, got {key.type}", key=key.to_text()
                )
            index = key.value
            if not 0 <= index < len(target.value):
                raise OutOfBounds(
                    f"Index out of bound {index} for length {len(target.value)}",
                    index=index,
                    length=len(target.value),
                )
            return _member_value(target.value[index], index)
        raise TypeMismatch(f"Cannot access members of {target.type}", type=str(target.type))


def evaluate(
    template: Template | str,
    variables: Mapping[str, TypedValue],
    functions: FunctionRegistry | None = None,
) -> EvalResult:
    """Evaluate *template* (compiled or source) against *variables*."""
    if isinstance(template, str):
        template = parse_template(template)
    return Evaluator(variables, functions).run(template)


# ---------------------------------------------------------------------------
# Operator semantics
# ---------------------------------------------------------------------------


def _mismatch(op: str, *operands: TypedValue) -> TypeMismatch:
    kinds = ", ".join(str(o.type) for o in operands)
    return TypeMismatch(
        f"Operator '{op}' cannot be applied to ({kinds})",
        operator=op,
        operands=[str(o.type) for o in operands],
    )


def _require_boolean(value: TypedValue, op: str) -> bool:
    if value.type is not ValueType.BOOLEAN:
        raise _mismatch(op, value)
    return bool(value.value)


def _member_value(raw: Any, key: str | int) -> TypedValue:
    if raw is None:
        raise EvaluationError(f"Member {key!r} is null", key=key)
    return TypedValue.infer(raw)


def _as_float(value: TypedValue) -> float:
    try:
        return float(value.value)
    except OverflowError:
        raise EvaluationError("Integer is too large for a number operation") from None


def _finite(result: float) -> TypedValue:
    if not math.isfinite(result):
        raise EvaluationError("Result is not a finite number")
    return TypedValue(ValueType.NUMBER, result)


def _equals(left: TypedValue, right: TypedValue) -> bool:
    if left.type.is_numeric and right.type.is_numeric:
        if left.type is right.type:
            return bool(left.value == right.value)
        return _as_float(left) == _as_float(right)
    if left.type is not right.type:
        raise _mismatch("==", left, right)
    return left == right


def _compare(op: BinaryOp, left: TypedValue, right: TypedValue) -> bool:
    if left.type.is_numeric and right.type.is_numeric:
        if left.type is right.type:
            a, b = left.value, right.value
        else:
            a, b = _as_float(left), _as_float(right)
    elif left.type is ValueType.STRING and right.type is ValueType.STRING:
        a, b = left.value, right.value
    else:
        raise _mismatch(op.value, left, right)
    if op is BinaryOp.LT:
        return bool(a < b)
    if op is BinaryOp.LE:
        return bool(a <= b)
    if op is BinaryOp.GT:
        return bool(a > b)
    return bool(a >= b)


def _truncated_divmod(a: int, b: int) -> tuple[int, int]:
    """Integer quotient and remainder rounding toward zero."""
    quotient = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        quotient = -quotient
    return quotient, a - b * quotient


def _arithmetic(op: BinaryOp, left: TypedValue, right: TypedValue) -> TypedValue:
    if op is BinaryOp.ADD and left.type is ValueType.STRING and right.type is ValueType.STRING:
        return TypedValue(ValueType.STRING, left.value + right.value)
    if not (left.type.is_numeric and right.type.is_numeric):
        raise _mismatch(op.value, left, right)

    if left.type is ValueType.INTEGER and right.type is ValueType.INTEGER:
        a, b = left.value, right.value
        if op is BinaryOp.ADD:
            return TypedValue(ValueType.INTEGER, a + b)
        if op is BinaryOp.SUB:
            return TypedValue(ValueType.INTEGER, a - b)
        if op is BinaryOp.MUL:
            return TypedValue(ValueType.INTEGER, a * b)
        if b == 0:
            raise EvaluationError("Division by zero", operator=op.value)
        quotient, remainder = _truncated_divmod(a, b)
        return TypedValue(ValueType.INTEGER, quotient if op is BinaryOp.DIV else remainder)

    x, y = _as_float(left), _as_float(right)
    if op is BinaryOp.ADD:
        return _finite(x + y)
    if op is BinaryOp.SUB:
        return _finite(x - y)
    if op is BinaryOp.MUL:
        return _finite(x * y)
    if y == 0:
        raise EvaluationError("Division by zero", operator=op.value)
    if op is BinaryOp.DIV:
        return _finite(x / y)
    return _finite(math.fmod(x, y))
