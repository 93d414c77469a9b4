"""Tests for expression evaluation."""

from typing import Any

import pytest

from divcore.domain.errors import (
    EvaluationError,
    OutOfBounds,
    TypeMismatch,
    VariableNotFound,
)
from divcore.domain.expressions import Evaluator, evaluate, parse_expression
from divcore.domain.values import TypedValue, ValueType
from divcore.domain.variables import VariableStore


def _eval(source: str, store: VariableStore | None = None) -> TypedValue:
    variables = store.snapshot() if store is not None else {}
    return evaluate(source, variables).typed


class TestArithmetic:
    def test_integer_stays_exact_beyond_2_53(self) -> None:
        variables = {"counter": TypedValue(ValueType.INTEGER, 9007199254740993)}
        result = evaluate("@{counter + 1}", variables)
        assert result.type is ValueType.INTEGER
        assert result.value == 9007199254740994

    def test_mixed_promotes_to_number(self) -> None:
        result = _eval("@{1 + 0.5}")
        assert result == TypedValue(ValueType.NUMBER, 1.5)

    def test_integer_division_truncates(self) -> None:
        assert _eval("@{7 / 2}").value == 3
        assert _eval("@{-7 / 2}").value == -3
        assert _eval("@{-7 % 2}").value == -1

    def test_division_by_zero(self) -> None:
        with pytest.raises(EvaluationError, match="Division by zero"):
            _eval("@{1 / 0}")
        with pytest.raises(EvaluationError, match="Division by zero"):
            _eval("@{1.0 / 0}")

    def test_boolean_plus_string_is_a_mismatch(self) -> None:
        with pytest.raises(TypeMismatch):
            _eval("@{true + 'x'}")

    def test_string_concatenation(self) -> None:
        assert _eval("@{'a' + 'b'}").value == "ab"

    def test_unary_minus(self) -> None:
        assert _eval("@{-(2 * 3)}").value == -6


class TestLogic:
    def test_comparisons(self) -> None:
        assert _eval("@{2 < 2.5}").value is True
        assert _eval("@{'b' >= 'a'}").value is True
        assert _eval("@{1 == 1.0}").value is True
        assert _eval("@{'a' != 'a'}").value is False

    def test_equality_requires_same_kind(self) -> None:
        with pytest.raises(TypeMismatch):
            _eval("@{1 == '1'}")

    def test_short_circuit(self) -> None:
        # The right operand would fail with VariableNotFound.
        assert _eval("@{false && missing}").value is False
        assert _eval("@{true || missing}").value is True

    def test_condition_must_be_boolean(self) -> None:
        with pytest.raises(TypeMismatch):
            _eval("@{1 ? 'a' : 'b'}")

    def test_not(self) -> None:
        assert _eval("@{!false}").value is True


class TestVariables:
    def test_used_variables(self, store: VariableStore) -> None:
        result = evaluate("@{enabled ? name : 'none'} @{counter}", store.snapshot())
        assert result.used_variables == frozenset({"enabled", "name", "counter"})

    def test_untaken_branch_is_not_used(self, store: VariableStore) -> None:
        result = evaluate("@{!enabled ? name : 'none'}", store.snapshot())
        assert result.used_variables == frozenset({"enabled"})

    def test_unknown_variable(self) -> None:
        with pytest.raises(VariableNotFound) as exc_info:
            _eval("@{ghost}")
        assert exc_info.value.detail["expression"] == "@{ghost}"

    def test_used_survives_failure(self, store: VariableStore) -> None:
        evaluator = Evaluator(store.snapshot())
        with pytest.raises(VariableNotFound):
            evaluator.eval(parse_expression("counter + ghost"))
        assert evaluator.used == {"counter", "ghost"}

    def test_evaluation_does_not_mutate(self, store: VariableStore) -> None:
        before = store.snapshot()
        _eval("@{len(items)} @{profile.city}", store)
        assert store.snapshot() == before


class TestRendering:
    def test_single_span_keeps_type(self, store: VariableStore) -> None:
        assert _eval("@{items}", store).type is ValueType.ARRAY

    def test_mixed_text_stringifies(self, store: VariableStore) -> None:
        result = _eval("n=@{counter}, on=@{enabled}, r=@{ratio}, i=@{items}", store)
        assert result.type is ValueType.STRING
        assert result.value == 'n=0, on=true, r=0.5, i=[{"name":"a"},{"name":"b"}]'

    def test_plain_text(self) -> None:
        assert _eval("just text") == TypedValue(ValueType.STRING, "just text")


class TestMemberAccess:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("@{profile.city}", "Oslo"),
            ("@{profile['age']}", 30),
            ("@{items[1].name}", "b"),
            ("@{items.0.name}", "a"),
        ],
    )
    def test_access(self, store: VariableStore, source: str, expected: Any) -> None:
        assert _eval(source, store).value == expected

    def test_missing_key(self, store: VariableStore) -> None:
        with pytest.raises(EvaluationError, match="Missing property"):
            _eval("@{profile.zip}", store)

    def test_index_out_of_bounds(self, store: VariableStore) -> None:
        with pytest.raises(OutOfBounds):
            _eval("@{items[2]}", store)

    def test_wrong_key_type(self, store: VariableStore) -> None:
        with pytest.raises(TypeMismatch):
            _eval("@{items['0']}", store)

    def test_scalar_has_no_members(self, store: VariableStore) -> None:
        with pytest.raises(TypeMismatch):
            _eval("@{name.length}", store)
