"""Function registry for expression calls.

Functions are overloads keyed by name and parameter types. Resolution
prefers an exact type match and falls back to promoting integer arguments
to number. A parameter typed ``None`` accepts any value and receives the
:class:`TypedValue` itself; typed parameters receive plain Python values.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from divcore.domain.errors import DivError, EvaluationError, OutOfBounds, TypeMismatch
from divcore.domain.values import TypedValue, ValueType

S = ValueType.STRING
N = ValueType.NUMBER
I = ValueType.INTEGER  # noqa: E741
B = ValueType.BOOLEAN
D = ValueType.DICT
A = ValueType.ARRAY

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


@dataclass(frozen=True, slots=True)
class Function:
    """One overload. With ``variadic`` the last parameter repeats (at least once)."""

    name: str
    params: tuple[ValueType | None, ...]
    result: ValueType
    impl: Callable[..., Any]
    variadic: bool = False

    def signature(self) -> str:
        names = [str(p) if p is not None else "any" for p in self.params]
        if self.variadic and names:
            names[-1] += "..."
        return f"{self.name}({', '.join(names)}) -> {self.result}"

    def _param_types(self, arity: int) -> list[ValueType | None] | None:
        if self.variadic:
            if arity < len(self.params):
                return None
            return list(self.params[:-1]) + [self.params[-1]] * (arity - len(self.params) + 1)
        if arity != len(self.params):
            return None
        return list(self.params)

    def accepts(self, args: Sequence[TypedValue], *, promote: bool) -> bool:
        params = self._param_types(len(args))
        if params is None:
            return False
        for param, arg in zip(params, args, strict=True):
            if param is None or param is arg.type:
                continue
            if promote and param is N and arg.type is I:
                continue
            return False
        return True

    def invoke(self, args: Sequence[TypedValue]) -> TypedValue:
        params = self._param_types(len(args))
        assert params is not None
        values: list[Any] = []
        for param, arg in zip(params, args, strict=True):
            if param is None:
                values.append(arg)
            elif param is N and arg.type is I:
                values.append(float(arg.value))
            else:
                values.append(arg.value)
        try:
            result = self.impl(*values)
        except DivError:
            raise
        except (ArithmeticError, ValueError, TypeError, KeyError, IndexError) as exc:
            raise EvaluationError(
                f"Failed to evaluate [{self.name}]: {exc}", function=self.name
            ) from exc
        if isinstance(result, TypedValue):
            return result
        return TypedValue.from_typed(self.result, result)


class FunctionRegistry:
    """Overloads by name. Later registrations win over earlier ones."""

    def __init__(self, functions: Iterable[Function] = ()) -> None:
        self._by_name: dict[str, list[Function]] = {}
        for fn in functions:
            self.register(fn)

    @classmethod
    def with_builtins(cls) -> FunctionRegistry:
        return cls(BUILTINS)

    def register(self, fn: Function) -> Function:
        self._by_name.setdefault(fn.name, []).insert(0, fn)
        return fn

    def add(
        self,
        name: str,
        params: Sequence[ValueType | str | None],
        result: ValueType | str,
        impl: Callable[..., Any],
        *,
        variadic: bool = False,
    ) -> Function:
        """Register a host function from plain arguments."""
        fn = Function(
            name=name,
            params=tuple(ValueType(p) if p is not None else None for p in params),
            result=ValueType(result),
            impl=impl,
            variadic=variadic,
        )
        return self.register(fn)

    def copy(self) -> FunctionRegistry:
        clone = FunctionRegistry()
        clone._by_name = {name: list(fns) for name, fns in self._by_name.items()}
        return clone

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def overloads(self, name: str) -> list[Function]:
        return list(self._by_name.get(name, ()))

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return sum(len(fns) for fns in self._by_name.values())

    def resolve(self, name: str, args: Sequence[TypedValue]) -> Function:
        overloads = self._by_name.get(name)
        if not overloads:
            raise EvaluationError(f"Unknown function: {name}", function=name)
        for promote in (False, True):
            for fn in overloads:
                if fn.accepts(args, promote=promote):
                    return fn
        given = ", ".join(str(a.type) for a in args)
        raise TypeMismatch(
            f"Function [{name}] has no matching override for ({given})",
            function=name,
            arguments=[str(a.type) for a in args],
        )

    def call(self, name: str, args: Sequence[TypedValue]) -> TypedValue:
        return self.resolve(name, args).invoke(args)


# ---------------------------------------------------------------------------
# Built-ins
# ---------------------------------------------------------------------------


def _substring(text: str, start: int, end: int) -> str:
    if start < 0 or end > len(text) or start > end:
        raise OutOfBounds(
            f"Indexes are out of bounds: [{start}, {end}) for length {len(text)}",
            function="substring",
        )
    return text[start:end]


def _to_integer(text: str) -> int:
    if not _INTEGER_RE.match(text):
        raise ValueError(f"Unable to convert value to Integer: {text!r}")
    return int(text)


def _to_number(text: str) -> float:
    if not _NUMBER_RE.match(text):
        raise ValueError(f"Unable to convert value to Number: {text!r}")
    return float(text)


def _string_to_boolean(text: str) -> bool:
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError(f"Unable to convert value to Boolean: {text!r}")


def _integer_to_boolean(value: int) -> bool:
    if value not in (0, 1):
        raise ValueError(f"Unable to convert value to Boolean: {value}")
    return value == 1


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


BUILTINS: tuple[Function, ...] = (
    # Strings
    Function("len", (S,), I, len),
    Function("len", (A,), I, len),
    Function("len", (D,), I, len),
    Function("toUpperCase", (S,), S, str.upper),
    Function("toLowerCase", (S,), S, str.lower),
    Function("trim", (S,), S, str.strip),
    Function("contains", (S, S), B, lambda text, part: part in text),
    Function("substring", (S, I, I), S, _substring),
    Function("replaceAll", (S, S, S), S, lambda text, old, new: text.replace(old, new)),
    # Conversions
    Function("toString", (None,), S, lambda value: value.to_text()),
    Function("toInteger", (S,), I, _to_integer),
    Function("toInteger", (N,), I, math.trunc),
    Function("toInteger", (B,), I, int),
    Function("toNumber", (S,), N, _to_number),
    Function("toNumber", (I,), N, float),
    Function("toBoolean", (S,), B, _string_to_boolean),
    Function("toBoolean", (I,), B, _integer_to_boolean),
    # Math
    Function("abs", (I,), I, abs),
    Function("abs", (N,), N, abs),
    Function("min", (I,), I, min, variadic=True),
    Function("min", (N,), N, min, variadic=True),
    Function("max", (I,), I, max, variadic=True),
    Function("max", (N,), N, max, variadic=True),
    Function("round", (N,), N, _round_half_up),
    Function("floor", (N,), N, lambda value: float(math.floor(value))),
    Function("ceil", (N,), N, lambda value: float(math.ceil(value))),
    # Collections
    Function("getArrayLength", (A,), I, len),
    Function("containsKey", (D, S), B, lambda mapping, key: key in mapping),
)
