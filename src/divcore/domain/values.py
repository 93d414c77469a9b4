"""Typed Value Model — the eight value kinds a card variable can hold.

Every value entering the engine passes through :meth:`TypedValue.from_typed`
or :meth:`TypedValue.from_string`; there is no other constructor path that
skips validation.

INVARIANT: Integers are Python ``int`` (arbitrary precision) and are never
routed through ``float``. ``9007199254740993 + 1`` stays exact.
"""

from __future__ import annotations

import copy
import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from divcore.domain.errors import IncorrectValue


class ValueType(StrEnum):
    """Value kinds, named as they appear in card JSON."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    COLOR = "color"
    URL = "url"
    DICT = "dict"
    ARRAY = "array"

    @property
    def is_numeric(self) -> bool:
        return self in (ValueType.NUMBER, ValueType.INTEGER)


# #RGB, #ARGB, #RRGGBB, #AARRGGBB
_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

_BOOLEAN_STRINGS: dict[str, bool] = {"true": True, "false": False, "1": True, "0": False}


def parse_value_type(raw: Any, *, name: str | None = None) -> ValueType:
    """Map a declared type name onto :class:`ValueType` or fail ``IncorrectValue``."""
    try:
        return ValueType(raw)
    except ValueError:
        raise IncorrectValue(f"Unsupported variable type: {raw!r}", variable=name, type=raw) from None


def canonical_color(text: str) -> str:
    """Canonicalise a hex color to upper-case ``#AARRGGBB``.

    >>> canonical_color("#f00")
    '#FFFF0000'
    >>> canonical_color("#8000ff00")
    '#8000FF00'
    """
    digits = text[1:].upper()
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 6:
        digits = "FF" + digits
    return "#" + digits


@dataclass(frozen=True, eq=False, slots=True)
class TypedValue:
    """A validated value tagged with its :class:`ValueType`.

    Dict and array payloads are private deep copies; treat them as
    read-only and build a new ``TypedValue`` to change them.
    """

    type: ValueType
    value: Any

    # -- construction -------------------------------------------------

    @classmethod
    def from_typed(cls, type_: ValueType | str, value: Any, *, name: str | None = None) -> TypedValue:
        """Validate an already-typed Python value for *type_*."""
        vtype = parse_value_type(type_, name=name)
        checker = _CHECKERS[vtype]
        return cls(vtype, checker(value, name))

    @classmethod
    def from_string(cls, type_: ValueType | str, text: str, *, name: str | None = None) -> TypedValue:
        """Parse *text* according to *type_*."""
        vtype = parse_value_type(type_, name=name)
        if not isinstance(text, str):
            raise _incorrect(name, text, vtype)

        if vtype is ValueType.INTEGER:
            if not _INTEGER_RE.match(text):
                raise _incorrect(name, text, vtype)
            return cls(vtype, int(text))
        if vtype is ValueType.NUMBER:
            if not _NUMBER_RE.match(text):
                raise _incorrect(name, text, vtype)
            return cls.from_typed(vtype, float(text), name=name)
        if vtype is ValueType.BOOLEAN:
            if text not in _BOOLEAN_STRINGS:
                raise _incorrect(name, text, vtype)
            return cls(vtype, _BOOLEAN_STRINGS[text])
        if vtype in (ValueType.DICT, ValueType.ARRAY):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError as exc:
                raise IncorrectValue(
                    f"Incorrect {vtype} value", variable=name, value=text, type=str(vtype)
                ) from exc
            return cls.from_typed(vtype, parsed, name=name)
        return cls.from_typed(vtype, text, name=name)

    @classmethod
    def infer(cls, raw: Any) -> TypedValue:
        """Tag a plain JSON value (e.g. a dict member) with its natural type."""
        if isinstance(raw, bool):
            return cls(ValueType.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ValueType.INTEGER, raw)
        if isinstance(raw, float):
            return cls.from_typed(ValueType.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueType.STRING, raw)
        if isinstance(raw, Mapping):
            return cls.from_typed(ValueType.DICT, raw)
        if isinstance(raw, (list, tuple)):
            return cls.from_typed(ValueType.ARRAY, raw)
        raise IncorrectValue(f"Unsupported value: {raw!r}", value=raw)

    # -- presentation -------------------------------------------------

    def to_text(self) -> str:
        """Canonical string form used in string-concatenation contexts."""
        return to_text(self.type, self.value)

    def to_wire(self) -> dict[str, Any]:
        """``{type, value}`` as it appears in action payloads (booleans as 1/0)."""
        value = self.value
        if self.type is ValueType.BOOLEAN:
            value = 1 if value else 0
        elif self.type in (ValueType.DICT, ValueType.ARRAY):
            value = copy.deepcopy(value)
        return {"type": str(self.type), "value": value}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedValue):
            return NotImplemented
        return self.type is other.type and structurally_equal(self.value, other.value)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"TypedValue({self.type}, {self.value!r})"


def to_text(vtype: ValueType, value: Any) -> str:
    if vtype is ValueType.BOOLEAN:
        return "true" if value else "false"
    if vtype is ValueType.NUMBER:
        return repr(float(value))
    if vtype is ValueType.INTEGER:
        return str(value)
    if vtype in (ValueType.DICT, ValueType.ARRAY):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def construct(name: str, type_: ValueType | str, raw: Any) -> TypedValue:
    """Build the initial value of variable *name* from a card declaration.

    Strings are parsed per type; anything else is validated as-is.
    """
    vtype = parse_value_type(type_, name=name)
    if isinstance(raw, str):
        return TypedValue.from_string(vtype, raw, name=name)
    return TypedValue.from_typed(vtype, raw, name=name)


def structurally_equal(a: Any, b: Any) -> bool:
    """Deep equality that keeps ``True``/``1`` and ``1``/``1.0`` apart."""
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        if a.keys() != b.keys():
            return False
        return all(structurally_equal(a[k], b[k]) for k in a)
    if isinstance(a, list):
        if len(a) != len(b):
            return False
        return all(structurally_equal(x, y) for x, y in zip(a, b, strict=True))
    return bool(a == b)


# ---------------------------------------------------------------------------
# Per-type validators
# ---------------------------------------------------------------------------


def _incorrect(name: str | None, value: Any, vtype: ValueType) -> IncorrectValue:
    return IncorrectValue("Incorrect variable value", variable=name, value=value, type=str(vtype))


def _check_string(value: Any, name: str | None) -> str:
    if not isinstance(value, str):
        raise _incorrect(name, value, ValueType.STRING)
    return value


def _check_url(value: Any, name: str | None) -> str:
    if not isinstance(value, str):
        raise _incorrect(name, value, ValueType.URL)
    return value


def _check_number(value: Any, name: str | None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _incorrect(name, value, ValueType.NUMBER)
    try:
        number = float(value)
    except OverflowError:
        raise _incorrect(name, value, ValueType.NUMBER) from None
    if not math.isfinite(number):
        raise _incorrect(name, value, ValueType.NUMBER)
    return number


def _check_integer(value: Any, name: str | None) -> int:
    if isinstance(value, bool):
        raise _incorrect(name, value, ValueType.INTEGER)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    raise _incorrect(name, value, ValueType.INTEGER)


def _check_boolean(value: Any, name: str | None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise _incorrect(name, value, ValueType.BOOLEAN)


def _check_color(value: Any, name: str | None) -> str:
    if not isinstance(value, str) or not _COLOR_RE.match(value):
        raise _incorrect(name, value, ValueType.COLOR)
    return canonical_color(value)


def _check_dict(value: Any, name: str | None) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        raise _incorrect(name, value, ValueType.DICT)
    result = _copy_json(value, name, ValueType.DICT)
    assert isinstance(result, dict)
    return result


def _check_array(value: Any, name: str | None) -> list[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise _incorrect(name, value, ValueType.ARRAY)
    result = _copy_json(value, name, ValueType.ARRAY)
    assert isinstance(result, list)
    return result


def _copy_json(value: Any, name: str | None, vtype: ValueType) -> Any:
    """Deep-copy a JSON-shaped structure, rejecting anything JSON can't hold."""
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise _incorrect(name, value, vtype)
        return value
    if isinstance(value, Mapping):
        copied: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise _incorrect(name, value, vtype)
            copied[key] = _copy_json(item, name, vtype)
        return copied
    if isinstance(value, (list, tuple)):
        return [_copy_json(item, name, vtype) for item in value]
    raise _incorrect(name, value, vtype)


_CHECKERS = {
    ValueType.STRING: _check_string,
    ValueType.NUMBER: _check_number,
    ValueType.INTEGER: _check_integer,
    ValueType.BOOLEAN: _check_boolean,
    ValueType.COLOR: _check_color,
    ValueType.URL: _check_url,
    ValueType.DICT: _check_dict,
    ValueType.ARRAY: _check_array,
}
