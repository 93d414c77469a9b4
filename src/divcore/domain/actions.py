"""Action models and the pure structural helpers behind typed mutations.

An :class:`Action` arrives as raw card JSON. Its ``typed`` payload is kept
raw until dispatch, because ``@{}`` string fields are evaluated against the
store at that moment; only then is it validated into one of the
``TypedCommand`` models below.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError

from divcore.domain.errors import IncorrectValue, OutOfBounds, PathError, TypeMismatch
from divcore.domain.values import TypedValue, ValueType, construct

PATH_SEPARATOR = "/"


class Action(BaseModel):
    """One entry of an action list."""

    model_config = ConfigDict(frozen=True, extra="allow")

    log_id: str | None = None
    url: str | None = None
    typed: dict[str, Any] | None = None

    @property
    def typed_type(self) -> str | None:
        if self.typed is None:
            return None
        kind = self.typed.get("type")
        return kind if isinstance(kind, str) else None


class TypedValuePayload(BaseModel):
    """Typed-value wire form ``{type, value}`` used by command value fields."""

    model_config = ConfigDict(frozen=True)

    type: ValueType
    value: Any = None

    def to_typed(self, name: str | None = None) -> TypedValue:
        return construct(name or "<action>", self.type, self.value)


# ---------------------------------------------------------------------------
# Typed commands
# ---------------------------------------------------------------------------


class SetVariable(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["set_variable"] = "set_variable"
    variable_name: StrictStr
    value: TypedValuePayload


class SetState(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["set_state"] = "set_state"
    state_id: StrictStr | StrictInt
    temporary_state_id: StrictStr | StrictInt

    @property
    def target(self) -> str:
        return str(self.state_id)


class ArrayInsertValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["array_insert_value"] = "array_insert_value"
    variable_name: StrictStr
    index: StrictInt | None = None
    value: TypedValuePayload


class ArrayRemoveValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["array_remove_value"] = "array_remove_value"
    variable_name: StrictStr
    index: StrictInt


class ArraySetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["array_set_value"] = "array_set_value"
    variable_name: StrictStr
    index: StrictInt
    value: TypedValuePayload


class DictSetValue(BaseModel):
    """Absent ``value`` deletes ``key``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["dict_set_value"] = "dict_set_value"
    variable_name: StrictStr
    key: StrictStr
    value: TypedValuePayload | None = None


class UpdateStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["update_structure"] = "update_structure"
    variable_name: StrictStr
    path: StrictStr
    value: TypedValuePayload


class ClipboardContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text", "url"]
    value: StrictStr


class CopyToClipboard(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["copy_to_clipboard"] = "copy_to_clipboard"
    content: ClipboardContent


TypedCommand = Annotated[
    SetVariable
    | SetState
    | ArrayInsertValue
    | ArrayRemoveValue
    | ArraySetValue
    | DictSetValue
    | UpdateStructure
    | CopyToClipboard,
    Field(discriminator="type"),
]

COMMAND_TYPES: frozenset[str] = frozenset(
    {
        "set_variable",
        "set_state",
        "array_insert_value",
        "array_remove_value",
        "array_set_value",
        "dict_set_value",
        "update_structure",
        "copy_to_clipboard",
    }
)

_command_adapter: TypeAdapter[TypedCommand] = TypeAdapter(TypedCommand)


def parse_command(payload: Mapping[str, Any]) -> TypedCommand:
    """Validate a ``typed`` payload. Raises :class:`IncorrectValue`."""
    kind = payload.get("type")
    if kind not in COMMAND_TYPES:
        raise IncorrectValue(f"Unknown action type: {kind!r}", action=kind)
    try:
        return _command_adapter.validate_python(dict(payload))
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'][1:]) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise IncorrectValue("Incorrect action", action=kind, problems=problems) from exc


# ---------------------------------------------------------------------------
# Structural helpers (copy-on-write)
# ---------------------------------------------------------------------------


def split_path(path: str) -> list[str]:
    """Split an ``update_structure`` path, rejecting empty segments up front."""
    if not path:
        raise PathError("Path is empty", path=path)
    segments = path.split(PATH_SEPARATOR)
    if any(segment == "" for segment in segments):
        raise PathError(f"Invalid path: {path!r}", path=path)
    return segments


def _array_index(segment: str, path: str) -> int:
    if not (segment.isascii() and segment.isdigit()):
        raise PathError(f"Array path element {segment!r} is not an index", path=path)
    return int(segment)


def update_path(root: Any, path: str, value: Any) -> Any:
    """Return a copy of *root* with *value* stored at *path*."""
    segments = split_path(path)
    if not isinstance(root, (dict, list)):
        raise TypeMismatch("Structure update needs a dict or array", path=path)
    result = copy.deepcopy(root)
    current: Any = result
    for segment in segments[:-1]:
        if isinstance(current, dict):
            if segment not in current:
                raise PathError(f"Path element {segment!r} not found", path=path)
            current = current[segment]
        elif isinstance(current, list):
            index = _array_index(segment, path)
            if index >= len(current):
                raise PathError(f"Path element {segment!r} not found", path=path)
            current = current[index]
        else:
            raise PathError(f"Path element {segment!r} is not a container", path=path)
        if not isinstance(current, (dict, list)):
            raise PathError(f"Path element {segment!r} is not a container", path=path)

    last = segments[-1]
    if isinstance(current, dict):
        current[last] = value
    else:
        index = _array_index(last, path)
        if index >= len(current):
            raise OutOfBounds(
                f"Index out of bound {index} for length {len(current)}", path=path, index=index
            )
        current[index] = value
    return result


def check_index(index: int, length: int, *, inclusive: bool = False) -> None:
    """``0 <= index < length`` (``<=`` when *inclusive*) or :class:`OutOfBounds`."""
    upper = length if inclusive else length - 1
    if not 0 <= index <= upper:
        raise OutOfBounds(
            f"Index out of bound {index} for length {length}", index=index, length=length
        )
