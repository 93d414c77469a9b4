"""Error kinds raised by the engine and the structured report handed to hosts.

Every recoverable failure is a :class:`DivError` subclass. Callers at the
recovery boundary (binding recomputation, action dispatch, document load)
catch it, attach context, and deliver ``error.report()`` to the host's
``on_error`` hook.

INVARIANT: Only :class:`DocumentClosed` is fatal. Everything else is
reported and the render pass or action batch continues.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, Field


class ErrorReport(BaseModel):
    """Structured error payload delivered to the host error channel."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class DivError(Exception):
    """Base class for all engine errors.

    Attributes:
        code: Stable machine-readable error kind.
        message: Human-readable description.
        detail: Context accumulated on the way up (variable, value, action...).
    """

    code: ClassVar[str] = "DIV_ERROR"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = {k: v for k, v in detail.items() if v is not None}

    def with_context(self, **context: Any) -> DivError:
        """Attach context without overwriting keys set closer to the origin."""
        for key, value in context.items():
            if value is not None:
                self.detail.setdefault(key, value)
        return self

    def report(self) -> ErrorReport:
        return ErrorReport(code=self.code, message=self.message, detail=_jsonable(self.detail))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, detail={self.detail!r})"


class ParseError(DivError):
    """Malformed ``@{...}`` span or expression."""

    code = "PARSE_ERROR"

    def __init__(self, message: str, source: str, offset: int, **detail: Any) -> None:
        super().__init__(message, source=source, offset=offset, **detail)
        self.source = source
        self.offset = offset


class VariableNotFound(DivError):
    code = "VARIABLE_NOT_FOUND"

    def __init__(self, name: str, **detail: Any) -> None:
        super().__init__(f"Variable not found: {name}", variable=name, **detail)
        self.name = name


class TypeMismatch(DivError):
    code = "TYPE_MISMATCH"


class IncorrectValue(DivError):
    code = "INCORRECT_VALUE"


class OutOfBounds(DivError):
    code = "OUT_OF_BOUNDS"


class PathError(DivError):
    code = "PATH_ERROR"


class ResolutionError(DivError):
    """Template expansion problem. Non-fatal: the partial node is kept."""

    code = "RESOLUTION_ERROR"


class CannotMutateConst(DivError):
    code = "CANNOT_MUTATE_CONST"


class EvaluationError(DivError):
    code = "EVALUATION_ERROR"


class StateNotFound(DivError):
    code = "STATE_NOT_FOUND"


class DocumentClosed(DivError):
    """Use of a document after ``close()``. The one fatal error kind."""

    code = "DOCUMENT_CLOSED"


def _jsonable(value: Any) -> Any:
    """Coerce detail values into something a JSON encoder accepts."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return repr(value)
