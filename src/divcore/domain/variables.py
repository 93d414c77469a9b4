"""Variables and the per-document Variable Store.

A store is owned by exactly one document; there is no process-wide
registry. All access happens on the document's single cooperative thread,
so nothing here takes a lock.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from divcore.domain.errors import (
    CannotMutateConst,
    DivError,
    IncorrectValue,
    TypeMismatch,
    VariableNotFound,
)
from divcore.domain.observable import Observable, Subscription
from divcore.domain.values import TypedValue, ValueType, construct

logger = logging.getLogger(__name__)

# Declared in cards but computed by the host, never stored here.
PROPERTY_TYPE = "property"


class Variable:
    """A named, typed, observable value cell."""

    def __init__(self, name: str, value: TypedValue) -> None:
        self.name = name
        self.type = value.type
        self._cell: Observable[TypedValue] = Observable(value)

    @classmethod
    def create(cls, name: str, type_: ValueType | str, raw: Any) -> Variable:
        return cls(name, construct(name, type_, raw))

    @property
    def value(self) -> TypedValue:
        return self._cell.value

    @property
    def subscriber_count(self) -> int:
        return self._cell.subscriber_count

    def get(self) -> Any:
        """Plain Python value. Containers are returned as copies."""
        return _plain(self._cell.value)

    def set(self, raw: Any) -> bool:
        """Replace the value from raw input. Strings are parsed per type.

        Returns False when the new value equals the current one.
        """
        if isinstance(raw, TypedValue):
            return self.set_typed(raw)
        if isinstance(raw, str):
            value = TypedValue.from_string(self.type, raw, name=self.name)
        else:
            value = TypedValue.from_typed(self.type, raw, name=self.name)
        return self._store(value)

    def set_typed(self, value: TypedValue) -> bool:
        if value.type is not self.type and not (value.type.is_numeric and self.type.is_numeric):
            raise TypeMismatch(
                f"Cannot assign {value.type} to {self.type} variable",
                variable=self.name,
                expected=str(self.type),
                actual=str(value.type),
            )
        if value.type is not self.type:
            value = TypedValue.from_typed(self.type, value.value, name=self.name)
        return self._store(value)

    def subscribe(self, callback: Callable[[Any], None], *, replay: bool = True) -> Subscription:
        """Watch plain values. Fires immediately unless ``replay=False``."""
        return self._cell.subscribe(lambda tv: callback(_plain(tv)), replay=replay)

    def watch(self, callback: Callable[[TypedValue], None], *, replay: bool = True) -> Subscription:
        """Watch typed values."""
        return self._cell.subscribe(callback, replay=replay)

    def _store(self, value: TypedValue) -> bool:
        changed = self._cell.set(value)
        if changed:
            logger.debug("Variable %s changed", self.name)
        return changed

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.value!r})"


class ConstVariable(Variable):
    """Read-only variable: every mutation raises :class:`CannotMutateConst`."""

    def set(self, raw: Any) -> bool:
        raise CannotMutateConst(
            "Cannot change the value of this type of variable", variable=self.name
        )

    def set_typed(self, value: TypedValue) -> bool:
        raise CannotMutateConst(
            "Cannot change the value of this type of variable", variable=self.name
        )

    def subscribe(self, callback: Callable[[Any], None], *, replay: bool = True) -> Subscription:
        if replay:
            callback(self.get())
        return Subscription()

    def watch(self, callback: Callable[[TypedValue], None], *, replay: bool = True) -> Subscription:
        if replay:
            callback(self.value)
        return Subscription()


class VariableStore:
    """Named variables of one document."""

    def __init__(self, variables: Iterable[Variable] = ()) -> None:
        self._vars: dict[str, Variable] = {}
        for variable in variables:
            self.declare(variable)

    @classmethod
    def from_declarations(
        cls,
        declarations: Iterable[Mapping[str, Any]],
        *,
        on_error: Callable[[DivError], None] | None = None,
    ) -> VariableStore:
        """Build a store from a card's ``variables`` list.

        ``property`` declarations are skipped. A bad declaration is passed to
        *on_error* (or raised when no handler is given) and the rest load.
        """
        store = cls()
        for decl in declarations:
            name = decl.get("name")
            type_ = decl.get("type")
            if type_ == PROPERTY_TYPE:
                continue
            try:
                if not isinstance(name, str) or not name:
                    raise IncorrectValue("Variable declaration without a name", type=type_)
                store.declare(Variable.create(name, type_, decl.get("value")))
            except DivError as exc:
                exc.with_context(variable=name, type=type_)
                if on_error is None:
                    raise
                on_error(exc)
        return store

    def declare(self, variable: Variable) -> Variable:
        if variable.name in self._vars:
            raise IncorrectValue(
                "Variable with the same name already exists", variable=variable.name
            )
        self._vars[variable.name] = variable
        logger.debug("Declared variable %s (%s)", variable.name, variable.type)
        return variable

    def get(self, name: str) -> Variable:
        try:
            return self._vars[name]
        except KeyError:
            raise VariableNotFound(name) from None

    def find(self, name: str) -> Variable | None:
        return self._vars.get(name)

    def value(self, name: str) -> TypedValue:
        return self.get(name).value

    def set(self, name: str, raw: Any) -> bool:
        return self.get(name).set(raw)

    def subscribe(
        self, name: str, callback: Callable[[Any], None], *, replay: bool = True
    ) -> Subscription:
        return self.get(name).subscribe(callback, replay=replay)

    def snapshot(self) -> dict[str, TypedValue]:
        """Current values by name. TypedValues are immutable by contract."""
        return {name: var.value for name, var in self._vars.items()}

    def names(self) -> list[str]:
        return list(self._vars)

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._vars.values())

    def __len__(self) -> int:
        return len(self._vars)


def _plain(value: TypedValue) -> Any:
    if value.type in (ValueType.DICT, ValueType.ARRAY):
        return copy.deepcopy(value.value)
    return value.value
