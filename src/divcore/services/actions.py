"""Action Engine — executes action lists against a document's store.

Per action, in order:
  1. ``log_id``  -> ``on_stat`` (before the effect)
  2. ``typed``   -> evaluate ``@{}`` fields, validate, run the command
  3. ``url``     -> ``on_custom_action`` (after the effect, success or not)

INVARIANT: A failing action is reported and skipped; the batch continues.
There is no rollback.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeAlias

from pydantic import ValidationError

from divcore.domain.actions import (
    Action,
    ArrayInsertValue,
    ArrayRemoveValue,
    ArraySetValue,
    CopyToClipboard,
    DictSetValue,
    SetState,
    SetVariable,
    TypedCommand,
    UpdateStructure,
    check_index,
    parse_command,
    split_path,
    update_path,
)
from divcore.domain.errors import (
    DivError,
    ErrorReport,
    EvaluationError,
    IncorrectValue,
    StateNotFound,
    TypeMismatch,
)
from divcore.domain.expressions.evaluator import Evaluator
from divcore.domain.expressions.functions import FunctionRegistry
from divcore.domain.expressions.nodes import Template
from divcore.domain.expressions.parser import has_expression, parse_template
from divcore.domain.values import TypedValue, ValueType
from divcore.domain.variables import Variable, VariableStore
from divcore.plugins.event_bus import EventBus
from divcore.services.result import ServiceResult

logger = logging.getLogger(__name__)

StateSetter: TypeAlias = Callable[[str], Awaitable[None]]

STAT_TYPE_ACTION = "action"


class ActionEngine:
    """Runs typed mutations and host callbacks for one document.

    Parameters:
        store: The document's variables.
        events: Host callback dispatch.
        functions: Registry for ``@{}`` fields in payloads.
        state_setters: ``state_id`` -> async setter; shared with the owner,
            so later registrations are seen.
        process_urls: Whether ``url`` actions reach ``on_custom_action``.
    """

    def __init__(
        self,
        store: VariableStore,
        events: EventBus,
        *,
        functions: FunctionRegistry | None = None,
        state_setters: Mapping[str, StateSetter] | None = None,
        process_urls: bool = True,
        compile: Callable[[str], Template] = parse_template,
    ) -> None:
        self._store = store
        self._events = events
        self._functions = functions
        self._state_setters: Mapping[str, StateSetter] = (
            state_setters if state_setters is not None else {}
        )
        self._process_urls = process_urls
        self._compile = compile

    async def execute(self, actions: Iterable[Action | Mapping[str, Any]] | None) -> ServiceResult:
        """Execute *actions* in order. Always ``ok``; failures are in ``data``."""
        executed = 0
        failed = 0
        errors: list[dict[str, Any]] = []
        for raw in actions or ():
            if raw is None:
                continue
            report = await self.execute_one(raw)
            if report is None:
                executed += 1
            else:
                failed += 1
                errors.append(report.model_dump())
        return ServiceResult(
            ok=True,
            op="execute_actions",
            data={"executed": executed, "failed": failed, "errors": errors},
        )

    async def execute_one(self, raw: Action | Mapping[str, Any]) -> ErrorReport | None:
        """Execute a single action. Returns the error report if it failed."""
        try:
            action = raw if isinstance(raw, Action) else Action.model_validate(dict(raw))
        except (ValidationError, TypeError, ValueError) as exc:
            return self._fail(IncorrectValue(f"Incorrect action: {exc}"))

        if action.log_id:
            self._events.stat(STAT_TYPE_ACTION, action)

        report: ErrorReport | None = None
        if action.typed is not None:
            try:
                command = parse_command(self._evaluate_fields(action.typed))
                logger.debug("Dispatching %s", command.type)
                await self._run(command)
            except DivError as exc:
                exc.with_context(
                    action=action.typed_type,
                    variable=action.typed.get("variable_name"),
                )
                report = self._fail(exc)

        if action.url and self._process_urls:
            self._events.custom_action(action)
        return report

    def _fail(self, exc: DivError) -> ErrorReport:
        self._events.error(exc)
        return exc.report()

    # ------------------------------------------------------------------
    # Payload evaluation
    # ------------------------------------------------------------------

    def _evaluate_fields(self, payload: Any) -> Any:
        """Copy *payload*, replacing every ``@{}`` string with its current value."""
        if isinstance(payload, str):
            if not has_expression(payload):
                return payload
            evaluator = Evaluator(self._store.snapshot(), self._functions)
            return evaluator.run(self._compile(payload)).value
        if isinstance(payload, Mapping):
            return {key: self._evaluate_fields(item) for key, item in payload.items()}
        if isinstance(payload, list):
            return [self._evaluate_fields(item) for item in payload]
        return payload

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _run(self, command: TypedCommand) -> None:
        if isinstance(command, SetState):
            await self._set_state(command)
            return
        handler = _HANDLERS[type(command)]
        handler(self, command)

    async def _set_state(self, command: SetState) -> None:
        setter = self._state_setters.get(command.target)
        if setter is None:
            raise StateNotFound(f"State not found: {command.target}", state_id=command.target)
        try:
            await setter(str(command.temporary_state_id))
        except DivError:
            raise
        except Exception as exc:
            logger.debug("State setter for %s failed", command.target, exc_info=True)
            raise EvaluationError(
                f"State setter for {command.target} failed: {exc}",
                state_id=command.target,
                cause=type(exc).__name__,
            ) from exc

    def _set_variable(self, command: SetVariable) -> None:
        variable = self._store.get(command.variable_name)
        variable.set_typed(command.value.to_typed(command.variable_name))

    def _array_insert(self, command: ArrayInsertValue) -> None:
        variable = self._container(command.variable_name, ValueType.ARRAY)
        items: list[Any] = variable.get()
        index = len(items) if command.index is None else command.index
        check_index(index, len(items), inclusive=True)
        items.insert(index, command.value.to_typed().value)
        variable.set_typed(TypedValue.from_typed(ValueType.ARRAY, items, name=variable.name))

    def _array_remove(self, command: ArrayRemoveValue) -> None:
        variable = self._container(command.variable_name, ValueType.ARRAY)
        items: list[Any] = variable.get()
        check_index(command.index, len(items))
        del items[command.index]
        variable.set_typed(TypedValue.from_typed(ValueType.ARRAY, items, name=variable.name))

    def _array_set(self, command: ArraySetValue) -> None:
        variable = self._container(command.variable_name, ValueType.ARRAY)
        items: list[Any] = variable.get()
        check_index(command.index, len(items))
        items[command.index] = command.value.to_typed().value
        variable.set_typed(TypedValue.from_typed(ValueType.ARRAY, items, name=variable.name))

    def _dict_set(self, command: DictSetValue) -> None:
        variable = self._container(command.variable_name, ValueType.DICT)
        mapping: dict[str, Any] = variable.get()
        if command.value is None:
            if command.key not in mapping:
                return
            del mapping[command.key]
        else:
            mapping[command.key] = command.value.to_typed().value
        variable.set_typed(TypedValue.from_typed(ValueType.DICT, mapping, name=variable.name))

    def _update_structure(self, command: UpdateStructure) -> None:
        split_path(command.path)
        variable = self._store.get(command.variable_name)
        if variable.type not in (ValueType.DICT, ValueType.ARRAY):
            raise TypeMismatch(
                f"Variable {variable.name} is {variable.type}, expected dict or array",
                variable=variable.name,
            )
        updated = update_path(variable.get(), command.path, command.value.to_typed().value)
        variable.set_typed(TypedValue.from_typed(variable.type, updated, name=variable.name))

    def _copy_to_clipboard(self, command: CopyToClipboard) -> None:
        if not self._events.write_clipboard(command.content.value):
            raise EvaluationError("Clipboard is unavailable", content_type=command.content.type)

    def _container(self, name: str, expected: ValueType) -> Variable:
        variable = self._store.get(name)
        if variable.type is not expected:
            raise TypeMismatch(
                f"Variable {name} is {variable.type}, expected {expected}",
                variable=name,
                expected=str(expected),
                actual=str(variable.type),
            )
        return variable


_HANDLERS: dict[type, Callable[[ActionEngine, Any], None]] = {
    SetVariable: ActionEngine._set_variable,
    ArrayInsertValue: ActionEngine._array_insert,
    ArrayRemoveValue: ActionEngine._array_remove,
    ArraySetValue: ActionEngine._array_set,
    DictSetValue: ActionEngine._dict_set,
    UpdateStructure: ActionEngine._update_structure,
    CopyToClipboard: ActionEngine._copy_to_clipboard,
}
