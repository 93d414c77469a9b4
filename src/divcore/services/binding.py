"""Derived Binding Tracker — keeps bound properties fresh as variables change.

A :class:`Binding` owns one compiled bound string. It subscribes to exactly
the variables its last evaluation read, re-evaluates on any change, and
publishes only values that actually differ.

INVARIANT: A failing re-evaluation never replaces the last good value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from types import TracebackType
from typing import Any, TypeAlias

from divcore.domain.errors import DivError, ParseError
from divcore.domain.expressions.evaluator import EvalResult, Evaluator
from divcore.domain.expressions.functions import FunctionRegistry
from divcore.domain.expressions.nodes import Template
from divcore.domain.expressions.parser import has_expression, parse_template
from divcore.domain.observable import Subscription
from divcore.domain.values import TypedValue
from divcore.domain.variables import VariableStore

logger = logging.getLogger(__name__)

Consumer: TypeAlias = Callable[[TypedValue], None]
ErrorSink: TypeAlias = Callable[[DivError], None]
Compiler: TypeAlias = Callable[[str], Template]


class Binding:
    """A live ``@{...}`` string bound to a store.

    Call :meth:`start` (or use it as a context manager) to evaluate and
    begin watching; :meth:`close` releases every subscription.
    """

    def __init__(
        self,
        source: str,
        store: VariableStore,
        consumer: Consumer | None = None,
        *,
        functions: FunctionRegistry | None = None,
        on_error: ErrorSink | None = None,
        compile: Compiler = parse_template,
    ) -> None:
        self.source = source
        self._store = store
        self._consumer = consumer
        self._functions = functions
        self._on_error = on_error
        self._compile = compile
        self._template: Template | None = None
        self._result: EvalResult | None = None
        self._subscriptions: dict[str, Subscription] = {}
        self._started = False
        self._closed = False

    # -- state --

    @property
    def value(self) -> TypedValue | None:
        """Last good value, or None if no evaluation has succeeded yet."""
        return self._result.typed if self._result is not None else None

    @property
    def result(self) -> EvalResult | None:
        return self._result

    @property
    def watched(self) -> frozenset[str]:
        """Variables currently subscribed to."""
        return frozenset(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- lifecycle --

    def start(self) -> Binding:
        if self._started or self._closed:
            return self
        self._started = True
        try:
            self._template = self._compile(self.source)
        except ParseError as exc:
            self._report(exc)
            return self
        self._recompute()
        return self

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions.values():
            subscription.unsubscribe()
        self._subscriptions.clear()

    def __enter__(self) -> Binding:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- recomputation --

    def _on_change(self, _value: TypedValue) -> None:
        if self._closed:
            return
        self._recompute()

    def _recompute(self) -> None:
        assert self._template is not None
        evaluator = Evaluator(self._store.snapshot(), self._functions)
        try:
            result = evaluator.run(self._template)
        except DivError as exc:
            # Keep old deps and watch anything newly referenced so a later
            # mutation can recover the binding.
            self._watch(self.watched | evaluator.used)
            self._report(exc)
            return

        self._watch(result.used_variables, drop_others=True)
        previous, self._result = self._result, result
        if previous is not None and previous.typed == result.typed:
            return
        logger.debug("Binding %r -> %r", self.source, result.typed)
        if self._consumer is not None:
            self._consumer(result.typed)

    def _watch(self, names: frozenset[str] | set[str], *, drop_others: bool = False) -> None:
        if drop_others:
            for name in list(self._subscriptions):
                if name not in names:
                    self._subscriptions.pop(name).unsubscribe()
        for name in names:
            if name in self._subscriptions:
                continue
            variable = self._store.find(name)
            if variable is None:
                continue
            self._subscriptions[name] = variable.watch(self._on_change, replay=False)

    def _report(self, exc: DivError) -> None:
        exc.with_context(expression=self.source)
        logger.debug("Binding %r failed: %s", self.source, exc.message)
        if self._on_error is not None:
            self._on_error(exc)

    def __repr__(self) -> str:
        return f"Binding({self.source!r}, value={self.value!r})"


def _is_action_key(key: str) -> bool:
    # Action payloads are evaluated at dispatch time, not bound.
    return key in ("action", "actions") or key.endswith(("_action", "_actions"))


class BindingSet:
    """Bindings for every expression-bearing string leaf of a resolved tree.

    Keys are ``/``-joined paths from the tree root, e.g. ``items/0/text``.
    """

    def __init__(self) -> None:
        self._bindings: dict[str, Binding] = {}

    @classmethod
    def bind_tree(
        cls,
        node: Any,
        store: VariableStore,
        consumer: Callable[[str, TypedValue], None] | None = None,
        *,
        functions: FunctionRegistry | None = None,
        on_error: ErrorSink | None = None,
        compile: Compiler = parse_template,
    ) -> BindingSet:
        bindings = cls()
        for path, source in _expression_leaves(node, ""):
            leaf_consumer = _path_consumer(consumer, path) if consumer is not None else None
            binding = Binding(
                source,
                store,
                leaf_consumer,
                functions=functions,
                on_error=_path_errors(on_error, path) if on_error is not None else None,
                compile=compile,
            )
            bindings._bindings[path] = binding.start()
        logger.debug("Bound %d expression(s)", len(bindings))
        return bindings

    def values(self) -> dict[str, TypedValue | None]:
        return {path: binding.value for path, binding in self._bindings.items()}

    @property
    def closed(self) -> bool:
        return all(binding.closed for binding in self._bindings.values())

    def close(self) -> None:
        for binding in self._bindings.values():
            binding.close()

    def __getitem__(self, path: str) -> Binding:
        return self._bindings[path]

    def __contains__(self, path: object) -> bool:
        return path in self._bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __enter__(self) -> BindingSet:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _expression_leaves(node: Any, path: str) -> Iterator[tuple[str, str]]:
    if isinstance(node, str):
        if has_expression(node):
            yield path, node
    elif isinstance(node, Mapping):
        for key, item in node.items():
            if _is_action_key(key):
                continue
            yield from _expression_leaves(item, f"{path}/{key}" if path else key)
    elif isinstance(node, list):
        for i, item in enumerate(node):
            yield from _expression_leaves(item, f"{path}/{i}" if path else str(i))


def _path_consumer(consumer: Callable[[str, TypedValue], None], path: str) -> Consumer:
    return lambda value: consumer(path, value)


def _path_errors(on_error: ErrorSink, path: str) -> ErrorSink:
    def report(exc: DivError) -> None:
        exc.with_context(path=path)
        on_error(exc)

    return report
