"""Adapter turning plain host callables into a divcore plugin."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from divcore.plugins.hookspecs import hookimpl

if TYPE_CHECKING:
    from divcore.domain.actions import Action
    from divcore.domain.errors import ErrorReport
    from divcore.domain.expressions.functions import Function


class CallbackPlugin:
    """Host callbacks as a plugin. Any callback left as None is skipped.

    ``clipboard`` receives the text to copy; the write counts as handled
    unless it returns ``False``.
    """

    def __init__(
        self,
        *,
        on_stat: Callable[[str, Action], None] | None = None,
        on_error: Callable[[ErrorReport], None] | None = None,
        on_custom_action: Callable[[Action], None] | None = None,
        clipboard: Callable[[str], bool | None] | None = None,
        functions: Sequence[Function] = (),
    ) -> None:
        self._on_stat = on_stat
        self._on_error = on_error
        self._on_custom_action = on_custom_action
        self._clipboard = clipboard
        self._functions = list(functions)

    @hookimpl
    def on_stat(self, stat_type: str, action: Action) -> None:
        if self._on_stat is not None:
            self._on_stat(stat_type, action)

    @hookimpl
    def on_error(self, error: ErrorReport) -> None:
        if self._on_error is not None:
            self._on_error(error)

    @hookimpl
    def on_custom_action(self, action: Action) -> None:
        if self._on_custom_action is not None:
            self._on_custom_action(action)

    @hookimpl
    def write_clipboard(self, text: str) -> bool | None:
        if self._clipboard is None:
            return None
        return self._clipboard(text) is not False

    @hookimpl
    def register_functions(self) -> list[Function] | None:
        return self._functions or None


class Recorder(CallbackPlugin):
    """Collects every callback in memory. Used by the CLI and tests."""

    def __init__(self, *, clipboard: bool = True) -> None:
        self.stats: list[tuple[str, Action]] = []
        self.errors: list[ErrorReport] = []
        self.custom_actions: list[Action] = []
        self.clipboard: list[str] = []
        super().__init__(
            on_stat=lambda stat_type, action: self.stats.append((stat_type, action)),
            on_error=self.errors.append,
            on_custom_action=self.custom_actions.append,
            clipboard=self.clipboard.append if clipboard else None,
        )
