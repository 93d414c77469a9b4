"""Pluggy hook specifications for divcore host callbacks.

Four event hooks carry analytics, errors, URL actions and clipboard writes
out to the host. One setup-time hook lets plugins add expression functions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from divcore.domain.actions import Action
    from divcore.domain.errors import ErrorReport
    from divcore.domain.expressions.functions import Function

PROJECT_NAME = "divcore"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class DivHookSpec:
    """Hook specifications for the divcore plugin system."""

    @hookspec
    def on_stat(self, stat_type: str, action: Action) -> None:
        """Called for every action carrying a ``log_id``, before its effect."""

    @hookspec
    def on_error(self, error: ErrorReport) -> None:
        """Called for every recoverable error, with context attached."""

    @hookspec
    def on_custom_action(self, action: Action) -> None:
        """Called for actions with a ``url``, after the typed effect."""

    @hookspec(firstresult=True)
    def write_clipboard(self, text: str) -> bool | None:
        """Put *text* on the host clipboard. Return True when handled."""

    @hookspec
    def register_functions(self) -> list[Function] | None:
        """Return extra expression functions."""
