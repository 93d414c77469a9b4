"""Synchronous event dispatch to host plugins via pluggy.

Everything runs on the document's cooperative thread, in call order, so
analytics see ``on_stat`` before the effect and ``on_custom_action`` after
it.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from divcore.domain.errors import DivError

if TYPE_CHECKING:
    from divcore.domain.actions import Action
    from divcore.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Dispatches host callbacks through a :class:`PluginManager`.

    Parameters:
        plugin_manager: PluginManager for hook dispatch.
    """

    def __init__(self, plugin_manager: PluginManager) -> None:
        self._pm = plugin_manager
        self.errors_reported = 0

    @property
    def plugin_manager(self) -> PluginManager:
        return self._pm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, hook_name: str, **payload: Any) -> Any:
        """Call *hook_name* with *payload*. Returns the hook result or None."""
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return None
        try:
            return hook_fn(**payload)
        except Exception:
            logger.warning("Hook %s failed", hook_name, exc_info=True)
            return None

    def stat(self, stat_type: str, action: Action) -> None:
        self.dispatch("on_stat", stat_type=stat_type, action=action)

    def error(self, error: DivError) -> None:
        """Report a recoverable error to the host."""
        self.errors_reported += 1
        logger.debug("Reporting %s: %s", error.code, error.message)
        self.dispatch("on_error", error=error.report())

    def custom_action(self, action: Action) -> None:
        self.dispatch("on_custom_action", action=action)

    def write_clipboard(self, text: str) -> bool:
        """True when some plugin took the text."""
        return bool(self.dispatch("write_clipboard", text=text))
