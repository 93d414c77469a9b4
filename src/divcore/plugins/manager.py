"""Plugin discovery and loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints
under the ``divcore.plugins`` group, plus host plugins registered directly.
Capabilities: host callbacks (stats, errors, URL actions, clipboard) and
expression functions.
"""

from __future__ import annotations

import inspect
import logging

import pluggy

from divcore.domain.expressions.functions import Function, FunctionRegistry
from divcore.plugins.hookspecs import PROJECT_NAME, DivHookSpec

ENTRY_POINT_GROUP = "divcore.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, loading, and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(DivHookSpec)
        self._loaded: bool = False

    def discover_and_load(self) -> list[str]:
        """Load plugins from the ``divcore.plugins`` entry-point group.

        Returns a list of loaded plugin names.
        """
        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._normalize_plugin_instances()
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly (e.g. a host callback adapter)."""
        resolved_name = name or f"{plugin.__class__.__name__}-{id(plugin):x}"
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        """Unregister a plugin instance."""
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        """Whether discover_and_load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        """Access the hook relay for dispatching events."""
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        """Return all registered plugins."""
        return list(self._pm.get_plugins())

    def list_plugin_names(self) -> list[str]:
        """Return names of all registered plugins."""
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def collect_functions(self, registry: FunctionRegistry | None = None) -> FunctionRegistry:
        """Registry of built-ins (or *registry*'s copy) plus plugin functions.

        A plugin whose hook raises or returns garbage is skipped with a warning.
        """
        result = registry.copy() if registry is not None else FunctionRegistry.with_builtins()
        for plugin in self._pm.get_plugins():
            plugin_name = self._pm.get_name(plugin) or plugin.__class__.__name__
            hook = getattr(plugin, "register_functions", None)
            if hook is None:
                continue
            try:
                functions = hook()
            except Exception:
                logger.warning(
                    "Failed to collect functions from plugin %s", plugin_name, exc_info=True
                )
                continue
            if functions is None:
                continue
            if not isinstance(functions, (list, tuple)):
                logger.warning("Plugin %s returned non-list function registrations", plugin_name)
                continue
            for fn in functions:
                if not isinstance(fn, Function):
                    logger.warning("Skipping non-Function %r from plugin %s", fn, plugin_name)
                    continue
                result.register(fn)
                logger.debug("Plugin %s registered function %s", plugin_name, fn.signature())
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly. Hook dispatch
        against class objects leaves ``self`` unbound and fails at runtime.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin):
                continue
            if not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)

            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s",
                    plugin_name,
                    exc_info=True,
                )
                continue

            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("divcore")`` sets a ``divcore_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, f"{PROJECT_NAME}_impl", None):
                return True
        return False
