"""Extension layer — host callbacks and plugins via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Plugin failures are warnings, never errors.
"""

from divcore.plugins.callbacks import CallbackPlugin, Recorder
from divcore.plugins.event_bus import EventBus
from divcore.plugins.hookspecs import hookimpl
from divcore.plugins.manager import PluginManager

__all__ = ["CallbackPlugin", "EventBus", "PluginManager", "Recorder", "hookimpl"]
