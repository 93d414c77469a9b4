"""Document — one loaded card and everything that lives as long as it does.

A document owns its Variable Store, its bindings, its registered state
setters and its plugin manager. Closing it releases all of them; after
that, :class:`DocumentClosed` is raised by every entry point that would
create new work.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from divcore.config.settings import DivSettings
from divcore.domain.actions import Action
from divcore.domain.card import CardDocument
from divcore.domain.errors import DivError, DocumentClosed, ResolutionError
from divcore.domain.expressions.functions import Function, FunctionRegistry
from divcore.domain.expressions.parser import TemplateCache
from divcore.domain.observable import Subscription
from divcore.domain.templates import resolve_templates
from divcore.domain.values import TypedValue
from divcore.domain.variables import Variable, VariableStore
from divcore.plugins.event_bus import EventBus
from divcore.plugins.manager import PluginManager
from divcore.services.actions import ActionEngine, StateSetter
from divcore.services.binding import Binding, BindingSet
from divcore.services.result import ServiceResult

logger = logging.getLogger(__name__)


class Document:
    """A live card instance. Build one with :meth:`from_json`."""

    def __init__(
        self,
        *,
        root: dict[str, Any] | None,
        store: VariableStore,
        plugin_manager: PluginManager,
        settings: DivSettings,
        functions: FunctionRegistry,
        log_id: str | None = None,
        resolution_errors: Iterable[ResolutionError] = (),
        events: EventBus | None = None,
    ) -> None:
        self.root = root
        self.store = store
        self.log_id = log_id
        self.settings = settings
        self.functions = functions
        self.resolution_errors = list(resolution_errors)
        self.plugin_manager = plugin_manager
        self.events = events or EventBus(plugin_manager)
        self._templates = TemplateCache(settings.expressions.cache_size)
        self._state_setters: dict[str, StateSetter] = {}
        self._bindings: list[Binding | BindingSet] = []
        self._closed = False
        self._engine = ActionEngine(
            store,
            self.events,
            functions=functions,
            state_setters=self._state_setters,
            process_urls=settings.actions.process_urls,
            compile=self._templates,
        )

    @classmethod
    def from_json(
        cls,
        data: Mapping[str, Any],
        *,
        plugins: Iterable[object] = (),
        settings: DivSettings | None = None,
        functions: FunctionRegistry | Iterable[Function] | None = None,
        plugin_manager: PluginManager | None = None,
    ) -> Document:
        """Load a card: resolve templates, then declare variables.

        Problems with the card are reported through ``on_error`` and leave
        the document usable (a missing card gives ``root is None``).
        """
        settings = settings or DivSettings()
        pm = plugin_manager or PluginManager()
        if plugin_manager is None and settings.plugins.discover:
            pm.discover_and_load()
        for plugin in plugins:
            pm.register_plugin(plugin)
        events = EventBus(pm)

        base = functions if isinstance(functions, FunctionRegistry) else None
        registry = pm.collect_functions(base)
        if functions is not None and base is None:
            for fn in functions:
                registry.register(fn)

        try:
            card = CardDocument.parse(data)
        except DivError as exc:
            events.error(exc)
            return cls(
                root=None,
                store=VariableStore(),
                plugin_manager=pm,
                settings=settings,
                functions=registry,
                events=events,
            )

        store = VariableStore.from_declarations(card.card.variables, on_error=events.error)
        resolution = resolve_templates(
            card.root, card.templates, max_depth=settings.templates.max_depth
        )
        for error in resolution.errors:
            events.error(error)
        logger.debug(
            "Loaded card %s: %d variable(s), %d template(s)",
            card.card.log_id,
            len(store),
            len(card.templates),
        )
        return cls(
            root=resolution.node,
            store=store,
            plugin_manager=pm,
            settings=settings,
            functions=registry,
            log_id=card.card.log_id,
            resolution_errors=resolution.errors,
            events=events,
        )

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def get_variable(self, name: str) -> Variable | None:
        return self.store.find(name)

    def set_variable(self, name: str, value: Any) -> bool:
        """Set *name* from raw input. Errors are reported, never raised."""
        try:
            return self.store.set(name, value)
        except DivError as exc:
            exc.with_context(variable=name)
            self.events.error(exc)
            return False

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def bind(self, source: str, consumer: Callable[[TypedValue], None] | None = None) -> Binding:
        self._ensure_open("bind")
        binding = Binding(
            source,
            self.store,
            consumer,
            functions=self.functions,
            on_error=self.events.error,
            compile=self._templates,
        )
        self._track(binding)
        return binding.start()

    def bind_tree(
        self,
        node: Any = None,
        consumer: Callable[[str, TypedValue], None] | None = None,
    ) -> BindingSet:
        """Bind every expression leaf of *node* (default: the root)."""
        self._ensure_open("bind_tree")
        bindings = BindingSet.bind_tree(
            self.root if node is None else node,
            self.store,
            consumer,
            functions=self.functions,
            on_error=self.events.error,
            compile=self._templates,
        )
        self._track(bindings)
        return bindings

    def _track(self, binding: Binding | BindingSet) -> None:
        # Bindings the host closed on its own are dropped here.
        self._bindings = [b for b in self._bindings if not b.closed]
        self._bindings.append(binding)

    # ------------------------------------------------------------------
    # States and actions
    # ------------------------------------------------------------------

    def register_state(self, state_id: str, setter: StateSetter) -> Subscription:
        """Make *setter* the target of ``set_state`` for *state_id*."""
        self._ensure_open("register_state")
        self._state_setters[state_id] = setter

        def cancel() -> None:
            if self._state_setters.get(state_id) is setter:
                del self._state_setters[state_id]

        return Subscription(cancel)

    async def execute(self, actions: Iterable[Action | Mapping[str, Any]] | None) -> ServiceResult:
        self._ensure_open("execute")
        return await self._engine.execute(actions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for binding in self._bindings:
            binding.close()
        self._bindings.clear()
        self._state_setters.clear()
        self._templates.clear()
        logger.debug("Closed document %s", self.log_id)

    def __enter__(self) -> Document:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise DocumentClosed(f"Document is closed: cannot {operation}", operation=operation)
