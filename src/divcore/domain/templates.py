"""Template resolver — structural template inheritance for card trees.

A node whose ``type`` names a template is replaced by a copy of the
template's skeleton. Skeleton keys starting with ``$`` are indirections:
``"$text": "title"`` takes the caller's (or an enclosing caller's)
``title`` field and stores it under ``text``. Missing indirections are
omitted silently. The caller's own fields are then layered over the copy.

The resolver is a pure function: skeletons and input trees are never
mutated or aliased by the output.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

import networkx as nx

from divcore.domain.errors import ResolutionError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

PROTO_KEY = "__proto__"
TYPE_KEY = "type"
INDIRECTION_PREFIX = "$"

# Node types the renderer understands natively.
KNOWN_DIV_TYPES: frozenset[str] = frozenset(
    {
        "container",
        "custom",
        "gallery",
        "gif",
        "grid",
        "image",
        "indicator",
        "input",
        "pager",
        "select",
        "separator",
        "slider",
        "state",
        "switch",
        "tabs",
        "text",
        "video",
    }
)

TemplateContext: TypeAlias = dict[str, Any]
_Graph: TypeAlias = nx.DiGraph


@dataclass
class Resolution:
    """Template-free tree plus every non-fatal problem met on the way."""

    node: Any
    errors: list[ResolutionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Single expansion
# ---------------------------------------------------------------------------


def apply_template(
    node: Mapping[str, Any],
    context: Mapping[str, Any],
    skeleton: Mapping[str, Any],
) -> tuple[dict[str, Any], TemplateContext]:
    """Expand *node* once against *skeleton*.

    Returns the expanded node (its ``type`` is the skeleton's) and the
    context nested nodes should resolve against.
    """
    new_context: TemplateContext = dict(context)
    for key, value in node.items():
        if key in (TYPE_KEY, PROTO_KEY):
            continue
        new_context[key] = value

    expanded = _copy_templated(skeleton, new_context)
    for key, value in node.items():
        if key in (TYPE_KEY, PROTO_KEY):
            continue
        expanded[key] = copy.deepcopy(value)
    return expanded, new_context


def _copy_templated(extender: Any, context: Mapping[str, Any]) -> Any:
    if isinstance(extender, list):
        return [_copy_templated(item, context) for item in extender]
    if not isinstance(extender, Mapping):
        return extender

    result: dict[str, Any] = {}
    indirections: list[tuple[str, Any]] = []
    for key, item in extender.items():
        if key == PROTO_KEY:
            continue
        if key.startswith(INDIRECTION_PREFIX):
            indirections.append((key, item))
            continue
        result[key] = _copy_templated(item, context)

    # Indirections run after plain keys so they win on collision.
    for key, ref in indirections:
        if isinstance(ref, str) and ref in context:
            result[key[len(INDIRECTION_PREFIX) :]] = copy.deepcopy(context[ref])
    return result


# ---------------------------------------------------------------------------
# Whole-tree resolution
# ---------------------------------------------------------------------------


class _Resolver:
    def __init__(self, templates: Mapping[str, Any], max_depth: int) -> None:
        self.templates = templates
        self.max_depth = max_depth
        self.errors: list[ResolutionError] = []

    def walk(self, value: Any, context: TemplateContext, depth: int, path: str) -> Any:
        if isinstance(value, list):
            return [self.walk(item, context, depth, f"{path}/{i}") for i, item in enumerate(value)]
        if not isinstance(value, Mapping):
            return value

        node, context, depth = self.expand(value, context, depth, path)
        result: dict[str, Any] = {}
        for key, item in node.items():
            if key == PROTO_KEY:
                continue
            result[key] = self.walk(item, context, depth, f"{path}/{key}")
        return result

    def expand(
        self, node: Mapping[str, Any], context: TemplateContext, depth: int, path: str
    ) -> tuple[Mapping[str, Any], TemplateContext, int]:
        while True:
            name = node.get(TYPE_KEY)
            if not isinstance(name, str) or name not in self.templates:
                return node, context, depth
            skeleton = self.templates[name]
            if not isinstance(skeleton, Mapping):
                self.errors.append(
                    ResolutionError(
                        f"Template {name!r} is not an object", template=name, path=path or "/"
                    )
                )
                return node, context, depth
            if depth >= self.max_depth:
                self.errors.append(
                    ResolutionError(
                        f"Template expansion exceeded max depth {self.max_depth}",
                        template=name,
                        path=path or "/",
                    )
                )
                return node, context, depth
            logger.debug("Expanding template %s at %s", name, path or "/")
            node, context = apply_template(node, context, skeleton)
            depth += 1


def resolve_templates(
    node: Any,
    templates: Mapping[str, Any] | None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Resolution:
    """Expand every template reference in *node*.

    Expansion depth is counted per path; exceeding *max_depth* records a
    :class:`ResolutionError` and leaves that node partially resolved.
    """
    resolver = _Resolver(templates or {}, max_depth)
    resolved = resolver.walk(node, {}, 0, "")
    if resolver.errors:
        logger.debug("Template resolution finished with %d error(s)", len(resolver.errors))
    return Resolution(resolved, resolver.errors)


# ---------------------------------------------------------------------------
# Static checks
# ---------------------------------------------------------------------------


def _referenced_types(value: Any) -> Iterator[str]:
    if isinstance(value, list):
        for item in value:
            yield from _referenced_types(item)
    elif isinstance(value, Mapping):
        for key, item in value.items():
            if key == TYPE_KEY and isinstance(item, str):
                yield item
            elif not key.startswith(INDIRECTION_PREFIX):
                yield from _referenced_types(item)


def template_graph(templates: Mapping[str, Any]) -> _Graph:
    """Directed graph of templates, with an edge A -> B when A's skeleton uses B."""
    g: _Graph = nx.DiGraph()
    for name in templates:
        g.add_node(name)
    for name, skeleton in templates.items():
        for ref in _referenced_types(skeleton):
            if ref in templates:
                g.add_edge(name, ref)
    return g


def find_template_cycles(templates: Mapping[str, Any]) -> list[list[str]]:
    """Template chains that would expand forever, each rotated to start at its smallest name."""
    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(template_graph(templates)):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    return sorted(cycles)


def _child_nodes(node: Mapping[str, Any], path: str) -> Iterator[tuple[str, Any]]:
    items = node.get("items")
    if isinstance(items, list):
        for i, item in enumerate(items):
            yield f"{path}/items/{i}", item
    div = node.get("div")
    if isinstance(div, Mapping):
        yield f"{path}/div", div
    states = node.get("states")
    if isinstance(states, list):
        for i, state in enumerate(states):
            if isinstance(state, Mapping) and isinstance(state.get("div"), Mapping):
                yield f"{path}/states/{i}/div", state["div"]


def find_unknown_types(
    node: Any,
    templates: Mapping[str, Any] | None = None,
    known: frozenset[str] = KNOWN_DIV_TYPES,
) -> list[tuple[str, str]]:
    """``(path, type)`` for every div whose type is neither a template nor known."""
    templates = templates or {}
    found: list[tuple[str, str]] = []

    def visit(current: Any, path: str) -> None:
        if not isinstance(current, Mapping):
            return
        type_name = current.get(TYPE_KEY)
        if not isinstance(type_name, str) or (type_name not in templates and type_name not in known):
            found.append((path or "/", str(type_name)))
        for child_path, child in _child_nodes(current, path):
            visit(child, child_path)

    visit(node, "")
    return found
