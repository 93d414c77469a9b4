"""CardService — the operations behind the CLI, each returning ServiceResult.

``resolve`` expands templates, ``evaluate`` runs one expression, ``run``
executes an action list and reports the resulting variable values, and
``check`` is a linter over a card: template cycles, unknown div types,
expression parse errors and bad variable declarations.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from divcore.config.settings import DivSettings
from divcore.domain.card import CardDocument
from divcore.domain.errors import DivError, IncorrectValue, ParseError
from divcore.domain.expressions.evaluator import Evaluator
from divcore.domain.expressions.functions import FunctionRegistry
from divcore.domain.expressions.parser import has_expression, parse_expression, parse_template
from divcore.domain.templates import find_template_cycles, find_unknown_types, resolve_templates
from divcore.domain.values import TypedValue, construct
from divcore.domain.variables import VariableStore
from divcore.plugins.callbacks import Recorder
from divcore.plugins.manager import PluginManager
from divcore.services.document import Document
from divcore.services.result import ServiceResult

logger = logging.getLogger(__name__)

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_TEMPLATES = "templates"
CAT_DIV_TYPES = "div_types"
CAT_EXPRESSIONS = "expressions"
CAT_VARIABLES = "variables"

# name:type=value
_VAR_SPEC_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*):(?P<type>[a-z]+)=(?P<value>.*)$", re.S)


def parse_var_spec(spec: str) -> tuple[str, TypedValue]:
    """Parse a ``name:type=value`` command-line variable."""
    m = _VAR_SPEC_RE.match(spec)
    if m is None:
        raise IncorrectValue(f"Expected name:type=value, got {spec!r}", spec=spec)
    return m.group("name"), construct(m.group("name"), m.group("type"), m.group("value"))


class CardService:
    """Card-level operations for the CLI."""

    def __init__(
        self,
        settings: DivSettings | None = None,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self._settings = settings or DivSettings()
        self._pm = plugin_manager

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, data: Mapping[str, Any]) -> ServiceResult:
        """Expand templates and return the template-free root."""
        try:
            card = CardDocument.parse(data)
        except DivError as exc:
            return ServiceResult.failure("resolve", exc)
        resolution = resolve_templates(
            card.root, card.templates, max_depth=self._settings.templates.max_depth
        )
        errors = [e.report().model_dump() for e in resolution.errors]
        return ServiceResult(
            ok=True,
            op="resolve",
            data={"root": resolution.node, "errors": errors},
            warnings=[e["message"] for e in errors],
        )

    def evaluate(
        self,
        expression: str,
        *,
        data: Mapping[str, Any] | None = None,
        variables: Sequence[str] = (),
    ) -> ServiceResult:
        """Evaluate a bare expression, or a bound string containing ``@{}``.

        Variables come from the card (when given) overlaid with *variables*
        specs of the form ``name:type=value``.
        """
        try:
            values = self._eval_variables(data, variables)
            evaluator = Evaluator(values, self._functions())
            if has_expression(expression):
                result = evaluator.run(parse_template(expression))
                typed, used = result.typed, result.used_variables
            else:
                typed = evaluator.eval(parse_expression(expression))
                used = frozenset(evaluator.used)
        except DivError as exc:
            return ServiceResult.failure("eval", exc, expression=expression)
        return ServiceResult(
            ok=True,
            op="eval",
            data={
                "expression": expression,
                "type": str(typed.type),
                "value": typed.value,
                "text": typed.to_text(),
                "used_variables": sorted(used),
            },
        )

    async def run(self, data: Mapping[str, Any], actions: Sequence[Any]) -> ServiceResult:
        """Execute *actions* against a fresh document built from *data*."""
        recorder = Recorder()
        document = Document.from_json(
            data,
            plugins=[recorder],
            settings=self._settings,
            plugin_manager=self._pm,
        )
        try:
            if document.root is None:
                error = IncorrectValue("Card document could not be loaded")
                return ServiceResult.failure(
                    "run", error, errors=[e.model_dump() for e in recorder.errors]
                )
            load_errors = len(recorder.errors)
            outcome = await document.execute(actions)
            variables = {name: tv.to_wire() for name, tv in document.store.snapshot().items()}
        finally:
            document.close()
            document.plugin_manager.unregister(recorder)

        return ServiceResult(
            ok=True,
            op="run",
            data={
                "variables": variables,
                "executed": outcome.data["executed"],
                "failed": outcome.data["failed"],
                "errors": [e.model_dump() for e in recorder.errors[load_errors:]],
                "stats": [
                    {"type": stat_type, "log_id": action.log_id}
                    for stat_type, action in recorder.stats
                ],
                "custom_actions": [action.url for action in recorder.custom_actions],
                "clipboard": list(recorder.clipboard),
            },
            warnings=[e.message for e in recorder.errors[:load_errors]],
        )

    def check(
        self, data: Mapping[str, Any], *, min_severity: str = SEVERITY_WARNING
    ) -> ServiceResult:
        """Report problems in a card without executing anything.

        With *min_severity* ``"error"``, warnings are left out.
        """
        try:
            card = CardDocument.parse(data)
        except DivError as exc:
            return ServiceResult.failure("check", exc)

        issues: list[dict[str, Any]] = []
        issues.extend(self._check_templates(card))
        resolution = resolve_templates(
            card.root, card.templates, max_depth=self._settings.templates.max_depth
        )
        for error in resolution.errors:
            issues.append(_issue(CAT_TEMPLATES, SEVERITY_ERROR, error))
        for path, type_name in find_unknown_types(resolution.node, card.templates):
            issues.append(
                {
                    "category": CAT_DIV_TYPES,
                    "severity": SEVERITY_WARNING,
                    "path": path,
                    "message": f"Unknown div type: {type_name}",
                }
            )
        issues.extend(self._check_expressions(resolution.node))
        issues.extend(self._check_variables(card))
        if min_severity == SEVERITY_ERROR:
            issues = [i for i in issues if i["severity"] == SEVERITY_ERROR]

        logger.debug("Check found %d issue(s)", len(issues))
        return ServiceResult(
            ok=True,
            op="check",
            data={"issues": issues, "count": len(issues)},
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _functions(self) -> FunctionRegistry:
        pm = self._pm
        if pm is None:
            pm = PluginManager()
            if self._settings.plugins.discover:
                pm.discover_and_load()
        return pm.collect_functions()

    def _eval_variables(
        self, data: Mapping[str, Any] | None, specs: Sequence[str]
    ) -> dict[str, TypedValue]:
        values: dict[str, TypedValue] = {}
        if data is not None:
            card = CardDocument.parse(data)
            values.update(VariableStore.from_declarations(card.card.variables).snapshot())
        for spec in specs:
            name, value = parse_var_spec(spec)
            values[name] = value
        return values

    @staticmethod
    def _check_templates(card: CardDocument) -> Iterator[dict[str, Any]]:
        for cycle in find_template_cycles(card.templates):
            yield {
                "category": CAT_TEMPLATES,
                "severity": SEVERITY_ERROR,
                "path": "/templates",
                "message": "Template cycle: " + " -> ".join([*cycle, cycle[0]]),
            }

    @staticmethod
    def _check_expressions(root: Any) -> Iterator[dict[str, Any]]:
        for path, source in _string_leaves(root, ""):
            if not has_expression(source):
                continue
            try:
                parse_template(source)
            except ParseError as exc:
                issue = _issue(CAT_EXPRESSIONS, SEVERITY_ERROR, exc, path=path)
                issue["offset"] = exc.offset
                yield issue

    @staticmethod
    def _check_variables(card: CardDocument) -> list[dict[str, Any]]:
        problems: list[DivError] = []
        VariableStore.from_declarations(card.card.variables, on_error=problems.append)
        return [_issue(CAT_VARIABLES, SEVERITY_ERROR, exc, path="/card/variables") for exc in problems]


def _issue(category: str, severity: str, exc: DivError, *, path: str | None = None) -> dict[str, Any]:
    return {
        "category": category,
        "severity": severity,
        "code": exc.code,
        "path": path or str(exc.detail.get("path", "/")),
        "message": exc.message,
    }


def _string_leaves(node: Any, path: str) -> Iterator[tuple[str, str]]:
    if isinstance(node, str):
        yield path or "/", node
    elif isinstance(node, Mapping):
        for key, item in node.items():
            yield from _string_leaves(item, f"{path}/{key}")
    elif isinstance(node, list):
        for i, item in enumerate(node):
            yield from _string_leaves(item, f"{path}/{i}")
