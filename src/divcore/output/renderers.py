"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a StringIO-backed Console; the caller extracts
the text via ``get_output(console)``. Dispatch is by ``result.op`` in
:func:`render_result`, with a generic key-value fallback.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.json import JSON
from rich.table import Table
from rich.text import Text

from divcore.output.console import create_console, get_output, style_for_type

if TYPE_CHECKING:
    from rich.console import Console

    from divcore.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal, pipe-friendly output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    data = result.data
    if result.op == "eval":
        return str(data.get("text", ""))
    if result.op == "resolve":
        return _compact(data.get("root"))
    if result.op == "run":
        return "\n".join(
            f"{name}={_compact(entry['value'])}" for name, entry in data.get("variables", {}).items()
        )
    if result.op == "check":
        return str(data.get("count", 0))
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _compact(value: Any) -> str:
    if isinstance(value, str):
        return value
    return _json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="div.ok"), Text(f"  {result.op}", style="div.op"), sep="")


def _field(console: Console, key: str, value: Any, *, style: str = "") -> None:
    k = Text(f"  {key}: ", style="div.key")
    console.print(k, Text(str(value), style=style), sep="")


def _render_warnings(console: Console, result: ServiceResult) -> None:
    for warning in result.warnings:
        console.print(Text("  warning: ", style="div.warning"), Text(warning), sep="")


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="div.error"),
        Text(f"  {result.op}", style="div.op"),
        Text(f"{code}: {msg}"),
        sep="",
    )

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(Text(f"    {k}: {v}"))


# ── Operation renderers ───────────────────────────────────────────────


def _render_resolve(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render the template-free tree as pretty JSON."""
    _status_line(console, result)
    errors = result.data.get("errors", [])
    if errors:
        _field(console, "errors", len(errors), style="div.error")
        for error in errors:
            path = error.get("detail", {}).get("path", "/")
            console.print(Text(f"    {path}: {error.get('message', '')}"))
    console.print(JSON.from_data(result.data.get("root"), ensure_ascii=False))


def _render_eval(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    data = result.data
    value_type = str(data.get("type", ""))
    console.print(Text(str(data.get("text", "")), style=style_for_type(value_type)))
    if verbose:
        _field(console, "type", value_type)
        used = data.get("used_variables") or []
        _field(console, "used", ", ".join(used) if used else "-")


def _render_run(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render final variable values, then callbacks and errors."""
    data = result.data
    _status_line(console, result)
    _field(console, "executed", data.get("executed", 0))
    failed = data.get("failed", 0)
    _field(console, "failed", failed, style="div.error" if failed else "")
    _render_warnings(console, result)

    variables: dict[str, dict[str, Any]] = data.get("variables", {})
    if variables:
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Variable", style="div.variable")
        table.add_column("Type")
        table.add_column("Value")
        for name, entry in variables.items():
            value_type = str(entry.get("type", ""))
            table.add_row(
                name,
                Text(value_type, style=style_for_type(value_type)),
                _compact(entry.get("value")),
            )
        console.print()
        console.print(table)

    for error in data.get("errors", []):
        message = Text(str(error.get("message", "")))
        console.print(Text("  error: ", style="div.error"), message, sep="")
    for url in data.get("custom_actions", []):
        _field(console, "url", url, style="div.path")
    for text in data.get("clipboard", []):
        _field(console, "clipboard", text)
    if verbose:
        for stat in data.get("stats", []):
            _field(console, "stat", f"{stat['type']} {stat['log_id']}")


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    count = result.data.get("count", len(issues))

    if count == 0:
        console.print("[div.ok]OK[/div.ok]  No issues found.")
        return

    severity_styles = {"error": "div.error", "warning": "div.warning"}

    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print(f"\n[bold]{cat}[/bold]")
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            style = severity_styles.get(sev, "")
            prefix = f"[{style}]{sev}[/{style}]" if style else sev
            path = issue.get("path")
            where = f" [div.path]{path}[/div.path]" if path else ""
            console.print(f"  {prefix}{where}: ", Text(str(issue.get("message", ""))), sep="")
            if verbose and issue.get("code"):
                console.print(f"    code: {issue['code']}")

    errors = sum(1 for i in issues if i.get("severity") == "error")
    warnings = count - errors
    console.print(f"\n{errors} errors, {warnings} warnings")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _compact(value))
        else:
            _field(console, key, value)
    if verbose and result.meta:
        console.print(Text("  meta:", style="dim"))
        for k, v in result.meta.items():
            console.print(f"    {k}: {v}")


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "resolve": _render_resolve,
    "eval": _render_eval,
    "run": _render_run,
    "check": _render_check,
}
