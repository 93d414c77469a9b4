"""Command: lint a card."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from divcore.commands._base import DivCommand, JsonFile

if TYPE_CHECKING:
    from divcore.commands._context import AppContext


@click.command(
    cls=DivCommand,
    examples="""\
  divcore check card.json
  divcore check card.json --errors-only
  divcore --json check card.json""",
)
@click.argument("card", type=JsonFile())
@click.option(
    "--min-severity",
    type=click.Choice(["warning", "error"]),
    default="warning",
    help="Hide issues below this severity.",
)
@click.option("--errors-only", is_flag=True, help="Shortcut for --min-severity error.")
@click.option("--strict", is_flag=True, help="Exit 1 if any issue is reported.")
@click.pass_obj
def check(app: AppContext, card: Any, min_severity: str, errors_only: bool, strict: bool) -> None:
    """Check CARD for template cycles, unknown types and bad expressions."""
    result = app.card_service().check(card, min_severity="error" if errors_only else min_severity)
    app.emit(result)
    if strict and result.data.get("count"):
        raise SystemExit(1)
