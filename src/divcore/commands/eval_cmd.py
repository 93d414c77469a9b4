"""Command: evaluate a single expression."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from divcore.commands._base import DivCommand, JsonFile

if TYPE_CHECKING:
    from divcore.commands._context import AppContext


@click.command(
    "eval",
    cls=DivCommand,
    examples="""\
  divcore eval "1 + 2 * 3"
  divcore --json eval "toUpperCase('x')"
  divcore eval "len(name) > 3 ? 'long' : 'short'" --var name:string=divkit
  divcore eval "Hello, @{name}!" --card card.json""",
)
@click.argument("expression")
@click.option(
    "--card",
    type=JsonFile(),
    default=None,
    help="Card whose variables are in scope.",
)
@click.option(
    "--var",
    "variables",
    multiple=True,
    metavar="NAME:TYPE=VALUE",
    help="Extra variable, repeatable. Overrides card variables.",
)
@click.pass_obj
def eval_cmd(app: AppContext, expression: str, card: Any, variables: tuple[str, ...]) -> None:
    """Evaluate EXPRESSION: a bare expression or a string with @{...} parts."""
    app.emit(app.card_service().evaluate(expression, data=card, variables=variables))
