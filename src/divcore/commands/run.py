"""Command: execute actions against a card."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import click

from divcore.commands._base import DivCommand, JsonFile

if TYPE_CHECKING:
    from divcore.commands._context import AppContext


def _action_list(actions: Any) -> list[Any]:
    if isinstance(actions, dict):
        nested = actions.get("actions")
        return list(nested) if isinstance(nested, list) else [actions]
    if isinstance(actions, list):
        return actions
    raise click.BadParameter("expected an action object or a list of actions", param_hint="ACTIONS")


@click.command(
    cls=DivCommand,
    examples="""\
  divcore run card.json actions.json
  divcore run card.json '{"log_id": "inc", "typed": {"type": "set_variable",
      "variable_name": "counter",
      "value": {"type": "integer", "value": "@{counter + 1}"}}}'
  divcore --json run card.json actions.json""",
)
@click.argument("card", type=JsonFile())
@click.argument("actions", type=JsonFile())
@click.pass_obj
def run(app: AppContext, card: Any, actions: Any) -> None:
    """Run ACTIONS against CARD and print the resulting variables.

    ACTIONS is a single action, a list of actions, or an object with an
    ``actions`` list.
    """
    app.emit(asyncio.run(app.card_service().run(card, _action_list(actions))))
