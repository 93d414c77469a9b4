"""Command: expand a card's templates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from divcore.commands._base import DivCommand, JsonFile

if TYPE_CHECKING:
    from divcore.commands._context import AppContext


@click.command(
    cls=DivCommand,
    examples="""\
  divcore resolve card.json
  divcore --json resolve card.json
  cat card.json | divcore -q resolve -""",
)
@click.argument("card", type=JsonFile())
@click.pass_obj
def resolve(app: AppContext, card: Any) -> None:
    """Print CARD's root div with every template expanded."""
    app.emit(app.card_service().resolve(card))
