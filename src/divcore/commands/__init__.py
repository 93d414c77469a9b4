"""Subcommand modules for divcore.

register_commands() imports each command lazily so ``divcore --help``
stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register every standalone command on the root CLI group."""
    from divcore.commands.check import check
    from divcore.commands.eval_cmd import eval_cmd
    from divcore.commands.resolve import resolve
    from divcore.commands.run import run

    cli.add_command(resolve)
    cli.add_command(eval_cmd)
    cli.add_command(run)
    cli.add_command(check)
