"""Click base classes with ``--examples`` support.

``DivCommand`` and ``DivGroup`` accept an ``examples`` string. Passing
``--examples`` prints it and exits, keeping ``--help`` short.
"""

from __future__ import annotations

import json
from typing import Any

import click


def _add_examples_option(cmd: click.Command | click.Group, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a Click command or group."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


class DivCommand(click.Command):
    """Click Command subclass that supports an ``--examples`` flag."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


class DivGroup(click.Group):
    """Click Group whose subcommands default to :class:`DivCommand`."""

    command_class = DivCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


class JsonFile(click.File):
    """A ``click.File`` that parses its contents as JSON.

    ``-`` reads stdin; a value starting with ``{`` or ``[`` is taken as
    inline JSON rather than a path.
    """

    name = "json_file"

    def __init__(self) -> None:
        super().__init__("r", encoding="utf-8")

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Any:
        if not isinstance(value, str):
            return value
        if value.lstrip().startswith(("{", "[")):
            source, text = "inline JSON", value
        else:
            source, text = value, super().convert(value, param, ctx).read()
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            self.fail(f"{source}: invalid JSON ({exc.msg} at line {exc.lineno})", param, ctx)
