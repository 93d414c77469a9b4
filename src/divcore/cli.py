"""Root CLI group for divcore with global flags and command registration."""

from __future__ import annotations

import click

from divcore import __version__
from divcore.commands import register_commands
from divcore.commands._base import DivGroup
from divcore.commands._context import AppContext
from divcore.config.settings import DivSettings


@click.group(
    cls=DivGroup,
    invoke_without_command=True,
    examples="""\
  divcore resolve card.json
  divcore eval "len(name) > 3" --var name:string=divkit
  divcore run card.json actions.json
  divcore check card.json --strict""",
)
@click.version_option(version=__version__, prog_name="divcore")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug logging.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """divcore: evaluate, resolve and run server-driven UI cards."""
    settings = DivSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
