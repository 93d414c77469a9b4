"""AppContext: shared Click context for all commands.

Created once by the root CLI group and passed to subcommands with
``@click.pass_obj``. Owns settings, the lazily created plugin manager
and result emission (stdout/stderr routing and exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from divcore.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from divcore.config.settings import DivSettings
    from divcore.plugins.manager import PluginManager
    from divcore.services.card import CardService
    from divcore.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Plugins are discovered on first use so ``--help`` and ``--version``
    never import third-party entry points.
    """

    def __init__(self, settings: DivSettings) -> None:
        self.settings = settings
        self._plugin_manager: PluginManager | None = None

        from divcore.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def plugin_manager(self) -> PluginManager:
        """The plugin manager (created and loaded on first access)."""
        if self._plugin_manager is None:
            from divcore.plugins.manager import PluginManager

            self._plugin_manager = PluginManager()
            if self.settings.plugins.discover:
                self._plugin_manager.discover_and_load()
        return self._plugin_manager

    def card_service(self) -> CardService:
        from divcore.services.card import CardService

        return CardService(self.settings, self.plugin_manager)

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: written to stdout. Warnings go to stderr so they
          don't pollute piped output.
        * Failure: written to stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # JSON and the run renderer already carry the warnings.
            if not settings.json_output and result.op != "run":
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
