"""Main CLI entry point for spott-service commands."""

import click

from spott_service.cli.commands import realtime, recent, server
from spott_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="spott")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """SPOTT service CLI.

    \b
    Commands:
      serve    Run the HTTP service
      watch    Stream realtime bus events as JSON lines
      recent   Manage recent city searches

    \b
    Quick Start:
      spott serve --reload
      spott watch --token $SPOTT_ACCESS_TOKEN --type notification_insert
      spott recent add Dublin
    """
    ctx.ensure_object(dict)


cli.add_command(server.serve)
cli.add_command(realtime.watch)
cli.add_command(recent.recent)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
