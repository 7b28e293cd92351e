"""Main CLI entry point for Game Relay."""

import logging
import os

import click

from game_relay.cli.commands.channel import channel
from game_relay.cli.commands.play import play
from game_relay.cli.commands.step import step

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--log-level",
    default=lambda: os.environ.get("GRELAY_LOG_LEVEL", "INFO"),
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity (default: $GRELAY_LOG_LEVEL or INFO)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a JSON config file",
)
@click.pass_context
def cli(ctx, log_level, config_path):
    """Game Relay - turn-based remote play of a paused game."""
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


cli.add_command(play)
cli.add_command(step)
cli.add_command(channel)


if __name__ == "__main__":
    cli()
