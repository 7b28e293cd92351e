"""Play command: run a full relay session."""

from pathlib import Path

import click

from game_relay.cli.errors import exit_on_error
from game_relay.config import load_config
from game_relay.constants import LEVEL_KEY, MODE_KEY
from game_relay.services.turn_service import run_session


@click.command()
@click.option("--mode", help="Starting mode: manual, scripted or model")
@click.option("--level", help="Level to warp to (default: 1)")
@click.option("--max-turns", type=int, help="Stop after this many turns")
@click.option("--channel-backend", help="Channel backend: file, metadata, http or memory")
@click.option("--channel-dir", help="Directory for the file channel")
@click.option("--channel-url", help="Base URL for the http channel")
@click.option("--publisher", help="Where clips are published: buildkite or local")
@click.option("--presenter", help="Where choices are presented: buildkite or local")
@click.option("--control-scope", help="Which modes read control signals: manual or all")
@click.option("--seed", type=int, help="Seed for the scripted strategy")
@click.option(
    "--settings-from-channel",
    is_flag=True,
    help=f"Wait for the mode and level on the '{MODE_KEY}' and '{LEVEL_KEY}' keys",
)
@click.pass_context
def play(ctx, mode, level, max_turns, channel_backend, channel_dir, channel_url,
         publisher, presenter, control_scope, seed, settings_from_channel):
    """Start the game and relay turns until the turn limit or an end request."""
    config_path = (ctx.obj or {}).get("config_path")
    overrides = {
        "mode": mode,
        "level": level,
        "max_turns": max_turns,
        "channel_backend": channel_backend,
        "channel_dir": channel_dir,
        "channel_url": channel_url,
        "publisher": publisher,
        "presenter": presenter,
        "control_scope": control_scope,
        "seed": seed,
    }
    if settings_from_channel:
        overrides.update(mode_key=MODE_KEY, level_key=LEVEL_KEY)

    with exit_on_error():
        config = load_config(Path(config_path) if config_path else None, overrides=overrides)
        session = run_session(config)

    click.echo(f"Session finished after {session.turn_count} turns ({session.end_reason.value})")
    for turn in session.history:
        click.echo(
            f"  {turn.index}: {turn.mode.value} applied={turn.applied_action or '-'} "
            f"next={turn.action or '-'}"
        )
