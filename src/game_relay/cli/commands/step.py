"""Step command: capture a single window with an optional key press."""

from pathlib import Path

import click

from game_relay.cli.errors import exit_on_error
from game_relay.config import load_config
from game_relay.services.step_service import run_step


@click.command()
@click.argument("step_index", metavar="STEP", type=click.IntRange(min=0))
@click.argument("action", required=False)
@click.option("--level", help="Level to warp to (default: 1)")
@click.option("--capture-dir", help="Where the clip is written")
@click.pass_context
def step(ctx, step_index, action, level, capture_dir):
    """Run one step: resume, record while sending ACTION, pause, exit."""
    config_path = (ctx.obj or {}).get("config_path")
    with exit_on_error():
        config = load_config(
            Path(config_path) if config_path else None,
            overrides={"level": level, "capture_dir": capture_dir},
        )
        clip = run_step(config, step_index, action)
    click.echo(f"Step {step_index} completed: {clip}")
