"""Channel commands for operators and helper scripts."""

from pathlib import Path

import click

from game_relay.cli.errors import exit_on_error
from game_relay.clients.channel import create_channel
from game_relay.config import load_config
from game_relay.utils.keys import exchange_key, validate_key


def _channel_from_context(ctx, backend, channel_dir, channel_url):
    config_path = (ctx.obj or {}).get("config_path")
    config = load_config(
        Path(config_path) if config_path else None,
        overrides={
            "channel_backend": backend,
            "channel_dir": channel_dir,
            "channel_url": channel_url,
        },
    )
    return create_channel(config), config


def _resolve_key(key, turn):
    if turn is None:
        return validate_key(key)
    return exchange_key(key, turn)


_backend_options = [
    click.option("--backend", "backend", help="Channel backend: file, metadata, http or memory"),
    click.option("--dir", "channel_dir", help="Directory for the file channel"),
    click.option("--url", "channel_url", help="Base URL for the http channel"),
    click.option("--turn", type=click.IntRange(min=0), help="Treat KEY as a slot for this turn"),
]


def backend_options(func):
    for option in reversed(_backend_options):
        func = option(func)
    return func


@click.group()
def channel():
    """Read and write synchronization channel keys."""


@channel.command()
@click.argument("key")
@click.argument("value")
@backend_options
@click.pass_context
def put(ctx, key, value, backend, channel_dir, channel_url, turn):
    """Write VALUE under KEY."""
    with exit_on_error():
        try:
            key = _resolve_key(key, turn)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="KEY")
        sync_channel, _ = _channel_from_context(ctx, backend, channel_dir, channel_url)
        sync_channel.put(key, value)
    click.echo(f"{key}={value}")


@channel.command()
@click.argument("key")
@backend_options
@click.option("--wait", "wait_seconds", type=float, help="Block up to this many seconds for the key")
@click.option("--consume", is_flag=True, help="Remove the value after reading it")
@click.pass_context
def get(ctx, key, backend, channel_dir, channel_url, turn, wait_seconds, consume):
    """Print the value stored under KEY."""
    with exit_on_error():
        try:
            key = _resolve_key(key, turn)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="KEY")
        sync_channel, config = _channel_from_context(ctx, backend, channel_dir, channel_url)
        if wait_seconds is not None:
            if consume:
                value = sync_channel.consume(key, wait_seconds, config.poll_interval)
            else:
                value = sync_channel.wait_for(key, wait_seconds, config.poll_interval)
        elif consume:
            value = sync_channel.try_consume(key)
        else:
            value = sync_channel.get(key)
    if value is None:
        raise click.ClickException(f"No value for {key}")
    click.echo(value)
