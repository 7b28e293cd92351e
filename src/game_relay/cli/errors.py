"""Mapping of relay errors to process exit codes."""

import logging
from contextlib import contextmanager
from typing import Iterator

import click

from game_relay.errors import InvalidConfiguration, RelayError, SessionInterrupted

logger = logging.getLogger(__name__)

EXIT_INVALID_CONFIGURATION = 2
SIGNAL_EXIT_BASE = 128


@contextmanager
def exit_on_error() -> Iterator[None]:
    """0 on success, 1 on relay and unexpected errors, 2 on bad configuration, 128+signum on signals."""
    try:
        yield
    except SessionInterrupted as e:
        logger.warning(f"Session interrupted by signal {e.signum}")
        raise click.exceptions.Exit(SIGNAL_EXIT_BASE + e.signum)
    except InvalidConfiguration as e:
        click.echo(f"Error: {e}", err=True)
        raise click.exceptions.Exit(EXIT_INVALID_CONFIGURATION)
    except RelayError as e:
        logger.error(f"Fatal: {e}")
        raise click.ClickException(str(e))
    except (click.ClickException, click.exceptions.Exit, click.exceptions.Abort):
        raise
    except Exception as e:
        logger.exception(f"Fatal: unexpected {type(e).__name__}: {e}")
        raise click.ClickException(f"Unexpected {type(e).__name__}: {e}")
