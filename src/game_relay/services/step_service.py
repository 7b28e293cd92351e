"""One-shot step worker: play a single capture window and exit."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from game_relay.clients.capture import Recorder
from game_relay.clients.keyboard import XdotoolKeyboard
from game_relay.clients.process import GameProcess
from game_relay.config import RelayConfig
from game_relay.errors import InvalidSelection
from game_relay.models.action import ActionTable
from game_relay.services.turn_service import (
    build_process,
    interruption_guard,
    release_session,
    session_scope,
)

logger = logging.getLogger(__name__)


def run_step(
    config: RelayConfig,
    step: int,
    key: Optional[str] = None,
    process: Optional[GameProcess] = None,
    recorder: Optional[Recorder] = None,
    keyboard: Optional[XdotoolKeyboard] = None,
    actions: Optional[ActionTable] = None,
) -> Path:
    """Start the game, capture one clip while sending ``key``, then tear down.

    ``key`` may be an action name, alias or raw key token. Returns the clip path.
    """
    if step < 0:
        raise ValueError(f"Step must be non-negative, got {step}")
    actions = actions or ActionTable()
    action = None
    if key:
        action = actions.resolve(key)
        if action is None:
            raise InvalidSelection(f"Unknown key {key!r} for step {step}")

    process = process or build_process(config)
    recorder = recorder or Recorder(
        config.capture_dir,
        display=config.display,
        geometry=config.geometry,
        framerate=config.framerate,
    )
    keyboard = keyboard or XdotoolKeyboard(display=config.display)
    duration = config.first_capture_seconds if step == 0 else config.capture_seconds

    logger.info(f"Running step {step} with key: {action.token if action else 'none'}")
    with interruption_guard():
        with session_scope(
            process, config.mode, config.level, config.warmup_seconds, config.history_limit
        ) as session:
            process.resume(session.pid)
            started = threading.Event()

            def _record() -> Path:
                started.set()
                return recorder.capture_clip(step, duration)

            with ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture") as executor:
                future = executor.submit(_record)
                started.wait()
                if action is not None:
                    keyboard.send(action)
                clip = future.result()
            process.pause(session.pid)
            release_session(process, session)

    logger.info(f"Step {step} completed: {clip}")
    return clip
