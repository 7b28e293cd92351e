"""Lifecycle of the display server and the game process."""

import logging
import os
import signal
import subprocess
import time
from typing import Callable, Dict, List, Optional

from game_relay.constants import (
    DISPLAY,
    DISPLAY_STARTUP_SECONDS,
    GAME_BINARY,
    GAME_IWAD,
    SCREEN_DEPTH,
    SCREEN_GEOMETRY,
)
from game_relay.errors import ProcessNotFound, ProcessStartError

logger = logging.getLogger(__name__)

# How long to wait for a terminated process to exit before SIGKILL
TERMINATE_GRACE_SECONDS = 3.0


class GameProcess:
    """Starts the game on a virtual display and pauses/resumes it with signals."""

    def __init__(
        self,
        display: str = DISPLAY,
        geometry: str = SCREEN_GEOMETRY,
        game_binary: str = GAME_BINARY,
        game_iwad: str = GAME_IWAD,
        display_startup_seconds: float = DISPLAY_STARTUP_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.display = display
        self.geometry = geometry
        self.game_binary = game_binary
        self.game_iwad = game_iwad
        self.display_startup_seconds = display_startup_seconds
        self._sleep = sleep
        self._children: Dict[int, subprocess.Popen] = {}
        self._display_server: Optional[subprocess.Popen] = None

    def _env(self) -> Dict[str, str]:
        return {**os.environ, "DISPLAY": self.display}

    def display_command(self) -> List[str]:
        return ["Xvfb", self.display, "-screen", "0", f"{self.geometry}x{SCREEN_DEPTH}"]

    def game_command(self, level: str) -> List[str]:
        command = [
            self.game_binary,
            "-geometry", self.geometry,
            "-iwad", self.game_iwad,
            "-episode", "1",
        ]
        if level and level != "1":
            command.extend(["-warp", "1", str(level)])
        return command

    def start(self, level: str) -> int:
        """Start the display server and the game; returns the game pid."""
        logger.info(f"Starting display server on {self.display}")
        try:
            self._display_server = subprocess.Popen(
                self.display_command(), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        except OSError as e:
            raise ProcessStartError(f"Failed to start display server: {e}")

        try:
            self._sleep(self.display_startup_seconds)
            logger.info(f"Starting game (level={level})")
            game = subprocess.Popen(
                self.game_command(level),
                env=self._env(),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            self._children[game.pid] = game
        except BaseException as e:
            logger.error(f"Game failed to start, stopping display server: {e!r}")
            self.shutdown()
            if isinstance(e, OSError):
                raise ProcessStartError(f"Failed to start game {self.game_binary}: {e}")
            raise
        logger.info(f"Game started with pid {game.pid}")
        return game.pid

    def _signal(self, pid: int, signum: int) -> None:
        os.kill(pid, signum)

    def pause(self, pid: int) -> None:
        """Stop-the-world; a missing process is logged and ignored."""
        try:
            self._signal(pid, signal.SIGSTOP)
        except ProcessLookupError:
            logger.warning(f"Pause: process {pid} not found, ignoring")

    def resume(self, pid: int) -> None:
        try:
            self._signal(pid, signal.SIGCONT)
        except ProcessLookupError:
            raise ProcessNotFound(f"Cannot resume process {pid}: not found")

    def terminate(self, pid: int) -> None:
        """Terminate the game and the display server; a missing process is ignored."""
        try:
            self._signal(pid, signal.SIGTERM)
            # A stopped process only acts on SIGTERM once continued
            self._signal(pid, signal.SIGCONT)
        except ProcessLookupError:
            logger.warning(f"Terminate: process {pid} already gone")

        child = self._children.pop(pid, None)
        if child is not None:
            _reap(child)
        self.shutdown()

    def shutdown(self) -> None:
        """Stop whatever start() left running: remaining children, then the display server."""
        for pid, child in list(self._children.items()):
            logger.info(f"Stopping leftover process {pid}")
            try:
                child.terminate()
                child.send_signal(signal.SIGCONT)
            except ProcessLookupError:
                pass
            _reap(child)
            self._children.pop(pid, None)

        if self._display_server is not None:
            try:
                self._display_server.terminate()
            except ProcessLookupError:
                pass
            _reap(self._display_server)
            self._display_server = None


def _reap(process: subprocess.Popen) -> None:
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning(f"Process {process.pid} did not exit, killing")
        process.kill()
        process.wait()
