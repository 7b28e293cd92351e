"""Key delivery to the virtual display."""

import logging
import os
import subprocess
from typing import List

from game_relay.constants import DISPLAY
from game_relay.models.action import Action

logger = logging.getLogger(__name__)


class XdotoolKeyboard:
    """Sends one action as a key press with xdotool."""

    def __init__(self, display: str = DISPLAY, binary: str = "xdotool"):
        self.display = display
        self.binary = binary

    def command_for(self, action: Action) -> List[str]:
        return [self.binary, "key", "--delay", str(action.key_delay_ms), action.token]

    def send(self, action: Action) -> None:
        logger.info(f"Sending key: {action.token} ({action.name})")
        result = subprocess.run(
            self.command_for(action),
            env={**os.environ, "DISPLAY": self.display},
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            logger.warning(f"Key send failed for {action.token}: {result.stderr.strip()}")
