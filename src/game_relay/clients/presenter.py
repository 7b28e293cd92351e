"""Presentation surfaces for operator choices.

Presenters are one-way: the operator's answer comes back only through the
synchronization channel.
"""

import json
import logging
import subprocess
from typing import Optional, Sequence

from game_relay.errors import RelayError
from game_relay.models.action import Action
from game_relay.models.mode import ControlSignal, Mode

logger = logging.getLogger(__name__)

# Optional requests shown next to the move picker; values parse as ControlSignal
CONTROL_OPTIONS = [
    {"label": "▶️ Keep playing", "value": ControlSignal.CONTINUE.value},
    {"label": f"{Mode.SCRIPTED.indicator} Switch to random moves", "value": ControlSignal.SCRIPTED.value},
    {"label": f"{Mode.MODEL.indicator} Switch to AI", "value": ControlSignal.MODEL.value},
    {"label": "⏹️ End the game", "value": ControlSignal.END.value},
]


class Presenter:
    """Base presenter: logs choices and announcements."""

    def present_choice(
        self,
        turn_index: int,
        options: Sequence[Action],
        selection_key: str,
        control_key: Optional[str] = None,
    ) -> None:
        menu = ", ".join(f"{a.option_label} [{a.alias}]" for a in options)
        logger.info(f"Turn {turn_index}: choose a move and write it to '{selection_key}': {menu}")
        if control_key:
            requests = ", ".join(o["value"] for o in CONTROL_OPTIONS)
            logger.info(f"Turn {turn_index}: optionally write {requests} to '{control_key}'")

    def announce(self, turn_index: int, action: Action, rationale: str) -> None:
        logger.info(f"Turn {turn_index}: {action.glyph} {rationale}")


class LogPresenter(Presenter):
    """Presents choices in the relay log only."""


class BuildkitePresenter(Presenter):
    """Uploads pipeline steps: block input steps for choices, command steps for announcements."""

    def __init__(self, agent_binary: str = "buildkite-agent"):
        self.agent_binary = agent_binary

    @staticmethod
    def _depends_on(turn_index: int) -> Optional[str]:
        return None if turn_index == 0 else f"step_{turn_index - 1}"

    def choice_pipeline(
        self,
        turn_index: int,
        options: Sequence[Action],
        selection_key: str,
        control_key: Optional[str] = None,
    ) -> dict:
        step = {
            "input": f"Choose your move (Step {turn_index})",
            "key": f"step_{turn_index}",
            "fields": [{
                "select": "What should we do?",
                "key": selection_key,
                "options": [{"label": a.option_label, "value": a.alias} for a in options],
            }],
        }
        if control_key:
            step["fields"].append({
                "select": "Anything else?",
                "key": control_key,
                "required": False,
                "options": CONTROL_OPTIONS,
            })
        depends_on = self._depends_on(turn_index)
        if depends_on:
            step["depends_on"] = depends_on
        return {"steps": [step]}

    def announce_pipeline(self, turn_index: int, action: Action, rationale: str) -> dict:
        step = {
            "label": f"{action.glyph} {action.label}",
            "key": f"step_{turn_index}",
            "command": f"echo {json.dumps(rationale)}",
        }
        depends_on = self._depends_on(turn_index)
        if depends_on:
            step["depends_on"] = depends_on
        return {"steps": [step]}

    def _upload(self, pipeline: dict) -> None:
        logger.info("Uploading pipeline...")
        result = subprocess.run(
            [self.agent_binary, "pipeline", "upload", "--replace"],
            input=json.dumps(pipeline),
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise RelayError(f"Pipeline upload failed: {result.stderr.strip()}")

    def present_choice(
        self,
        turn_index: int,
        options: Sequence[Action],
        selection_key: str,
        control_key: Optional[str] = None,
    ) -> None:
        self._upload(self.choice_pipeline(turn_index, options, selection_key, control_key))

    def announce(self, turn_index: int, action: Action, rationale: str) -> None:
        self._upload(self.announce_pipeline(turn_index, action, rationale))
