"""Turn data models."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from game_relay.models.mode import ControlSignal, Mode


class Turn(BaseModel):
    """One finalized capture-decide-apply cycle.

    ``applied_action`` is the action delivered while this turn's clip was
    recorded (none on turn 0). ``action`` is the action resolved at the end of
    this turn, delivered during the next one.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    mode: Mode
    applied_action: Optional[str] = None
    action: Optional[str] = None
    rationale: str = ""
    artifact_ref: Optional[str] = None
    finalized_at: datetime = Field(default_factory=datetime.now)


class TurnContext(BaseModel):
    """What a strategy can see when resolving the action for a turn."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    mode: Mode
    clip_path: Optional[Path] = None
    artifact_ref: Optional[str] = None


class Resolution(BaseModel):
    """Output of a strategy: the next action plus why it was chosen."""

    model_config = ConfigDict(frozen=True)

    action: Optional[str]
    rationale: str
    control: ControlSignal = ControlSignal.CONTINUE


class ModelDecision(BaseModel):
    """Structured response expected from the decision service."""

    action: str = Field(min_length=1)
    rationale: str
