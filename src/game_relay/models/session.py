"""Session data models."""

from collections import deque
from enum import Enum
from typing import Deque, List, Optional

from pydantic import BaseModel, Field

from game_relay.constants import HISTORY_LIMIT
from game_relay.models.mode import Mode
from game_relay.models.turn import Turn


class TurnState(str, Enum):
    """States a turn moves through inside the controller."""

    IDLE = "idle"
    RESUMING = "resuming"
    CAPTURING = "capturing"
    PAUSING = "pausing"
    PUBLISHING = "publishing"
    RESOLVING_ACTION = "resolving_action"
    APPLYING = "applying"
    FINALIZED = "finalized"


class EndReason(str, Enum):
    """Why a session stopped."""

    TURN_LIMIT = "turn_limit"
    END_REQUESTED = "end_requested"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


class Session(BaseModel):
    """Aggregate owned by the turn controller for the lifetime of one run."""

    mode: Mode
    level: str
    pid: Optional[int] = None
    terminated: bool = False
    end_reason: Optional[EndReason] = None
    turn_count: int = 0
    history_limit: int = HISTORY_LIMIT
    recent_turns: Deque[Turn] = Field(default_factory=deque)

    def record(self, turn: Turn) -> None:
        """Append a finalized turn; only the last ``history_limit`` are kept for display."""
        if turn.index != self.turn_count:
            raise ValueError(f"Turn {turn.index} recorded out of order (expected {self.turn_count})")
        self.recent_turns.append(turn)
        while len(self.recent_turns) > self.history_limit:
            self.recent_turns.popleft()
        self.turn_count += 1

    @property
    def history(self) -> List[Turn]:
        return list(self.recent_turns)

    @property
    def last_turn(self) -> Optional[Turn]:
        return self.recent_turns[-1] if self.recent_turns else None
