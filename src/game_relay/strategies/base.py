"""Base strategy class for resolving the next action."""

import logging
from abc import ABC, abstractmethod

from game_relay.clients.channel import SyncChannel
from game_relay.constants import CONTROL_SLOT
from game_relay.models.action import ActionTable
from game_relay.models.mode import ControlSignal, Mode
from game_relay.models.turn import Resolution, TurnContext
from game_relay.utils.keys import exchange_key

logger = logging.getLogger(__name__)


def read_control_signal(channel: SyncChannel, turn_index: int) -> ControlSignal:
    """Take the optional control signal for a turn; absent means continue."""
    key = exchange_key(CONTROL_SLOT, turn_index)
    raw = channel.try_consume(key)
    signal = ControlSignal.parse(raw)
    if raw is not None and signal == ControlSignal.CONTINUE and raw.strip().lower() != "continue":
        logger.warning(f"Unrecognized control signal {raw!r} for {key}, continuing")
    return signal


class BaseStrategy(ABC):
    """Abstract base class for all input resolution strategies."""

    mode: Mode

    def __init__(self, actions: ActionTable):
        self.actions = actions

    @abstractmethod
    def resolve(self, context: TurnContext) -> Resolution:
        """Produce the action for the turn and a human-readable rationale."""
        pass

    def close(self) -> None:
        pass
