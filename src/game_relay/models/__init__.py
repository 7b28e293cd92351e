from game_relay.models.action import DEFAULT_ACTIONS, Action, ActionTable
from game_relay.models.mode import ControlSignal, Mode
from game_relay.models.session import EndReason, Session, TurnState
from game_relay.models.turn import ModelDecision, Resolution, Turn, TurnContext

__all__ = [
    "DEFAULT_ACTIONS",
    "Action",
    "ActionTable",
    "ControlSignal",
    "EndReason",
    "Mode",
    "ModelDecision",
    "Resolution",
    "Session",
    "Turn",
    "TurnContext",
    "TurnState",
]
