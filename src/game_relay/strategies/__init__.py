from game_relay.strategies.base import BaseStrategy, read_control_signal
from game_relay.strategies.manager import StrategyManager
from game_relay.strategies.manual import ManualStrategy
from game_relay.strategies.model_driven import ModelDrivenStrategy
from game_relay.strategies.scripted import ScriptedStrategy

__all__ = [
    "BaseStrategy",
    "ManualStrategy",
    "ModelDrivenStrategy",
    "ScriptedStrategy",
    "StrategyManager",
    "read_control_signal",
]
