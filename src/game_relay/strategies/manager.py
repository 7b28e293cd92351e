"""Strategy manager: one cached strategy instance per mode."""

import logging
import random
from typing import Callable, Dict, Optional

from game_relay.clients.channel import SyncChannel
from game_relay.clients.decision import DecisionClient
from game_relay.clients.presenter import Presenter
from game_relay.models.action import ActionTable
from game_relay.models.mode import Mode
from game_relay.strategies.base import BaseStrategy
from game_relay.strategies.manual import ManualStrategy
from game_relay.strategies.model_driven import ModelDrivenStrategy
from game_relay.strategies.scripted import ScriptedStrategy

logger = logging.getLogger(__name__)


class StrategyManager:
    """Creates strategies lazily so unused decision sources are never set up."""

    def __init__(self, factories: Dict[Mode, Callable[[], BaseStrategy]]):
        self._factories = dict(factories)
        self._strategies: Dict[Mode, BaseStrategy] = {}

    def get(self, mode: Mode) -> BaseStrategy:
        if mode not in self._strategies:
            factory = self._factories.get(mode)
            if factory is None:
                raise ValueError(f"No strategy registered for mode '{mode.value}'")
            logger.info(f"Creating {mode.value} strategy")
            self._strategies[mode] = factory()
        return self._strategies[mode]

    def close(self) -> None:
        for strategy in self._strategies.values():
            strategy.close()
        self._strategies.clear()

    @classmethod
    def from_config(
        cls,
        config,
        actions: ActionTable,
        channel: SyncChannel,
        presenter: Presenter,
        decision_client_factory: Callable[[], DecisionClient],
        rng: Optional[random.Random] = None,
    ) -> "StrategyManager":
        rng = rng or random.Random(config.seed)
        return cls({
            Mode.MANUAL: lambda: ManualStrategy(
                actions, channel, presenter,
                timeout=config.manual_timeout,
                poll_interval=config.poll_interval,
            ),
            Mode.SCRIPTED: lambda: ScriptedStrategy(
                actions, rng=rng, bias_every=config.turn_bias_every, presenter=presenter
            ),
            Mode.MODEL: lambda: ModelDrivenStrategy(actions, decision_client_factory()),
        })
