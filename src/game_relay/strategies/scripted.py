"""Random strategy."""

import random
from typing import Optional

from game_relay.clients.presenter import Presenter
from game_relay.constants import TURN_BIAS_EVERY
from game_relay.models.action import TURNING_ACTIONS, ActionTable
from game_relay.models.mode import Mode
from game_relay.models.turn import Resolution, TurnContext
from game_relay.strategies.base import BaseStrategy


class ScriptedStrategy(BaseStrategy):
    """Picks uniformly from the action set; every Nth turn only turning actions."""

    mode = Mode.SCRIPTED

    def __init__(
        self,
        actions: ActionTable,
        rng: Optional[random.Random] = None,
        bias_every: int = TURN_BIAS_EVERY,
        presenter: Optional[Presenter] = None,
    ):
        super().__init__(actions)
        self.rng = rng or random.Random()
        self.bias_every = bias_every
        self.presenter = presenter

    def candidates(self, turn_index: int):
        if self.bias_every and turn_index > 0 and turn_index % self.bias_every == 0:
            turning = self.actions.subset(TURNING_ACTIONS)
            if turning:
                return turning
        return self.actions.actions

    def resolve(self, context: TurnContext) -> Resolution:
        action = self.rng.choice(self.candidates(context.index))
        rationale = f"Random move: {action.label.lower()}"
        if self.presenter is not None:
            self.presenter.announce(context.index, action, rationale)
        return Resolution(action=action.name, rationale=rationale)
