"""Model-driven strategy."""

import logging

from pydantic import ValidationError

from game_relay.clients.decision import DecisionClient
from game_relay.errors import CaptureError, InvalidModelResponse
from game_relay.models.action import ActionTable
from game_relay.models.mode import Mode
from game_relay.models.turn import ModelDecision, Resolution, TurnContext
from game_relay.strategies.base import BaseStrategy

logger = logging.getLogger(__name__)

INSTRUCTION_TEMPLATE = (
    "Look at this DOOM game screenshot. Choose the best move: {moves}. "
    'Respond with JSON only: {{"action": "<move>", "rationale": "<short explanation>"}}'
)


class ModelDrivenStrategy(BaseStrategy):
    """Sends the latest frame to a decision service and parses its structured answer.

    There is no fallback action: any malformed answer is fatal.
    """

    mode = Mode.MODEL

    def __init__(self, actions: ActionTable, client: DecisionClient):
        super().__init__(actions)
        self.client = client

    def instruction(self) -> str:
        return INSTRUCTION_TEMPLATE.format(moves=", ".join(self.actions.aliases()))

    def parse(self, response: object) -> ModelDecision:
        try:
            decision = ModelDecision.model_validate(response)
        except ValidationError as e:
            raise InvalidModelResponse(f"Decision service response is malformed: {e}")
        if self.actions.resolve(decision.action) is None:
            raise InvalidModelResponse(f"Decision service chose unknown action {decision.action!r}")
        return decision

    def resolve(self, context: TurnContext) -> Resolution:
        if context.clip_path is None:
            raise CaptureError(f"No captured frame for turn {context.index}")
        response = self.client.submit(context.clip_path, self.instruction())
        decision = self.parse(response)
        action = self.actions.resolve(decision.action)
        logger.info(f"Turn {context.index}: model chose {action.name}: {decision.rationale}")
        return Resolution(action=action.name, rationale=decision.rationale)

    def close(self) -> None:
        self.client.close()
