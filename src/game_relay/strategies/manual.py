"""Operator-driven strategy."""

import logging

from game_relay.clients.channel import SyncChannel
from game_relay.clients.presenter import Presenter
from game_relay.constants import CONTROL_SLOT, MANUAL_TIMEOUT, MOVE_SLOT, POLL_INTERVAL
from game_relay.errors import InvalidSelection
from game_relay.models.action import ActionTable
from game_relay.models.mode import Mode
from game_relay.models.turn import Resolution, TurnContext
from game_relay.strategies.base import BaseStrategy, read_control_signal
from game_relay.utils.keys import exchange_key

logger = logging.getLogger(__name__)


class ManualStrategy(BaseStrategy):
    """Presents the action menu and blocks on the channel for the operator's pick.

    After the selection arrives the optional control signal for the same turn
    is read; it can end the session or switch to another mode.
    """

    mode = Mode.MANUAL

    def __init__(
        self,
        actions: ActionTable,
        channel: SyncChannel,
        presenter: Presenter,
        timeout: float = MANUAL_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ):
        super().__init__(actions)
        self.channel = channel
        self.presenter = presenter
        self.timeout = timeout
        self.poll_interval = poll_interval

    def resolve(self, context: TurnContext) -> Resolution:
        key = exchange_key(MOVE_SLOT, context.index)
        control_key = exchange_key(CONTROL_SLOT, context.index)
        self.presenter.present_choice(context.index, self.actions.actions, key, control_key)

        selected = self.channel.consume(key, self.timeout, self.poll_interval)
        action = self.actions.resolve(selected)
        if action is None:
            raise InvalidSelection(f"Unknown move {selected!r} in {key}")

        control = read_control_signal(self.channel, context.index)
        logger.info(f"Turn {context.index}: operator chose {action.name} (control={control.value})")
        return Resolution(action=action.name, rationale=action.label, control=control)
