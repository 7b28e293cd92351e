"""Static action table."""

from typing import Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from game_relay.constants import LONG_KEY_DELAY_MS, SHORT_KEY_DELAY_MS

UNKNOWN_GLYPH = "❓"


class Action(BaseModel):
    """One symbolic input mapped to a raw key token and a display glyph."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    alias: str
    token: str
    glyph: str
    key_delay_ms: int = LONG_KEY_DELAY_MS

    @property
    def option_label(self) -> str:
        return f"{self.glyph} {self.label}"


DEFAULT_ACTIONS: Tuple[Action, ...] = (
    Action(name="MoveForward", label="Move Forward", alias="Up", token="Up", glyph="⬆️"),
    Action(name="MoveBack", label="Move Backward", alias="Down", token="Down", glyph="⬇️"),
    Action(name="TurnLeft", label="Turn Left", alias="Left", token="Left", glyph="⬅️"),
    Action(name="TurnRight", label="Turn Right", alias="Right", token="Right", glyph="➡️"),
    Action(
        name="Fire",
        label="Fire",
        alias="Ctrl",
        token="Control_L",
        glyph="💥",
        key_delay_ms=SHORT_KEY_DELAY_MS,
    ),
    Action(
        name="Interact",
        label="Open Door",
        alias="Space",
        token="space",
        glyph="🚪",
        key_delay_ms=SHORT_KEY_DELAY_MS,
    ),
)

TURNING_ACTIONS = ("TurnLeft", "TurnRight")


class ActionTable:
    """Immutable lookup over the action set, built once at process start."""

    def __init__(self, actions: Tuple[Action, ...] = DEFAULT_ACTIONS):
        if not actions:
            raise ValueError("Action table cannot be empty")
        self._actions = tuple(actions)
        self._by_name = {a.name: a for a in self._actions}
        self._lookup = {}
        for action in self._actions:
            for token in (action.name, action.alias, action.token):
                self._lookup.setdefault(token.lower(), action)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    def get(self, name: str) -> Action:
        return self._by_name[name]

    def resolve(self, token: Optional[str]) -> Optional[Action]:
        """Find an action by name, alias or raw key token (case-insensitive)."""
        if not token:
            return None
        return self._lookup.get(token.strip().lower())

    def subset(self, names: Tuple[str, ...]) -> Tuple[Action, ...]:
        return tuple(self._by_name[n] for n in names if n in self._by_name)

    def glyph_for(self, name: Optional[str]) -> str:
        action = self._by_name.get(name or "")
        return action.glyph if action else UNKNOWN_GLYPH

    def aliases(self) -> Tuple[str, ...]:
        return tuple(a.alias for a in self._actions)
