"""Mode and control signal enums."""

from enum import Enum
from typing import Optional

from game_relay.errors import InvalidConfiguration


class Mode(str, Enum):
    """Decision source driving the session."""

    MANUAL = "manual"
    SCRIPTED = "scripted"
    MODEL = "model"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Mode":
        """Parse a mode value, failing fast on anything unrecognized."""
        normalized = (value or "").strip().lower()
        if normalized in _MODE_ALIASES:
            return _MODE_ALIASES[normalized]
        valid = ", ".join(m.value for m in cls)
        raise InvalidConfiguration(f"Invalid mode '{value}'. Valid: {valid}")

    @property
    def indicator(self) -> str:
        return _MODE_INDICATORS[self]


# Legacy names from the pipeline scripts: human, random, ai
_MODE_ALIASES = {
    "manual": Mode.MANUAL,
    "human": Mode.MANUAL,
    "scripted": Mode.SCRIPTED,
    "random": Mode.SCRIPTED,
    "model": Mode.MODEL,
    "modeldriven": Mode.MODEL,
    "model_driven": Mode.MODEL,
    "ai": Mode.MODEL,
}

_MODE_INDICATORS = {
    Mode.MANUAL: "👤",
    Mode.SCRIPTED: "🎲",
    Mode.MODEL: "🤖",
}


class ControlSignal(str, Enum):
    """Out-of-band operator request read alongside a manual selection."""

    CONTINUE = "continue"
    MANUAL = "manual"
    SCRIPTED = "scripted"
    MODEL = "model"
    END = "end"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ControlSignal":
        """Parse leniently: absent or unrecognized means continue."""
        normalized = (value or "").strip().lower()
        if normalized in ("end", "stop", "quit"):
            return cls.END
        if normalized in _MODE_ALIASES:
            return cls(_MODE_ALIASES[normalized].value)
        return cls.CONTINUE

    @property
    def requested_mode(self) -> Optional[Mode]:
        if self in (ControlSignal.MANUAL, ControlSignal.SCRIPTED, ControlSignal.MODEL):
            return Mode(self.value)
        return None
