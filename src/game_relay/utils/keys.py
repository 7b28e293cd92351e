"""Exchange key helpers."""

import re
import uuid

# Slots never contain "_" so "<slot>_<turn>" splits back into exactly one pair.
SLOT_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9.-]*$")
KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def exchange_key(slot: str, turn_index: int) -> str:
    """Build the channel key for one logical slot of one turn."""
    if not SLOT_PATTERN.match(slot or ""):
        raise ValueError(f"Invalid slot name '{slot}'")
    if isinstance(turn_index, bool) or not isinstance(turn_index, int) or turn_index < 0:
        raise ValueError(f"Invalid turn index {turn_index!r}")
    return f"{slot}_{turn_index}"


def validate_key(key: str) -> str:
    if not KEY_PATTERN.match(key or ""):
        raise ValueError(f"Invalid channel key '{key}'")
    return key


def generate_claim_suffix() -> str:
    """Generate a short random suffix for temp and claim file names."""
    return uuid.uuid4().hex[:8]
