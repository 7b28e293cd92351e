"""Shared fixtures for Game Relay tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from game_relay.clients.channel import MemoryChannel
from game_relay.config import load_config
from game_relay.models.action import ActionTable


class FakeClock:
    """Monotonic clock that only advances when the code under test sleeps."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_channel(clock):
    return MemoryChannel(clock=clock, sleep=clock.sleep)


@pytest.fixture
def actions():
    return ActionTable()


@pytest.fixture
def relay_config(tmp_path):
    return load_config(
        overrides={
            "mode": "scripted",
            "max_turns": 3,
            "channel_backend": "memory",
            "capture_dir": str(tmp_path / "capture"),
            "publish_dir": str(tmp_path / "publish"),
            "publisher": "local",
            "presenter": "local",
            "seed": 7,
            "warmup_seconds": 0.0,
            "poll_interval": 0.01,
            "manual_timeout": 1.0,
        },
        environ={},
    )


@pytest.fixture
def fake_pipeline(tmp_path):
    """Capture pipeline double that writes a dummy clip per turn."""
    pipeline = MagicMock()

    def _capture(turn_index, duration):
        clip = tmp_path / f"{turn_index}.apng"
        clip.write_bytes(b"clip")
        return clip

    pipeline.capture_clip.side_effect = _capture
    pipeline.to_artifact.side_effect = lambda raw: f"artifact://{Path(raw).stem}.png"
    pipeline.artifact_path.side_effect = lambda raw: Path(raw).with_suffix(".png")
    return pipeline
