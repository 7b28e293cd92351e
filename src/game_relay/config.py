"""Configuration loading for Game Relay.

Values come from (highest to lowest precedence): explicit overrides (CLI
options), ``GRELAY_*`` environment variables, an optional JSON config file and
the defaults in :mod:`game_relay.constants`. Empty env vars are treated as
unset.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from game_relay import constants
from game_relay.errors import InvalidConfiguration
from game_relay.models.mode import Mode

ENV_PREFIX = "GRELAY_"

VALID_TOP_LEVEL_KEYS = frozenset({
    "mode", "level", "limits", "channel", "capture", "game", "decision",
    "control_scope", "publisher", "presenter", "seed",
})

# (json_dotted_path, field_name, hardcoded_default, value_type)
# The env var for each entry is GRELAY_<FIELD_NAME>.
# An empty default for channel_backend or capture_dir is resolved in load_config.
_CONFIG_KEYS: List[Tuple[str, str, object, type]] = [
    ("mode",                       "mode",                  constants.DEFAULT_MODE,            str),
    ("level",                      "level",                 constants.DEFAULT_LEVEL,           str),
    ("control_scope",              "control_scope",         constants.DEFAULT_CONTROL_SCOPE,   str),
    ("seed",                       "seed",                  None,                              int),
    ("publisher",                  "publisher",             "buildkite",                       str),
    ("presenter",                  "presenter",             "buildkite",                       str),
    ("limits.max_turns",           "max_turns",             constants.MAX_TURNS,               int),
    ("limits.history_limit",       "history_limit",         constants.HISTORY_LIMIT,           int),
    ("limits.manual_timeout",      "manual_timeout",        constants.MANUAL_TIMEOUT,          float),
    ("limits.turn_bias_every",     "turn_bias_every",       constants.TURN_BIAS_EVERY,         int),
    ("channel.backend",            "channel_backend",       "",                                str),
    ("channel.dir",                "channel_dir",           str(constants.CHANNEL_DIR),        str),
    ("channel.url",                "channel_url",           "",                                str),
    ("channel.poll_interval",      "poll_interval",         constants.POLL_INTERVAL,           float),
    ("channel.retry_attempts",     "retry_attempts",        constants.RETRY_ATTEMPTS,          int),
    ("channel.retry_backoff",      "retry_backoff",         constants.RETRY_BACKOFF,           float),
    ("channel.mode_key",           "mode_key",              "",                                str),
    ("channel.level_key",          "level_key",             "",                                str),
    ("capture.dir",                "capture_dir",           "",                                str),
    ("capture.publish_dir",        "publish_dir",           str(constants.PUBLISH_DIR),        str),
    ("capture.first_seconds",      "first_capture_seconds", constants.FIRST_CAPTURE_SECONDS,   float),
    ("capture.seconds",            "capture_seconds",       constants.CAPTURE_SECONDS,         float),
    ("capture.framerate",          "framerate",             constants.CAPTURE_FRAMERATE,       int),
    ("game.display",               "display",               constants.DISPLAY,                 str),
    ("game.geometry",              "geometry",              constants.SCREEN_GEOMETRY,         str),
    ("game.binary",                "game_binary",           constants.GAME_BINARY,             str),
    ("game.iwad",                  "game_iwad",             constants.GAME_IWAD,               str),
    ("game.warmup_seconds",        "warmup_seconds",        constants.WARMUP_SECONDS,          float),
    ("decision.backend",           "decision_backend",      constants.DEFAULT_DECISION_BACKEND, str),
    ("decision.url",               "decision_url",          constants.DECISION_URL,            str),
    ("decision.command",           "decision_command",      constants.DECISION_COMMAND,        str),
    ("decision.timeout",           "model_timeout",         constants.MODEL_TIMEOUT,           float),
]


class RelayConfig(BaseModel):
    """Resolved, immutable configuration for one run."""

    model_config = ConfigDict(frozen=True)

    mode: Mode
    level: str
    control_scope: str
    seed: Optional[int]
    publisher: str
    presenter: str
    max_turns: int
    history_limit: int
    manual_timeout: float
    turn_bias_every: int
    channel_backend: str
    channel_dir: Path
    channel_url: str
    poll_interval: float
    retry_attempts: int
    retry_backoff: float
    mode_key: str
    level_key: str
    capture_dir: Path
    publish_dir: Path
    first_capture_seconds: float
    capture_seconds: float
    framerate: int
    display: str
    geometry: str
    game_binary: str
    game_iwad: str
    warmup_seconds: float
    decision_backend: str
    decision_url: str
    decision_command: str
    model_timeout: float

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> Mode:
        if isinstance(value, Mode):
            return value
        return Mode.parse(value)

    @field_validator(
        "max_turns", "history_limit", "retry_attempts", "turn_bias_every", "framerate"
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator(
        "manual_timeout", "poll_interval", "first_capture_seconds", "capture_seconds",
        "model_timeout",
    )
    @classmethod
    def _positive_float(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("control_scope")
    @classmethod
    def _valid_scope(cls, value: str) -> str:
        if value not in constants.CONTROL_SCOPES:
            raise ValueError(f"must be one of {', '.join(constants.CONTROL_SCOPES)}")
        return value

    @field_validator("channel_backend")
    @classmethod
    def _valid_backend(cls, value: str) -> str:
        if value not in constants.CHANNEL_BACKENDS:
            raise ValueError(f"must be one of {', '.join(constants.CHANNEL_BACKENDS)}")
        return value

    @field_validator("decision_backend")
    @classmethod
    def _valid_decision(cls, value: str) -> str:
        if value not in constants.DECISION_BACKENDS:
            raise ValueError(f"must be one of {', '.join(constants.DECISION_BACKENDS)}")
        return value

    @field_validator("publisher", "presenter")
    @classmethod
    def _valid_surface(cls, value: str) -> str:
        if value not in ("buildkite", "local"):
            raise ValueError("must be one of buildkite, local")
        return value


def _get_json_value(data: dict, dotted_key: str) -> Optional[object]:
    """Retrieve a value from nested JSON using dotted key (e.g., 'limits.max_turns')."""
    obj: object = data
    for part in dotted_key.split("."):
        if not isinstance(obj, dict) or part not in obj:
            return None
        obj = obj[part]
    return obj


def _parse_env(env_var: str, typ: type, environ: Mapping[str, str]) -> Optional[object]:
    """Read env var; return None if unset or empty string (treated as unset)."""
    raw = environ.get(env_var)
    if raw is None or raw == "":
        return None
    try:
        return typ(raw)
    except ValueError:
        raise InvalidConfiguration(f"Invalid value for {env_var}: {raw!r}")


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise InvalidConfiguration(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidConfiguration(f"Invalid JSON in config file {path}: {e}")
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Config file {path} must contain a JSON object")

    unknown = set(data.keys()) - VALID_TOP_LEVEL_KEYS
    if unknown:
        raise InvalidConfiguration(f"Unknown config keys: {', '.join(sorted(unknown))}")
    return data


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RelayConfig:
    """Build the run configuration: overrides > env vars > JSON file > defaults."""
    if environ is None:
        environ = os.environ
    json_data = read_config_file(config_path) if config_path else {}
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    unknown_overrides = set(overrides) - {name for _, name, _, _ in _CONFIG_KEYS}
    if unknown_overrides:
        raise InvalidConfiguration(f"Unknown settings: {', '.join(sorted(unknown_overrides))}")

    values: Dict[str, Any] = {}
    for json_path, name, default, typ in _CONFIG_KEYS:
        value = default
        json_val = _get_json_value(json_data, json_path)
        if json_val is not None:
            value = json_val
        env_val = _parse_env(f"{ENV_PREFIX}{name.upper()}", typ, environ)
        if env_val is not None:
            value = env_val
        if name in overrides:
            value = overrides[name]
        values[name] = value

    if not values["channel_backend"]:
        presenter = str(values["presenter"])
        values["channel_backend"] = constants.SURFACE_CHANNEL_BACKENDS.get(presenter, "file")
    if not values["capture_dir"]:
        values["capture_dir"] = str(Path.cwd())

    try:
        return RelayConfig(**values)
    except InvalidConfiguration:
        raise
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidConfiguration(f"Invalid configuration: {problems}")


def check_operator_channel(config: RelayConfig) -> None:
    """Reject a session whose operator answers could never reach the relay.

    Buildkite input steps store what the operator picks in build meta-data, so
    any session that reads operator input with the buildkite presenter must
    poll the metadata channel.
    """
    reads_operator_input = (
        config.mode == Mode.MANUAL
        or bool(config.mode_key or config.level_key)
        or config.control_scope == "all"
    )
    if reads_operator_input and config.presenter == "buildkite" and config.channel_backend != "metadata":
        raise InvalidConfiguration(
            f"Presenter 'buildkite' answers through build meta-data but channel.backend is "
            f"'{config.channel_backend}'; use the metadata channel or presenter 'local'"
        )
