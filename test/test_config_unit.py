"""Unit tests for configuration loading."""

import json
from pathlib import Path

import pytest

from game_relay import constants
from game_relay.config import check_operator_channel, load_config, read_config_file
from game_relay.errors import InvalidConfiguration
from game_relay.models.mode import Mode


def write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "relay.json"
    path.write_text(json.dumps(data))
    return path


class TestDefaults:
    def test_defaults(self):
        config = load_config(environ={})

        assert config.mode == Mode.MANUAL
        assert config.level == "1"
        assert config.max_turns == constants.MAX_TURNS
        assert config.control_scope == "manual"
        assert config.channel_backend == "metadata"
        assert config.retry_attempts == 3
        assert config.retry_backoff == 0.5
        assert config.first_capture_seconds == 2.5
        assert config.capture_seconds == 1.25
        assert config.mode_key == ""

    def test_config_is_frozen(self):
        config = load_config(environ={})

        with pytest.raises(Exception):
            config.max_turns = 5


class TestPrecedence:
    def test_json_over_defaults(self, tmp_path):
        path = write_config(tmp_path, {"mode": "random", "limits": {"max_turns": 7}})

        config = load_config(path, environ={})

        assert config.mode == Mode.SCRIPTED
        assert config.max_turns == 7

    def test_env_over_json(self, tmp_path):
        path = write_config(tmp_path, {"limits": {"max_turns": 7}})

        config = load_config(path, environ={"GRELAY_MAX_TURNS": "9"})

        assert config.max_turns == 9

    def test_overrides_over_env(self, tmp_path):
        path = write_config(tmp_path, {"mode": "ai"})

        config = load_config(path, overrides={"mode": "human"}, environ={"GRELAY_MODE": "random"})

        assert config.mode == Mode.MANUAL

    def test_none_override_ignored(self):
        config = load_config(overrides={"max_turns": None}, environ={"GRELAY_MAX_TURNS": "4"})

        assert config.max_turns == 4

    def test_empty_env_is_unset(self):
        config = load_config(environ={"GRELAY_MODE": "", "GRELAY_MAX_TURNS": ""})

        assert config.mode == Mode.MANUAL
        assert config.max_turns == constants.MAX_TURNS

    def test_nested_channel_settings(self, tmp_path):
        path = write_config(
            tmp_path,
            {"channel": {"backend": "http", "url": "http://relay:8080", "poll_interval": 0.25}},
        )

        config = load_config(path, environ={})

        assert config.channel_backend == "http"
        assert config.channel_url == "http://relay:8080"
        assert config.poll_interval == 0.25

    def test_local_presenter_defaults_to_file_channel(self):
        config = load_config(environ={"GRELAY_PRESENTER": "local"})

        assert config.channel_backend == "file"

    def test_explicit_channel_wins_over_presenter(self):
        config = load_config(overrides={"channel_backend": "http"}, environ={"GRELAY_PRESENTER": "local"})

        assert config.channel_backend == "http"

    def test_capture_dir_follows_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={})

        assert config.capture_dir == tmp_path

    def test_capture_dir_from_env(self, tmp_path):
        config = load_config(environ={"GRELAY_CAPTURE_DIR": str(tmp_path / "clips")})

        assert config.capture_dir == tmp_path / "clips"


class TestValidation:
    def test_invalid_mode(self):
        with pytest.raises(InvalidConfiguration, match="Invalid mode 'chaos'"):
            load_config(overrides={"mode": "chaos"}, environ={})

    def test_invalid_channel_backend(self):
        with pytest.raises(InvalidConfiguration, match="channel_backend"):
            load_config(overrides={"channel_backend": "redis"}, environ={})

    def test_non_positive_limit(self):
        with pytest.raises(InvalidConfiguration, match="max_turns"):
            load_config(overrides={"max_turns": 0}, environ={})

    def test_invalid_control_scope(self):
        with pytest.raises(InvalidConfiguration, match="control_scope"):
            load_config(environ={"GRELAY_CONTROL_SCOPE": "some"})

    def test_env_type_error(self):
        with pytest.raises(InvalidConfiguration, match="GRELAY_MAX_TURNS"):
            load_config(environ={"GRELAY_MAX_TURNS": "many"})

    def test_unknown_override(self):
        with pytest.raises(InvalidConfiguration, match="Unknown settings: turbo"):
            load_config(overrides={"turbo": True}, environ={})


class TestReadConfigFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfiguration, match="not found"):
            read_config_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "relay.json"
        path.write_text("{not json")

        with pytest.raises(InvalidConfiguration, match="Invalid JSON"):
            read_config_file(path)

    def test_non_object(self, tmp_path):
        path = write_config(tmp_path, ["manual"])

        with pytest.raises(InvalidConfiguration, match="JSON object"):
            read_config_file(path)

    def test_unknown_top_level_key(self, tmp_path):
        path = write_config(tmp_path, {"mode": "manual", "difficulty": "nightmare"})

        with pytest.raises(InvalidConfiguration, match="difficulty"):
            read_config_file(path)


class TestOperatorChannel:
    def test_defaults_are_consistent(self):
        check_operator_channel(load_config(environ={}))

    def test_buildkite_presenter_with_file_channel_rejected(self):
        config = load_config(overrides={"channel_backend": "file"}, environ={})

        with pytest.raises(InvalidConfiguration, match="metadata"):
            check_operator_channel(config)

    def test_settings_from_channel_need_metadata(self):
        config = load_config(
            overrides={"mode": "random", "channel_backend": "http", "mode_key": "game-mode"},
            environ={"GRELAY_CHANNEL_URL": "http://relay:8080"},
        )

        with pytest.raises(InvalidConfiguration, match="'http'"):
            check_operator_channel(config)

    def test_automated_session_without_operator_input_allowed(self):
        config = load_config(overrides={"mode": "ai", "channel_backend": "file"}, environ={})

        check_operator_channel(config)

    def test_local_presenter_with_file_channel_allowed(self):
        config = load_config(overrides={"channel_backend": "file", "presenter": "local"}, environ={})

        check_operator_channel(config)
