"""Unit tests for decision service clients."""

import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from game_relay.clients.decision import (
    CommandDecisionClient,
    HttpDecisionClient,
    create_decision_client,
    extract_json_object,
)
from game_relay.errors import DecisionServiceError, InvalidModelResponse, Timeout


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"action": "Up", "rationale": "open hall"}')["action"] == "Up"

    def test_object_inside_prose(self):
        text = 'Sure! Here is my move:\n```json\n{"action": "Ctrl", "rationale": "imp ahead"}\n```'

        assert extract_json_object(text) == {"action": "Ctrl", "rationale": "imp ahead"}

    def test_skips_broken_braces(self):
        assert extract_json_object('{oops} then {"action": "Left", "rationale": "wall"}')["action"] == "Left"

    def test_no_object(self):
        with pytest.raises(InvalidModelResponse):
            extract_json_object("I would go left.")


def _transport(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestHttpDecisionClient:
    def test_posts_image_and_instruction(self, tmp_path):
        image = tmp_path / "3.png"
        image.write_bytes(b"png")
        seen = {}

        def handler(request):
            seen["body"] = request.read()
            return httpx.Response(200, json={"action": "Up", "rationale": "clear"})

        client = HttpDecisionClient("http://model/decide")
        client._client = _transport(handler)

        assert client.submit(image, "choose") == {"action": "Up", "rationale": "clear"}
        assert b"choose" in seen["body"]
        assert b'filename="3.png"' in seen["body"]

    def test_text_body_falls_back_to_extraction(self, tmp_path):
        image = tmp_path / "3.png"
        image.write_bytes(b"png")
        client = HttpDecisionClient("http://model/decide")
        client._client = _transport(
            lambda request: httpx.Response(200, text='answer: {"action": "Down", "rationale": "retreat"}')
        )

        assert client.submit(image, "choose")["action"] == "Down"

    def test_non_object_body(self, tmp_path):
        image = tmp_path / "3.png"
        image.write_bytes(b"png")
        client = HttpDecisionClient("http://model/decide")
        client._client = _transport(lambda request: httpx.Response(200, json=["Up"]))

        with pytest.raises(InvalidModelResponse):
            client.submit(image, "choose")

    def test_server_error(self, tmp_path):
        image = tmp_path / "3.png"
        image.write_bytes(b"png")
        client = HttpDecisionClient("http://model/decide")
        client._client = _transport(lambda request: httpx.Response(500))

        with pytest.raises(DecisionServiceError):
            client.submit(image, "choose")

    def test_timeout(self, tmp_path):
        image = tmp_path / "3.png"
        image.write_bytes(b"png")

        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = HttpDecisionClient("http://model/decide")
        client._client = _transport(handler)

        with pytest.raises(Timeout):
            client.submit(image, "choose")


class TestCommandDecisionClient:
    @patch("game_relay.clients.decision.subprocess.run")
    def test_runs_command_with_prompt_and_image(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            [], 0, 'Thinking...\n{"action": "Right", "rationale": "door"}', ""
        )

        result = CommandDecisionClient("claude -p", timeout=30).submit("/tmp/1.png", "choose")

        assert result == {"action": "Right", "rationale": "door"}
        args, kwargs = mock_run.call_args
        assert args[0] == ["claude", "-p", "choose", "/tmp/1.png"]
        assert kwargs["timeout"] == 30

    @patch("game_relay.clients.decision.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired("claude", 30)

        with pytest.raises(Timeout):
            CommandDecisionClient("claude -p").submit("/tmp/1.png", "choose")

    @patch("game_relay.clients.decision.subprocess.run")
    def test_failure_exit(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess([], 2, "", "not logged in")

        with pytest.raises(DecisionServiceError, match="not logged in"):
            CommandDecisionClient("claude -p").submit("/tmp/1.png", "choose")


class TestCreateDecisionClient:
    def test_backends(self):
        http_config = MagicMock(decision_backend="http", decision_url="http://m", model_timeout=5)
        command_config = MagicMock(decision_backend="command", decision_command="llm --json", model_timeout=5)

        assert isinstance(create_decision_client(http_config), HttpDecisionClient)
        client = create_decision_client(command_config)
        assert isinstance(client, CommandDecisionClient)
        assert client.command == ["llm", "--json"]
