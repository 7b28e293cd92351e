"""Decision service clients for model-driven play."""

import json
import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

import httpx

from game_relay.constants import DECISION_COMMAND, DECISION_URL, MODEL_TIMEOUT
from game_relay.errors import DecisionServiceError, InvalidModelResponse, Timeout

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first JSON object embedded in free text."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    raise InvalidModelResponse(f"No JSON object in decision service output: {text[:200]!r}")


class DecisionClient(ABC):
    """Submits a captured frame plus instructions and returns the structured response."""

    @abstractmethod
    def submit(self, image_path: Path, instruction: str) -> Dict[str, Any]:
        pass

    def close(self) -> None:
        pass


class HttpDecisionClient(DecisionClient):
    """POSTs the image and instruction as multipart form data; expects a JSON body."""

    def __init__(self, url: str = DECISION_URL, timeout: float = MODEL_TIMEOUT):
        self.url = url
        self._client = httpx.Client(timeout=timeout)

    def submit(self, image_path: Path, instruction: str) -> Dict[str, Any]:
        image_path = Path(image_path)
        try:
            with open(image_path, "rb") as image:
                r = self._client.post(
                    self.url,
                    data={"instruction": instruction},
                    files={"image": (image_path.name, image, "image/png")},
                )
            r.raise_for_status()
        except httpx.TimeoutException as e:
            raise Timeout(f"Decision service timed out for {image_path.name}: {e}")
        except httpx.HTTPError as e:
            raise DecisionServiceError(f"Decision service request failed: {e}")

        try:
            body = r.json()
        except ValueError:
            return extract_json_object(r.text)
        if not isinstance(body, dict):
            raise InvalidModelResponse(f"Decision service returned {type(body).__name__}, expected object")
        return body

    def close(self) -> None:
        self._client.close()


class CommandDecisionClient(DecisionClient):
    """Runs a model CLI (e.g. ``claude -p``) with the prompt and image path as arguments."""

    def __init__(self, command: str = DECISION_COMMAND, timeout: float = MODEL_TIMEOUT):
        self.command = shlex.split(command)
        self.timeout = timeout

    def submit(self, image_path: Path, instruction: str) -> Dict[str, Any]:
        cmd = [*self.command, instruction, str(image_path)]
        logger.info(f"Asking decision command {self.command[0]} about {Path(image_path).name}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise Timeout(f"Decision command timed out after {self.timeout}s")
        except OSError as e:
            raise DecisionServiceError(f"Decision command failed to start: {e}")
        if result.returncode != 0:
            raise DecisionServiceError(
                f"Decision command exited {result.returncode}: {result.stderr.strip()}"
            )
        return extract_json_object(result.stdout)


def create_decision_client(config) -> DecisionClient:
    if config.decision_backend == "http":
        return HttpDecisionClient(config.decision_url, timeout=config.model_timeout)
    return CommandDecisionClient(config.decision_command, timeout=config.model_timeout)
