"""Synchronization channel backends.

A channel moves string values between a writer and a reader that share no
memory, only a durable store addressed by key. Readers poll; keys are unique
per exchange (see :func:`game_relay.utils.keys.exchange_key`), which is the
only concurrency control. Reusing a key before its value was consumed is a
caller bug and is not detected.
"""

import logging
import os
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Type

import requests

from game_relay.constants import POLL_INTERVAL, RETRY_ATTEMPTS, RETRY_BACKOFF
from game_relay.errors import ChannelTimeout, ChannelUnavailable, InvalidConfiguration
from game_relay.utils.keys import generate_claim_suffix, validate_key

logger = logging.getLogger(__name__)

# buildkite-agent meta-data exists exit status for a missing key
METADATA_MISSING_EXIT_CODE = 100
ACK_SUFFIX = ".ack"


class SyncChannel(ABC):
    """Key/value exchange with polling, timeout and bounded retries."""

    transient_errors: Tuple[Type[BaseException], ...] = (OSError,)

    def __init__(
        self,
        retry_attempts: int = RETRY_ATTEMPTS,
        retry_backoff: float = RETRY_BACKOFF,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self._clock = clock
        self._sleep = sleep

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key is absent."""
        pass

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        """Durably store value under key."""
        pass

    @abstractmethod
    def _claim(self, key: str) -> Optional[str]:
        """Atomically take the value so no other reader can receive it."""
        pass

    def _with_retry(self, operation: str, key: str, fn: Callable[[], object]) -> object:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return fn()
            except self.transient_errors as e:
                last_error = e
                logger.warning(
                    f"Channel {operation} failed for key '{key}' "
                    f"(attempt {attempt}/{self.retry_attempts}): {e}"
                )
                if attempt < self.retry_attempts:
                    self._sleep(self.retry_backoff)
        raise ChannelUnavailable(
            f"Channel {operation} for key '{key}' failed after "
            f"{self.retry_attempts} attempts: {last_error}",
            key=key,
        )

    def put(self, key: str, value: str) -> None:
        """Store value under key; visible to get() once this returns."""
        self._with_retry("put", key, lambda: self._write(key, value))
        logger.debug(f"Channel put: {key}")

    def get(self, key: str) -> Optional[str]:
        """Single non-blocking check. Empty values count as absent."""
        value = self._with_retry("get", key, lambda: self._read(key))
        return value or None

    def try_consume(self, key: str) -> Optional[str]:
        """Single non-blocking claim attempt."""
        value = self._with_retry("consume", key, lambda: self._claim(key))
        return value or None

    def _poll(
        self,
        key: str,
        check: Callable[[str], Optional[str]],
        timeout: float,
        poll_interval: float,
    ) -> str:
        deadline = self._clock() + timeout
        while True:
            value = check(key)
            if value is not None:
                return value
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ChannelTimeout(f"Timeout ({timeout}s) waiting for key '{key}'", key=key)
            self._sleep(min(poll_interval, remaining))

    def wait_for(self, key: str, timeout: float, poll_interval: float = POLL_INTERVAL) -> str:
        """Block until key has a value; raises ChannelTimeout after timeout seconds."""
        logger.info(f"Waiting for {key}...")
        value = self._poll(key, self.get, timeout, poll_interval)
        logger.info(f"Got {key}: {value}")
        return value

    def consume(self, key: str, timeout: float, poll_interval: float = POLL_INTERVAL) -> str:
        """Wait for key and claim it; the value is never delivered to a second reader."""
        logger.info(f"Waiting to consume {key}...")
        value = self._poll(key, self.try_consume, timeout, poll_interval)
        logger.info(f"Consumed {key}: {value}")
        return value

    def close(self) -> None:
        pass


class FileChannel(SyncChannel):
    """One file per key inside a shared directory."""

    def __init__(self, root: Path, **kwargs):
        super().__init__(**kwargs)
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / validate_key(key)

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = self.root / f".{key}.{generate_claim_suffix()}.tmp"
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def _claim(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not self._read(key):
            return None
        claimed = self.root / f".{key}.{generate_claim_suffix()}.claim"
        try:
            os.rename(path, claimed)
        except FileNotFoundError:
            # Another reader claimed it first
            return None
        value = claimed.read_text(encoding="utf-8")
        claimed.unlink()
        return value


class MetadataChannel(SyncChannel):
    """Buildkite build meta-data via the buildkite-agent CLI.

    Meta-data cannot be deleted, so consuming a key writes ``<key>.ack`` and an
    acknowledged key reads as absent to later consumers.
    """

    transient_errors = (OSError, subprocess.CalledProcessError)

    def __init__(self, agent_binary: str = "buildkite-agent", **kwargs):
        super().__init__(**kwargs)
        self.agent_binary = agent_binary

    def _run(self, args, stdin: Optional[str] = None, ok_codes=(0,)) -> subprocess.CompletedProcess:
        cmd = [self.agent_binary, "meta-data", *args]
        result = subprocess.run(cmd, input=stdin, capture_output=True, text=True)
        if result.returncode not in ok_codes:
            raise subprocess.CalledProcessError(
                result.returncode, cmd, output=result.stdout, stderr=result.stderr
            )
        return result

    def _exists(self, key: str) -> bool:
        result = self._run(["exists", key], ok_codes=(0, METADATA_MISSING_EXIT_CODE))
        return result.returncode == 0

    def _read(self, key: str) -> Optional[str]:
        if not self._exists(key):
            return None
        return self._run(["get", key]).stdout.strip()

    def _write(self, key: str, value: str) -> None:
        # Value on stdin so multi-line text survives
        self._run(["set", key], stdin=value)

    def _claim(self, key: str) -> Optional[str]:
        if self._exists(f"{key}{ACK_SUFFIX}"):
            return None
        value = self._read(key)
        if not value:
            return None
        self._write(f"{key}{ACK_SUFFIX}", "1")
        return value


class HttpChannel(SyncChannel):
    """Key/value HTTP store: GET/PUT/DELETE {base_url}/keys/{key}, 404 means absent."""

    transient_errors = (requests.RequestException,)

    def __init__(self, base_url: str, request_timeout: float = 10.0, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._http = requests.Session()

    def _url(self, key: str) -> str:
        return f"{self.base_url}/keys/{validate_key(key)}"

    def _read(self, key: str) -> Optional[str]:
        response = self._http.get(self._url(key), timeout=self.request_timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    def _write(self, key: str, value: str) -> None:
        response = self._http.put(
            self._url(key), data=value.encode("utf-8"), timeout=self.request_timeout
        )
        response.raise_for_status()

    def _claim(self, key: str) -> Optional[str]:
        value = self._read(key)
        if not value:
            return None
        response = self._http.delete(self._url(key), timeout=self.request_timeout)
        if response.status_code == 404:
            # Deleted by a competing reader between our GET and DELETE
            return None
        response.raise_for_status()
        return value

    def close(self) -> None:
        self._http.close()


class MemoryChannel(SyncChannel):
    """In-process store for single-process runs."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def _write(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def _claim(self, key: str) -> Optional[str]:
        with self._lock:
            if not self._values.get(key):
                return None
            return self._values.pop(key)


def create_channel(config) -> SyncChannel:
    """Build the channel backend named in the run configuration."""
    retry = {"retry_attempts": config.retry_attempts, "retry_backoff": config.retry_backoff}
    backend = config.channel_backend
    if backend == "file":
        return FileChannel(config.channel_dir, **retry)
    if backend == "metadata":
        return MetadataChannel(**retry)
    if backend == "http":
        if not config.channel_url:
            raise InvalidConfiguration("channel.url is required for the http channel")
        return HttpChannel(config.channel_url, **retry)
    if backend == "memory":
        return MemoryChannel(**retry)
    raise InvalidConfiguration(f"Unknown channel backend '{backend}'")
