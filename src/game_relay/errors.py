"""Exception types raised across the relay."""


class RelayError(Exception):
    """Base exception for Game Relay."""


class InvalidConfiguration(RelayError):
    """Raised when configuration is missing or malformed at session start."""


class ChannelError(RelayError):
    """Base exception for synchronization channel failures."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class ChannelUnavailable(ChannelError):
    """Raised when the backing store stays unreachable after all retries."""


class ChannelTimeout(ChannelError):
    """Raised when no value appears for a key within the allotted wait."""


# Short name used by the decision service clients and callers outside the channel.
Timeout = ChannelTimeout


class InvalidModelResponse(RelayError):
    """Raised when the decision service output is unparsable or names an unknown action."""


class InvalidSelection(RelayError):
    """Raised when an operator selection does not name a known action."""


class ProcessNotFound(RelayError):
    """Raised when the controlled process is gone and the caller cannot recover."""


class CaptureError(RelayError):
    """Raised when recording or publishing a clip fails."""


class SessionInterrupted(RelayError):
    """Raised inside the control thread when a termination signal arrives."""

    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum


class DecisionServiceError(RelayError):
    """Raised when the decision service cannot be reached or rejects a request."""


class ProcessStartError(RelayError):
    """Raised when the display server or the game cannot be launched."""
