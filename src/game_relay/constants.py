"""Constants for the Game Relay application.

This module defines the default values used throughout the relay, including
directory paths, display and capture settings, channel polling parameters and
the turn loop limits.

Game Relay runs a game on a virtual X display, records a short clip per turn,
publishes it, and asks a decision source (an operator, a random script or a
model) for the next key press.
"""

from pathlib import Path

# =============================================================================
# Application Directory Structure
# =============================================================================
# Base directory for all relay data (~/.game-relay)
RELAY_HOME_DIR = Path.home() / ".game-relay"

# Default directory for the file-based synchronization channel
CHANNEL_DIR = RELAY_HOME_DIR / "channel"

# Output directory for the local (non-Buildkite) publisher
PUBLISH_DIR = RELAY_HOME_DIR / "published"

# =============================================================================
# Display / Game Configuration
# =============================================================================
DISPLAY = ":1"
SCREEN_GEOMETRY = "320x240"
SCREEN_DEPTH = 24
GAME_BINARY = "/usr/games/chocolate-doom"
GAME_IWAD = "/usr/share/games/doom/DOOM1.WAD"
DEFAULT_LEVEL = "1"

# Seconds to let the display server attach before the game is launched
DISPLAY_STARTUP_SECONDS = 1.0

# Seconds the game runs after launch before it is paused for turn 0
WARMUP_SECONDS = 2.0

# =============================================================================
# Capture Configuration
# =============================================================================
CAPTURE_FRAMERATE = 15
FIRST_CAPTURE_SECONDS = 2.5
CAPTURE_SECONDS = 1.25

# Key press hold times for xdotool (milliseconds)
SHORT_KEY_DELAY_MS = 100
LONG_KEY_DELAY_MS = 1000

# =============================================================================
# Synchronization Channel Configuration
# =============================================================================
CHANNEL_BACKENDS = ("file", "metadata", "http", "memory")

# Channel each operator surface answers through, used when no backend is configured.
# Buildkite input steps store answers in build meta-data.
SURFACE_CHANNEL_BACKENDS = {"buildkite": "metadata", "local": "file"}

# Polling interval for channel waits (seconds).
# Lower values = faster response, more load on the backing store
POLL_INTERVAL = 1.0

# Transient I/O failures are retried this many times with a fixed backoff
RETRY_ATTEMPTS = 3
RETRY_BACKOFF = 0.5

# Generous ceiling for operator input (seconds)
MANUAL_TIMEOUT = 600.0

# Timeout for one decision service call (seconds)
MODEL_TIMEOUT = 120.0

# Logical slot names for exchange keys (combined with the turn index)
MOVE_SLOT = "move"
CONTROL_SLOT = "control"
MODE_KEY = "game-mode"
LEVEL_KEY = "level"

# =============================================================================
# Turn Loop Configuration
# =============================================================================
DEFAULT_MODE = "manual"
MAX_TURNS = 20
HISTORY_LIMIT = 50

# Every Nth turn the scripted strategy only picks turning actions
TURN_BIAS_EVERY = 8

# control_scope "manual": control signals are read only in manual mode.
# control_scope "all": automated modes also honor an end request.
CONTROL_SCOPES = ("manual", "all")
DEFAULT_CONTROL_SCOPE = "manual"

SESSION_START_CAPTION = "Game started!"

# =============================================================================
# Decision Service Configuration
# =============================================================================
DECISION_BACKENDS = ("http", "command")
DEFAULT_DECISION_BACKEND = "command"
DECISION_URL = "http://localhost:8321/decide"
DECISION_COMMAND = "claude -p"
