"""Game Relay - turn-based remote play over a virtual display."""

__version__ = "0.1.0"
