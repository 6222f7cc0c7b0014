"""
Constants for the Slipstream application.

These values are hardcoded and not configurable through the config file or CLI arguments.
"""

CACHE_PATH = "~/.cache/slipstream/"
"""Path for model caching - hardcoded constant."""

BOUNDARY_TOKENS = 2
"""Tokens the engine reserves at the start and end of every call's output."""

CHANNEL_HEADROOM = 2
"""Multiplier applied to the nominal iteration sample count to size the ingest channel."""

WINDOW_HEADROOM = 2
"""Multiplier applied to the nominal window sample count to tolerate capture jitter."""

MODEL_TICKS_PER_SECOND = 100
"""Whisper reports token timestamps in centiseconds."""
