"""
Slipstream: continuous transcription of a live audio stream with a bounded-window
speech engine.
"""

__version__ = "0.1.0"
