"""Speech engine adapters."""

from slipstream.engine.whisper import FasterWhisperEngine

__all__ = ["FasterWhisperEngine"]
