"""
Streaming window and reconciliation engine.

Moves captured samples into a bounded window, carries recognized context across
windows and stitches window-local results into one continuously growing transcript.
"""

from slipstream.streaming.alignment import (
  FixedRateScale,
  Reconciliation,
  SegmentSpanScale,
  TimeAlignmentReconciler,
  TokenTimeScale,
)
from slipstream.streaming.carry import ContextTokenCarryBuffer
from slipstream.streaming.channel import SampleIngestChannel
from slipstream.streaming.interfaces import (
  EngineOutput,
  EngineParams,
  SpeechEngine,
  Token,
  TranscriptSink,
  whisper_params,
)
from slipstream.streaming.ring import FixedRing
from slipstream.streaming.scheduler import IterationResult, IterationScheduler
from slipstream.streaming.transcript import (
  Transcript,
  TranscriptAssembler,
  TranscriptUpdate,
  UpdateType,
)
from slipstream.streaming.window import SlidingWindowAccumulator, WindowAdvance

__all__ = [
  "ContextTokenCarryBuffer",
  "EngineOutput",
  "EngineParams",
  "FixedRateScale",
  "FixedRing",
  "IterationResult",
  "IterationScheduler",
  "Reconciliation",
  "SampleIngestChannel",
  "SegmentSpanScale",
  "SlidingWindowAccumulator",
  "SpeechEngine",
  "TimeAlignmentReconciler",
  "Token",
  "TokenTimeScale",
  "Transcript",
  "TranscriptAssembler",
  "TranscriptSink",
  "TranscriptUpdate",
  "UpdateType",
  "WindowAdvance",
  "whisper_params",
]
