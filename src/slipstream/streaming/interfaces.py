"""
Protocol interfaces and shared data types for streaming transcription components.

Defines the contracts for the speech engine and transcript output sinks using
Python's Protocol system for structural typing.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import numpy as np
from pydantic import Field
from pydantic.dataclasses import dataclass as pydantic_dataclass

from slipstream.config import SlipstreamConfig
from slipstream.constants import BOUNDARY_TOKENS

if TYPE_CHECKING:
  from slipstream.streaming.transcript import TranscriptUpdate


@dataclass(frozen=True)
class Token:
  """Engine output unit. Times are in model time units, not milliseconds."""

  id: int
  text: str
  t0: int
  t1: int


@dataclass
class EngineOutput:
  """Tokens produced by one engine call, bracketed by boundary markers."""

  tokens: list[Token] = field(default_factory=list)
  segment_end_time: float = 0.0
  """End timestamp of the whole recognized segment, in model time units."""

  @property
  def inner_tokens(self) -> list[Token]:
    """Every token except the leading and trailing boundary markers."""
    if len(self.tokens) <= BOUNDARY_TOKENS:
      return []
    return self.tokens[1:-1]

  @property
  def text(self) -> str:
    return "".join(token.text for token in self.inner_tokens)


@pydantic_dataclass
class EngineParams:
  """Fixed parameter set passed to every engine call."""

  language: str = "en"
  print_timestamps: bool = False
  suppress_blank: bool = True
  token_timestamps: bool = True
  duration_ms: int = Field(default=4000, ge=0)
  """Hint for the amount of audio in one iteration."""

  no_context: bool = True
  """Context is supplied explicitly per call, never kept by the engine."""

  n_threads: int = Field(default=10, gt=0)
  beam_size: int = Field(default=1, gt=0)


def whisper_params(config: SlipstreamConfig) -> EngineParams:
  """Build the engine parameter set for a run."""
  return EngineParams(
    language=config.engine.language,
    suppress_blank=config.engine.suppress_blank,
    duration_ms=int(config.stream.latency_ms),
    n_threads=config.engine.n_threads,
    beam_size=config.engine.beam_size,
  )


class SpeechEngine(Protocol):
  """
  Protocol for finite-context speech recognition engines.

  Calls are stateless apart from the output of the most recent `infer`, which
  `segment_end_time` reports on.
  """

  def infer(
    self, window: np.ndarray, context_tokens: list[int], params: EngineParams
  ) -> list[Token]:
    """
    Recognize a window of audio.

    :param
        window: Mono float32 samples.
        context_tokens: Token ids replayed as prior context.
        params: Fixed engine parameters.
    :returns:
        Ordered tokens. The first and last are boundary markers.
    """
    ...

  def token_to_text(self, token_id: int) -> str:
    """Render a single token id."""
    ...

  def segment_end_time(self) -> float:
    """
    End timestamp of everything the most recent call recognized, in model time units.

    Engines that report several segments return the latest segment end.
    """
    ...


class TranscriptSink(Protocol):
  """
  Protocol for transcript outputs.

  Implementations handle the delivery of transcript updates to the user.
  """

  async def send_update(self, update: "TranscriptUpdate") -> None:
    """Deliver the update produced by one iteration."""
    ...

  async def send_error(self, error: str) -> None:
    """Report an advisory error."""
    ...

  async def close(self) -> None:
    """Flush output and release resources."""
    ...
