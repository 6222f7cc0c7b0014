"""
Alignment of engine token timestamps to sample time, and the retraction policy.

The engine reports token times in its own units. To decide which tokens belong to
audio that is about to leave the window, those times are converted to milliseconds
from the start of the window and compared against the duration being evicted.
Tokens whose audio is evicted become carried context for the next call, and the
text displayed from the previous call is retracted except for those carried tokens,
which stay on screen.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from slipstream.config import StreamConfig
from slipstream.constants import BOUNDARY_TOKENS, MODEL_TICKS_PER_SECOND
from slipstream.format import Chars, Milliseconds, preview
from slipstream.logs import get_logger
from slipstream.streaming.interfaces import EngineOutput, Token


class TokenTimeScale(Protocol):
  """Strategy deriving model time units per millisecond for one engine call."""

  def __call__(self, segment_end_time: float, iteration: int) -> float | None:
    """
    :returns:
        Model time units per millisecond, or None when no usable ratio exists.
    """
    ...


class SegmentSpanScale:
  """
  Derive the ratio from the segment end time, assuming the segment spans all audio fed.

  The engine was fed `min(iteration, K)` iterations of audio, so the segment end time
  divided by that many nominal iterations gives units per millisecond. This is a
  heuristic: silence at the tail of the window shortens the segment and skews the ratio.
  """

  def __init__(self, latency_ms: float, window_depth: int) -> None:
    self.latency_ms = latency_ms
    self.window_depth = window_depth

  def __call__(self, segment_end_time: float, iteration: int) -> float | None:
    if segment_end_time <= 0:
      return None
    fed_ms = self.latency_ms * min(iteration, self.window_depth)
    return segment_end_time / fed_ms


class FixedRateScale:
  """Use a known engine tick rate (whisper reports centiseconds)."""

  def __init__(self, ticks_per_second: float = MODEL_TICKS_PER_SECOND) -> None:
    if ticks_per_second <= 0:
      raise ValueError(f"ticks_per_second must be positive, got {ticks_per_second}")
    self.ticks_per_ms = ticks_per_second / 1000.0

  def __call__(self, segment_end_time: float, iteration: int) -> float | None:
    return self.ticks_per_ms


@dataclass
class Reconciliation:
  """What to retract from the transcript and which tokens to carry into the next call."""

  chars_to_retract: int = 0
  carried: list[Token] = field(default_factory=list)
  carried_text: str = ""
  ms_to_evict: float = 0.0
  token_time_per_ms: float | None = None
  skipped: bool = False
  """True when the previous call's output was degenerate and nothing was computed."""

  @property
  def carried_ids(self) -> list[int]:
    return [token.id for token in self.carried]


class TimeAlignmentReconciler:
  """
  Computes retraction and carry candidates from the previous engine call.

  Before the window has warmed up (iteration <= K) every retained sample is fed to the
  engine again, so the whole text of the previous call is retracted and re-recognized;
  nothing is carried. Afterwards, tokens starting inside the evicted span are carried
  as context and their text is kept rather than retracted.
  """

  def __init__(
    self,
    config: StreamConfig,
    token_to_text: Callable[[int], str] | None = None,
    scale: TokenTimeScale | None = None,
  ) -> None:
    self.config = config
    self.token_to_text = token_to_text
    self.scale: TokenTimeScale = scale or SegmentSpanScale(
      config.latency_ms, config.window_depth
    )
    self.logger = get_logger("align")

  def ms_to_evict(self, samples_evicted: int) -> float:
    return samples_evicted / (self.config.sample_rate / 1000.0)

  def reconcile(
    self,
    previous: EngineOutput | None,
    displayed_words: str,
    samples_evicted: int,
    iteration: int,
  ) -> Reconciliation:
    """
    Reconcile the previous call's output against this iteration's eviction.

    :param
        previous: Output of the last successful engine call, or None before the first.
        displayed_words: Text appended to the transcript from that call.
        samples_evicted: Samples the window evicted this iteration.
        iteration: Current iteration number, starting at 1.
    """
    if previous is None or iteration <= 1:
      return Reconciliation()

    ms_to_evict = self.ms_to_evict(samples_evicted)

    if previous.segment_end_time <= 0 or len(previous.tokens) <= BOUNDARY_TOKENS:
      self.logger.debug(
        "Previous call produced no usable tokens, skipping reconciliation",
        iteration=iteration,
        tokens=len(previous.tokens),
        segment_end_time=previous.segment_end_time,
      )
      return Reconciliation(ms_to_evict=ms_to_evict, skipped=True)

    token_time_per_ms = self.scale(previous.segment_end_time, iteration)
    if token_time_per_ms is None or token_time_per_ms <= 0:
      self.logger.warning(
        "No usable token time ratio, skipping reconciliation",
        iteration=iteration,
        segment_end_time=previous.segment_end_time,
      )
      return Reconciliation(ms_to_evict=ms_to_evict, skipped=True)

    warmed_up = iteration > self.config.window_depth
    carried: list[Token] = []
    if warmed_up:
      for token in previous.inner_tokens:
        t0_ms = token.t0 / token_time_per_ms
        if t0_ms < ms_to_evict:
          carried.append(token)

    carried_text = "".join(self._render(token) for token in carried)
    chars_to_retract = len(displayed_words)
    if warmed_up:
      chars_to_retract = max(0, chars_to_retract - len(carried_text))

    self.logger.debug(
      "Reconciled previous call",
      iteration=iteration,
      warmed_up=warmed_up,
      ms_to_evict=Milliseconds(ms_to_evict),
      token_time_per_ms=round(token_time_per_ms, 4),
      carried=len(carried),
      carried_text=preview(carried_text),
      retract=Chars(chars_to_retract),
    )

    return Reconciliation(
      chars_to_retract=chars_to_retract,
      carried=carried,
      carried_text=carried_text,
      ms_to_evict=ms_to_evict,
      token_time_per_ms=token_time_per_ms,
    )

  def _render(self, token: Token) -> str:
    if self.token_to_text is None:
      return token.text
    return self.token_to_text(token.id)
