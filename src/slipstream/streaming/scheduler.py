"""
Fixed-cadence processing loop driving window, alignment, engine and transcript.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import numpy as np

from slipstream.config import SlipstreamConfig
from slipstream.format import Samples, Seconds
from slipstream.logs import get_logger
from slipstream.streaming.alignment import TimeAlignmentReconciler, TokenTimeScale
from slipstream.streaming.carry import ContextTokenCarryBuffer
from slipstream.streaming.channel import SampleIngestChannel
from slipstream.streaming.interfaces import (
  EngineOutput,
  SpeechEngine,
  TranscriptSink,
  whisper_params,
)
from slipstream.streaming.transcript import Transcript, TranscriptAssembler, TranscriptUpdate
from slipstream.streaming.window import SlidingWindowAccumulator


@dataclass
class IterationResult:
  """Outcome of a single iteration."""

  iteration: int
  evicted: int
  update: TranscriptUpdate | None
  """None when the engine call failed and the transcript was left untouched."""

  error: str | None = None
  processing_time: float = 0.0


class IterationScheduler:
  """
  Runs one iteration per nominal latency period.

  Each iteration drains the ingest channel, advances the window, reconciles the
  previous engine call against the eviction, calls the engine with the window and
  the carried context, and applies the result to the transcript. Iterations never
  overlap. If an iteration takes longer than the period, the next one starts
  immediately and the overrun is reported.

  An iteration is all-or-nothing with respect to the transcript: if the engine call
  fails, the transcript, the carried context and the remembered previous output
  stay as they were. Evictions keep accumulating until the next successful call,
  which reconciles the remembered output against all of them.
  """

  def __init__(
    self,
    channel: SampleIngestChannel,
    engine: SpeechEngine,
    sink: TranscriptSink,
    config: SlipstreamConfig,
    *,
    window: SlidingWindowAccumulator | None = None,
    reconciler: TimeAlignmentReconciler | None = None,
    carry: ContextTokenCarryBuffer | None = None,
    transcript: Transcript | None = None,
    scale: TokenTimeScale | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
  ) -> None:
    self.channel = channel
    self.engine = engine
    self.sink = sink
    self.config = config
    self.window = window if window is not None else SlidingWindowAccumulator(config.stream)
    self.reconciler = reconciler or TimeAlignmentReconciler(
      config.stream, token_to_text=engine.token_to_text, scale=scale
    )
    self.carry = (
      carry if carry is not None else ContextTokenCarryBuffer(config.stream.carry_depth)
    )
    self.assembler = TranscriptAssembler(transcript)
    self.params = whisper_params(config)
    self.clock = clock
    self.sleep = sleep
    self.logger = get_logger("sched")

    self.exit: bool = False
    self.iteration: int = 0
    self.overruns: int = 0
    self.engine_failures: int = 0

    self._tick_start: float | None = None
    self._last_output: EngineOutput | None = None
    self._last_words: str = ""
    self._evicted_since_output: int = 0
    """Samples evicted since `_last_output` was produced, across failed iterations."""

  @property
  def transcript(self) -> Transcript:
    return self.assembler.transcript

  def prime(self) -> None:
    """Discard samples captured before the loop started and start the cadence clock."""
    self.channel.discard()
    self._tick_start = self.clock()

  async def run(self, max_iterations: int | None = None) -> None:
    """Main loop: wait for the tick → process one iteration → deliver → repeat."""
    if self._tick_start is None:
      self.prime()

    self.logger.info(
      "Starting iteration loop",
      latency=Seconds(self.config.stream.latency_seconds),
      window_depth=self.config.stream.window_depth,
      carry_depth=self.config.stream.carry_depth,
    )

    try:
      while not self.exit:
        await self._wait_for_next_tick()
        result = await asyncio.to_thread(self.step)
        await self._deliver(result)
        if max_iterations is not None and self.iteration >= max_iterations:
          break
    finally:
      self.logger.info(
        "Exiting iteration loop",
        iterations=self.iteration,
        overruns=self.overruns,
        engine_failures=self.engine_failures,
        dropped_samples=self.channel.dropped,
      )

  def stop(self) -> None:
    """Ask the loop to exit after the iteration in progress."""
    self.exit = True

  async def _wait_for_next_tick(self) -> bool:
    """
    Sleep out the remainder of the period since the last tick.

    :returns:
        True when the period had already elapsed (an overrun).
    """
    now = self.clock()
    if self._tick_start is None:
      self._tick_start = now
    elapsed = now - self._tick_start
    target = self.config.stream.latency_seconds

    overrun = elapsed > target
    if overrun:
      self.overruns += 1
      self.logger.warning(
        "Processing fell behind, proceeding immediately. "
        "Try a smaller model, more threads or a longer latency",
        elapsed=Seconds(elapsed),
        target=Seconds(target),
      )
    else:
      await self.sleep(target - elapsed)

    self._tick_start = self.clock()
    return overrun

  def step(self) -> IterationResult:
    """Process one iteration using the samples currently in the channel."""
    started = self.clock()
    self.iteration += 1
    iteration = self.iteration

    samples = self.channel.drain()
    advance = self.window.advance(samples)
    self._evicted_since_output += advance.evicted

    reconciliation = self.reconciler.reconcile(
      self._last_output, self._last_words, self._evicted_since_output, iteration
    )
    if iteration > 1:
      context = self.carry.preview(reconciliation.carried_ids)
    else:
      context = self.carry.context_tokens()

    try:
      output = self._infer(advance.window, context)
    except Exception as e:
      self.engine_failures += 1
      self.logger.exception(
        "Engine call failed, transcript left unchanged",
        iteration=iteration,
        window_samples=advance.window.shape[0],
        evicted_since_output=Samples(self._evicted_since_output),
      )
      return IterationResult(
        iteration=iteration,
        evicted=advance.evicted,
        update=None,
        error=f"Engine call failed at iteration {iteration}: {e}",
        processing_time=self.clock() - started,
      )

    if iteration > 1:
      self.carry.push(reconciliation.carried_ids)

    new_text = output.text
    update = self.assembler.apply(iteration, reconciliation.chars_to_retract, new_text)
    self._last_output = output
    self._last_words = new_text
    self._evicted_since_output = 0

    processing_time = self.clock() - started
    audio_duration = advance.window.shape[0] / self.config.stream.sample_rate
    self.logger.debug(
      "Iteration complete",
      iteration=iteration,
      audio_duration=Seconds(audio_duration),
      processing_time=Seconds(processing_time),
      context_tokens=len(context),
      tokens=len(output.tokens),
    )

    return IterationResult(
      iteration=iteration,
      evicted=advance.evicted,
      update=update,
      processing_time=processing_time,
    )

  def _infer(self, window: np.ndarray, context: list[int]) -> EngineOutput:
    tokens = self.engine.infer(window, context, self.params)
    return EngineOutput(tokens=list(tokens), segment_end_time=self.engine.segment_end_time())

  async def _deliver(self, result: IterationResult) -> None:
    if result.error is not None:
      await self.sink.send_error(result.error)
    elif result.update is not None:
      await self.sink.send_update(result.update)
