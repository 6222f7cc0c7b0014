"""
Sliding audio window spanning the most recent iterations.
"""

from dataclasses import dataclass

import numpy as np

from slipstream.config import StreamConfig
from slipstream.format import Samples
from slipstream.logs import get_logger
from slipstream.streaming.ring import FixedRing


@dataclass
class WindowAdvance:
  """Outcome of moving the window forward by one iteration."""

  evicted: int
  """Samples removed from the front of the window. Always the count recorded K iterations ago."""

  window: np.ndarray
  """Contiguous copy of the window after eviction and append."""

  dropped: int = 0
  """Oldest new samples discarded because they did not fit within the window capacity."""


class SlidingWindowAccumulator:
  """
  Holds the samples of the last K iterations as one contiguous window.

  Samples live in a preallocated ring of `window_capacity` slots; a second ring of K
  slots records how many samples each retained iteration contributed. Each call to
  `advance` evicts exactly the count recorded for the oldest iteration once the
  count ring is full, then appends the new iteration's samples.

  Invariants:
    - `len(self) <= self.capacity`
    - `sum(self.iteration_counts) == len(self)`
  """

  def __init__(self, config: StreamConfig) -> None:
    self.config = config
    self.logger = get_logger("snd/win")

    self._storage = np.zeros(config.window_capacity, dtype=np.float32)
    self._start = 0
    self._length = 0
    self._counts: FixedRing[int] = FixedRing(config.window_depth)

  @property
  def capacity(self) -> int:
    return self._storage.shape[0]

  @property
  def iteration_counts(self) -> list[int]:
    """Per-iteration sample counts currently retained, oldest first."""
    return list(self._counts)

  def __len__(self) -> int:
    return self._length

  def advance(self, new_samples: np.ndarray) -> WindowAdvance:
    """
    Evict the oldest iteration (once K iterations are retained) and append `new_samples`.

    During the first K iterations nothing is evicted. If `new_samples` alone would push
    the window past its capacity, only the newest samples that fit are kept and the
    recorded count reflects what was actually appended.
    """
    to_evict = self._counts.oldest() or 0
    room = self.capacity - (self._length - to_evict)
    dropped = max(0, new_samples.shape[0] - room)
    if dropped:
      self.logger.warning(
        "Iteration overflowed window capacity, dropping oldest new samples",
        received=Samples(new_samples.shape[0]),
        dropped=Samples(dropped),
        capacity=Samples(self.capacity),
      )
      new_samples = new_samples[dropped:]

    evicted = self._counts.push_overwrite(new_samples.shape[0]) or 0
    self._evict(evicted)
    self._append(new_samples)

    self.logger.debug(
      "Window advanced",
      evicted=Samples(evicted),
      appended=Samples(new_samples.shape[0]),
      window=Samples(self._length),
    )
    return WindowAdvance(evicted=evicted, window=self.window(), dropped=dropped)

  def window(self) -> np.ndarray:
    """Contiguous copy of the current window, oldest sample first."""
    end = self._start + self._length
    if end <= self.capacity:
      return self._storage[self._start : end].copy()
    return np.concatenate((self._storage[self._start :], self._storage[: end - self.capacity]))

  def _evict(self, count: int) -> None:
    self._start = (self._start + count) % self.capacity
    self._length -= count

  def _append(self, samples: np.ndarray) -> None:
    count = samples.shape[0]
    if not count:
      return
    write = (self._start + self._length) % self.capacity
    first = min(count, self.capacity - write)
    self._storage[write : write + first] = samples[:first]
    if count > first:
      self._storage[: count - first] = samples[first:]
    self._length += count
