"""
Sample transport between the real-time capture callback and the processing loop.

A single-producer/single-consumer ring over a preallocated float32 array. The producer
only ever writes `_tail` and the consumer only ever writes `_head`; each side publishes
its index after touching the data, so neither side takes a lock.
"""

import numpy as np

from slipstream.logs import get_logger


class SampleIngestChannel:
  """
  Bounded lock-free sample channel for exactly one producer and one consumer.

  The producer side (`push`, `push_block`) never blocks and never allocates. When the
  channel is full the sample is dropped, the failure is returned to the caller and the
  drop is counted. The consumer side (`drain`) takes everything currently available.
  """

  def __init__(self, capacity: int) -> None:
    if capacity < 1:
      raise ValueError(f"Channel capacity must be at least 1, got {capacity}")
    self.logger = get_logger("snd/chan")

    # One slot stays empty to tell a full ring from an empty one.
    self._storage = np.zeros(capacity + 1, dtype=np.float32)
    self._head = 0
    """Read index. Written only by the consumer."""

    self._tail = 0
    """Write index. Written only by the producer."""

    self.dropped = 0
    """Samples rejected because the channel was full. Written only by the producer."""

  @property
  def capacity(self) -> int:
    return self._storage.shape[0] - 1

  def __len__(self) -> int:
    return (self._tail - self._head) % self._storage.shape[0]

  def _free(self) -> int:
    return self.capacity - len(self)

  def push(self, sample: float) -> bool:
    """
    Push a single sample.

    :returns:
        False when the channel is full and the sample was dropped.
    """
    size = self._storage.shape[0]
    tail = self._tail
    next_tail = (tail + 1) % size
    if next_tail == self._head:
      self.dropped += 1
      return False

    self._storage[tail] = sample
    self._tail = next_tail
    return True

  def push_block(self, block: np.ndarray) -> int:
    """
    Push as many samples of `block` as fit, in order.

    :returns:
        The number of samples that did not fit and were dropped (0 when all fit).
    """
    count = block.shape[0]
    accepted = min(count, self._free())
    if accepted:
      size = self._storage.shape[0]
      tail = self._tail
      first = min(accepted, size - tail)
      self._storage[tail : tail + first] = block[:first]
      if accepted > first:
        self._storage[: accepted - first] = block[first:accepted]
      self._tail = (tail + accepted) % size

    rejected = count - accepted
    self.dropped += rejected
    return rejected

  def drain(self) -> np.ndarray:
    """Take every sample currently available, oldest first. May be empty."""
    size = self._storage.shape[0]
    head = self._head
    tail = self._tail
    if tail >= head:
      samples = self._storage[head:tail].copy()
    else:
      samples = np.concatenate((self._storage[head:], self._storage[:tail]))
    self._head = tail % size
    return samples

  def discard(self) -> int:
    """Drop every sample currently available. Returns how many were discarded."""
    stale = len(self)
    self._head = self._tail
    if stale:
      self.logger.debug("Discarded stale samples", samples=stale)
    return stale
