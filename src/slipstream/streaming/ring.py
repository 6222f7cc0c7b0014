"""
Fixed-capacity ring arena.

Slots are allocated once and addressed by a monotonically increasing write counter
modulo the capacity, so pushing onto a full ring overwrites the oldest slot in O(1).
"""

from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class FixedRing(Generic[T]):
  """A ring of `capacity` slots with overwrite-oldest semantics."""

  def __init__(self, capacity: int) -> None:
    if capacity < 1:
      raise ValueError(f"Ring capacity must be at least 1, got {capacity}")
    self._slots: list[T | None] = [None] * capacity
    self._writes = 0

  @property
  def capacity(self) -> int:
    return len(self._slots)

  @property
  def full(self) -> bool:
    return self._writes >= self.capacity

  def __len__(self) -> int:
    return min(self._writes, self.capacity)

  def push_overwrite(self, item: T) -> T | None:
    """
    Store `item` in the next slot.

    :returns:
        The item it displaced when the ring was already full, otherwise None.
    """
    index = self._writes % self.capacity
    evicted = self._slots[index] if self.full else None
    self._slots[index] = item
    self._writes += 1
    return evicted

  def oldest(self) -> T | None:
    """The item the next push would displace, or None while the ring is filling."""
    if not self.full:
      return None
    return self._slots[self._writes % self.capacity]

  def __iter__(self) -> Iterator[T]:
    """Iterate from oldest to newest."""
    start = self._writes - len(self)
    for n in range(start, self._writes):
      yield self._slots[n % self.capacity]  # type: ignore[misc]
