"""
Carried context tokens replayed to the engine on each call.
"""

import itertools

from slipstream.logs import get_logger
from slipstream.streaming.ring import FixedRing


class ContextTokenCarryBuffer:
  """
  Retains the carried token ids of the last `depth` iterations.

  The engine keeps no memory between calls. Tokens whose audio has been evicted from
  the window are stored here and flattened, oldest iteration first, into the context
  of the next call. Pushing onto a full buffer overwrites the oldest iteration.
  """

  def __init__(self, depth: int = 2) -> None:
    self._ring: FixedRing[list[int]] = FixedRing(depth)
    self.logger = get_logger("carry")

  @property
  def depth(self) -> int:
    return self._ring.capacity

  def __len__(self) -> int:
    return len(self._ring)

  def push(self, token_ids: list[int]) -> list[int] | None:
    """Record one iteration's carried ids. Returns the displaced iteration's ids, if any."""
    evicted = self._ring.push_overwrite(list(token_ids))
    self.logger.debug(
      "Carried tokens recorded",
      tokens=len(token_ids),
      expired=len(evicted) if evicted is not None else 0,
    )
    return evicted

  def context_tokens(self) -> list[int]:
    """Every retained id, flattened oldest first."""
    return list(itertools.chain.from_iterable(self._ring))

  def preview(self, pending: list[int]) -> list[int]:
    """The context `context_tokens` would return after pushing `pending`, without pushing."""
    retained = list(self._ring)
    if self._ring.full:
      retained = retained[1:]
    return list(itertools.chain.from_iterable(retained + [pending]))
