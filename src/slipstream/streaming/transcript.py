"""Transcript state and the retract-then-append update applied once per iteration."""

from __future__ import annotations

from enum import Enum

from pydantic import NonNegativeInt
from pydantic.dataclasses import dataclass

from slipstream.format import Chars, preview
from slipstream.logs import get_logger

logger = get_logger("txt")


class UpdateType(Enum):
  """Classification of transcript update operations."""

  NO_CHANGE = "no_change"  # Nothing retracted, nothing appended
  APPEND = "append"  # Pure append (warm-up, or nothing to retract)
  REPLACE_SUFFIX = "replace_suffix"  # Retract the tail, then append


@dataclass
class TranscriptUpdate:
  """Represents the change one iteration made to the transcript."""

  iteration: NonNegativeInt
  """Iteration that produced the update"""

  chars_to_delete: NonNegativeInt
  """Characters removed from the end of the transcript"""

  text_to_type: str
  """Text appended after the removal"""

  operation_type: UpdateType
  """Classification of update for logging/debugging purposes"""

  transcript: str
  """Full transcript after the update"""


class Transcript:
  """
  Everything recognized so far.

  Mutated only through `retract` and `append`, which the assembler calls once per
  iteration. Owned by a single session; there is no shared instance.
  """

  def __init__(self, text: str = "") -> None:
    self._text = text

  @property
  def text(self) -> str:
    return self._text

  def __len__(self) -> int:
    return len(self._text)

  def __str__(self) -> str:
    return self._text

  def retract(self, n_chars: int) -> int:
    """Remove up to `n_chars` characters from the end. Returns how many were removed."""
    n_chars = max(0, min(n_chars, len(self._text)))
    if n_chars:
      self._text = self._text[:-n_chars]
    return n_chars

  def append(self, text: str) -> None:
    self._text += text


class TranscriptAssembler:
  """Applies reconciliation results and new engine text to a transcript."""

  def __init__(self, transcript: Transcript | None = None) -> None:
    self.transcript = transcript if transcript is not None else Transcript()

  def apply(self, iteration: int, chars_to_retract: int, new_text: str) -> TranscriptUpdate:
    """Retract `chars_to_retract` characters (clamped to the transcript), then append."""
    requested = chars_to_retract
    removed = self.transcript.retract(chars_to_retract)
    if removed != requested:
      logger.warning(
        "Retraction clamped to transcript bounds",
        iteration=iteration,
        requested=Chars(requested),
        removed=Chars(removed),
      )
    self.transcript.append(new_text)

    if removed:
      operation_type = UpdateType.REPLACE_SUFFIX
    elif new_text:
      operation_type = UpdateType.APPEND
    else:
      operation_type = UpdateType.NO_CHANGE

    logger.debug(
      "Transcript updated",
      iteration=iteration,
      retracted=Chars(removed),
      appended=preview(new_text),
      length=Chars(len(self.transcript)),
    )

    return TranscriptUpdate(
      iteration=iteration,
      chars_to_delete=removed,
      text_to_type=new_text,
      operation_type=operation_type,
      transcript=self.transcript.text,
    )
