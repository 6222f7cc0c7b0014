"""
Transcript output sinks.
"""

import sys
from typing import Literal, TextIO

from slipstream.logs import get_logger
from slipstream.streaming.transcript import TranscriptUpdate, UpdateType

_BACKSPACE = "\b"


class ConsoleSink:
  """
  Writes the transcript to a text stream.

  In `delta` mode the retraction is applied in place with backspaces and the new
  text is written after it, so the terminal shows one growing line. In `full` mode
  the whole transcript is written on its own line after every iteration that
  changed it.
  """

  def __init__(self, mode: Literal["delta", "full"] = "delta", stream: TextIO | None = None):
    self.mode = mode
    self.stream = stream if stream is not None else sys.stdout
    self.logger = get_logger("out")

  async def send_update(self, update: TranscriptUpdate) -> None:
    if update.operation_type == UpdateType.NO_CHANGE:
      return

    if self.mode == "full":
      self.stream.write(update.transcript + "\n")
    else:
      erase = update.chars_to_delete
      if erase:
        # Step back, blank the retracted cells, step back again
        self.stream.write(_BACKSPACE * erase + " " * erase + _BACKSPACE * erase)
      self.stream.write(update.text_to_type)
    self.stream.flush()

  async def send_error(self, error: str) -> None:
    self.logger.warning("Iteration error", error=error)

  async def close(self) -> None:
    if self.mode == "delta":
      self.stream.write("\n")
    self.stream.flush()


class RecordingSink:
  """Keeps every update and error in memory."""

  def __init__(self) -> None:
    self.updates: list[TranscriptUpdate] = []
    self.errors: list[str] = []
    self.closed = False

  async def send_update(self, update: TranscriptUpdate) -> None:
    self.updates.append(update)

  async def send_error(self, error: str) -> None:
    self.errors.append(error)

  async def close(self) -> None:
    self.closed = True

  @property
  def transcript(self) -> str:
    return self.updates[-1].transcript if self.updates else ""
