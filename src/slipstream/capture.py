"""
Audio capture from an input device into the sample ingest channel.
"""

from collections.abc import Callable

import numpy as np
import sounddevice as sd

from slipstream.config import CaptureConfig, StreamConfig
from slipstream.errors import SetupError
from slipstream.format import Samples
from slipstream.logs import get_logger

DTYPE = np.float32


def list_input_devices() -> list[dict]:
  """Every device with at least one input channel."""
  return [
    {"index": index, "name": device["name"], "channels": device["max_input_channels"]}
    for index, device in enumerate(sd.query_devices())
    if device["max_input_channels"] > 0
  ]


def downmix(block: np.ndarray) -> np.ndarray:
  """Collapse a (frames, channels) block to mono float32 samples."""
  if block.ndim == 1:
    return block.astype(DTYPE, copy=False)
  if block.shape[1] == 1:
    return block[:, 0].astype(DTYPE, copy=False)
  return block.mean(axis=1, dtype=DTYPE)


class MicrophoneCapture:
  """
  Opens an input stream and pushes every block into a sample sink.

  The driver callback never blocks: `push_block` drops what does not fit, and a
  drop is reported as the processing side falling behind. Driver status flags are
  passed to `on_error` rather than raised.
  """

  def __init__(
    self,
    push_block: Callable[[np.ndarray], int],
    stream_config: StreamConfig,
    capture_config: CaptureConfig,
    on_error: Callable[[str], None] | None = None,
  ) -> None:
    self.push_block = push_block
    self.stream_config = stream_config
    self.capture_config = capture_config
    self.on_error = on_error or self._log_error
    self.logger = get_logger("snd/cap")
    self.audio_stream: sd.InputStream | None = None
    self.recording = False
    self.fell_behind = 0
    """Callbacks in which at least one sample was dropped."""

  def _log_error(self, message: str) -> None:
    self.logger.warning("Audio stream error", error=message)

  def resolve_device(self) -> dict:
    """Find the configured input device, or the default one. Raises `SetupError`."""
    try:
      device = sd.query_devices(self.capture_config.device, kind="input")
    except (ValueError, sd.PortAudioError) as e:
      raise SetupError(f"No usable input device ({self.capture_config.device!r}): {e}") from e

    if device["max_input_channels"] < self.stream_config.channels:
      raise SetupError(
        f"Input device {device['name']!r} offers {device['max_input_channels']} channels, "
        f"{self.stream_config.channels} configured"
      )
    return device

  def audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
    """Sounddevice audio callback."""
    if status:
      self.on_error(f"Audio status: {status}")

    if not self.recording:
      return

    dropped = self.push_block(downmix(indata))
    if dropped:
      self.fell_behind += 1
      self.logger.warning(
        "Output stream fell behind, try increasing latency", dropped=Samples(dropped)
      )

  def start(self) -> None:
    """Start audio capture. Raises `SetupError` if the stream cannot be opened."""
    if self.recording:
      return

    device = self.resolve_device()
    self.logger.info(
      "Opening input device",
      device=device["name"],
      sample_rate=self.stream_config.sample_rate,
      channels=self.stream_config.channels,
    )
    try:
      self.audio_stream = sd.InputStream(
        device=self.capture_config.device,
        channels=self.stream_config.channels,
        samplerate=self.stream_config.sample_rate,
        dtype=DTYPE,
        blocksize=self.capture_config.blocksize,
        callback=self.audio_callback,
      )
      self.recording = True
      self.audio_stream.start()
    except sd.PortAudioError as e:
      self.recording = False
      raise SetupError(f"Error starting audio: {e}") from e

  def stop(self) -> None:
    """Stop audio capture."""
    if not self.recording:
      return

    self.recording = False
    if self.audio_stream:
      try:
        self.audio_stream.stop()
        self.audio_stream.close()
      except sd.PortAudioError as e:
        self.on_error(f"Error stopping audio: {e}")
      finally:
        self.audio_stream = None
