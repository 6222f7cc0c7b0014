from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator, validate_call
from pydantic.dataclasses import dataclass
from pydantic.types import FilePath

from slipstream.constants import CACHE_PATH, CHANNEL_HEADROOM, WINDOW_HEADROOM
from slipstream.logs import get_logger

logger = get_logger("cfg")


@dataclass
class StreamConfig:
  """Configuration for the streaming window and its cadence."""

  latency_ms: float = Field(default=4000.0, gt=0.0)
  """Nominal iteration length in milliseconds."""

  window_depth: int = Field(default=2, ge=1)
  """Number of most recent iterations retained in the window (K)."""

  carry_depth: int = Field(default=2, ge=1)
  """Number of iterations whose carried tokens are replayed as engine context."""

  sample_rate: int = Field(default=16000, gt=0)
  """Audio sample rate in Hz."""

  channels: int = Field(default=1, ge=1)
  """Channels delivered by the capture device. Downmixed to mono before ingest."""

  @model_validator(mode="after")
  def validate_iteration_length(self) -> "StreamConfig":
    """Validate that one iteration covers at least one sample."""
    if self.iteration_samples < 1:
      raise ValueError(
        f"latency_ms ({self.latency_ms}ms) is too short to hold a sample at "
        f"sample_rate ({self.sample_rate}Hz)"
      )
    return self

  @property
  def iteration_samples(self) -> int:
    """Nominal number of mono samples captured during one iteration."""
    return int((self.latency_ms / 1000.0) * self.sample_rate)

  @property
  def channel_capacity(self) -> int:
    return self.iteration_samples * CHANNEL_HEADROOM

  @property
  def window_capacity(self) -> int:
    return self.iteration_samples * self.window_depth * WINDOW_HEADROOM

  @property
  def latency_seconds(self) -> float:
    return self.latency_ms / 1000.0


class EngineConfig(BaseModel):
  """Configuration for the speech engine."""

  model: str | None = "medium.en"
  """Whisper model size, Hub repository or local CTranslate2 directory."""

  custom_model: FilePath | None = None
  """Path to a custom model (mutually exclusive with model)."""

  language: str = "en"
  """Single language used for every call."""

  n_threads: int = Field(default=10, gt=0)
  """CPU threads used by the engine."""

  device: Literal["auto", "cpu", "cuda"] = "auto"
  """Inference device."""

  compute_type: str = "int8"
  """CTranslate2 quantization used when loading the model."""

  beam_size: int = Field(default=1, gt=0)
  """Beam width. 1 selects greedy decoding."""

  suppress_blank: bool = True
  """Suppress blank outputs at the beginning of sampling."""

  @model_validator(mode="before")
  @classmethod
  def validate_model_configuration(cls, values: dict) -> dict:
    """Validate model/custom_model mutual exclusion."""
    if not isinstance(values, dict):
      return values

    model = values.get("model")
    custom_model = values.get("custom_model")

    if model and custom_model:
      raise ValueError(
        "Cannot specify both 'model' and 'custom_model' in the same configuration. "
        "Use 'model' for standard Whisper models (e.g. 'medium.en') or "
        "'custom_model' for a path to a local model."
      )

    return values

  @property
  def model_path(self) -> str:
    """Get the final model path to use (custom_model takes precedence over model)."""
    if self.custom_model is not None:
      return str(self.custom_model)
    if self.model is not None:
      return self.model
    return "medium.en"


class CaptureConfig(BaseModel):
  """Configuration for the audio capture device."""

  device: int | str | None = None
  """Input device index or name substring. None selects the system default."""

  blocksize: int = Field(default=0, ge=0)
  """Frames per driver callback. 0 lets the driver choose."""


class OutputConfig(BaseModel):
  """Configuration for transcript output."""

  mode: Literal["delta", "full"] = "delta"
  """Emit retract/append deltas, or the whole transcript after each iteration."""


class SlipstreamConfig(BaseModel):
  """Top-level Slipstream configuration."""

  stream: StreamConfig = Field(default_factory=StreamConfig)
  engine: EngineConfig = Field(default_factory=EngineConfig)
  capture: CaptureConfig = Field(default_factory=CaptureConfig)
  output: OutputConfig = Field(default_factory=OutputConfig)

  def pretty_print(self) -> None:
    """Log every configuration property at INFO level, including defaults."""
    logger.info("=" * 60)
    logger.info("SLIPSTREAM CONFIGURATION")
    logger.info("=" * 60)

    logger.info("STREAM SETTINGS:")
    logger.info(f"  Latency: {self.stream.latency_ms}ms")
    logger.info(f"  Window Depth: {self.stream.window_depth} iterations")
    logger.info(f"  Carry Depth: {self.stream.carry_depth} iterations")
    logger.info(f"  Sample Rate: {self.stream.sample_rate}")
    logger.info(f"  Channels: {self.stream.channels}")
    logger.info(f"  Iteration Samples: {self.stream.iteration_samples}")
    logger.info(f"  Channel Capacity: {self.stream.channel_capacity}")
    logger.info(f"  Window Capacity: {self.stream.window_capacity}")

    logger.info("ENGINE SETTINGS:")
    logger.info(f"  Model: {self.engine.model}")
    logger.info(f"  Custom Model: {self.engine.custom_model}")
    logger.info(f"  Language: {self.engine.language}")
    logger.info(f"  Threads: {self.engine.n_threads}")
    logger.info(f"  Device: {self.engine.device}")
    logger.info(f"  Compute Type: {self.engine.compute_type}")
    logger.info(f"  Beam Size: {self.engine.beam_size}")
    logger.info(f"  Suppress Blank: {self.engine.suppress_blank}")

    logger.info("CAPTURE SETTINGS:")
    device = self.capture.device if self.capture.device is not None else "default"
    logger.info(f"  Device: {device}")
    logger.info(f"  Block Size: {self.capture.blocksize}")

    logger.info("OUTPUT SETTINGS:")
    logger.info(f"  Mode: {self.output.mode}")

    logger.info("SYSTEM CONSTANTS:")
    logger.info(f"  Cache Path: {CACHE_PATH}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> SlipstreamConfig:
  """Load and validate Slipstream configuration from a YAML file."""

  logger.info("Loading Slipstream configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = SlipstreamConfig.model_validate(config_data)
  config.pretty_print()

  return config
