"""
Faster Whisper speech engine adapter.

Loads a CTranslate2 Whisper model and exposes it through the `SpeechEngine` protocol:
each call transcribes one window with the carried token ids as its prompt, and the
word timings of the result are flattened into per-token timestamps in centiseconds,
bracketed by start/end-of-transcript boundary tokens.
"""

import os

import ctranslate2
import numpy as np
from faster_whisper import WhisperModel
from faster_whisper.tokenizer import Tokenizer
from huggingface_hub import snapshot_download

from slipstream.config import EngineConfig
from slipstream.constants import CACHE_PATH, MODEL_TICKS_PER_SECOND
from slipstream.errors import SetupError
from slipstream.format import Seconds
from slipstream.logs import get_logger
from slipstream.streaming.interfaces import EngineParams, Token

MODEL_SIZES = [
  "tiny",
  "tiny.en",
  "base",
  "base.en",
  "small",
  "small.en",
  "medium",
  "medium.en",
  "large-v2",
  "large-v3",
  "distil-small.en",
  "distil-medium.en",
  "distil-large-v2",
  "distil-large-v3",
  "large-v3-turbo",
  "turbo",
]


def to_model_time(seconds: float) -> int:
  return int(round(seconds * MODEL_TICKS_PER_SECOND))


class FasterWhisperEngine:
  """Speech engine backed by faster-whisper."""

  def __init__(self, config: EngineConfig) -> None:
    self.config = config
    self.logger = get_logger("engine")
    self.model: WhisperModel | None = None
    self.tokenizer: Tokenizer | None = None
    self._segment_end_time: float = 0.0

  def load(self) -> None:
    """Resolve and load the model. Raises `SetupError` if no model is available."""
    self.log_system_info()
    try:
      model_path = self._resolve_model_path(self.config.model_path)
      self.logger.info(
        "Loading model",
        model=model_path,
        device=self.config.device,
        compute_type=self.config.compute_type,
        threads=self.config.n_threads,
      )
      self.model = WhisperModel(
        model_path,
        device=self.config.device,
        compute_type=self.config.compute_type,
        cpu_threads=self.config.n_threads,
        download_root=os.path.expanduser(CACHE_PATH),
      )
    except Exception as e:
      raise SetupError(f"Failed to load model {self.config.model_path!r}: {e}") from e

    self.tokenizer = Tokenizer(
      self.model.hf_tokenizer,
      self.model.model.is_multilingual,
      task="transcribe",
      language=self.config.language,
    )
    self.logger.debug("Model loaded successfully")

  def log_system_info(self) -> None:
    self.logger.info(
      "Inference backend",
      ctranslate2=ctranslate2.__version__,
      cuda_devices=ctranslate2.get_cuda_device_count(),
      cpu_count=os.cpu_count(),
    )

  def _resolve_model_path(self, model_ref: str) -> str:
    """Resolve model reference to a loadable path."""
    if model_ref in MODEL_SIZES:
      self.logger.debug("Model found in standard model sizes", model=model_ref)
      return model_ref

    if os.path.isdir(model_ref) and ctranslate2.contains_model(model_ref):
      self.logger.debug("Found local CTranslate2 model", path=model_ref)
      return model_ref

    self.logger.debug("Downloading model from HuggingFace", model=model_ref)
    local_snapshot = snapshot_download(
      repo_id=model_ref,
      repo_type="model",
      cache_dir=os.path.expanduser(CACHE_PATH),
    )
    if not ctranslate2.contains_model(local_snapshot):
      raise SetupError(f"Model {model_ref!r} is not in CTranslate2 format")
    return local_snapshot

  def infer(
    self, window: np.ndarray, context_tokens: list[int], params: EngineParams
  ) -> list[Token]:
    if self.model is None or self.tokenizer is None:
      raise RuntimeError("Engine not loaded")

    tokenizer = self.tokenizer
    self._segment_end_time = 0.0
    if window.shape[0] == 0:
      return self._bracket([], 0)

    segments, _info = self.model.transcribe(
      window.astype(np.float32, copy=False),
      language=params.language,
      beam_size=params.beam_size,
      initial_prompt=context_tokens or None,
      suppress_blank=params.suppress_blank,
      word_timestamps=params.token_timestamps,
      condition_on_previous_text=not params.no_context,
      vad_filter=False,
    )

    tokens: list[Token] = []
    end = 0
    for segment in segments:
      end = max(end, to_model_time(segment.end))
      for word in segment.words or []:
        t0, t1 = to_model_time(word.start), to_model_time(word.end)
        for token_id in tokenizer.encode(word.word):
          tokens.append(Token(id=token_id, text=tokenizer.decode([token_id]), t0=t0, t1=t1))

    self._segment_end_time = float(end)
    self.logger.debug(
      "Window recognized",
      audio=Seconds(window.shape[0] / self.sample_rate),
      context_tokens=len(context_tokens),
      tokens=len(tokens),
      segment_end_time=end,
    )
    return self._bracket(tokens, end)

  def _bracket(self, tokens: list[Token], end: int) -> list[Token]:
    assert self.tokenizer is not None
    start_marker = Token(id=self.tokenizer.sot, text="", t0=0, t1=0)
    end_marker = Token(id=self.tokenizer.eot, text="", t0=end, t1=end)
    return [start_marker, *tokens, end_marker]

  @property
  def sample_rate(self) -> int:
    """Rate the model expects its input at."""
    if self.model is None:
      raise RuntimeError("Engine not loaded")
    return self.model.feature_extractor.sampling_rate

  def check_sample_rate(self, sample_rate: int) -> None:
    if sample_rate != self.sample_rate:
      raise SetupError(
        f"Stream sample rate {sample_rate}Hz does not match the model input rate "
        f"{self.sample_rate}Hz"
      )

  def token_to_text(self, token_id: int) -> str:
    if self.tokenizer is None:
      raise RuntimeError("Engine not loaded")
    return self.tokenizer.decode([token_id])

  def segment_end_time(self) -> float:
    return self._segment_end_time
