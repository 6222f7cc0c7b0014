"""Tests for the faster-whisper engine adapter, with the model replaced by a fake."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from slipstream.config import EngineConfig
from slipstream.engine.whisper import FasterWhisperEngine, to_model_time
from slipstream.errors import SetupError
from slipstream.streaming.interfaces import EngineParams


class FakeTokenizer:
  sot = 50258
  eot = 50257

  def __init__(self):
    self.vocabulary: dict[int, str] = {}

  def encode(self, text: str) -> list[int]:
    # One token per word, keyed by a stable id
    token_id = 1000 + len(self.vocabulary)
    for known_id, known in self.vocabulary.items():
      if known == text:
        return [known_id]
    self.vocabulary[token_id] = text
    return [token_id]

  def decode(self, token_ids: list[int]) -> str:
    return "".join(self.vocabulary[token_id] for token_id in token_ids)


def word(text, start, end):
  return SimpleNamespace(word=text, start=start, end=end)


@pytest.fixture
def engine():
  engine = FasterWhisperEngine(EngineConfig())
  engine.tokenizer = FakeTokenizer()
  engine.model = MagicMock()
  engine.model.feature_extractor.sampling_rate = 16000
  return engine


def test_to_model_time():
  assert to_model_time(1.0) == 100
  assert to_model_time(0.444) == 44
  assert to_model_time(0.0) == 0


def test_infer_requires_load():
  engine = FasterWhisperEngine(EngineConfig())
  with pytest.raises(RuntimeError, match="not loaded"):
    engine.infer(np.zeros(10, dtype=np.float32), [], EngineParams())


def test_empty_window_returns_only_boundaries(engine):
  tokens = engine.infer(np.zeros(0, dtype=np.float32), [1, 2], EngineParams())

  assert [token.id for token in tokens] == [FakeTokenizer.sot, FakeTokenizer.eot]
  assert engine.segment_end_time() == 0.0
  engine.model.transcribe.assert_not_called()


def test_infer_flattens_word_timings(engine):
  segments = [
    SimpleNamespace(end=1.2, words=[word(" hello", 0.0, 0.5), word(" world", 0.6, 1.2)]),
    SimpleNamespace(end=2.5, words=[word(" again", 1.8, 2.5)]),
  ]
  engine.model.transcribe.return_value = (iter(segments), None)

  tokens = engine.infer(np.ones(32000, dtype=np.float32), [7, 8], EngineParams(language="en"))

  assert tokens[0].id == FakeTokenizer.sot
  assert tokens[-1].id == FakeTokenizer.eot
  assert tokens[-1].t0 == 250
  assert [(t.text, t.t0, t.t1) for t in tokens[1:-1]] == [
    (" hello", 0, 50),
    (" world", 60, 120),
    (" again", 180, 250),
  ]
  assert engine.segment_end_time() == 250.0

  kwargs = engine.model.transcribe.call_args.kwargs
  assert kwargs["initial_prompt"] == [7, 8]
  assert kwargs["condition_on_previous_text"] is False
  assert kwargs["word_timestamps"] is True
  assert kwargs["language"] == "en"


def test_no_context_means_no_prompt(engine):
  engine.model.transcribe.return_value = (iter([]), None)

  tokens = engine.infer(np.ones(100, dtype=np.float32), [], EngineParams())

  assert engine.model.transcribe.call_args.kwargs["initial_prompt"] is None
  assert len(tokens) == 2
  assert engine.segment_end_time() == 0.0


def test_token_to_text(engine):
  engine.tokenizer.vocabulary[1000] = " hi"
  assert engine.token_to_text(1000) == " hi"


def test_check_sample_rate(engine):
  engine.check_sample_rate(16000)
  with pytest.raises(SetupError, match="does not match"):
    engine.check_sample_rate(44100)
