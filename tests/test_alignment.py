"""Tests for token time alignment and the retraction policy."""

import pytest

from mocks import boundary
from slipstream.config import StreamConfig
from slipstream.streaming.alignment import (
  FixedRateScale,
  SegmentSpanScale,
  TimeAlignmentReconciler,
)
from slipstream.streaming.interfaces import EngineOutput, Token


@pytest.fixture
def reconciler():
  return TimeAlignmentReconciler(StreamConfig())


def output(*inner: Token, end: float) -> EngineOutput:
  return EngineOutput(tokens=boundary(*inner, end=int(end)), segment_end_time=end)


class TestScales:
  def test_segment_span_during_warm_up(self):
    scale = SegmentSpanScale(latency_ms=4000.0, window_depth=2)
    assert scale(400.0, 1) == pytest.approx(0.1)
    assert scale(800.0, 2) == pytest.approx(0.1)

  def test_segment_span_caps_at_window_depth(self):
    scale = SegmentSpanScale(latency_ms=4000.0, window_depth=2)
    assert scale(800.0, 7) == pytest.approx(0.1)

  def test_segment_span_without_end_time(self):
    scale = SegmentSpanScale(latency_ms=4000.0, window_depth=2)
    assert scale(0.0, 3) is None

  def test_fixed_rate(self):
    assert FixedRateScale()(123.0, 5) == pytest.approx(0.1)
    assert FixedRateScale(50)(0.0, 1) == pytest.approx(0.05)

  def test_fixed_rate_rejects_non_positive(self):
    with pytest.raises(ValueError):
      FixedRateScale(0)


class TestTimeAlignmentReconciler:
  def test_ms_to_evict(self, reconciler):
    assert reconciler.ms_to_evict(8000) == pytest.approx(500.0)
    assert reconciler.ms_to_evict(0) == 0.0

  def test_first_iteration_is_empty(self, reconciler):
    previous = output(Token(10, "hello", 0, 50), end=400)

    result = reconciler.reconcile(previous, "hello", 0, 1)

    assert result.chars_to_retract == 0
    assert result.carried == []
    assert not result.skipped

  def test_no_previous_output(self, reconciler):
    result = reconciler.reconcile(None, "", 8000, 4)
    assert result.chars_to_retract == 0
    assert result.carried == []

  def test_warm_up_retracts_everything(self, reconciler):
    previous = output(Token(10, "hello", 0, 50), end=400)

    result = reconciler.reconcile(previous, "hello", 0, 2)

    assert result.chars_to_retract == 5
    assert result.carried == []

  def test_carries_tokens_starting_in_evicted_span(self, reconciler):
    hello = Token(10, "hello", 0, 50)
    world = Token(11, " world", 100, 150)
    previous = output(hello, world, end=800)

    result = reconciler.reconcile(previous, "hello world", 8000, 3)

    assert result.token_time_per_ms == pytest.approx(0.1)
    assert result.ms_to_evict == pytest.approx(500.0)
    assert result.carried == [hello]
    assert result.carried_ids == [10]
    assert result.carried_text == "hello"
    assert result.chars_to_retract == len(" world")

  def test_carried_tokens_come_from_inner_tokens(self, reconciler):
    previous = output(Token(10, "a", 0, 1), Token(11, "b", 2, 3), end=800)

    result = reconciler.reconcile(previous, "ab", 64000, 5)

    inner = previous.inner_tokens
    assert result.carried == inner
    assert all(token in inner for token in result.carried)
    assert result.chars_to_retract == 0

  def test_retraction_never_negative(self, reconciler):
    previous = output(Token(10, "hello", 0, 50), end=800)

    # Displayed text shorter than the carried text
    result = reconciler.reconcile(previous, "", 8000, 3)

    assert result.carried_text == "hello"
    assert result.chars_to_retract == 0

  def test_nothing_evicted_retracts_everything(self, reconciler):
    previous = output(Token(10, "hello", 0, 50), end=800)

    result = reconciler.reconcile(previous, "hello", 0, 3)

    assert result.carried == []
    assert result.chars_to_retract == 5

  @pytest.mark.parametrize(
    "previous",
    [
      EngineOutput(tokens=boundary(), segment_end_time=300),
      EngineOutput(tokens=boundary(Token(10, "hi", 0, 10)), segment_end_time=0),
      EngineOutput(tokens=[], segment_end_time=0),
    ],
  )
  def test_degenerate_output_is_skipped(self, reconciler, previous):
    result = reconciler.reconcile(previous, "hi", 8000, 3)

    assert result.skipped
    assert result.chars_to_retract == 0
    assert result.carried == []

  def test_unusable_ratio_is_skipped(self):
    reconciler = TimeAlignmentReconciler(StreamConfig(), scale=lambda end, iteration: None)
    previous = output(Token(10, "hello", 0, 50), end=800)

    result = reconciler.reconcile(previous, "hello", 8000, 3)

    assert result.skipped
    assert result.chars_to_retract == 0

  def test_renders_carried_text_through_vocabulary(self):
    vocabulary = {10: "HELLO"}
    reconciler = TimeAlignmentReconciler(StreamConfig(), token_to_text=vocabulary.__getitem__)
    previous = output(Token(10, "hello", 0, 50), Token(11, " there", 100, 150), end=800)

    result = reconciler.reconcile(previous, "hello there", 8000, 3)

    assert result.carried_text == "HELLO"
    assert result.chars_to_retract == len("hello there") - len("HELLO")

  def test_fixed_rate_scale(self):
    reconciler = TimeAlignmentReconciler(StreamConfig(), scale=FixedRateScale())
    early = Token(10, "one", 20, 40)
    late = Token(11, " two", 60, 80)
    previous = output(early, late, end=90)

    # 500 ms evicted, 100 ticks per second: tokens before tick 50 are carried
    result = reconciler.reconcile(previous, "one two", 8000, 3)

    assert result.carried == [early]
    assert result.chars_to_retract == len(" two")

  def test_warm_up_lasts_window_depth_iterations(self):
    """With K=3 the first carry happens at iteration 4; iterations 2 and 3 retract everything."""
    reconciler = TimeAlignmentReconciler(StreamConfig(window_depth=3))
    previous = output(Token(10, "one", 0, 20), Token(11, " two", 390, 420), end=1200)

    second = reconciler.reconcile(previous, "one two", 0, 2)
    third = reconciler.reconcile(previous, "one two", 0, 3)
    fourth = reconciler.reconcile(previous, "one two", 64000, 4)

    assert (second.chars_to_retract, second.carried) == (7, [])
    assert (third.chars_to_retract, third.carried) == (7, [])
    assert fourth.carried_ids == [10, 11]
    assert fourth.chars_to_retract == 0
