"""Tests for the single-producer/single-consumer sample channel."""

import threading

import numpy as np
import pytest

from slipstream.streaming.channel import SampleIngestChannel


class TestSampleIngestChannel:
  def test_rejects_zero_capacity(self):
    with pytest.raises(ValueError):
      SampleIngestChannel(0)

  def test_drain_empty(self):
    channel = SampleIngestChannel(8)
    drained = channel.drain()
    assert drained.shape == (0,)
    assert drained.dtype == np.float32

  def test_push_and_drain_preserves_order(self):
    channel = SampleIngestChannel(8)
    for value in (0.1, 0.2, 0.3):
      assert channel.push(value)
    assert len(channel) == 3
    np.testing.assert_allclose(channel.drain(), [0.1, 0.2, 0.3], rtol=1e-6)
    assert len(channel) == 0

  def test_push_fails_when_full(self):
    channel = SampleIngestChannel(4)
    assert all(channel.push(float(i)) for i in range(4))
    assert channel.push(4.0) is False
    assert channel.dropped == 1
    np.testing.assert_array_equal(channel.drain(), [0, 1, 2, 3])

  def test_push_block_drops_overflow(self):
    """Overload: pushes beyond capacity fail, the drained sequence stays contiguous."""
    channel = SampleIngestChannel(100)
    block = np.arange(150, dtype=np.float32)

    rejected = channel.push_block(block)

    assert rejected == 50
    assert channel.dropped == 50
    np.testing.assert_array_equal(channel.drain(), np.arange(100, dtype=np.float32))

  def test_push_block_wraps_around(self):
    channel = SampleIngestChannel(5)
    channel.push_block(np.arange(4, dtype=np.float32))
    np.testing.assert_array_equal(channel.drain(), [0, 1, 2, 3])

    assert channel.push_block(np.arange(10, 15, dtype=np.float32)) == 0
    np.testing.assert_array_equal(channel.drain(), [10, 11, 12, 13, 14])

  def test_discard(self):
    channel = SampleIngestChannel(10)
    channel.push_block(np.ones(6, dtype=np.float32))
    assert channel.discard() == 6
    assert len(channel) == 0
    assert channel.drain().shape == (0,)

  def test_concurrent_producer_and_consumer(self):
    """Under overload the consumer sees an ordered subsequence with no invented samples."""
    channel = SampleIngestChannel(256)
    total = 100_000
    values = np.arange(total, dtype=np.float32)
    drained: list[np.ndarray] = []
    done = threading.Event()

    def produce():
      for start in range(0, total, 97):
        channel.push_block(values[start : start + 97])
      done.set()

    def consume():
      while not done.is_set() or len(channel):
        drained.append(channel.drain())

    producer = threading.Thread(target=produce)
    consumer = threading.Thread(target=consume)
    consumer.start()
    producer.start()
    producer.join()
    consumer.join()

    received = np.concatenate(drained)
    assert received.shape[0] == total - channel.dropped
    assert np.all(np.diff(received) > 0)
    assert set(received.astype(np.int64)).issubset(set(range(total)))
