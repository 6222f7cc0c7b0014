"""Tests for transcript state and update assembly."""

from slipstream.streaming.transcript import Transcript, TranscriptAssembler, UpdateType


class TestTranscript:
  def test_retract_and_append(self):
    transcript = Transcript("hello world")

    assert transcript.retract(6) == 6
    transcript.append(" there")

    assert str(transcript) == "hello there"
    assert len(transcript) == 11

  def test_retract_is_clamped(self):
    transcript = Transcript("abc")
    assert transcript.retract(10) == 3
    assert transcript.text == ""
    assert transcript.retract(-2) == 0


class TestTranscriptAssembler:
  def test_first_append(self):
    assembler = TranscriptAssembler()

    update = assembler.apply(1, 0, "hello")

    assert update.operation_type == UpdateType.APPEND
    assert update.chars_to_delete == 0
    assert update.text_to_type == "hello"
    assert update.transcript == "hello"

  def test_replace_suffix(self):
    assembler = TranscriptAssembler(Transcript("hello world"))

    update = assembler.apply(3, 6, " word")

    assert update.operation_type == UpdateType.REPLACE_SUFFIX
    assert update.chars_to_delete == 6
    assert update.transcript == "hello word"
    assert assembler.transcript.text == "hello word"

  def test_retraction_without_new_text(self):
    assembler = TranscriptAssembler(Transcript("hello"))

    update = assembler.apply(2, 5, "")

    assert update.operation_type == UpdateType.REPLACE_SUFFIX
    assert update.transcript == ""

  def test_no_change(self):
    assembler = TranscriptAssembler(Transcript("hello"))

    update = assembler.apply(4, 0, "")

    assert update.operation_type == UpdateType.NO_CHANGE
    assert update.transcript == "hello"

  def test_over_retraction_is_clamped(self):
    assembler = TranscriptAssembler(Transcript("hi"))

    update = assembler.apply(2, 9, "hey")

    assert update.chars_to_delete == 2
    assert update.transcript == "hey"
