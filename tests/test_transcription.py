"""Tests for transcription engines."""

import numpy as np
import pytest

from screener.core.audio import AudioChunk
from screener.core.errors import TranscriptionError
from screener.core.transcription import (
    ScriptedTranscriptionEngine,
    VoskTranscriptionEngine,
    parse_vosk_result,
)

CHUNK = AudioChunk(np.zeros(1600, dtype=np.int16))


@pytest.mark.parametrize("payload,expected", [
    ('{"text": "hola buenos días"}', "hola buenos días"),
    ('{"partial": " press one "}', "press one"),
    ('{"text": ""}', None),
    ('{"partial": ""}', None),
    ("not json", None),
    ("[1, 2]", None),
    ("", None),
    (None, None),
])
def test_parse_vosk_result(payload, expected):
    assert parse_vosk_result(payload) == expected


def test_scripted_engine_replays_fragments():
    engine = ScriptedTranscriptionEngine(["hello", "", None, "bye"])
    engine.initialize()

    results = [engine.transcribe(CHUNK) for _ in range(5)]

    assert results == ["hello", None, None, "bye", None]


def test_scripted_engine_reset_rewinds():
    engine = ScriptedTranscriptionEngine(["hello"])
    engine.initialize()
    engine.transcribe(CHUNK)
    engine.reset()

    assert engine.transcribe(CHUNK) == "hello"
    assert engine.reset_count == 1


def test_scripted_engine_must_be_initialized():
    with pytest.raises(TranscriptionError):
        ScriptedTranscriptionEngine(["hello"]).transcribe(CHUNK)


def test_scripted_engine_from_file(tmp_path):
    path = tmp_path / "call.txt"
    path.write_text("hello there\n\nplease hold\n", encoding="utf-8")

    engine = ScriptedTranscriptionEngine.from_file(path)

    assert engine.fragments == ["hello there", "", "please hold"]


def test_vosk_missing_model(tmp_path):
    engine = VoskTranscriptionEngine(tmp_path / "no-model")

    with pytest.raises(TranscriptionError):
        engine.initialize()
    assert not engine.is_ready


def test_vosk_not_ready_fails_on_first_transcribe(tmp_path):
    with pytest.raises(TranscriptionError):
        VoskTranscriptionEngine(tmp_path).transcribe(CHUNK)
