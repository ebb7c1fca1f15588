"""Tests for data models."""

import dataclasses

import pytest

from audio_movie.models import ScriptElement, SynthesisResult, VoiceProfile


def test_script_element_is_frozen():
    element = ScriptElement(character="SARAH", text="Hi.", kind="dialogue", act="ONE", sequence=0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        element.text = "Bye."


def test_voice_profile_defaults():
    voice = VoiceProfile("en-US-AriaNeural")
    assert voice.rate == "+0%"
    assert voice.pitch == "+0Hz"
    assert voice.source == ""


def test_manifest_entry_success():
    element = ScriptElement(character="DR. CHEN", text="Sit down.", kind="dialogue", act="TWO", sequence=4)
    result = SynthesisResult(element=element, provider="edge", voice_id="en-GB-RyanNeural", success=True,
                             output_location="/tmp/out/voice-act-two/004_DR._CHEN.mp3", size_bytes=2048)
    entry = result.manifest_entry()
    assert entry["character"] == "DR. CHEN"
    assert entry["act"] == "TWO"
    assert entry["sequence"] == 4
    assert entry["filename"] == "004_DR._CHEN.mp3"
    assert entry["provider"] == "edge"
    assert entry["voice"] == "en-GB-RyanNeural"
    assert entry["success"] is True


def test_manifest_entry_failure():
    element = ScriptElement(character="NARRATOR", text="Dark.", kind="narration", act="ONE", sequence=0)
    entry = SynthesisResult(element=element, error="all providers failed").manifest_entry()
    assert entry["filename"] is None
    assert entry["provider"] is None
    assert entry["success"] is False
    assert entry["error"] == "all providers failed"


def test_chunk_count_ignored_in_equality():
    element = ScriptElement(character="NARRATOR", text="Dark.", kind="narration", act="ONE", sequence=0)
    assert SynthesisResult(element=element, chunks=1) == SynthesisResult(element=element, chunks=3)
