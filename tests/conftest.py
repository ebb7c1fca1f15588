"""Shared fixtures for audio movie tests."""

import asyncio

import pytest
from pydub import AudioSegment

from audio_movie.models import ScriptElement
from audio_movie.tts import ProviderError, SpeechProvider


SAMPLE_SCRIPT = """\
**ACT ONE**

INT. COFFEE SHOP - DAY

Rain streaks the windows. A bell rings as the door opens.

SARAH
(nervous)
I didn't think you'd come.

DR. LIAM CHEN
"I almost didn't."

**ACT TWO**

EXT. PARKING LOT - NIGHT

MARCUS (V.O.)
They're watching us.

NARRATOR

CUT TO:

Sarah runs to her car.

**ACT THREE**

LIAM
It's over, Sarah.

NARRATOR

FADE OUT.
"""

SAMPLE_PLOT = """\
**TITLE:** The Last Order

**CHARACTERS:**
- Sarah Mitchell (female, barista)
- Dr. Liam Chen (male)
- Marcus (male)
- Nurse Emma Brooks (female)

**ACT ONE**
Sarah meets Liam in the coffee shop.
"""


class FakeProvider(SpeechProvider):
    """In-memory provider: returns the text as bytes and records each call."""

    def __init__(self, name="edge", metered=False, max_chars=3000, fail=False, request_delay=0.0):
        self.name = name
        self.metered = metered
        self.max_chars = max_chars
        self.fail = fail
        self.request_delay = request_delay
        self.calls = []

    async def synthesize(self, text, voice):
        self.calls.append((text, voice.voice_id))
        await asyncio.sleep(0)  # let other elements interleave
        if self.fail:
            raise ProviderError(f"{self.name} is down")
        return f"[{self.name}:{voice.voice_id}]{text}".encode()


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def sample_script():
    return SAMPLE_SCRIPT


@pytest.fixture
def sample_plot():
    return SAMPLE_PLOT


@pytest.fixture
def sample_elements():
    """Pre-built elements spanning two acts."""
    return [
        ScriptElement(character="NARRATOR", text="It was dark.", kind="narration", act="ONE", sequence=0),
        ScriptElement(character="SARAH", text="Who's there?", kind="dialogue", act="ONE", sequence=1),
        ScriptElement(character="DR. LIAM CHEN", text="Only me.", kind="dialogue", act="TWO", sequence=2),
    ]


@pytest.fixture
def tiny_wav(tmp_path):
    """Write a 100ms silent WAV and return its path."""
    path = tmp_path / "test.wav"
    AudioSegment.silent(duration=100).export(str(path), format="wav")
    return path
