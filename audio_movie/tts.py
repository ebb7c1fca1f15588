"""Speech synthesis providers: ElevenLabs, Edge neural voices and Google Translate TTS."""

import asyncio
import io

import edge_tts
import requests
from gtts import gTTS, gTTSError

from audio_movie.constants import (
    EDGE_MAX_CHARS,
    ELEVENLABS_MAX_CHARS,
    ELEVENLABS_MODEL,
    ELEVENLABS_TIMEOUT,
    GTTS_MAX_CHARS,
    GTTS_REQUEST_DELAY,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)
from audio_movie.models import VoiceProfile

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

# Free-tier ElevenLabs voices by name
ELEVENLABS_VOICES = {
    "adam": "pNInz6obpgDQGcFmaJgB",      # deep, mature male
    "antoni": "ErXwobaYiN019PkySvjV",    # well-rounded male
    "arnold": "VR6AewLTigWG4xSOukaG",    # crisp, resonant male
    "josh": "TxGEqnHWrfWFTfGW9XjX",      # young, energetic male
    "sam": "yoZ06aMxZJJ28mfd3POQ",       # raspy male
    "nigel": "adZJnAl6IYZw4EYI9FVd",     # professional male lead
    "john": "EiNlNiXeDU1pqqOPrYMO",      # deep narrator
    "bella": "EXAVITQu4vr4xnSDxMaL",     # soft female
    "elli": "MF3mGyEYCl7XYWbV9V6O",      # expressive female
    "rachel": "21m00Tcm4TlvDq8ikWAM",    # calm female lead
    "domi": "AZnzlk1XvdvUeBnXmlld",      # strong female
    "dorothy": "ThT5KcBeYPX3keUQqHPh",   # conversational female
}

# ElevenLabs names accepted as overrides by the Edge provider
EDGE_ALIASES = {
    "john": "en-US-RogerNeural",
    "nigel": "en-GB-RyanNeural",
    "adam": "en-US-GuyNeural",
    "antoni": "en-US-AndrewNeural",
    "arnold": "en-US-DavisNeural",
    "josh": "en-US-TonyNeural",
    "sam": "en-US-BrianNeural",
    "rachel": "en-US-JennyNeural",
    "bella": "en-US-SaraNeural",
    "elli": "en-US-AnaNeural",
    "domi": "en-US-MichelleNeural",
    "dorothy": "en-GB-LibbyNeural",
}


class ProviderError(Exception):
    """A speech provider could not render the requested text."""


class SpeechProvider:
    """Base class: ``synthesize(text, voice) -> audio bytes`` or ProviderError."""

    name = ""
    max_chars = EDGE_MAX_CHARS
    metered = False
    request_delay = 0.0  # seconds to wait after each request

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        raise NotImplementedError


class ElevenLabsProvider(SpeechProvider):
    """High quality, metered by characters per month."""

    name = "elevenlabs"
    max_chars = ELEVENLABS_MAX_CHARS
    metered = True

    def __init__(self, api_key: str, model_id: str = ELEVENLABS_MODEL, timeout: float = ELEVENLABS_TIMEOUT):
        self.api_key = api_key
        self.model_id = model_id
        self.timeout = timeout

    @staticmethod
    def voice_id_for(voice: str) -> str:
        """Map a voice name to its ID; unknown values are used as raw IDs."""
        return ELEVENLABS_VOICES.get(voice.lower(), voice)

    def _post(self, text: str, voice_id: str) -> bytes:
        try:
            response = requests.post(
                ELEVENLABS_URL.format(voice_id=voice_id),
                headers={
                    "Accept": "audio/mpeg",
                    "Content-Type": "application/json",
                    "xi-api-key": self.api_key,
                },
                json={
                    "text": text,
                    "model_id": self.model_id,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderError(f"ElevenLabs request failed: {e}") from e

        if not response.ok:
            raise ProviderError(f"ElevenLabs API error {response.status_code}: {response.text[:200]}")
        if not response.content:
            raise ProviderError("ElevenLabs returned no audio")
        return response.content

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        return await asyncio.to_thread(self._post, text, self.voice_id_for(voice.voice_id))


class EdgeProvider(SpeechProvider):
    """Microsoft Edge neural voices via edge-tts, with retry logic.

    Unmetered; honours per-voice rate and pitch. Retries on network
    errors or empty audio with exponential backoff.
    """

    name = "edge"
    max_chars = EDGE_MAX_CHARS

    def __init__(self, retries: int = TTS_RETRY_COUNT, base_delay: float = TTS_RETRY_BASE_DELAY):
        self.retries = max(retries, 1)
        self.base_delay = base_delay

    async def _render(self, text: str, voice: VoiceProfile) -> bytes:
        voice_id = EDGE_ALIASES.get(voice.voice_id.lower(), voice.voice_id)
        communicate = edge_tts.Communicate(text, voice_id, rate=voice.rate, pitch=voice.pitch)
        audio = bytearray()
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio.extend(chunk["data"])
        return bytes(audio)

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        last_error = None
        for attempt in range(self.retries):
            try:
                audio = await self._render(text, voice)
                if audio:
                    return audio
                last_error = ProviderError(f"Edge TTS produced no audio for: {text[:50]}...")
            except Exception as e:
                last_error = e

            # Exponential backoff
            if attempt < self.retries - 1:
                await asyncio.sleep(self.base_delay * (2 ** attempt))

        raise ProviderError(f"Edge TTS failed: {last_error}") from last_error


class GoogleTranslateProvider(SpeechProvider):
    """Free, unauthenticated Google Translate TTS with a single voice."""

    name = "gtts"
    max_chars = GTTS_MAX_CHARS
    request_delay = GTTS_REQUEST_DELAY

    def __init__(self, lang: str = "en", request_delay: float = GTTS_REQUEST_DELAY):
        self.lang = lang
        self.request_delay = request_delay

    def _render(self, text: str) -> bytes:
        buffer = io.BytesIO()
        try:
            gTTS(text=text, lang=self.lang).write_to_fp(buffer)
        except (gTTSError, AssertionError, ValueError) as e:
            raise ProviderError(f"Google TTS failed: {e}") from e
        audio = buffer.getvalue()
        if not audio:
            raise ProviderError("Google TTS returned no audio")
        return audio

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        return await asyncio.to_thread(self._render, text)


def default_providers(elevenlabs_api_key: str | None = None) -> list[SpeechProvider]:
    """The fallback chain in priority order: metered, cloud, free."""
    providers: list[SpeechProvider] = []
    if elevenlabs_api_key:
        providers.append(ElevenLabsProvider(elevenlabs_api_key))
    providers.append(EdgeProvider())
    providers.append(GoogleTranslateProvider())
    return providers
