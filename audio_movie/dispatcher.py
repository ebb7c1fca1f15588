"""Render script elements to act-partitioned audio through a provider chain."""

import asyncio
import logging
import os
import re

from audio_movie.constants import AUDIO_FORMAT, DISPATCH_CONCURRENCY, NARRATOR
from audio_movie.ledger import UsageLedger
from audio_movie.models import ScriptElement, SynthesisResult, VoiceProfile
from audio_movie.tts import SpeechProvider
from audio_movie.voices import PROVIDER_VOICES, VoiceAssignment

logger = logging.getLogger(__name__)


def chunk_text(text: str, limit: int) -> list[str]:
    """Split text into fixed-size pieces by raw offset (not word boundary)."""
    if limit <= 0 or len(text) <= limit:
        return [text]
    return [text[start:start + limit] for start in range(0, len(text), limit)]


def act_dir_name(act: str) -> str:
    """ "ONE" → "voice-act-one" """
    return f"voice-act-{act.lower()}"


def output_filename(element: ScriptElement, ext: str = AUDIO_FORMAT) -> str:
    """Zero-padded sequence plus speaker, so a sorted listing is playback order."""
    speaker = re.sub(r"\s+", "_", element.character.strip())
    return f"{element.sequence:03d}_{speaker}.{ext}"


class SynthesisDispatcher:
    """Synthesize every element concurrently, falling through providers.

    Providers are tried in the order given. A metered provider is only
    attempted when the ledger has room for the text; ledger checks and
    updates happen under one lock, and characters of in-flight requests
    are reserved, so parallel elements cannot overspend the budget.
    A failed element is reported in its result, never raised.
    """

    def __init__(
        self,
        providers: list[SpeechProvider],
        output_dir: str,
        ledger: UsageLedger | None = None,
        pin: str | None = None,
        concurrency: int = DISPATCH_CONCURRENCY,
        audio_format: str = AUDIO_FORMAT,
        narrator: str = NARRATOR,
    ):
        if pin and pin != "auto":
            providers = [p for p in providers if p.name == pin]
            if not providers:
                raise ValueError(f"Provider {pin!r} is not configured")
        self.providers = list(providers)
        self.output_dir = output_dir
        self.ledger = ledger
        self.concurrency = max(concurrency, 1)
        self.audio_format = audio_format
        self.narrator = narrator
        self._lock: asyncio.Lock | None = None
        self._reserved = 0

    def _voice_for(self, provider: SpeechProvider, element: ScriptElement,
                   assignments: dict[str, VoiceAssignment]) -> VoiceProfile:
        profile = (assignments.get(provider.name) or {}).get(element.character)
        if profile is not None:
            return profile
        table = PROVIDER_VOICES.get(provider.name)
        if table is None:
            return VoiceProfile(element.character)
        if element.character.upper() == self.narrator.upper():
            return table.narrator
        logger.warning("%s has no %s voice assigned; using the first pool voice",
                       element.character, provider.name)
        return table.profile(table.combined_pool[0], "default")

    async def _render(self, provider: SpeechProvider, text: str, voice: VoiceProfile) -> tuple[bytes, int]:
        # Chunks of one element run in order: the audio is their concatenation
        chunks = chunk_text(text, provider.max_chars)
        parts = []
        for chunk in chunks:
            parts.append(await provider.synthesize(chunk, voice))
            if provider.request_delay:
                await asyncio.sleep(provider.request_delay)
        return b"".join(parts), len(chunks)

    async def _reserve(self, characters: int) -> bool:
        if self.ledger is None:
            return True
        # Ledger file I/O runs off the event loop; the lock still serializes it
        async with self._lock:
            if not await asyncio.to_thread(self.ledger.has_budget, self._reserved + characters):
                return False
            self._reserved += characters
            return True

    async def _settle(self, characters: int, text: str, success: bool) -> None:
        if self.ledger is None:
            return
        async with self._lock:
            self._reserved -= characters
            if success:
                await asyncio.to_thread(self.ledger.record_usage, characters, text)

    def _write(self, element: ScriptElement, audio: bytes) -> str:
        act_dir = os.path.join(self.output_dir, act_dir_name(element.act))
        os.makedirs(act_dir, exist_ok=True)
        path = os.path.join(act_dir, output_filename(element, self.audio_format))
        with open(path, "wb") as f:
            f.write(audio)
        return path

    async def synthesize_element(self, element: ScriptElement,
                                 assignments: dict[str, VoiceAssignment]) -> SynthesisResult:
        """Try each provider in turn; return the first success or a failure."""
        if self._lock is None:
            self._lock = asyncio.Lock()

        errors = []
        for provider in self.providers:
            text = element.text
            if provider.metered and not await self._reserve(len(text)):
                logger.info("%s quota exhausted for %d chars, skipping to fallback",
                            provider.name, len(text))
                continue

            voice = self._voice_for(provider, element, assignments)
            try:
                audio, chunks = await self._render(provider, text, voice)
            except Exception as e:
                logger.warning("%s failed for #%d %s: %s", provider.name, element.sequence, element.character, e)
                errors.append(f"{provider.name}: {e}")
                if provider.metered:
                    await self._settle(len(text), text, success=False)
                continue

            if provider.metered:
                await self._settle(len(text), text, success=True)

            try:
                path = await asyncio.to_thread(self._write, element, audio)
            except OSError as e:
                logger.error("Could not save #%d %s: %s", element.sequence, element.character, e)
                return SynthesisResult(
                    element=element,
                    provider=provider.name,
                    voice_id=voice.voice_id,
                    success=False,
                    error=f"write failed: {e}",
                    chunks=chunks,
                )

            return SynthesisResult(
                element=element,
                provider=provider.name,
                voice_id=voice.voice_id,
                success=True,
                output_location=path,
                size_bytes=len(audio),
                chunks=chunks,
            )

        return SynthesisResult(
            element=element,
            success=False,
            error="; ".join(errors) or "No speech provider available",
        )

    async def run(self, elements: list[ScriptElement],
                  assignments: dict[str, VoiceAssignment]) -> list[SynthesisResult]:
        """Fan out over all elements; results come back in sequence order."""
        self._lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(self.concurrency)
        total = len(elements)
        done = 0

        async def one(element: ScriptElement) -> SynthesisResult:
            nonlocal done
            async with semaphore:
                result = await self.synthesize_element(element, assignments)
            done += 1
            if result.success:
                print(f"  [{done}/{total}] {act_dir_name(element.act)}/"
                      f"{os.path.basename(result.output_location)} ({result.provider})")
            else:
                print(f"  [{done}/{total}] FAILED #{element.sequence} {element.character}: {result.error}")
            return result

        results = await asyncio.gather(*(one(e) for e in elements))
        return sorted(results, key=lambda r: r.element.sequence)


def synthesize_script(
    elements: list[ScriptElement],
    assignments: dict[str, VoiceAssignment],
    providers: list[SpeechProvider],
    output_dir: str,
    ledger: UsageLedger | None = None,
    pin: str | None = None,
    concurrency: int = DISPATCH_CONCURRENCY,
) -> list[SynthesisResult]:
    """Sync wrapper around SynthesisDispatcher.run()."""
    dispatcher = SynthesisDispatcher(
        providers, output_dir, ledger=ledger, pin=pin, concurrency=concurrency,
    )
    return asyncio.run(dispatcher.run(elements, assignments))
