"""Data models for audio movie production."""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ScriptElement:
    character: str     # narrator sentinel or the cue label as written
    text: str
    kind: str          # "narration", "dialogue" or "scene-heading"
    act: str           # "ONE", "TWO" or "THREE"
    sequence: int


@dataclass(frozen=True)
class RosterEntry:
    canonical_name: str
    gender: str        # "male" or "female"
    variants: tuple[str, ...] = ()


@dataclass(frozen=True)
class VoiceProfile:
    voice_id: str
    rate: str = "+0%"
    pitch: str = "+0Hz"
    source: str = ""   # narrator, main-male, supporting-female, override, ...


@dataclass(frozen=True)
class SynthesisResult:
    element: ScriptElement
    provider: str | None = None
    voice_id: str | None = None
    success: bool = False
    output_location: str | None = None
    size_bytes: int | None = None
    error: str | None = None
    chunks: int = field(default=0, compare=False)

    def manifest_entry(self) -> dict:
        """Render this result as an output manifest row."""
        return {
            "character": self.element.character,
            "text": self.element.text,
            "kind": self.element.kind,
            "sequence": self.element.sequence,
            "act": self.element.act,
            "filename": os.path.basename(self.output_location) if self.output_location else None,
            "path": self.output_location,
            "provider": self.provider,
            "voice": self.voice_id,
            "success": self.success,
            "size_bytes": self.size_bytes,
            "error": self.error,
        }
