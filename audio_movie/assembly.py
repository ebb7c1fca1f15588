"""Stitch each act's clips into one act track."""

import logging
import os
from dataclasses import dataclass

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from audio_movie.constants import (
    ACTS,
    AUDIO_FORMAT,
    DEFAULT_ACT_SECONDS,
    PAUSE_SAME_TYPE_MS,
    PAUSE_SPEAKER_CHANGE_MS,
    PAUSE_TYPE_TRANSITION_MS,
)
from audio_movie.models import ScriptElement, SynthesisResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActTrack:
    act: str
    path: str
    duration_ms: int
    clips: int


def _calculate_pause(prev: ScriptElement, curr: ScriptElement) -> int:
    """Calculate pause duration between two elements.

    Uses max() when multiple rules apply (e.g., kind transition + speaker change).
    """
    pause = PAUSE_SAME_TYPE_MS

    if prev.kind != curr.kind:
        pause = max(pause, PAUSE_TYPE_TRANSITION_MS)

    if prev.character != curr.character:
        pause = max(pause, PAUSE_SPEAKER_CHANGE_MS)

    return pause


def _concatenate_with_pauses(
    elements: list[ScriptElement],
    audio_files: list[AudioSegment],
) -> AudioSegment:
    if not audio_files:
        return AudioSegment.silent(duration=0)

    result = audio_files[0]
    for i in range(1, len(audio_files)):
        pause_ms = _calculate_pause(elements[i - 1], elements[i])
        result += AudioSegment.silent(duration=pause_ms) + audio_files[i]

    return result


def _load_clips(results: list[SynthesisResult]) -> tuple[list[ScriptElement], list[AudioSegment]]:
    elements, clips = [], []
    for result in results:
        try:
            clips.append(AudioSegment.from_file(result.output_location))
        except (CouldntDecodeError, OSError) as e:
            logger.warning("Skipping unreadable clip %s: %s", result.output_location, e)
            continue
        elements.append(result.element)
    return elements, clips


def assemble_acts(
    results: list[SynthesisResult],
    output_dir: str,
    fmt: str = AUDIO_FORMAT,
) -> list[ActTrack]:
    """Concatenate each act's successful clips in sequence order.

    Writes act-<one|two|three>.<fmt> into output_dir. Acts without any
    readable audio get no track.
    """
    os.makedirs(output_dir, exist_ok=True)
    tracks = []
    for act in ACTS:
        act_results = sorted(
            (r for r in results if r.success and r.output_location and r.element.act == act),
            key=lambda r: r.element.sequence,
        )
        if not act_results:
            continue

        elements, clips = _load_clips(act_results)
        if not clips:
            continue

        audio = _concatenate_with_pauses(elements, clips)
        path = os.path.join(output_dir, f"act-{act.lower()}.{fmt}")
        audio.export(path, format=fmt)
        logger.info("Act %s: %d clips, %.1fs → %s", act, len(clips), len(audio) / 1000, path)
        tracks.append(ActTrack(act=act, path=path, duration_ms=len(audio), clips=len(clips)))
    return tracks


def act_timeline(tracks: list[ActTrack], default_seconds: int = DEFAULT_ACT_SECONDS) -> list[dict]:
    """Start offset and duration of every act, for syncing one image per act.

    An act with no track keeps the default duration.
    """
    durations = {t.act: round(t.duration_ms / 1000, 2) for t in tracks}
    timeline = []
    start = 0.0
    for act in ACTS:
        duration = durations.get(act, float(default_seconds))
        timeline.append({
            "act": act,
            "start_seconds": round(start, 2),
            "duration_seconds": duration,
            "has_audio": act in durations,
        })
        start += duration
    return timeline
