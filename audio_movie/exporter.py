"""Write the run's output manifest."""

import json
import os
from collections import Counter
from datetime import datetime, timezone

from audio_movie.constants import VERSION
from audio_movie.models import SynthesisResult


def summarize(results: list[SynthesisResult]) -> dict:
    successful = sum(1 for r in results if r.success)
    return {
        "lines": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "characters": sum(len(r.element.text) for r in results),
        "providers": dict(Counter(r.provider for r in results if r.success)),
    }


def export_manifest(
    project_dir: str,
    slug: str,
    results: list[SynthesisResult],
    settings: dict | None = None,
    usage: dict | None = None,
    timeline: list[dict] | None = None,
) -> str:
    """Write manifest.json describing every rendered line.

    Entries are in playback (sequence) order whatever order the results
    completed in. Failed lines are listed with their error.

    Returns path to the manifest.
    """
    ordered = sorted(results, key=lambda r: r.element.sequence)
    manifest = {
        "project": slug,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "settings": settings or {},
        "stats": summarize(ordered),
        "usage": usage,
        "timeline": timeline or [],
        "entries": [r.manifest_entry() for r in ordered],
    }

    os.makedirs(project_dir, exist_ok=True)
    path = os.path.join(project_dir, "manifest.json")
    with open(path, "w") as f:
        json.dump(manifest, f, indent=2)
    return path
