"""Project directories, JSON artifacts, status and invalidation."""

import json
import os
import re
import shutil

from audio_movie.constants import ACTS_SUBDIR, OUTPUT_DIR, VOICE_SUBDIR

AUDIO_EXTENSIONS = (".mp3", ".wav")

# Invalidation map: setting key → generated outputs to delete
INVALIDATION_MAP = {
    "voice": [VOICE_SUBDIR, ACTS_SUBDIR, "manifest.json"],
    "narrator-voice": [VOICE_SUBDIR, ACTS_SUBDIR, "manifest.json"],
    "provider": [VOICE_SUBDIR, ACTS_SUBDIR, "manifest.json"],
    "scene-headings": [VOICE_SUBDIR, ACTS_SUBDIR, "manifest.json"],
    "transitions": [VOICE_SUBDIR, ACTS_SUBDIR, "manifest.json"],
}


def slug_from_path(script_path: str) -> str:
    """Convert script filename to output directory slug.

    "The Last Train.txt" → "the_last_train"
    "/path/to/night-shift.md" → "night_shift"
    """
    basename = os.path.splitext(os.path.basename(script_path))[0]
    return re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()


def init_output_dir(script_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ with its voice/ and acts/ subdirectories."""
    project_dir = os.path.join(output_base, slug_from_path(script_path))
    for subdir in (VOICE_SUBDIR, ACTS_SUBDIR):
        os.makedirs(os.path.join(project_dir, subdir), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data) -> str:
    path = os.path.join(project_dir, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def load_artifact(project_dir: str, filename: str):
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


def _reset(path: str) -> bool:
    if os.path.isdir(path):
        shutil.rmtree(path)
        os.makedirs(path, exist_ok=True)
        return True
    if os.path.isfile(path):
        os.remove(path)
        return True
    return False


def invalidate_downstream(project_dir: str, setting_key: str) -> list[str]:
    """Delete generated outputs made stale by a setting change.

    Directories are emptied (recreated), files removed. Returns the names
    of the outputs that existed and were reset.
    """
    return [
        name for name in INVALIDATION_MAP.get(setting_key, [])
        if _reset(os.path.join(project_dir, name))
    ]


def clear_generated_audio(project_dir: str) -> list[str]:
    """Empty voice/ and acts/ before a forced run."""
    return [
        name for name in (VOICE_SUBDIR, ACTS_SUBDIR)
        if _reset(os.path.join(project_dir, name))
    ]


def audio_files(directory: str) -> list[str]:
    """Every audio file below directory, as sorted relative paths."""
    found = []
    if not os.path.isdir(directory):
        return found
    for root, _dirs, files in os.walk(directory):
        for name in files:
            if name.endswith(AUDIO_EXTENSIONS):
                found.append(os.path.relpath(os.path.join(root, name), directory))
    return sorted(found)


def get_project_status(project_dir: str) -> dict:
    """Return dict describing current state of each pipeline step."""
    status = {}

    script = load_artifact(project_dir, "script.json")
    if script:
        status["parse"] = {"state": "done", "elements": len(script.get("elements", []))}
    else:
        status["parse"] = {"state": "pending"}

    cast = load_artifact(project_dir, "cast.json")
    if cast:
        status["voices"] = {"state": "done", "voices": len(cast.get("cast", {})) + 1}
    else:
        status["voices"] = {"state": "pending"}

    clips = audio_files(os.path.join(project_dir, VOICE_SUBDIR))
    expected = status["parse"].get("elements", 0)
    if not clips:
        status["tts"] = {"state": "pending"}
    elif expected and len(clips) >= expected:
        status["tts"] = {"state": "done", "files": len(clips)}
    else:
        status["tts"] = {"state": "partial", "files": len(clips), "expected": expected}

    tracks = audio_files(os.path.join(project_dir, ACTS_SUBDIR))
    status["assembly"] = {"state": "done", "files": len(tracks)} if tracks else {"state": "pending"}

    manifest = os.path.join(project_dir, "manifest.json")
    status["manifest"] = {"state": "done" if os.path.exists(manifest) else "pending"}

    return status


def list_projects(output_base: str = OUTPUT_DIR) -> list[str]:
    """Sorted slugs of every directory under output_base with a script.json."""
    if not os.path.exists(output_base):
        return []
    projects = []
    for name in os.listdir(output_base):
        if os.path.exists(os.path.join(output_base, name, "script.json")):
            projects.append(name)
    return sorted(projects)
