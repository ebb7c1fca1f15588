"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import logging
import os
import shutil
import sys

from audio_movie.artifacts import (
    clear_generated_audio,
    get_project_status,
    init_output_dir,
    invalidate_downstream,
    list_projects,
    load_artifact,
    slug_from_path,
    write_artifact,
)
from audio_movie.assembly import act_timeline, assemble_acts
from audio_movie.constants import (
    ACTS,
    ACTS_SUBDIR,
    DISPATCH_CONCURRENCY,
    NARRATOR,
    OUTPUT_DIR,
    USAGE_FILE,
    VERSION,
    VOICE_SUBDIR,
)
from audio_movie.dispatcher import synthesize_script
from audio_movie.exporter import export_manifest
from audio_movie.ledger import UsageLedger
from audio_movie.models import ScriptElement
from audio_movie.parser import discover_characters, tokenize_script
from audio_movie.roster import NameResolver, Roster, extract_roster
from audio_movie.tts import ELEVENLABS_VOICES, default_providers
from audio_movie.voices import (
    PROVIDER_VOICES,
    assignment_to_dict,
    guess_gender,
    load_cast,
    overrides_from_cast,
    resolve_cast,
)

PROVIDER_CHOICES = ("auto", *PROVIDER_VOICES)
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _fail(*lines: str):
    for line in lines:
        print(line, file=sys.stderr)
    raise SystemExit(1)


def _get_project_dir(slug: str) -> str:
    """Get project directory path, verify it exists."""
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if not os.path.isdir(project_dir):
        _fail(f"Error: Project '{slug}' not found.",
              "Run 'audio-movie new <script>' to create a project.")
    if not os.path.exists(os.path.join(project_dir, "script.json")):
        _fail(f"Error: Project '{slug}' is incomplete (no script.json).")
    return project_dir


def _read_text(path: str, label: str) -> str:
    if not os.path.exists(path):
        _fail(f"Error: {label} not found: {path}")
    with open(path, encoding="utf-8") as f:
        return f.read()


def _elements_from_script(script: dict) -> list[ScriptElement]:
    return [ScriptElement(**e) for e in script.get("elements", [])]


def _element_dicts(elements: list[ScriptElement]) -> list[dict]:
    return [
        {"character": e.character, "text": e.text, "kind": e.kind, "act": e.act, "sequence": e.sequence}
        for e in elements
    ]


def _build_cast_data(characters: list[str], roster: Roster, overrides: dict[str, str]) -> dict:
    """Build cast.json: narrator, one entry per speaker, and override voices."""
    resolver = NameResolver(roster)
    cast_data = {"narrator": {}, "cast": {}}
    if overrides.get(NARRATOR):
        cast_data["narrator"]["voice"] = overrides[NARRATOR]
    for name in characters:
        gender, source = guess_gender(name, resolver)
        info = {"gender": gender, "gender_source": source}
        if overrides.get(name.upper()):
            info["voice"] = overrides[name.upper()]
        cast_data["cast"][name] = info
    return cast_data


def _recast(project_dir: str, script: dict, cast_data: dict) -> dict:
    """Resolve voices for every provider and store them in cast.json."""
    elements = _elements_from_script(script)
    characters = discover_characters(elements)
    roster = Roster.from_dict(script.get("roster", []))
    assignments = resolve_cast(characters, roster, overrides_from_cast(cast_data))
    cast_data["voices"] = {name: assignment_to_dict(a) for name, a in assignments.items()}
    write_artifact(project_dir, "cast.json", cast_data)
    return assignments


def _tokenize(text: str, settings: dict) -> list[ScriptElement]:
    return tokenize_script(
        text,
        skip_scene_headings=settings.get("skip_scene_headings", False),
        skip_transitions=settings.get("skip_transitions", False),
    )


def cmd_new(args):
    """Create a new project from a screenplay file."""
    text = _read_text(args.file, "File")
    if not text.strip():
        _fail(f"Error: File is empty: {args.file}")

    slug = slug_from_path(args.file)
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if os.path.exists(os.path.join(project_dir, "script.json")):
        _fail(f"Error: Project '{slug}' already exists.",
              f"Use 'audio-movie run {slug}' to generate audio, or 'audio-movie set {slug} ...' to adjust.")

    settings = {
        "provider": "auto",
        "skip_scene_headings": args.skip_scene_headings,
        "skip_transitions": args.skip_transitions,
        "concurrency": DISPATCH_CONCURRENCY,
    }
    elements = _tokenize(text, settings)
    if not elements:
        _fail(f"Error: Could not parse any lines from: {args.file}")

    # The roster usually lives in the plot; a script may carry its own
    plot = _read_text(args.plot, "Plot file") if args.plot else text
    roster = extract_roster(plot)

    project_dir = init_output_dir(args.file, output_base=OUTPUT_DIR)
    script = {
        "source": os.path.abspath(args.file),
        "text": text,
        "elements": _element_dicts(elements),
        "roster": roster.to_dict(),
    }
    write_artifact(project_dir, "script.json", script)
    write_artifact(project_dir, "settings.json", settings)

    characters = discover_characters(elements)
    cast_data = _build_cast_data(characters, roster, overrides_from_cast(load_cast(args.file)))
    _recast(project_dir, script, cast_data)

    dialogue = sum(1 for e in elements if e.kind == "dialogue")
    print(f"Created project: {slug}")
    print(f"Parsed {len(elements)} lines ({dialogue} dialogue, {len(elements) - dialogue} narration)")
    print(f"Found {len(characters)} characters, {len(roster.entries)} in the roster")
    print(f"Cast written to {OUTPUT_DIR}/{slug}/cast.json")
    print(f"Run 'audio-movie status {slug}' to review, or 'audio-movie run {slug}' to generate audio.")


def cmd_run(args):
    """Synthesize every line, assemble acts and write the manifest."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json")
    settings = load_artifact(project_dir, "settings.json") or {}
    if not script or cast_data is None:
        _fail(f"Error: Project '{slug}' is missing required artifacts.")

    provider = args.provider or os.environ.get("AUDIO_MOVIE_TTS_PROVIDER") or settings.get("provider", "auto")
    if provider not in PROVIDER_CHOICES:
        _fail(f"Error: Unknown provider: {provider}", f"Valid providers: {', '.join(PROVIDER_CHOICES)}")

    providers = default_providers(os.environ.get("ELEVENLABS_API_KEY"))
    if provider != "auto" and provider not in [p.name for p in providers]:
        _fail(f"Error: Provider '{provider}' is not configured.",
              "Set ELEVENLABS_API_KEY to use ElevenLabs.")

    status = get_project_status(project_dir)
    if args.force:
        clear_generated_audio(project_dir)
    elif status["tts"]["state"] == "done" and status["manifest"]["state"] == "done":
        print(f"[skip] TTS: {VOICE_SUBDIR}/ is up to date (use --force to regenerate)")
        return

    elements = _elements_from_script(script)
    assignments = _recast(project_dir, script, cast_data)
    ledger = UsageLedger(os.path.join(OUTPUT_DIR, USAGE_FILE))

    print(f"Generating audio for {len(elements)} lines (provider: {provider})...")
    results = synthesize_script(
        elements,
        assignments,
        providers,
        os.path.join(project_dir, VOICE_SUBDIR),
        ledger=ledger,
        pin=provider,
        concurrency=settings.get("concurrency", DISPATCH_CONCURRENCY),
    )

    tracks = []
    if not args.no_assemble and any(r.success for r in results):
        if shutil.which("ffmpeg"):
            print("Assembling acts...")
            tracks = assemble_acts(results, os.path.join(project_dir, ACTS_SUBDIR))
        else:
            print("Warning: ffmpeg not found, skipping act assembly.", file=sys.stderr)

    manifest_path = export_manifest(
        project_dir, slug, results,
        settings={**settings, "provider": provider},
        usage=ledger.current_stats(),
        timeline=act_timeline(tracks),
    )

    failed = [r for r in results if not r.success]
    print(f"Rendered {len(results) - len(failed)}/{len(results)} lines")
    for result in failed:
        print(f"  failed #{result.element.sequence} {result.element.character}: {result.error}")
    print(f"Done: {manifest_path}")


def cmd_status(args):
    """Show project status."""
    slug = args.slug
    project_dir = _get_project_dir(slug)

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json") or {}
    settings = load_artifact(project_dir, "settings.json") or {}
    status = get_project_status(project_dir)

    print(f"Project: {slug}")
    print(f"Source:  {script.get('source', 'unknown')}")
    print(f"Provider: {settings.get('provider', 'auto')}")

    elements = script.get("elements", [])
    for act in ACTS:
        in_act = [e for e in elements if e["act"] == act]
        if in_act:
            dialogue = sum(1 for e in in_act if e["kind"] == "dialogue")
            print(f"Act {act:<6} {len(in_act)} lines ({dialogue} dialogue)")

    voices = cast_data.get("voices", {})
    shown = settings.get("provider", "auto")
    if shown not in voices:
        shown = "edge"
    if voices.get(shown):
        print(f"Cast ({shown}):")
        for name, info in voices[shown].items():
            print(f"  {name:<15} → {info['voice']} ({info['source']})")

    print("Steps:")
    for step in ("parse", "voices", "tts", "assembly", "manifest"):
        info = status.get(step, {"state": "pending"})
        state = info["state"]
        marker = "[done]" if state == "done" else "[part]" if state == "partial" else "[----]"
        details = ""
        if state == "done" and "elements" in info:
            details = f" ({info['elements']} lines)"
        elif state == "done" and "files" in info:
            details = f" ({info['files']} files)"
        elif state == "partial":
            details = f" ({info['files']}/{info.get('expected', '?')} files)"
        print(f"  {marker} {step:<12}{details}")


def _on_off(key: str, values: list[str]) -> bool:
    if not values or values[0] not in ("on", "off"):
        _fail(f"Error: 'set {key}' requires 'on' or 'off'")
    return values[0] == "on"


def cmd_set(args):
    """Update project settings."""
    slug = args.slug
    project_dir = _get_project_dir(slug)
    key = args.key
    values = args.values

    valid_keys = {"voice", "narrator-voice", "provider", "scene-headings", "transitions"}
    if key not in valid_keys:
        _fail(f"Error: Invalid setting key: {key}", f"Valid keys: {', '.join(sorted(valid_keys))}")

    script = load_artifact(project_dir, "script.json")
    cast_data = load_artifact(project_dir, "cast.json") or {"narrator": {}, "cast": {}}
    settings = load_artifact(project_dir, "settings.json") or {}

    if key == "voice":
        if len(values) < 2:
            _fail("Error: 'set voice' requires <character> and <voice>")
        character, voice = values[0].upper(), values[1]
        cast = cast_data.setdefault("cast", {})
        match = next((name for name in cast if name.upper() == character), None)
        if match is None:
            print(f"Warning: Character '{character}' not in cast. Adding.", file=sys.stderr)
            match = character
            cast[match] = {}
        cast[match]["voice"] = voice
        _recast(project_dir, script, cast_data)
        print(f"Updated: {match} → {voice}")

    elif key == "narrator-voice":
        if not values:
            _fail("Error: 'set narrator-voice' requires <voice>")
        cast_data.setdefault("narrator", {})["voice"] = values[0]
        _recast(project_dir, script, cast_data)
        print(f"Updated: narrator → {values[0]}")

    elif key == "provider":
        if not values or values[0] not in PROVIDER_CHOICES:
            _fail(f"Error: 'set provider' requires one of: {', '.join(PROVIDER_CHOICES)}")
        settings["provider"] = values[0]
        write_artifact(project_dir, "settings.json", settings)
        print(f"Updated: provider → {values[0]}")

    else:
        enabled = _on_off(key, values)
        flag = "skip_scene_headings" if key == "scene-headings" else "skip_transitions"
        settings[flag] = not enabled
        write_artifact(project_dir, "settings.json", settings)
        script["elements"] = _element_dicts(_tokenize(script.get("text", ""), settings))
        write_artifact(project_dir, "script.json", script)
        print(f"Updated: {key} → {values[0]} ({len(script['elements'])} lines)")

    deleted = invalidate_downstream(project_dir, key)
    if deleted:
        print(f"Invalidated: {', '.join(deleted)} (will regenerate on next run)")


def cmd_list(args):
    """List all projects."""
    projects = list_projects(output_base=OUTPUT_DIR)
    if not projects:
        print("No projects found.")
        return
    print("Projects:")
    for name in projects:
        status = get_project_status(os.path.join(OUTPUT_DIR, name))
        marker = "[done]" if status["manifest"]["state"] == "done" else "[----]"
        print(f"  {marker} {name}")


def cmd_voices(args):
    """List available voices per provider."""
    filter_str = args.filter.lower() if args.filter else None
    names = [args.provider] if args.provider else list(PROVIDER_VOICES)
    found = False
    for name in names:
        voices = PROVIDER_VOICES[name].known_voices()
        if filter_str:
            voices = [v for v in voices if filter_str in v.lower()]
        if not voices:
            continue
        found = True
        print(f"{name}:")
        for voice in voices:
            suffix = f"  ({ELEVENLABS_VOICES[voice]})" if voice in ELEVENLABS_VOICES and name == "elevenlabs" else ""
            print(f"  {voice}{suffix}")
    if not found:
        print("No matching voices found.")


def cmd_usage(args):
    """Show this month's metered usage."""
    stats = UsageLedger(os.path.join(OUTPUT_DIR, USAGE_FILE)).current_stats()
    print(f"Period:    {stats['period']}")
    print(f"Used:      {stats['used']}/{stats['limit']} chars ({stats['percent_used']}%)")
    print(f"Remaining: {stats['remaining']} chars (~{stats['estimated_minutes_remaining']} min of audio)")
    if stats["will_fallback"]:
        print("Quota exhausted: lines go to the fallback providers until next month.")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="audio-movie",
        description="Audio Movie Producer: turn a three-act screenplay into a voiced audio movie",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    new_parser = subparsers.add_parser("new", help="Create a new project from a screenplay")
    new_parser.add_argument("file", help="Path to the screenplay text file")
    new_parser.add_argument("--plot", help="Plot file with a CHARACTERS roster")
    new_parser.add_argument("--skip-scene-headings", action="store_true", help="Do not narrate sluglines")
    new_parser.add_argument("--skip-transitions", action="store_true", help="Do not narrate transitions")
    new_parser.set_defaults(func=cmd_new)

    run_parser = subparsers.add_parser("run", help="Generate audio for a project")
    run_parser.add_argument("slug", help="Project slug (from filename)")
    run_parser.add_argument("--provider", choices=PROVIDER_CHOICES, help="Use a single provider")
    run_parser.add_argument("--force", action="store_true", help="Delete generated audio and re-run")
    run_parser.add_argument("--no-assemble", action="store_true", help="Skip act track assembly")
    run_parser.set_defaults(func=cmd_run)

    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("slug", help="Project slug")
    status_parser.set_defaults(func=cmd_status)

    set_parser = subparsers.add_parser("set", help="Update project settings")
    set_parser.add_argument("slug", help="Project slug")
    set_parser.add_argument("key", help="Setting key")
    set_parser.add_argument("values", nargs="*", help="Setting value(s)")
    set_parser.set_defaults(func=cmd_set)

    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.set_defaults(func=cmd_list)

    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--provider", choices=list(PROVIDER_VOICES), help="Only this provider")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    usage_parser = subparsers.add_parser("usage", help="Show metered usage this month")
    usage_parser.set_defaults(func=cmd_usage)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if not args.command:
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
