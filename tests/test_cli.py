"""Tests for CLI module."""

import json
import os
from unittest.mock import patch

import pytest

from audio_movie.cli import main


# --- Helpers ---

def _run(*argv):
    with patch("sys.argv", ["audio-movie", *argv]):
        main()


@pytest.fixture
def workspace(tmp_path, monkeypatch, sample_script, sample_plot, make_provider):
    """Output dir under tmp_path, a script + plot, and a fake edge provider."""
    output = tmp_path / "output"
    monkeypatch.setattr("audio_movie.cli.OUTPUT_DIR", str(output))
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    monkeypatch.delenv("AUDIO_MOVIE_TTS_PROVIDER", raising=False)
    edge = make_provider("edge")
    monkeypatch.setattr("audio_movie.cli.default_providers", lambda api_key=None: [edge])

    script = tmp_path / "last_order.txt"
    script.write_text(sample_script)
    plot = tmp_path / "plot.txt"
    plot.write_text(sample_plot)
    return {"output": output, "script": str(script), "plot": str(plot), "edge": edge,
            "project": output / "last_order"}


def _load(path):
    with open(path) as f:
        return json.load(f)


# --- new ---

def test_new_creates_project(workspace, capsys):
    """new writes script, cast and settings artifacts."""
    _run("new", workspace["script"], "--plot", workspace["plot"])
    project = workspace["project"]
    script = _load(project / "script.json")
    assert len(script["elements"]) == 10
    assert [r["name"] for r in script["roster"]][:2] == ["SARAH MITCHELL", "DR. LIAM CHEN"]

    cast = _load(project / "cast.json")
    assert cast["cast"]["SARAH"]["gender"] == "female"
    assert cast["voices"]["edge"]["SARAH"]["voice"] == "en-US-AriaNeural"
    assert cast["voices"]["elevenlabs"]["DR. LIAM CHEN"]["voice"] == "nigel"
    assert _load(project / "settings.json")["provider"] == "auto"
    assert (project / "voice").is_dir()
    assert "Created project: last_order" in capsys.readouterr().out


def test_new_applies_cast_sidecar(workspace, tmp_path):
    (tmp_path / "last_order.cast.json").write_text(json.dumps({"cast": {"MARCUS": {"voice": "josh"}}}))
    _run("new", workspace["script"], "--plot", workspace["plot"])
    cast = _load(workspace["project"] / "cast.json")
    assert cast["cast"]["MARCUS"]["voice"] == "josh"
    assert cast["voices"]["elevenlabs"]["MARCUS"]["voice"] == "josh"
    assert cast["voices"]["gtts"]["MARCUS"]["voice"] == "en"


def test_new_skip_flags(workspace):
    _run("new", workspace["script"], "--skip-scene-headings", "--skip-transitions")
    script = _load(workspace["project"] / "script.json")
    assert all(e["kind"] != "scene-heading" for e in script["elements"])


def test_new_already_exists(workspace):
    _run("new", workspace["script"])
    with pytest.raises(SystemExit):
        _run("new", workspace["script"])


def test_new_missing_file(workspace, tmp_path):
    with pytest.raises(SystemExit):
        _run("new", str(tmp_path / "nope.txt"))


def test_new_empty_file(workspace, tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("   \n")
    with pytest.raises(SystemExit):
        _run("new", str(empty))


# --- run ---

def test_run_writes_audio_and_manifest(workspace, capsys):
    _run("new", workspace["script"], "--plot", workspace["plot"])
    _run("run", "last_order", "--no-assemble")

    project = workspace["project"]
    assert (project / "voice" / "voice-act-one" / "000_NARRATOR.mp3").exists()
    assert (project / "voice" / "voice-act-two" / "005_MARCUS.mp3").exists()
    manifest = _load(project / "manifest.json")
    assert manifest["stats"]["successful"] == 10
    assert manifest["settings"]["provider"] == "auto"
    assert [t["act"] for t in manifest["timeline"]] == ["ONE", "TWO", "THREE"]
    assert manifest["usage"]["used"] == 0
    assert len(workspace["edge"].calls) == 10
    assert "Rendered 10/10 lines" in capsys.readouterr().out


def test_run_skips_when_up_to_date(workspace, capsys):
    _run("new", workspace["script"])
    _run("run", "last_order", "--no-assemble")
    _run("run", "last_order", "--no-assemble")
    assert "[skip]" in capsys.readouterr().out
    assert len(workspace["edge"].calls) == 10


def test_run_force_regenerates(workspace):
    _run("new", workspace["script"])
    _run("run", "last_order", "--no-assemble")
    _run("run", "last_order", "--no-assemble", "--force")
    assert len(workspace["edge"].calls) == 20


def test_run_unconfigured_provider(workspace):
    _run("new", workspace["script"])
    with pytest.raises(SystemExit):
        _run("run", "last_order", "--provider", "elevenlabs")


def test_run_provider_from_environment(workspace, monkeypatch):
    _run("new", workspace["script"])
    monkeypatch.setenv("AUDIO_MOVIE_TTS_PROVIDER", "edge")
    _run("run", "last_order", "--no-assemble")
    manifest = _load(workspace["project"] / "manifest.json")
    assert manifest["settings"]["provider"] == "edge"


def test_run_without_ffmpeg_skips_assembly(workspace, monkeypatch, capsys):
    monkeypatch.setattr("audio_movie.cli.shutil.which", lambda name: None)
    _run("new", workspace["script"])
    _run("run", "last_order")
    assert "ffmpeg not found" in capsys.readouterr().err
    assert os.path.exists(workspace["project"] / "manifest.json")


def test_run_unknown_project(workspace):
    with pytest.raises(SystemExit):
        _run("run", "ghost")


# --- set ---

def test_set_voice_invalidates_audio(workspace, capsys):
    _run("new", workspace["script"], "--plot", workspace["plot"])
    _run("run", "last_order", "--no-assemble")
    _run("set", "last_order", "voice", "sarah", "bella")

    project = workspace["project"]
    cast = _load(project / "cast.json")
    assert cast["cast"]["SARAH"]["voice"] == "bella"
    assert cast["voices"]["elevenlabs"]["SARAH"]["voice"] == "bella"
    assert not (project / "manifest.json").exists()
    assert not (project / "voice" / "voice-act-one").exists()
    assert "Invalidated" in capsys.readouterr().out


def test_set_narrator_voice(workspace):
    _run("new", workspace["script"])
    _run("set", "last_order", "narrator-voice", "en-GB-RyanNeural")
    cast = _load(workspace["project"] / "cast.json")
    assert cast["narrator"]["voice"] == "en-GB-RyanNeural"
    assert cast["voices"]["edge"]["NARRATOR"]["voice"] == "en-GB-RyanNeural"


def test_set_scene_headings_off_retokenizes(workspace):
    _run("new", workspace["script"])
    _run("set", "last_order", "scene-headings", "off")
    project = workspace["project"]
    assert _load(project / "settings.json")["skip_scene_headings"] is True
    assert len(_load(project / "script.json")["elements"]) == 8


def test_set_provider(workspace):
    _run("new", workspace["script"])
    _run("set", "last_order", "provider", "gtts")
    assert _load(workspace["project"] / "settings.json")["provider"] == "gtts"


@pytest.mark.parametrize("argv", [
    ("badkey", "x"),
    ("voice", "SARAH"),
    ("provider", "polly"),
    ("transitions", "maybe"),
])
def test_set_invalid(workspace, argv):
    _run("new", workspace["script"])
    with pytest.raises(SystemExit):
        _run("set", "last_order", *argv)


# --- status / list / voices / usage ---

def test_status(workspace, capsys):
    _run("new", workspace["script"], "--plot", workspace["plot"])
    capsys.readouterr()
    _run("status", "last_order")
    out = capsys.readouterr().out
    assert "Project: last_order" in out
    assert "Act ONE" in out
    assert "en-US-AriaNeural" in out
    assert "[done] parse" in out
    assert "[----] tts" in out


def test_list(workspace, capsys):
    _run("list")
    assert "No projects found." in capsys.readouterr().out
    _run("new", workspace["script"])
    _run("list")
    assert "[----] last_order" in capsys.readouterr().out


def test_voices_filter(workspace, capsys):
    _run("voices", "--provider", "edge", "--filter", "sonia")
    out = capsys.readouterr().out
    assert "en-GB-SoniaNeural" in out
    assert "RogerNeural" not in out


def test_voices_no_match(workspace, capsys):
    _run("voices", "--filter", "zzz")
    assert "No matching voices found." in capsys.readouterr().out


def test_usage(workspace, capsys):
    _run("usage")
    out = capsys.readouterr().out
    assert "Used:      0/10000" in out
