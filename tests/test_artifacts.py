"""Tests for artifacts module."""

import os

from audio_movie.artifacts import (
    audio_files,
    clear_generated_audio,
    get_project_status,
    init_output_dir,
    invalidate_downstream,
    list_projects,
    load_artifact,
    slug_from_path,
    write_artifact,
)


# --- Directory and file management ---

def test_slug_from_path():
    assert slug_from_path("The Last Train.txt") == "the_last_train"
    assert slug_from_path("/path/to/night-shift.md") == "night_shift"


def test_init_output_dir(tmp_path):
    """Creates voice/ and acts/ under output/<slug>/."""
    project_dir = init_output_dir(str(tmp_path / "My Script.txt"), output_base=str(tmp_path / "output"))
    assert project_dir == os.path.join(str(tmp_path / "output"), "my_script")
    assert os.path.isdir(os.path.join(project_dir, "voice"))
    assert os.path.isdir(os.path.join(project_dir, "acts"))


def test_init_output_dir_existing(tmp_path):
    """Re-running on existing dir doesn't crash or delete files."""
    script = str(tmp_path / "script.txt")
    project_dir = init_output_dir(script, output_base=str(tmp_path / "output"))
    marker = os.path.join(project_dir, "voice", "keep.txt")
    with open(marker, "w") as f:
        f.write("marker")
    assert init_output_dir(script, output_base=str(tmp_path / "output")) == project_dir
    assert os.path.exists(marker)


def test_write_and_load_artifact(tmp_path):
    write_artifact(str(tmp_path), "settings.json", {"provider": "edge"})
    assert load_artifact(str(tmp_path), "settings.json") == {"provider": "edge"}
    assert load_artifact(str(tmp_path), "missing.json") is None


def _project_with_audio(tmp_path):
    project_dir = init_output_dir(str(tmp_path / "script.txt"), output_base=str(tmp_path / "output"))
    act_dir = os.path.join(project_dir, "voice", "voice-act-one")
    os.makedirs(act_dir)
    for name in ("000_NARRATOR.mp3", "001_SARAH.mp3"):
        with open(os.path.join(act_dir, name), "wb") as f:
            f.write(b"x")
    with open(os.path.join(project_dir, "acts", "act-one.mp3"), "wb") as f:
        f.write(b"x")
    write_artifact(project_dir, "manifest.json", {"entries": []})
    return project_dir


def test_invalidate_voice_change(tmp_path):
    """Voice change empties voice/ and acts/ and removes the manifest."""
    project_dir = _project_with_audio(tmp_path)
    deleted = invalidate_downstream(project_dir, "voice")
    assert deleted == ["voice", "acts", "manifest.json"]
    assert os.path.isdir(os.path.join(project_dir, "voice"))
    assert audio_files(os.path.join(project_dir, "voice")) == []
    assert not os.path.exists(os.path.join(project_dir, "manifest.json"))


def test_invalidate_unknown_key(tmp_path):
    project_dir = _project_with_audio(tmp_path)
    assert invalidate_downstream(project_dir, "volume") == []


def test_clear_generated_audio_keeps_manifest(tmp_path):
    project_dir = _project_with_audio(tmp_path)
    assert clear_generated_audio(project_dir) == ["voice", "acts"]
    assert os.path.exists(os.path.join(project_dir, "manifest.json"))


def test_audio_files_walks_act_dirs(tmp_path):
    project_dir = _project_with_audio(tmp_path)
    assert audio_files(os.path.join(project_dir, "voice")) == [
        os.path.join("voice-act-one", "000_NARRATOR.mp3"),
        os.path.join("voice-act-one", "001_SARAH.mp3"),
    ]


# --- Status ---

def test_status_new_project(tmp_path):
    project_dir = init_output_dir(str(tmp_path / "script.txt"), output_base=str(tmp_path / "output"))
    status = get_project_status(project_dir)
    assert status["parse"]["state"] == "pending"
    assert status["tts"]["state"] == "pending"
    assert status["manifest"]["state"] == "pending"


def test_status_partial_and_done(tmp_path):
    project_dir = _project_with_audio(tmp_path)
    write_artifact(project_dir, "script.json", {"elements": [{}, {}, {}]})
    write_artifact(project_dir, "cast.json", {"narrator": {}, "cast": {"SARAH": {}}})
    status = get_project_status(project_dir)
    assert status["parse"] == {"state": "done", "elements": 3}
    assert status["voices"] == {"state": "done", "voices": 2}
    assert status["tts"] == {"state": "partial", "files": 2, "expected": 3}
    assert status["assembly"]["state"] == "done"
    assert status["manifest"]["state"] == "done"

    write_artifact(project_dir, "script.json", {"elements": [{}, {}]})
    assert get_project_status(project_dir)["tts"]["state"] == "done"


def test_list_projects(tmp_path):
    output = tmp_path / "output"
    for slug in ("b_story", "a_story"):
        (output / slug).mkdir(parents=True)
        (output / slug / "script.json").write_text("{}")
    (output / "not_a_project").mkdir()
    assert list_projects(str(output)) == ["a_story", "b_story"]
    assert list_projects(str(tmp_path / "nowhere")) == []
