"""Artifact layout and path safety."""

import pytest

from vidblog.services.file_manager import FileManager


def test_directories_are_created(storage):
    files = FileManager(storage)
    for path in (files.data_dir, files.video_dir, files.output_dir, files.temp_dir):
        assert path.is_dir()


def test_output_dir_and_public_path(file_manager):
    output_dir = file_manager.output_dir_for("my-video")
    target = output_dir / "screenshots" / "frame_00m05s.png"

    assert output_dir.is_dir()
    assert file_manager.to_public_path(target) == "/output/my-video/screenshots/frame_00m05s.png"


@pytest.mark.parametrize("name", ["../escape", "..", ""])
def test_output_dir_rejects_traversal(file_manager, name):
    with pytest.raises(ValueError):
        file_manager.output_dir_for(name)


def test_transcript_path(file_manager):
    assert file_manager.transcript_path("abc") == file_manager.data_dir / "abc.json"


def test_scratch_dir_removed_after_failure(file_manager):
    with pytest.raises(RuntimeError):
        with file_manager.scratch_dir("wf-1") as scratch:
            (scratch / "audio.mp3").write_bytes(b"x")
            raise RuntimeError("transcription failed")

    assert not scratch.exists()


def test_nested_scratch_dirs_are_isolated(file_manager):
    with file_manager.scratch_dir("wf-1") as first:
        (first / "audio.mp3").write_bytes(b"first")
        with file_manager.scratch_dir("wf-1") as second:
            assert second != first
            (second / "audio.mp3").write_bytes(b"second")

        assert not second.exists()
        assert (first / "audio.mp3").read_bytes() == b"first"

    assert not first.exists()


def test_remove_video_only_inside_video_dir(file_manager, tmp_path):
    managed = file_manager.video_dir / "talk.mp4"
    managed.write_bytes(b"v")
    managed.with_suffix(".meta").write_text("{}")
    local = tmp_path / "mine.mp4"
    local.write_bytes(b"v")

    assert file_manager.remove_video(str(managed)) is True
    assert not managed.exists()
    assert not managed.with_suffix(".meta").exists()

    assert file_manager.remove_video(str(local)) is False
    assert local.exists()
