"""YouTube URL parsing, filename sanitizing and download reuse."""

import json

import pytest

from vidblog.services.youtube import (
    download_youtube_video,
    extract_video_id,
    find_existing_video,
    is_youtube_url,
    sanitize_filename,
)


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "http://youtube.com/v/dQw4w9WgXcQ",
        "  https://youtu.be/dQw4w9WgXcQ  ",
    ],
)
def test_youtube_forms(url):
    assert is_youtube_url(url)
    assert extract_video_id(url) == "dQw4w9WgXcQ"


@pytest.mark.parametrize(
    "url",
    ["https://vimeo.com/12345", "https://example.com/watch?v=abc", "/videos/local.mp4", "youtube.com/watch?v=abc"],
)
def test_non_youtube(url):
    assert not is_youtube_url(url)


def test_extract_video_id_none():
    assert extract_video_id("https://example.com/video.mp4") is None


def test_sanitize_filename():
    assert sanitize_filename('My Video: "Part 1"  /  Intro?') == "My_Video_Part_1_Intro"
    assert len(sanitize_filename("x" * 300)) == 200
    assert sanitize_filename("   ") == ""


def test_find_existing_video_matches_meta(tmp_path):
    (tmp_path / "First.mp4").write_bytes(b"v")
    (tmp_path / "First.meta").write_text(json.dumps({"videoId": "aaa"}))
    (tmp_path / "Second.mp4").write_bytes(b"v")
    (tmp_path / "Second.meta").write_text(json.dumps({"videoId": "bbb"}))
    (tmp_path / "Orphan.mp4").write_bytes(b"v")

    assert find_existing_video("bbb", tmp_path) == tmp_path / "Second.mp4"
    assert find_existing_video("zzz", tmp_path) is None
    assert find_existing_video("aaa", tmp_path / "missing") is None


def test_find_existing_video_ignores_broken_meta(tmp_path):
    (tmp_path / "Broken.mp4").write_bytes(b"v")
    (tmp_path / "Broken.meta").write_text("{not json")

    assert find_existing_video("aaa", tmp_path) is None


@pytest.mark.asyncio
async def test_download_reuses_existing_file(tmp_path):
    (tmp_path / "Talk.mp4").write_bytes(b"video")
    (tmp_path / "Talk.meta").write_text(json.dumps({"videoId": "dQw4w9WgXcQ", "title": "A Talk"}))

    result = await download_youtube_video("https://youtu.be/dQw4w9WgXcQ", tmp_path)

    assert result.already_existed is True
    assert result.video_path == tmp_path / "Talk.mp4"
    assert result.title == "A Talk"


@pytest.mark.asyncio
async def test_download_rejects_url_without_id(tmp_path):
    with pytest.raises(ValueError):
        await download_youtube_video("https://www.youtube.com/", tmp_path)
