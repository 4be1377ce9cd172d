"""YouTube URL handling and downloads through the yt-dlp CLI.

Downloaded videos are stored with a ``.meta`` JSON sidecar holding the
YouTube video id, so a later workflow over the same video reuses the file.
"""

import asyncio
import json
import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

YOUTUBE_PATTERNS = [
    re.compile(r"^https?://(?:www\.)?youtube\.com/watch\?v=[\w-]+", re.IGNORECASE),
    re.compile(r"^https?://(?:www\.)?youtube\.com/shorts/[\w-]+", re.IGNORECASE),
    re.compile(r"^https?://youtu\.be/[\w-]+", re.IGNORECASE),
    re.compile(r"^https?://(?:www\.)?youtube\.com/embed/[\w-]+", re.IGNORECASE),
    re.compile(r"^https?://(?:www\.)?youtube\.com/v/[\w-]+", re.IGNORECASE),
]

YT_DLP_FORMAT = "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best"
TITLE_TIMEOUT_SECONDS = 30


@dataclass
class DownloadResult:
    video_path: Path
    title: str
    video_id: str
    already_existed: bool = False


def is_youtube_url(url: str) -> bool:
    trimmed = url.strip()
    return any(pattern.match(trimmed) for pattern in YOUTUBE_PATTERNS)


def extract_video_id(url: str) -> Optional[str]:
    """Pull the video id out of any supported YouTube URL form."""
    trimmed = url.strip()
    for pattern in (
        r"youtu\.be/([\w-]+)",
        r"[?&]v=([\w-]+)",
        r"/shorts/([\w-]+)",
        r"/(?:embed|v)/([\w-]+)",
    ):
        match = re.search(pattern, trimmed)
        if match:
            return match.group(1)
    return None


def sanitize_filename(name: str) -> str:
    """Make a video title safe to use as a filename."""
    name = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"_+", "_", name)
    name = name.strip("_")
    return name[:200]


def read_meta(meta_path: Path) -> Optional[dict]:
    try:
        return json.loads(meta_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning(f"Ignoring unreadable metadata file {meta_path}")
        return None


def find_existing_video(video_id: str, video_dir: Path) -> Optional[Path]:
    """Find a previously downloaded video by its YouTube id."""
    if not video_dir.exists():
        return None

    for candidate in sorted(video_dir.glob("*.mp4")):
        meta_path = candidate.with_suffix(".meta")
        if not meta_path.exists():
            continue
        meta = read_meta(meta_path)
        if meta and meta.get("videoId") == video_id:
            return candidate
    return None


def _get_title(url: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["yt-dlp", "--get-title", "--no-warnings", url],
            capture_output=True,
            text=True,
            timeout=TITLE_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning(f"Could not fetch title for {url}: {e}")
        return None

    title = result.stdout.strip()
    return title if result.returncode == 0 and title else None


def _run_yt_dlp(url: str, output_path: Path) -> None:
    cmd = [
        "yt-dlp",
        "-f", YT_DLP_FORMAT,
        "--merge-output-format", "mp4",
        "-o", str(output_path),
        "--no-playlist",
        "--no-warnings",
        url,
    ]
    try:
        subprocess.run(cmd, capture_output=True, check=True, text=True)
    except FileNotFoundError as e:
        raise RuntimeError("Failed to spawn yt-dlp. Make sure yt-dlp is installed.") from e
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"yt-dlp exited with code {e.returncode}: {(e.stderr or '').strip()}") from e

    if not output_path.exists():
        raise RuntimeError(f"Download completed but file not found: {output_path}")


async def download_youtube_video(url: str, video_dir: Path) -> DownloadResult:
    """Download a YouTube video as mp4, reusing an earlier download of the same id.

    Raises:
        ValueError: If no video id can be extracted from the URL
        RuntimeError: If yt-dlp fails
    """
    video_id = extract_video_id(url)
    if not video_id:
        raise ValueError(f"Could not extract video ID from URL: {url}")

    video_dir.mkdir(parents=True, exist_ok=True)

    existing = find_existing_video(video_id, video_dir)
    if existing is not None:
        meta = read_meta(existing.with_suffix(".meta")) or {}
        logger.info(f"Reusing downloaded video {existing} for {video_id}")
        return DownloadResult(
            video_path=existing,
            title=meta.get("title") or video_id,
            video_id=video_id,
            already_existed=True,
        )

    title = await asyncio.to_thread(_get_title, url)
    base_name = sanitize_filename(title or video_id) or video_id

    output_path = video_dir / f"{base_name}.mp4"
    counter = 1
    while output_path.exists():
        output_path = video_dir / f"{base_name}-{counter}.mp4"
        counter += 1

    logger.info(f"Downloading {url} to {output_path}")
    await asyncio.to_thread(_run_yt_dlp, url, output_path)

    meta = {
        "videoId": video_id,
        "title": title or video_id,
        "url": url,
        "downloadedAt": datetime.now(timezone.utc).isoformat(),
    }
    output_path.with_suffix(".meta").write_text(json.dumps(meta, indent=2), encoding="utf-8")

    return DownloadResult(video_path=output_path, title=title or video_id, video_id=video_id)
