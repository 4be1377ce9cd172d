"""ffmpeg / ffprobe wrappers for audio extraction, probing and frame capture.

All commands run through subprocess in a worker thread so the event loop
stays free while ffmpeg works.
"""

import asyncio
import json
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``mm:ss.mmm``."""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    ms = int(round((seconds % 1) * 1000)) % 1000
    return f"{mins:02d}:{secs:02d}.{ms:03d}"


def format_timestamp_for_filename(seconds: float) -> str:
    """Format seconds as ``MMmSSs`` for frame filenames."""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}m{secs:02d}s"


def _run(cmd: list[str]) -> subprocess.CompletedProcess:
    logger.debug(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, capture_output=True, check=True, text=True)


def _stderr_tail(e: subprocess.CalledProcessError) -> str:
    stderr = e.stderr or "No error output"
    return stderr.strip()[-500:]


def _extract_audio(video_path: Path, audio_path: Path) -> None:
    cmd = [
        "ffmpeg", "-y",
        "-i", str(video_path),
        "-vn",
        "-acodec", "libmp3lame",
        "-ar", "16000",
        "-ac", "1",
        str(audio_path),
    ]
    try:
        _run(cmd)
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"FFmpeg error: {_stderr_tail(e)}") from e


async def extract_audio(video_path: Path, output_dir: Path) -> Path:
    """Extract a 16 kHz mono mp3 track from a video.

    Args:
        video_path: Source video
        output_dir: Directory to write ``<video stem>.mp3`` into

    Returns:
        Path to the extracted audio file

    Raises:
        FileNotFoundError: If the video does not exist
        RuntimeError: If ffmpeg fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")

    output_dir.mkdir(parents=True, exist_ok=True)
    audio_path = output_dir / f"{video_path.stem}.mp3"

    logger.info(f"Extracting audio from {video_path}")
    await asyncio.to_thread(_extract_audio, video_path, audio_path)
    return audio_path


def _probe_duration(video_path: Path) -> float:
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        str(video_path),
    ]
    try:
        result = _run(cmd)
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"FFprobe error: {_stderr_tail(e)}") from e

    data = json.loads(result.stdout or "{}")
    return float(data.get("format", {}).get("duration") or 0.0)


async def get_video_duration(video_path: Path) -> float:
    """Duration of a media file in seconds (0.0 when unknown)."""
    return await asyncio.to_thread(_probe_duration, Path(video_path))


def _capture_frame(video_path: Path, timestamp: float, output_path: Path, width: int, height: int) -> None:
    # Letterbox into the target viewport, keeping aspect ratio
    scale = (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black"
    )
    cmd = [
        "ffmpeg", "-y",
        "-ss", f"{timestamp:.3f}",
        "-i", str(video_path),
        "-frames:v", "1",
        "-vf", scale,
        str(output_path),
    ]
    try:
        _run(cmd)
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"Frame capture error at {timestamp:.1f}s: {_stderr_tail(e)}") from e


async def capture_frame(
    video_path: Path,
    timestamp: float,
    output_path: Path,
    width: int = 1920,
    height: int = 1080,
) -> Path:
    """Capture one PNG frame at a timestamp, scaled to width x height."""
    await asyncio.to_thread(_capture_frame, Path(video_path), timestamp, output_path, width, height)
    return output_path
