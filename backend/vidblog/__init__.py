"""vidblog - turn a video into a transcript, screenshots, a blog post and social posts.

This module provides startup validation functions to ensure required
external tools are available before steps are executed.
Call validate_dependencies() during application startup.
"""

import logging
import subprocess

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def validate_dependencies() -> None:
    """Validate required system dependencies are available.

    ffmpeg is needed by the transcription and screenshot steps. A missing
    yt-dlp only affects YouTube sources, so it is reported as a warning.

    Raises:
        RuntimeError: If ffmpeg is not found or not functional.
    """
    try:
        result = subprocess.run(
            ['ffmpeg', '-version'],
            capture_output=True,
            check=True,
            text=True
        )
        version_line = result.stdout.split('\n')[0]
        logger.info(f"ffmpeg validated: {version_line}")
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RuntimeError(
            "ffmpeg not found on PATH. Install ffmpeg to extract audio and capture screenshots.\n"
            "Ubuntu/Debian: sudo apt-get install ffmpeg\n"
            "macOS: brew install ffmpeg\n"
            "Windows: https://ffmpeg.org/download.html"
        ) from e

    try:
        subprocess.run(['yt-dlp', '--version'], capture_output=True, check=True, text=True)
    except (subprocess.CalledProcessError, FileNotFoundError):
        logger.warning("yt-dlp not found on PATH; YouTube sources will fail to download")
