"""Step 1: resolve or download the source video.

Sources:
- local path: used in place, must exist
- YouTube URL: downloaded with yt-dlp, reused when already downloaded
- other http(s) URL: streamed into the video storage directory
"""

import asyncio
import logging
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx

from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import Step1Output, Workflow
from vidblog.services.ffmpeg import get_video_duration
from vidblog.services.youtube import download_youtube_video, is_youtube_url

logger = logging.getLogger(__name__)

_REMOTE = re.compile(r"^https?://", re.IGNORECASE)


def is_remote_source(source: str) -> bool:
    return bool(_REMOTE.match(source.strip()))


def direct_download_name(url: str, workflow_id: str) -> tuple[str, str]:
    """Derive ``(base name, extension)`` for a direct video URL.

    The base name is the URL path basename with runs of characters outside
    ``[a-z0-9-_]`` replaced by '-' and lowercased; the extension defaults
    to .mp4.
    """
    path = PurePosixPath(urlparse(url).path)
    ext = path.suffix or ".mp4"
    stem = path.name[: -len(path.suffix)] if path.suffix else path.name
    base = stem or f"video-{workflow_id}"
    sanitized = re.sub(r"[^a-z0-9\-_]+", "-", base, flags=re.IGNORECASE).lower()
    return sanitized, ext


class AcquireVideoHandler(StepHandler):
    step = 1

    async def execute(self, workflow: Workflow) -> Step1Output:
        source = workflow.video_source.strip()

        if not is_remote_source(source):
            return await self._local(source)
        if is_youtube_url(source):
            return await self._youtube(source)
        return await self._direct(source, workflow.id)

    def apply(self, workflow: Workflow, output: Step1Output) -> None:
        workflow.video_path = output.video_path
        workflow.video_name = output.video_name
        if output.video_id:
            workflow.video_id = output.video_id

    async def _local(self, source: str) -> Step1Output:
        path = Path(source).expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(f"Video file not found: {path}")

        return Step1Output(
            video_path=str(path),
            video_name=path.stem,
            duration=await get_video_duration(path),
            file_size=path.stat().st_size,
            already_existed=True,
        )

    async def _youtube(self, url: str) -> Step1Output:
        result = await download_youtube_video(url, self.context.file_manager.video_dir)
        path = result.video_path
        return Step1Output(
            video_path=str(path),
            video_name=path.stem,
            duration=await get_video_duration(path),
            file_size=path.stat().st_size,
            video_id=result.video_id,
            already_existed=result.already_existed,
        )

    async def _direct(self, url: str, workflow_id: str) -> Step1Output:
        name, ext = direct_download_name(url, workflow_id)
        destination = self.context.file_manager.video_dir / f"{name}{ext}"
        partial = destination.with_name(destination.name + ".part")

        logger.info(f"Downloading {url} to {destination}")
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=None) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code >= 400:
                        raise RuntimeError(f"Failed to download video ({response.status_code})")
                    with open(partial, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            await asyncio.to_thread(f.write, chunk)
        except (Exception, asyncio.CancelledError):
            partial.unlink(missing_ok=True)
            raise
        partial.replace(destination)

        return Step1Output(
            video_path=str(destination),
            video_name=name,
            duration=await get_video_duration(destination),
            file_size=destination.stat().st_size,
            already_existed=False,
        )
