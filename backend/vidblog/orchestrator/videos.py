"""Library of downloaded source videos and the workflows that use them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from vidblog.orchestrator.service import WorkflowService
from vidblog.schemas.workflow import Workflow
from vidblog.services.file_manager import FileManager
from vidblog.services.youtube import read_meta

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".webm")
_PAGE_SIZE = 100


class VideoNotFoundError(LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Video not found: {name}")


@dataclass
class VideoInfo:
    path: Path
    name: str
    size: int
    downloaded_at: datetime
    video_id: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = None
    workflows: list[Workflow] = field(default_factory=list)


class VideoLibrary:
    """Browse and delete the files in the video storage directory."""

    def __init__(self, workflows: WorkflowService, file_manager: FileManager) -> None:
        self.workflows = workflows
        self.file_manager = file_manager

    async def _workflows_by_path(self) -> dict[str, list[Workflow]]:
        by_path: dict[str, list[Workflow]] = {}
        offset = 0
        while True:
            page, total = await self.workflows.list(limit=_PAGE_SIZE, offset=offset)
            for workflow in page:
                if workflow.video_path:
                    by_path.setdefault(workflow.video_path, []).append(workflow)
            offset += len(page)
            if not page or offset >= total:
                return by_path

    def _describe(self, path: Path, workflows: list[Workflow]) -> VideoInfo:
        stat = path.stat()
        info = VideoInfo(
            path=path,
            name=path.stem,
            size=stat.st_size,
            downloaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            workflows=workflows,
        )

        meta_path = path.with_suffix(".meta")
        meta = read_meta(meta_path) if meta_path.is_file() else None
        if meta:
            info.video_id = meta.get("videoId")
            info.title = meta.get("title")
            info.source_url = meta.get("url")
            if meta.get("downloadedAt"):
                try:
                    downloaded_at = datetime.fromisoformat(meta["downloadedAt"])
                    if downloaded_at.tzinfo is None:
                        downloaded_at = downloaded_at.replace(tzinfo=timezone.utc)
                    info.downloaded_at = downloaded_at
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring bad downloadedAt in {meta_path}")
        return info

    def _find(self, name: str) -> Path:
        for ext in VIDEO_EXTENSIONS:
            try:
                candidate = self.file_manager.video_file(f"{name}{ext}")
            except ValueError as e:
                raise VideoNotFoundError(name) from e
            if candidate.is_file():
                return candidate
        raise VideoNotFoundError(name)

    async def list(self) -> list[VideoInfo]:
        """All stored videos, newest download first."""
        by_path = await self._workflows_by_path()
        videos = [
            self._describe(path, by_path.get(str(path), []))
            for path in sorted(self.file_manager.video_dir.iterdir())
            if path.is_file() and path.suffix.lower() in VIDEO_EXTENSIONS
        ]
        videos.sort(key=lambda v: v.downloaded_at, reverse=True)
        return videos

    async def get(self, name: str) -> VideoInfo:
        """
        Raises:
            VideoNotFoundError: If no video of that name is stored
        """
        path = self._find(name)
        by_path = await self._workflows_by_path()
        return self._describe(path, by_path.get(str(path), []))

    async def delete(self, name: str, delete_workflows: bool = False) -> None:
        """Remove a stored video and its sidecar, optionally with its workflows.

        Raises:
            VideoNotFoundError: If no video of that name is stored
        """
        path = self._find(name)
        if delete_workflows:
            by_path = await self._workflows_by_path()
            for workflow in by_path.get(str(path), []):
                await self.workflows.delete(workflow.id)
        self.file_manager.remove_video(str(path))
        logger.info(f"Deleted video {path.name}")
