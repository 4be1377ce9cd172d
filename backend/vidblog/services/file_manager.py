"""
File management service for vidblog.

Handles the on-disk layout of pipeline artifacts with path traversal
protection:
- {video_dir}/ - downloaded source videos and their .meta sidecars
- {data_dir}/{transcript_id}.json - saved transcripts
- {output_dir}/{video_name}/ - screenshots, markdown, blog and social output
- {temp_dir}/{workflow_id}/step-*/ - scratch space of one step run, removed after it
"""
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from vidblog.config import StorageConfig, settings

logger = logging.getLogger(__name__)


def _within(path: Path, base: Path) -> bool:
    return path.resolve().is_relative_to(base)


class FileManager:
    """Resolve and manage artifact locations for workflows."""

    def __init__(self, storage: Optional[StorageConfig] = None):
        """
        Initialize FileManager and create the storage directories.

        Args:
            storage: Storage settings. If None, uses settings.storage
        """
        storage = storage or settings.storage
        self.data_dir = Path(storage.data_dir).resolve()
        self.video_dir = Path(storage.video_dir).resolve()
        self.output_dir = Path(storage.output_dir).resolve()
        self.temp_dir = Path(storage.temp_dir).resolve()
        self.public_prefix = storage.public_output_prefix.rstrip("/")

        for directory in (self.data_dir, self.video_dir, self.output_dir, self.temp_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _child(self, base: Path, name: str) -> Path:
        path = (base / name).resolve()
        if not path.is_relative_to(base) or path == base:
            raise ValueError(f"Invalid path component: {name!r}")
        return path

    def transcript_path(self, transcript_id: str) -> Path:
        return self._child(self.data_dir, f"{transcript_id}.json")

    def video_file(self, filename: str) -> Path:
        return self._child(self.video_dir, filename)

    def output_dir_for(self, video_name: str) -> Path:
        """
        Get or create the output directory of a video.

        Raises:
            ValueError: If video_name resolves outside output_dir
        """
        path = self._child(self.output_dir, video_name)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def to_public_path(self, path: Path | str) -> str:
        """Map a file under output_dir to its public URL path."""
        relative = Path(path).resolve().relative_to(self.output_dir)
        return f"{self.public_prefix}/{relative.as_posix()}"

    @contextmanager
    def scratch_dir(self, workflow_id: str) -> Iterator[Path]:
        """Per-invocation scratch directory, removed on exit even on failure."""
        parent = self._child(self.temp_dir, workflow_id)
        parent.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix="step-", dir=parent))
        try:
            yield path
        finally:
            shutil.rmtree(path, ignore_errors=True)
            logger.debug(f"Removed scratch directory {path}")

    def remove_video(self, video_path: str) -> bool:
        """
        Delete a downloaded video and its .meta sidecar.

        Only files inside video_dir are touched; local source files that were
        used in place are never removed.

        Returns:
            True if the video file was deleted
        """
        path = Path(video_path)
        if not _within(path, self.video_dir):
            logger.info(f"Not removing {video_path}: outside video storage")
            return False

        removed = False
        if path.is_file():
            path.unlink()
            removed = True
        meta = path.with_suffix(".meta")
        if meta.is_file():
            meta.unlink()
        return removed
