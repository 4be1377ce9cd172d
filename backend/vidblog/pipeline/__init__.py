"""Step handlers binding each pipeline step to its collaborators."""

from vidblog.pipeline.acquire import AcquireVideoHandler
from vidblog.pipeline.base import PipelineContext, StepHandler
from vidblog.pipeline.blog import BlogHandler
from vidblog.pipeline.enhance import EnhanceHandler
from vidblog.pipeline.screenshots import ScreenshotsHandler
from vidblog.pipeline.social import SocialHandler
from vidblog.pipeline.transcribe import TranscribeHandler
from vidblog.pipeline.transcript_export import TranscriptExportHandler

HANDLER_CLASSES: tuple[type[StepHandler], ...] = (
    AcquireVideoHandler,
    TranscribeHandler,
    EnhanceHandler,
    ScreenshotsHandler,
    TranscriptExportHandler,
    BlogHandler,
    SocialHandler,
)


def build_default_handlers(context: PipelineContext) -> dict[int, StepHandler]:
    """Production handler table keyed by step number."""
    return {cls.step: cls(context) for cls in HANDLER_CLASSES}


__all__ = ["PipelineContext", "StepHandler", "build_default_handlers"]
