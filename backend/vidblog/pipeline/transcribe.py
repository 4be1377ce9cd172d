"""Step 2: extract the audio track and transcribe it."""

import logging
from pathlib import Path

from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import Step2Output, Workflow
from vidblog.services.ffmpeg import extract_audio
from vidblog.services.transcription import TranscriptionOptions, save_transcript, transcribe_audio

logger = logging.getLogger(__name__)


class TranscribeHandler(StepHandler):
    step = 2

    def options_for(self, workflow: Workflow) -> TranscriptionOptions:
        """Workflow config overrides, falling back to application settings."""
        defaults = self.context.settings.transcription
        config = workflow.config
        return TranscriptionOptions(
            provider=config.provider or defaults.provider,
            model=config.model or defaults.model,
            language=config.language or defaults.language,
        )

    async def execute(self, workflow: Workflow) -> Step2Output:
        if not workflow.video_path:
            raise ValueError("No video path available. Run step 1 first.")

        files = self.context.file_manager
        options = self.options_for(workflow)

        with files.scratch_dir(workflow.id) as scratch:
            audio_path = await extract_audio(Path(workflow.video_path), scratch)
            transcript = await transcribe_audio(
                audio_path, workflow.video_path, options, self.context.settings.transcription
            )

        save_transcript(transcript, files.transcript_path(transcript.id))
        logger.info(f"Saved transcript {transcript.id} ({len(transcript.segments)} segments)")

        return Step2Output(
            transcript_id=transcript.id,
            segments=transcript.segments,
            audio_path=str(audio_path),
            provider=options.provider,
        )
