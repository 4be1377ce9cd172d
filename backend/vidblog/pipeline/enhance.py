"""Step 3: AI-enhance the transcript and pick key frames for screenshots."""

import logging

from vidblog.pipeline.base import StepHandler
from vidblog.pipeline.text_utils import extract_json_object, format_segments
from vidblog.schemas.prompt import PromptType
from vidblog.schemas.workflow import KeyFrame, Section, Step3Output, Workflow
from vidblog.services.prompts import run_prompt
from vidblog.services.transcription import load_transcript

logger = logging.getLogger(__name__)


def parse_enhancement(reply: str) -> tuple[str, list[Section], list[KeyFrame]]:
    """Parse the enhance reply into transcript text, sections and key frames.

    Key frames with a missing or negative timestamp are dropped and the rest
    sorted by time.

    Raises:
        ValueError: If the reply holds no usable JSON object
    """
    try:
        parsed = extract_json_object(reply)
    except ValueError as e:
        logger.error(f"Failed to parse AI response: {reply[:500]}")
        raise ValueError(f"Failed to parse enhancement response: {e}") from e

    sections = [
        Section(
            title=str(s.get("title", "")),
            start_time=float(s.get("startTime", 0)),
            end_time=float(s.get("endTime", 0)),
        )
        for s in parsed.get("sections") or []
        if isinstance(s, dict)
    ]

    key_frames = [
        KeyFrame(
            timestamp=float(kf["timestamp"]),
            reason=str(kf.get("reason", "")),
            segment_id=str(kf.get("segmentId", "")),
        )
        for kf in parsed.get("keyFrames") or []
        if isinstance(kf, dict)
        and isinstance(kf.get("timestamp"), (int, float))
        and not isinstance(kf.get("timestamp"), bool)
        and kf["timestamp"] >= 0
    ]
    key_frames.sort(key=lambda kf: kf.timestamp)

    return str(parsed.get("enhancedTranscript") or ""), sections, key_frames


class EnhanceHandler(StepHandler):
    step = 3

    async def execute(self, workflow: Workflow) -> Step3Output:
        if workflow.step2_output is None:
            raise ValueError("No transcript available. Run step 2 first.")

        path = self.context.file_manager.transcript_path(workflow.step2_output.transcript_id)
        transcript = load_transcript(path)
        if transcript is None:
            raise FileNotFoundError(f"Transcript file not found: {path}")

        prompt = await self.context.prompts.resolve(workflow.enhance_prompt_id, PromptType.enhance)
        max_key_frames = workflow.config.max_key_frames or self.context.settings.capture.max_key_frames

        logger.info("Enhancing transcript with AI...")
        reply = await run_prompt(
            self.context.llm_factory(),
            prompt,
            {
                "video_name": transcript.video_name,
                "transcript": format_segments(transcript.segments),
                "max_key_frames": max_key_frames,
                "segments": [s.model_dump() for s in transcript.segments],
            },
        )

        enhanced, sections, key_frames = parse_enhancement(reply)
        logger.info(f"Enhanced transcript with {len(sections)} sections and {len(key_frames)} key frames")

        return Step3Output(
            enhanced_transcript=enhanced,
            sections=sections,
            key_frames=key_frames,
            prompt_id=prompt.id,
        )
