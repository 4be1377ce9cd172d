"""Step 5: export the transcript as a markdown document."""

import logging
from datetime import datetime, timezone
from typing import Optional

from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import Step2Output, Step3Output, Step5Output, Workflow
from vidblog.services.ffmpeg import format_timestamp

logger = logging.getLogger(__name__)


def render_transcript_markdown(
    video_name: str,
    step2: Step2Output,
    step3: Optional[Step3Output] = None,
) -> str:
    """Markdown with the timed raw segments, preceded by the enhanced
    sections and text when an enhancement exists."""
    lines = [
        f"# {video_name} - Transcript",
        "",
        f"Generated: {datetime.now(timezone.utc).isoformat()}",
        f"Provider: {step2.provider}",
        "",
    ]

    if step3 is not None:
        if step3.sections:
            lines += ["## Sections", ""]
            lines += [
                f"- **{s.title}** ({format_timestamp(s.start_time)} - {format_timestamp(s.end_time)})"
                for s in step3.sections
            ]
            lines.append("")
        lines += ["## Enhanced Transcript", "", step3.enhanced_transcript.strip(), ""]

    lines += ["## Transcript", ""]
    for seg in step2.segments:
        lines.append(f"**[{format_timestamp(seg.start)} - {format_timestamp(seg.end)}]** {seg.text}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


class TranscriptExportHandler(StepHandler):
    step = 5

    async def execute(self, workflow: Workflow) -> Step5Output:
        if workflow.step2_output is None or not workflow.video_name:
            raise ValueError("Missing prerequisites. Run steps 1-2 first.")

        files = self.context.file_manager
        output_dir = files.output_dir_for(workflow.video_name)
        markdown_path = output_dir / "transcript.md"

        content = render_transcript_markdown(workflow.video_name, workflow.step2_output, workflow.step3_output)
        markdown_path.write_text(content, encoding="utf-8")
        logger.info(f"Transcript saved to {markdown_path}")

        return Step5Output(
            markdown_path=str(markdown_path),
            markdown_url=files.to_public_path(markdown_path),
        )
