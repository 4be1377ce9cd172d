"""Step 6: generate a markdown blog post that embeds the screenshots."""

import logging
from pathlib import Path

from vidblog.pipeline.base import StepHandler
from vidblog.pipeline.text_utils import strip_markdown_fence
from vidblog.schemas.prompt import PromptType
from vidblog.schemas.workflow import Step6Output, Workflow
from vidblog.services.prompts import run_prompt

logger = logging.getLogger(__name__)


class BlogHandler(StepHandler):
    step = 6

    async def execute(self, workflow: Workflow) -> Step6Output:
        if workflow.step3_output is None or workflow.step4_output is None or not workflow.video_name:
            raise ValueError("Missing prerequisites. Run steps 1-4 first.")

        files = self.context.file_manager
        step3 = workflow.step3_output
        prompt = await self.context.prompts.resolve(workflow.blog_prompt_id, PromptType.blog)

        screenshots = [
            {
                "timestamp": s.timestamp,
                "reason": s.reason,
                "path": f"./screenshots/{Path(s.path).name}",
                "filename": Path(s.path).name,
            }
            for s in workflow.step4_output.screenshots
        ]

        logger.info("Generating blog post with AI...")
        reply = await run_prompt(
            self.context.llm_factory(),
            prompt,
            {
                "video_name": workflow.video_name,
                "enhanced_transcript": step3.enhanced_transcript,
                "sections": [s.model_dump() for s in step3.sections],
                "key_frames": [kf.model_dump() for kf in step3.key_frames],
                "screenshots": screenshots,
            },
        )

        output_dir = files.output_dir_for(workflow.video_name)
        blog_path = output_dir / "blog.md"
        blog_path.write_text(strip_markdown_fence(reply), encoding="utf-8")
        logger.info(f"Blog post saved to {blog_path}")

        return Step6Output(
            blog_path=str(blog_path),
            blog_url=files.to_public_path(blog_path),
            prompt_id=prompt.id,
        )
