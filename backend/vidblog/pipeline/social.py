"""Step 7: generate short-form social media posts."""

import json
import logging

from vidblog.pipeline.base import StepHandler
from vidblog.pipeline.text_utils import create_summary, extract_json_object
from vidblog.schemas.prompt import PromptType
from vidblog.schemas.workflow import SocialPosts, Step7Output, Workflow
from vidblog.services.prompts import run_prompt

logger = logging.getLogger(__name__)

SUMMARY_MAX_LENGTH = 1000


def parse_social_posts(reply: str) -> SocialPosts:
    """Parse ``{twitter, linkedin, shortForm}``; wrongly typed fields become empty.

    Raises:
        ValueError: If the reply holds no usable JSON object
    """
    try:
        parsed = extract_json_object(reply)
    except ValueError as e:
        logger.error(f"Failed to parse AI response: {reply[:500]}")
        raise ValueError(f"Failed to parse social posts response: {e}") from e

    twitter = parsed.get("twitter")
    linkedin = parsed.get("linkedin")
    short_form = parsed.get("shortForm")
    return SocialPosts(
        twitter=[str(t) for t in twitter] if isinstance(twitter, list) else [],
        linkedin=linkedin if isinstance(linkedin, str) else "",
        short_form=[str(h) for h in short_form] if isinstance(short_form, list) else [],
    )


class SocialHandler(StepHandler):
    step = 7

    async def execute(self, workflow: Workflow) -> Step7Output:
        if workflow.step3_output is None or not workflow.video_name:
            raise ValueError("Missing prerequisites. Run steps 1-3 first.")

        step3 = workflow.step3_output
        prompt = await self.context.prompts.resolve(workflow.social_prompt_id, PromptType.social)

        logger.info("Generating social media posts with AI...")
        reply = await run_prompt(
            self.context.llm_factory(),
            prompt,
            {
                "video_name": workflow.video_name,
                "summary": create_summary(step3, SUMMARY_MAX_LENGTH),
                "enhanced_transcript": step3.enhanced_transcript,
                "sections": [s.model_dump() for s in step3.sections],
                "key_frames": [kf.model_dump() for kf in step3.key_frames],
            },
        )
        posts = parse_social_posts(reply)

        output_dir = self.context.file_manager.output_dir_for(workflow.video_name)
        social_path = output_dir / "social.json"
        social_path.write_text(
            json.dumps(
                {"twitter": posts.twitter, "linkedin": posts.linkedin, "shortForm": posts.short_form},
                indent=2,
            ),
            encoding="utf-8",
        )
        logger.info(f"Social posts saved to {social_path}")

        return Step7Output(posts=posts, social_json_path=str(social_path), prompt_id=prompt.id)
