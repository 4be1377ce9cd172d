"""Prompt storage and Jinja2 rendering for the LLM-backed steps.

Each prompt type (enhance, blog, social) has one built-in default which is
created in the prompt store on first use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from jinja2 import BaseLoader, Environment, TemplateError

from vidblog.config import settings
from vidblog.orchestrator.repository import PromptRepository
from vidblog.schemas.prompt import Prompt, PromptType
from vidblog.schemas.workflow import utcnow
from vidblog.services.llm.base import LLMAdapter

logger = logging.getLogger(__name__)

# Fields a prompt update may change. Type and default flag have their own operations.
EDITABLE_FIELDS = frozenset({
    "name", "description", "system_prompt", "user_prompt_template",
    "model", "temperature", "max_tokens", "is_active",
})


class PromptNotFoundError(LookupError):
    def __init__(self, prompt_id: str):
        self.prompt_id = prompt_id
        super().__init__(f"Prompt not found: {prompt_id}")


@dataclass
class PromptPreview:
    system_prompt: str
    user_prompt: str


DEFAULT_PROMPTS: dict[PromptType, dict[str, Any]] = {
    PromptType.enhance: {
        "name": "Default Transcript Enhancement",
        "description": "Enhances transcripts and identifies key frames for screenshots",
        "system_prompt": """You are an expert at enhancing video transcripts. Your task is to:
1. Fix any transcription errors or unclear text
2. Add proper punctuation and formatting
3. Identify key moments that would benefit from screenshots
4. Structure the content into logical sections

For key frames, look for:
- Topic changes or new concepts
- Visual demonstrations being described
- Step-by-step instructions
- Important conclusions
- References to on-screen content ("as you can see", "here we have", etc.)

Space key frames 10-15 seconds apart to avoid redundancy.
Aim for 1 key frame per 30-60 seconds of content.""",
        "user_prompt_template": """Enhance this transcript and identify key frames for screenshots:

Video: {{ video_name }}

Original Transcript:
{{ transcript }}

{% if max_key_frames %}Limit to approximately {{ max_key_frames }} key frames.{% endif %}

Respond in JSON format:
{
  "enhancedTranscript": "The improved transcript text with proper formatting...",
  "sections": [
    { "title": "Section Title", "startTime": 0, "endTime": 60 }
  ],
  "keyFrames": [
    { "timestamp": 12.5, "reason": "Description of why this moment needs a screenshot", "segmentId": "seg-0" }
  ]
}""",
        "temperature": 0.3,
        "max_tokens": 8192,
    },
    PromptType.blog: {
        "name": "Default Blog Generation",
        "description": "Generates blog posts from video content with embedded screenshots",
        "system_prompt": """You are an expert content writer who transforms video transcripts into engaging blog posts. Create well-structured, SEO-friendly content that:
1. Uses proper headings (H2, H3)
2. Includes relevant screenshots at appropriate points
3. Adds context and explanations where helpful
4. Maintains the original message while improving readability
5. Uses markdown formatting

When including screenshots, use the provided paths in markdown image syntax.""",
        "user_prompt_template": """Create a blog post from this video content:

Video Title: {{ video_name }}

Enhanced Transcript:
{{ enhanced_transcript }}

Available Screenshots:
{% for shot in screenshots %}
- {{ shot.timestamp }}s: {{ shot.reason }} (path: {{ shot.path }})
{% endfor %}

Write a comprehensive blog post in markdown format. Include screenshots using relative paths like: ![Description](./screenshots/filename.png)

The blog should:
- Have an engaging title
- Include an introduction
- Use the screenshots at relevant points in the content
- Have a conclusion
- Be formatted in clean markdown""",
        "temperature": 0.7,
        "max_tokens": 8192,
    },
    PromptType.social: {
        "name": "Default Social Media Posts",
        "description": "Generates social media posts for multiple platforms",
        "system_prompt": """You are a social media expert who creates engaging posts from video content. Create multiple posts for different platforms:
1. Twitter/X (280 chars max, with relevant hashtags)
2. LinkedIn (professional tone, up to 3000 chars)
3. Short-form hooks for TikTok/Reels/Shorts

Each post should highlight key insights and drive engagement. Be concise but impactful.""",
        "user_prompt_template": """Create social media posts for this video content:

Video Title: {{ video_name }}

Summary:
{{ summary }}

Key Points:
{% for frame in key_frames %}
- {{ frame.reason }}
{% endfor %}

Create posts in JSON format:
{
  "twitter": ["Tweet 1 with #hashtags", "Tweet 2 with #hashtags", "Tweet 3 with #hashtags"],
  "linkedin": "Full LinkedIn post with professional tone...",
  "shortForm": ["Hook 1 for short-form video", "Hook 2 for short-form video"]
}""",
        "temperature": 0.8,
        "max_tokens": 4096,
    },
}

_env = Environment(
    loader=BaseLoader(),
    autoescape=False,  # Prompts are plain text
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_template(template: str, data: dict[str, Any]) -> str:
    """Render a Jinja2 user prompt template.

    Raises:
        ValueError: If the template is malformed
    """
    try:
        return _env.from_string(template).render(**data)
    except TemplateError as e:
        raise ValueError(f"Template rendering error: {e}") from e


def default_prompt(prompt_type: PromptType) -> Prompt:
    """Build (without storing) the built-in prompt of a type."""
    definition = DEFAULT_PROMPTS[prompt_type]
    return Prompt(
        type=prompt_type,
        model=settings.llm.default_model,
        is_default=True,
        is_active=True,
        **definition,
    )


class PromptService:
    def __init__(self, repository: PromptRepository) -> None:
        self.repository = repository

    async def list(
        self, prompt_type: Optional[PromptType] = None, active: Optional[bool] = None
    ) -> list[Prompt]:
        return await self.repository.list(prompt_type=prompt_type, active=active)

    async def get(self, prompt_id: str) -> Optional[Prompt]:
        return await self.repository.get(prompt_id)

    async def create(self, prompt: Prompt) -> Prompt:
        """Store a prompt. A new default replaces the previous default of its type."""
        if prompt.is_default:
            await self.repository.unset_default(prompt.type)
        return await self.repository.create(prompt)

    async def require(self, prompt_id: str) -> Prompt:
        prompt = await self.repository.get(prompt_id)
        if prompt is None:
            raise PromptNotFoundError(prompt_id)
        return prompt

    async def _save(self, prompt: Prompt) -> Prompt:
        saved = await self.repository.save(prompt)
        if saved is None:
            raise PromptNotFoundError(prompt.id)
        return saved

    async def update(self, prompt_id: str, changes: dict[str, Any]) -> Prompt:
        """Apply a partial update.

        Deactivating a prompt also drops its default flag, so the type falls
        back to a fresh built-in default.

        Raises:
            PromptNotFoundError: If the prompt does not exist
            ValueError: If a field is not editable or a value is invalid
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        current = await self.require(prompt_id)
        data = {**current.model_dump(), **changes, "updated_at": utcnow()}
        if data["is_active"] is False:
            data["is_default"] = False
        prompt = await self._save(Prompt.model_validate(data))
        logger.info(f"Updated prompt {prompt_id}")
        return prompt

    async def delete(self, prompt_id: str) -> None:
        if not await self.repository.delete(prompt_id):
            raise PromptNotFoundError(prompt_id)
        logger.info(f"Deleted prompt {prompt_id}")

    async def set_default(self, prompt_id: str) -> Prompt:
        """Make a prompt the default of its type, activating it if needed."""
        prompt = await self.require(prompt_id)
        await self.repository.unset_default(prompt.type)
        prompt.is_default = True
        prompt.is_active = True
        prompt.updated_at = utcnow()
        prompt = await self._save(prompt)
        logger.info(f"Prompt {prompt_id} is now the default {prompt.type.value} prompt")
        return prompt

    async def preview(self, prompt_id: str, sample_data: dict[str, Any]) -> PromptPreview:
        """Render a prompt against sample variables without calling the LLM.

        Raises:
            PromptNotFoundError: If the prompt does not exist
            ValueError: If the template is malformed
        """
        prompt = await self.require(prompt_id)
        return PromptPreview(
            system_prompt=prompt.system_prompt,
            user_prompt=render_template(prompt.user_prompt_template, sample_data),
        )

    async def get_or_create_default(self, prompt_type: PromptType) -> Prompt:
        prompt = await self.repository.get_default(prompt_type)
        if prompt is None:
            prompt = await self.repository.create(default_prompt(prompt_type))
            logger.info(f"Inserted default {prompt_type.value} prompt")
        return prompt

    async def initialize_defaults(self) -> list[Prompt]:
        """Ensure every prompt type has a default. Returns the defaults."""
        return [await self.get_or_create_default(t) for t in PromptType]

    async def resolve(self, prompt_id: Optional[str], prompt_type: PromptType) -> Prompt:
        """Pick the workflow's chosen prompt, falling back to the type default.

        Raises:
            ValueError: If prompt_id is unknown or names a prompt of another type
        """
        if not prompt_id:
            return await self.get_or_create_default(prompt_type)

        prompt = await self.repository.get(prompt_id)
        if prompt is None:
            raise ValueError(f"Prompt not found: {prompt_id}")
        if prompt.type != prompt_type:
            raise ValueError(
                f"Prompt {prompt_id} is a {prompt.type.value} prompt, expected {prompt_type.value}"
            )
        return prompt


async def run_prompt(llm: LLMAdapter, prompt: Prompt, data: dict[str, Any]) -> str:
    """Render a prompt's user template and send it with its system prompt."""
    user_prompt = render_template(prompt.user_prompt_template, data)
    return await llm.chat(
        [
            {"role": "system", "content": prompt.system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        prompt.model,
        temperature=prompt.temperature,
        max_tokens=prompt.max_tokens,
    )
