"""Pydantic schemas for editable LLM prompts."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from vidblog.schemas.workflow import utcnow


class PromptType(str, Enum):
    enhance = "enhance"
    blog = "blog"
    social = "social"


class Prompt(BaseModel):
    """A system prompt plus a Jinja2 user template and generation settings."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(min_length=1)
    type: PromptType
    description: Optional[str] = None
    system_prompt: str
    user_prompt_template: str = Field(description="Jinja2 template rendered with step variables")
    model: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, gt=0)
    is_default: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
