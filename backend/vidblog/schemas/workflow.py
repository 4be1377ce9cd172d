"""Pydantic schemas for workflow state, step outputs and progress log entries.

A Workflow is one pipeline run over a single video source. Its per-step
status map always holds exactly the seven step numbers; each step's output
slot is typed by the step that fills it.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

STEP_COUNT = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    error = "error"
    skipped = "skipped"


class WorkflowStatus(str, Enum):
    created = "created"
    in_progress = "in_progress"
    paused = "paused"
    completed = "completed"
    error = "error"


# Steps in these states count towards overall completion
TERMINAL_STEP_STATUSES = {StepStatus.completed, StepStatus.skipped}


# ============================================================================
# Transcript building blocks
# ============================================================================

class TranscriptSegment(BaseModel):
    """One timed chunk of speech."""
    id: str
    start: float
    end: float
    text: str
    corrected_text: Optional[str] = None


class Transcript(BaseModel):
    """Full transcript as saved to the data directory."""
    id: str
    video_path: str
    video_name: str
    segments: list[TranscriptSegment] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class KeyFrame(BaseModel):
    """A moment in the video worth a screenshot."""
    timestamp: float
    reason: str
    segment_id: str = ""


class Section(BaseModel):
    title: str
    start_time: float
    end_time: float


class Screenshot(BaseModel):
    timestamp: float
    reason: str
    path: str
    public_path: str


class SocialPosts(BaseModel):
    twitter: list[str] = []
    linkedin: str = ""
    short_form: list[str] = []


# ============================================================================
# Step outputs
# ============================================================================

class Step1Output(BaseModel):
    """Resolved or downloaded source video."""
    video_path: str
    video_name: str
    duration: float
    file_size: int
    video_id: Optional[str] = None
    downloaded_at: datetime = Field(default_factory=utcnow)
    already_existed: bool


class Step2Output(BaseModel):
    """Transcript reference produced by audio extraction + speech-to-text."""
    transcript_id: str
    segments: list[TranscriptSegment]
    audio_path: str
    provider: str
    transcribed_at: datetime = Field(default_factory=utcnow)


class Step3Output(BaseModel):
    """AI-enhanced transcript with sections and key frames."""
    enhanced_transcript: str
    sections: list[Section] = []
    key_frames: list[KeyFrame] = []
    prompt_id: str
    enhanced_at: datetime = Field(default_factory=utcnow)


class Step4Output(BaseModel):
    """Screenshots captured at key-frame timestamps."""
    screenshots: list[Screenshot] = []
    output_dir: str
    gallery_url: str = ""
    captured_at: datetime = Field(default_factory=utcnow)


class Step5Output(BaseModel):
    """Transcript exported as a markdown document."""
    markdown_path: str
    markdown_url: str
    saved_at: datetime = Field(default_factory=utcnow)


class Step6Output(BaseModel):
    """Generated long-form blog post."""
    blog_path: str
    blog_url: str
    prompt_id: str
    generated_at: datetime = Field(default_factory=utcnow)


class Step7Output(BaseModel):
    """Generated short-form social posts."""
    posts: SocialPosts
    social_json_path: str
    prompt_id: str
    generated_at: datetime = Field(default_factory=utcnow)


STEP_OUTPUT_TYPES: dict[int, type[BaseModel]] = {
    1: Step1Output,
    2: Step2Output,
    3: Step3Output,
    4: Step4Output,
    5: Step5Output,
    6: Step6Output,
    7: Step7Output,
}


# ============================================================================
# Workflow
# ============================================================================

class CaptureOptions(BaseModel):
    """Screenshot viewport. Unset values fall back to the capture settings."""
    width: Optional[int] = None
    height: Optional[int] = None


class WorkflowConfig(BaseModel):
    """Per-workflow overrides. Unset values fall back to application settings."""
    provider: Optional[str] = None
    model: Optional[str] = None
    language: Optional[str] = None
    max_key_frames: Optional[int] = Field(default=None, gt=0)
    capture: Optional[CaptureOptions] = None

    @field_validator("provider")
    @classmethod
    def check_provider(cls, v):
        if v is not None and v not in ("whisper-local", "openai", "groq"):
            raise ValueError(f"Unknown transcription provider: {v}")
        return v


def initial_step_statuses() -> dict[int, StepStatus]:
    return {step: StepStatus.pending for step in range(1, STEP_COUNT + 1)}


class Workflow(BaseModel):
    """Persisted state of one pipeline run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    video_source: str
    video_path: Optional[str] = None
    video_name: Optional[str] = None
    video_id: Optional[str] = None

    status: WorkflowStatus = WorkflowStatus.created
    current_step: int = 0
    error_message: Optional[str] = None

    step_statuses: dict[int, StepStatus] = Field(default_factory=initial_step_statuses)

    step1_output: Optional[Step1Output] = None
    step2_output: Optional[Step2Output] = None
    step3_output: Optional[Step3Output] = None
    step4_output: Optional[Step4Output] = None
    step5_output: Optional[Step5Output] = None
    step6_output: Optional[Step6Output] = None
    step7_output: Optional[Step7Output] = None

    config: WorkflowConfig = Field(default_factory=WorkflowConfig)

    enhance_prompt_id: Optional[str] = None
    blog_prompt_id: Optional[str] = None
    social_prompt_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    version: int = 0

    @field_validator("step_statuses")
    @classmethod
    def check_step_keys(cls, v: dict[int, StepStatus]) -> dict[int, StepStatus]:
        expected = set(range(1, STEP_COUNT + 1))
        if set(v) != expected:
            raise ValueError(f"step_statuses must have exactly the keys 1..{STEP_COUNT}, got {sorted(v)}")
        return v

    def get_output(self, step: int) -> Optional[BaseModel]:
        return getattr(self, f"step{step}_output")

    def set_output(self, step: int, output: Optional[BaseModel]) -> None:
        setattr(self, f"step{step}_output", output)

    def all_steps_done(self) -> bool:
        """True when every step is completed or skipped."""
        return all(s in TERMINAL_STEP_STATUSES for s in self.step_statuses.values())


class WorkflowLog(BaseModel):
    """Append-only audit entry for a step transition."""
    id: Optional[int] = None
    workflow_id: str
    step: int
    status: str
    message: str
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
