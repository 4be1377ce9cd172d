"""Shared fixtures: in-memory stores, scripted step handlers and a fake LLM."""

from typing import Callable, Optional

import pytest

from vidblog.config import StorageConfig
from vidblog.orchestrator.repository import InMemoryPromptRepository, InMemoryWorkflowRepository
from vidblog.orchestrator.service import WorkflowService
from vidblog.pipeline.base import PipelineContext, StepHandler
from vidblog.schemas.workflow import (
    KeyFrame,
    Section,
    SocialPosts,
    Step1Output,
    Step2Output,
    Step3Output,
    Step4Output,
    Step5Output,
    Step6Output,
    Step7Output,
    TranscriptSegment,
    Workflow,
)
from vidblog.services.file_manager import FileManager
from vidblog.services.llm.base import LLMAdapter
from vidblog.services.prompts import PromptService


def sample_output(step: int, tag: str = "a"):
    """A valid output model for each step."""
    if step == 1:
        return Step1Output(
            video_path=f"/videos/{tag}.mp4",
            video_name=tag,
            duration=95.0,
            file_size=2048,
            already_existed=False,
        )
    if step == 2:
        return Step2Output(
            transcript_id=f"transcript-{tag}",
            segments=[
                TranscriptSegment(id="seg-0", start=0.0, end=4.5, text="Welcome to the demo."),
                TranscriptSegment(id="seg-1", start=4.5, end=9.0, text="Open the settings page."),
            ],
            audio_path=f"/tmp/{tag}.mp3",
            provider="groq",
        )
    if step == 3:
        return Step3Output(
            enhanced_transcript="Welcome to the demo. Open the settings page.",
            sections=[Section(title="Intro", start_time=0.0, end_time=9.0)],
            key_frames=[KeyFrame(timestamp=5.0, reason="Settings page", segment_id="seg-1")],
            prompt_id="prompt-enhance",
        )
    if step == 4:
        return Step4Output(output_dir=f"/output/{tag}")
    if step == 5:
        return Step5Output(markdown_path=f"/output/{tag}/transcript.md", markdown_url=f"/output/{tag}/transcript.md")
    if step == 6:
        return Step6Output(blog_path=f"/output/{tag}/blog.md", blog_url=f"/output/{tag}/blog.md", prompt_id="prompt-blog")
    if step == 7:
        return Step7Output(
            posts=SocialPosts(twitter=["New video!"], linkedin="Post", short_form=["Hook"]),
            social_json_path=f"/output/{tag}/social.json",
            prompt_id="prompt-social",
        )
    raise ValueError(step)


class FakeHandler(StepHandler):
    """Handler returning a canned output, or raising a canned error."""

    def __init__(
        self,
        step: int,
        output=None,
        error: Optional[Exception] = None,
        hook: Optional[Callable] = None,
    ):
        super().__init__(context=None)
        self.step = step
        self.output = output
        self.error = error
        self.hook = hook
        self.calls: list[Workflow] = []

    async def execute(self, workflow: Workflow):
        self.calls.append(workflow)
        if self.hook is not None:
            await self.hook(workflow)
        if self.error is not None:
            raise self.error
        return self.output if self.output is not None else sample_output(self.step)

    def apply(self, workflow: Workflow, output) -> None:
        if self.step == 1:
            workflow.video_path = output.video_path
            workflow.video_name = output.video_name


class FakeLLM(LLMAdapter):
    def __init__(self, reply: str = ""):
        self.reply = reply
        self.calls: list[dict] = []

    async def chat(self, messages, model, *, temperature=0.7, max_tokens=4096):
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        return self.reply


@pytest.fixture
def repository():
    return InMemoryWorkflowRepository()


@pytest.fixture
def handlers():
    return {step: FakeHandler(step) for step in range(1, 8)}


@pytest.fixture
def service(repository, handlers):
    return WorkflowService(repository, handlers)


@pytest.fixture
def prompt_service():
    return PromptService(InMemoryPromptRepository())


@pytest.fixture
def storage(tmp_path):
    return StorageConfig(
        database_url="sqlite+aiosqlite:///:memory:",
        data_dir=tmp_path / "data",
        video_dir=tmp_path / "data" / "videos",
        output_dir=tmp_path / "output",
        temp_dir=tmp_path / "temp",
    )


@pytest.fixture
def file_manager(storage):
    return FileManager(storage)


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def pipeline_context(file_manager, prompt_service, fake_llm):
    return PipelineContext(file_manager=file_manager, prompts=prompt_service, llm_factory=lambda: fake_llm)
