"""Step handlers with a fake LLM and a temporary artifact tree."""

import json

import pytest

from vidblog.pipeline import build_default_handlers
from vidblog.pipeline.blog import BlogHandler
from vidblog.pipeline.enhance import EnhanceHandler
from vidblog.pipeline.screenshots import ScreenshotsHandler, frame_filename, write_capture_report
from vidblog.pipeline.social import SocialHandler
from vidblog.pipeline.transcribe import TranscribeHandler
from vidblog.pipeline.transcript_export import TranscriptExportHandler, render_transcript_markdown
from vidblog.schemas.prompt import PromptType
from vidblog.schemas.workflow import (
    KeyFrame,
    Screenshot,
    Step3Output,
    Step4Output,
    Transcript,
    Workflow,
    WorkflowConfig,
)
from vidblog.services.transcription import save_transcript

from conftest import sample_output


def workflow_after(steps, **fields):
    workflow = Workflow(video_source="/videos/demo.mp4", video_path="/videos/demo.mp4", video_name="demo", **fields)
    for step in steps:
        workflow.set_output(step, sample_output(step, tag="demo"))
    return workflow


def test_default_handler_table(pipeline_context):
    handlers = build_default_handlers(pipeline_context)
    assert sorted(handlers) == [1, 2, 3, 4, 5, 6, 7]
    assert all(handler.step == step for step, handler in handlers.items())


def test_transcription_options_prefer_workflow_config(pipeline_context):
    handler = TranscribeHandler(pipeline_context)
    workflow = Workflow(video_source="x", config=WorkflowConfig(provider="openai", language="de"))

    options = handler.options_for(workflow)

    assert options.provider == "openai"
    assert options.language == "de"


@pytest.mark.asyncio
async def test_enhance(pipeline_context, fake_llm, file_manager):
    workflow = workflow_after([1, 2], config=WorkflowConfig(max_key_frames=4))
    save_transcript(
        Transcript(
            id="transcript-demo",
            video_path="/videos/demo.mp4",
            video_name="demo",
            segments=workflow.step2_output.segments,
        ),
        file_manager.transcript_path("transcript-demo"),
    )
    fake_llm.reply = json.dumps({
        "enhancedTranscript": "Welcome. Open settings.",
        "sections": [{"title": "Intro", "startTime": 0, "endTime": 9}],
        "keyFrames": [{"timestamp": 6, "reason": "Settings", "segmentId": "seg-1"}],
    })

    output = await EnhanceHandler(pipeline_context).execute(workflow)

    assert output.enhanced_transcript == "Welcome. Open settings."
    assert output.key_frames[0].timestamp == 6.0
    user_message = fake_llm.calls[0]["messages"][1]["content"]
    assert "(seg-1): Open the settings page." in user_message
    assert "approximately 4 key frames" in user_message
    default = await pipeline_context.prompts.resolve(None, PromptType.enhance)
    assert output.prompt_id == default.id


@pytest.mark.asyncio
async def test_enhance_missing_transcript_file(pipeline_context):
    with pytest.raises(FileNotFoundError):
        await EnhanceHandler(pipeline_context).execute(workflow_after([1, 2]))


@pytest.mark.asyncio
async def test_screenshots_without_key_frames(pipeline_context, file_manager):
    workflow = workflow_after([1, 2])
    workflow.step3_output = Step3Output(enhanced_transcript="text", key_frames=[], prompt_id="p")

    output = await ScreenshotsHandler(pipeline_context).execute(workflow)

    assert output.screenshots == []
    assert output.gallery_url == ""
    assert output.output_dir == str(file_manager.output_dir / "demo")


def test_capture_report_and_gallery(file_manager):
    output_dir = file_manager.output_dir_for("demo")
    shot = output_dir / "screenshots" / frame_filename(65.2)
    shots = [(KeyFrame(timestamp=65.2, reason="<b>Diagram</b>"), shot)]

    gallery = write_capture_report(output_dir, "demo", shots)

    report = json.loads((output_dir / "capture_report.json").read_text())
    assert report["frameCount"] == 1
    assert report["frames"][0]["filename"] == "frame_01m05s.png"
    html = gallery.read_text()
    assert 'src="screenshots/frame_01m05s.png"' in html
    assert "&lt;b&gt;Diagram&lt;/b&gt;" in html


def test_transcript_markdown_with_enhancement():
    workflow = workflow_after([1, 2, 3])

    markdown = render_transcript_markdown("demo", workflow.step2_output, workflow.step3_output)

    assert markdown.startswith("# demo - Transcript")
    assert "- **Intro** (00:00.000 - 00:09.000)" in markdown
    assert "## Enhanced Transcript" in markdown
    assert "**[00:04.500 - 00:09.000]** Open the settings page." in markdown


def test_transcript_markdown_raw_only():
    workflow = workflow_after([1, 2])
    markdown = render_transcript_markdown("demo", workflow.step2_output)
    assert "## Enhanced Transcript" not in markdown
    assert "Welcome to the demo." in markdown


@pytest.mark.asyncio
async def test_transcript_export_writes_file(pipeline_context, file_manager):
    output = await TranscriptExportHandler(pipeline_context).execute(workflow_after([1, 2]))

    assert output.markdown_url == "/output/demo/transcript.md"
    assert (file_manager.output_dir / "demo" / "transcript.md").read_text().startswith("# demo")


@pytest.mark.asyncio
async def test_blog(pipeline_context, fake_llm, file_manager):
    workflow = workflow_after([1, 2, 3])
    workflow.step4_output = Step4Output(
        screenshots=[
            Screenshot(
                timestamp=5.0,
                reason="Settings page",
                path=str(file_manager.output_dir / "demo" / "screenshots" / "frame_00m05s.png"),
                public_path="/output/demo/screenshots/frame_00m05s.png",
            )
        ],
        output_dir=str(file_manager.output_dir / "demo"),
    )
    fake_llm.reply = "```markdown\n# Demo\n\n![Settings](./screenshots/frame_00m05s.png)\n```"

    output = await BlogHandler(pipeline_context).execute(workflow)

    assert output.blog_url == "/output/demo/blog.md"
    assert (file_manager.output_dir / "demo" / "blog.md").read_text() == "# Demo\n\n![Settings](./screenshots/frame_00m05s.png)"
    user_message = fake_llm.calls[0]["messages"][1]["content"]
    assert "5.0s: Settings page (path: ./screenshots/frame_00m05s.png)" in user_message


@pytest.mark.asyncio
async def test_blog_requires_screenshots(pipeline_context):
    with pytest.raises(ValueError, match="Missing prerequisites"):
        await BlogHandler(pipeline_context).execute(workflow_after([1, 2, 3]))


@pytest.mark.asyncio
async def test_social(pipeline_context, fake_llm, file_manager):
    fake_llm.reply = 'Here you go:\n{"twitter": ["t1", "t2"], "linkedin": "long post", "shortForm": ["hook"]}'

    output = await SocialHandler(pipeline_context).execute(workflow_after([1, 2, 3]))

    assert output.posts.twitter == ["t1", "t2"]
    assert output.posts.short_form == ["hook"]
    saved = json.loads((file_manager.output_dir / "demo" / "social.json").read_text())
    assert saved == {"twitter": ["t1", "t2"], "linkedin": "long post", "shortForm": ["hook"]}
    assert "- Intro" in fake_llm.calls[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_social_unparseable_reply(pipeline_context, fake_llm):
    fake_llm.reply = "Sorry, I can't help with that."
    with pytest.raises(ValueError):
        await SocialHandler(pipeline_context).execute(workflow_after([1, 2, 3]))
