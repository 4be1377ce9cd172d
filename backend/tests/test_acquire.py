"""Source classification, naming and downloads for step 1."""

import httpx
import pytest

from vidblog.orchestrator.errors import StepExecutionError
from vidblog.orchestrator.service import WorkflowService
from vidblog.pipeline.acquire import AcquireVideoHandler, direct_download_name, is_remote_source
from vidblog.schemas.workflow import Workflow, WorkflowStatus


@pytest.mark.parametrize(
    "source,expected",
    [("https://example.com/a.mp4", True), ("HTTP://EXAMPLE.COM/a.mp4", True), ("/videos/a.mp4", False), ("ftp://x/a.mp4", False)],
)
def test_is_remote_source(source, expected):
    assert is_remote_source(source) is expected


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://cdn.example.com/media/Demo_Video.mov?sig=1", ("demo_video", ".mov")),
        ("https://cdn.example.com/media/My Talk (final).mp4", ("my-talk-final-", ".mp4")),
        ("https://cdn.example.com/stream/clip", ("clip", ".mp4")),
        ("https://cdn.example.com/", ("video-wf-1", ".mp4")),
    ],
)
def test_direct_download_name(url, expected):
    assert direct_download_name(url, "wf-1") == expected


@pytest.mark.asyncio
async def test_missing_local_file_fails(pipeline_context, tmp_path):
    handler = AcquireVideoHandler(pipeline_context)
    workflow = Workflow(video_source=str(tmp_path / "nope.mp4"))

    with pytest.raises(FileNotFoundError):
        await handler.execute(workflow)


@pytest.mark.asyncio
async def test_missing_local_file_fails_step_one(repository, pipeline_context, tmp_path):
    service = WorkflowService(repository, {1: AcquireVideoHandler(pipeline_context)})
    workflow = await service.create(str(tmp_path / "nope.mp4"))

    with pytest.raises(StepExecutionError, match="Video file not found"):
        await service.execute_step(workflow.id, 1)
    assert (await service.get(workflow.id)).status == WorkflowStatus.error


class BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b"partial video bytes"
        raise httpx.ReadError("connection reset")


def use_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client)


@pytest.mark.asyncio
async def test_interrupted_download_leaves_no_file(monkeypatch, pipeline_context):
    use_transport(monkeypatch, lambda request: httpx.Response(200, stream=BrokenStream()))
    handler = AcquireVideoHandler(pipeline_context)
    workflow = Workflow(video_source="https://cdn.example.com/media/talk.mp4")

    with pytest.raises(httpx.ReadError):
        await handler.execute(workflow)

    assert list(pipeline_context.file_manager.video_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_download_http_error(monkeypatch, pipeline_context):
    use_transport(monkeypatch, lambda request: httpx.Response(404))
    handler = AcquireVideoHandler(pipeline_context)
    workflow = Workflow(video_source="https://cdn.example.com/media/talk.mp4")

    with pytest.raises(RuntimeError, match="404"):
        await handler.execute(workflow)

    assert list(pipeline_context.file_manager.video_dir.iterdir()) == []
