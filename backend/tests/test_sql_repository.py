"""SQLAlchemy repositories against an in-memory aiosqlite database."""

import pytest
import pytest_asyncio

from vidblog.db import build_engine, build_session_factory, init_database
from vidblog.orchestrator.errors import ConcurrentUpdateError, WorkflowNotFoundError
from vidblog.orchestrator.repository import SqlPromptRepository, SqlWorkflowRepository
from vidblog.orchestrator.service import WorkflowService
from vidblog.schemas.prompt import Prompt, PromptType
from vidblog.schemas.workflow import StepStatus, Workflow, WorkflowConfig, WorkflowLog, WorkflowStatus

from conftest import sample_output


@pytest_asyncio.fixture
async def session_factory():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_database(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def sql_repository(session_factory):
    return SqlWorkflowRepository(session_factory)


@pytest.mark.asyncio
async def test_round_trip_preserves_outputs_and_config(sql_repository):
    workflow = Workflow(
        video_source="https://youtu.be/abc123",
        config=WorkflowConfig(provider="groq", max_key_frames=8),
        blog_prompt_id="prompt-1",
    )
    await sql_repository.create(workflow)

    loaded = await sql_repository.get(workflow.id)
    loaded.step_statuses[3] = StepStatus.completed
    loaded.step3_output = sample_output(3)
    await sql_repository.save(loaded)

    stored = await sql_repository.get(workflow.id)
    assert stored.step_statuses[3] == StepStatus.completed
    assert set(stored.step_statuses) == set(range(1, 8))
    assert stored.step3_output.key_frames[0].timestamp == 5.0
    assert stored.config.provider == "groq"
    assert stored.blog_prompt_id == "prompt-1"
    assert stored.version == 1


@pytest.mark.asyncio
async def test_stale_save_is_rejected(sql_repository):
    workflow = Workflow(video_source="/videos/demo.mp4")
    await sql_repository.create(workflow)

    first = await sql_repository.get(workflow.id)
    second = await sql_repository.get(workflow.id)

    first.status = WorkflowStatus.paused
    await sql_repository.save(first)

    second.status = WorkflowStatus.in_progress
    with pytest.raises(ConcurrentUpdateError):
        await sql_repository.save(second)

    assert (await sql_repository.get(workflow.id)).status == WorkflowStatus.paused


@pytest.mark.asyncio
async def test_save_of_deleted_workflow(sql_repository):
    workflow = Workflow(video_source="/videos/demo.mp4")
    await sql_repository.create(workflow)
    await sql_repository.delete(workflow.id)

    with pytest.raises(WorkflowNotFoundError):
        await sql_repository.save(workflow)


@pytest.mark.asyncio
async def test_list_filters_and_paginates(sql_repository):
    for i in range(5):
        workflow = Workflow(video_source=f"/videos/{i}.mp4")
        if i % 2:
            workflow.status = WorkflowStatus.error
        await sql_repository.create(workflow)

    page, total = await sql_repository.list(limit=2, offset=0)
    assert total == 5
    assert len(page) == 2

    errored, error_total = await sql_repository.list(status=WorkflowStatus.error)
    assert error_total == 2
    assert all(w.status == WorkflowStatus.error for w in errored)


@pytest.mark.asyncio
async def test_delete_cascades_logs(sql_repository):
    workflow = Workflow(video_source="/videos/demo.mp4")
    await sql_repository.create(workflow)
    await sql_repository.append_log(
        WorkflowLog(workflow_id=workflow.id, step=1, status="in_progress", message="Starting step 1")
    )

    assert await sql_repository.delete(workflow.id) is True
    assert await sql_repository.get(workflow.id) is None
    assert await sql_repository.list_logs(workflow.id) == []
    assert await sql_repository.delete(workflow.id) is False


@pytest.mark.asyncio
async def test_logs_newest_first_with_metadata(sql_repository):
    workflow = Workflow(video_source="/videos/demo.mp4")
    await sql_repository.create(workflow)
    for n in (1, 2, 3):
        await sql_repository.append_log(
            WorkflowLog(workflow_id=workflow.id, step=n, status="completed", message=f"Step {n} completed", metadata={"n": n})
        )

    logs = await sql_repository.list_logs(workflow.id)
    assert [log.step for log in logs] == [3, 2, 1]
    assert logs[0].metadata == {"n": 3}
    assert logs[0].id is not None

    only_two = await sql_repository.list_logs(workflow.id, step=2)
    assert [log.message for log in only_two] == ["Step 2 completed"]


@pytest.mark.asyncio
async def test_executor_runs_against_sql_store(sql_repository, handlers):
    service = WorkflowService(sql_repository, handlers)
    workflow = await service.create("/videos/demo.mp4")

    for step in range(1, 8):
        await service.execute_step(workflow.id, step)

    stored = await service.get(workflow.id)
    assert stored.status == WorkflowStatus.completed
    assert stored.completed_at is not None
    assert stored.video_path == "/videos/a.mp4"
    assert len(await service.logs(workflow.id)) == 14


@pytest.mark.asyncio
async def test_prompt_defaults(session_factory):
    prompts = SqlPromptRepository(session_factory)
    first = Prompt(
        name="Blog A", type=PromptType.blog, system_prompt="s", user_prompt_template="t",
        model="m", is_default=True,
    )
    await prompts.create(first)
    assert (await prompts.get_default(PromptType.blog)).id == first.id
    assert await prompts.get_default(PromptType.social) is None

    await prompts.unset_default(PromptType.blog)
    assert await prompts.get_default(PromptType.blog) is None

    listed = await prompts.list(prompt_type=PromptType.blog, active=True)
    assert [p.name for p in listed] == ["Blog A"]


@pytest.mark.asyncio
async def test_prompt_save_and_delete(session_factory):
    prompts = SqlPromptRepository(session_factory)
    prompt = Prompt(
        name="Social A", type=PromptType.social, system_prompt="s", user_prompt_template="t", model="m",
    )
    await prompts.create(prompt)

    prompt.name = "Social B"
    prompt.max_tokens = 512
    assert await prompts.save(prompt) is not None
    stored = await prompts.get(prompt.id)
    assert (stored.name, stored.max_tokens) == ("Social B", 512)

    assert await prompts.delete(prompt.id) is True
    assert await prompts.get(prompt.id) is None
    assert await prompts.delete(prompt.id) is False
    assert await prompts.save(prompt) is None
