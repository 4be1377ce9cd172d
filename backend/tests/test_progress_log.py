"""Progress log recording and querying."""

import pytest

from vidblog.orchestrator.errors import InvalidStepError
from vidblog.orchestrator.progress_log import ProgressLog


@pytest.mark.asyncio
async def test_entries_are_listed_newest_first(service, repository):
    workflow = await service.create("/videos/demo.mp4")
    log = ProgressLog(repository)

    await log.record(workflow.id, 1, "in_progress", "Starting step 1")
    await log.record(workflow.id, 1, "completed", "Step 1 completed", {"duration": 3})
    await log.record(workflow.id, 2, "in_progress", "Starting step 2")

    entries = await log.list(workflow.id)
    assert [e.message for e in entries] == ["Starting step 2", "Step 1 completed", "Starting step 1"]
    assert entries[1].metadata == {"duration": 3}


@pytest.mark.asyncio
async def test_filter_by_step_and_limit(service, repository):
    workflow = await service.create("/videos/demo.mp4")
    log = ProgressLog(repository)
    for i in range(5):
        await log.record(workflow.id, 3, "in_progress", f"message {i}")
    await log.record(workflow.id, 4, "in_progress", "other step")

    entries = await log.list(workflow.id, step=3, limit=2)

    assert [e.message for e in entries] == ["message 4", "message 3"]


@pytest.mark.asyncio
async def test_record_failure_is_swallowed(repository, caplog):
    log = ProgressLog(repository)

    entry = await log.record("missing-workflow", 1, "in_progress", "Starting step 1")

    assert entry is None
    assert "Failed to write progress log" in caplog.text


@pytest.mark.asyncio
async def test_service_logs_validates_step(service):
    workflow = await service.create("/videos/demo.mp4")
    with pytest.raises(InvalidStepError):
        await service.logs(workflow.id, step=0)
