"""HTTP layer against an app wired to in-memory services."""

import httpx
import pytest
import pytest_asyncio

from vidblog.api.app import create_app


@pytest_asyncio.fixture
async def client(service, prompt_service):
    app = create_app(workflow_service=service, prompt_service=prompt_service)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_workflow(client, source="https://example.com/a.mp4"):
    response = await client.post("/api/workflows", json={"video_source": source})
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_and_get(client):
    created = await create_workflow(client)

    assert created["status"] == "created"
    assert set(created["step_statuses"].values()) == {"pending"}

    response = await client.get(f"/api/workflows/{created['id']}")
    assert response.status_code == 200
    assert response.json()["video_source"] == "https://example.com/a.mp4"


@pytest.mark.asyncio
async def test_create_blank_source_is_422(client):
    response = await client.post("/api/workflows", json={"video_source": "  "})
    assert response.status_code == 422
    assert "video_source" in response.json()["error"]


@pytest.mark.asyncio
async def test_create_rejects_unknown_provider(client):
    response = await client.post(
        "/api/workflows",
        json={"video_source": "/videos/a.mp4", "config": {"provider": "carrier-pigeon"}},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_workflow_is_404(client):
    response = await client.get("/api/workflows/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_workflows(client):
    for i in range(3):
        await create_workflow(client, f"/videos/{i}.mp4")

    response = await client.get("/api/workflows", params={"limit": 2})
    body = response.json()
    assert body["total"] == 3
    assert len(body["workflows"]) == 2

    response = await client.get("/api/workflows", params={"status": "completed"})
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_execute_step_success(client):
    workflow = await create_workflow(client)

    response = await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute", json={})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["workflow"]["step_statuses"]["1"] == "completed"
    assert body["step_output"]["video_path"] == "/videos/a.mp4"


@pytest.mark.asyncio
async def test_execute_without_body(client):
    workflow = await create_workflow(client)
    response = await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_execute_prerequisite_conflict(client):
    workflow = await create_workflow(client)

    response = await client.post(f"/api/workflows/{workflow['id']}/steps/6/execute", json={})

    assert response.status_code == 409
    assert response.json()["missing_prerequisites"] == [3, 4]


@pytest.mark.asyncio
async def test_execute_already_completed_then_force(client):
    workflow = await create_workflow(client)
    url = f"/api/workflows/{workflow['id']}/steps/1/execute"
    await client.post(url, json={})

    assert (await client.post(url, json={})).status_code == 409
    assert (await client.post(url, json={"force": True})).status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("step", [0, 8])
async def test_execute_invalid_step_is_422(client, step):
    workflow = await create_workflow(client)
    response = await client.post(f"/api/workflows/{workflow['id']}/steps/{step}/execute", json={})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_execute_failure_is_500_with_message(client, handlers):
    workflow = await create_workflow(client)
    handlers[1].error = RuntimeError("yt-dlp exited with code 1")

    response = await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute", json={})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "yt-dlp exited with code 1"}

    detail = (await client.get(f"/api/workflows/{workflow['id']}")).json()
    assert detail["status"] == "error"
    assert detail["step_statuses"]["1"] == "error"


@pytest.mark.asyncio
async def test_step_listing_and_detail(client):
    workflow = await create_workflow(client)
    await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute", json={})

    steps = (await client.get(f"/api/workflows/{workflow['id']}/steps")).json()
    assert [s["step"] for s in steps] == [1, 2, 3, 4, 5, 6, 7]
    assert steps[1]["can_execute"] is True
    assert steps[2]["missing_prerequisites"] == [2]
    assert steps[0]["output"] is None

    detail = (await client.get(f"/api/workflows/{workflow['id']}/steps/1")).json()
    assert detail["name"] == "Download Video"
    assert detail["output"]["video_name"] == "a"

    assert (await client.get(f"/api/workflows/{workflow['id']}/steps/9")).status_code == 422


@pytest.mark.asyncio
async def test_start_pause_and_logs(client):
    workflow = await create_workflow(client)
    base = f"/api/workflows/{workflow['id']}"

    started = (await client.post(f"{base}/start", json={})).json()
    assert started["status"] == "in_progress"
    assert started["started_at"] is not None

    paused = (await client.post(f"{base}/pause")).json()
    assert paused["status"] == "paused"

    await client.post(f"{base}/steps/1/execute", json={})
    logs = (await client.get(f"{base}/logs", params={"step": 1})).json()["logs"]
    assert [entry["status"] for entry in logs] == ["completed", "in_progress"]

    restarted = (await client.post(f"{base}/start", json={"from_step": 1})).json()
    assert restarted["step_statuses"]["1"] == "pending"


@pytest.mark.asyncio
async def test_delete_workflow(client):
    workflow = await create_workflow(client)

    response = await client.delete(f"/api/workflows/{workflow['id']}")
    assert response.status_code == 204
    assert (await client.get(f"/api/workflows/{workflow['id']}")).status_code == 404
    assert (await client.delete(f"/api/workflows/{workflow['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_prompt_endpoints(client):
    initialized = (await client.post("/api/prompts/initialize")).json()["prompts"]
    assert {p["type"] for p in initialized} == {"enhance", "blog", "social"}

    response = await client.post(
        "/api/prompts",
        json={
            "name": "Punchy blog",
            "type": "blog",
            "system_prompt": "You write punchy posts.",
            "user_prompt_template": "Title: {{ video_name }}",
            "is_default": True,
        },
    )
    assert response.status_code == 201
    created = response.json()
    assert created["model"]

    blogs = (await client.get("/api/prompts", params={"type": "blog"})).json()["prompts"]
    defaults = [p for p in blogs if p["is_default"]]
    assert [p["id"] for p in defaults] == [created["id"]]

    assert (await client.get(f"/api/prompts/{created['id']}")).status_code == 200
    assert (await client.get("/api/prompts/missing")).status_code == 404


@pytest.mark.asyncio
async def test_prompt_update_default_preview_and_delete(client):
    response = await client.post(
        "/api/prompts",
        json={
            "name": "Thread writer",
            "type": "social",
            "system_prompt": "You write threads.",
            "user_prompt_template": "Summary: {{ summary }}",
        },
    )
    prompt_id = response.json()["id"]

    response = await client.patch(f"/api/prompts/{prompt_id}", json={"temperature": 0.2})
    assert response.status_code == 200
    assert response.json()["temperature"] == 0.2
    assert response.json()["name"] == "Thread writer"

    response = await client.patch(f"/api/prompts/{prompt_id}", json={"name": None})
    assert response.status_code == 422

    response = await client.post(f"/api/prompts/{prompt_id}/set-default")
    assert response.json()["is_default"] is True

    response = await client.post(f"/api/prompts/{prompt_id}/preview", json={"sample_data": {"summary": "- Intro"}})
    assert response.json() == {"system_prompt": "You write threads.", "user_prompt": "Summary: - Intro"}

    assert (await client.delete(f"/api/prompts/{prompt_id}")).status_code == 204
    assert (await client.delete(f"/api/prompts/{prompt_id}")).status_code == 404
    assert (await client.post(f"/api/prompts/{prompt_id}/set-default")).status_code == 404


@pytest.mark.asyncio
async def test_running_step_conflict_is_409(client, handlers):
    workflow = await create_workflow(client)
    started = {}

    async def rerun_while_running(snapshot):
        started["response"] = await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute")

    handlers[1].hook = rerun_while_running
    response = await client.post(f"/api/workflows/{workflow['id']}/steps/1/execute")

    assert response.status_code == 200
    assert started["response"].status_code == 409
