"""API route handlers and Pydantic request/response schemas."""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from vidblog import __version__
from vidblog.config import settings
from vidblog.orchestrator.service import StepStatusInfo, WorkflowService
from vidblog.orchestrator.videos import VideoInfo, VideoLibrary
from vidblog.schemas.prompt import Prompt, PromptType
from vidblog.schemas.workflow import StepStatus, Workflow, WorkflowConfig, WorkflowLog, WorkflowStatus
from vidblog.services.prompts import PromptService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_workflow_service(request: Request) -> WorkflowService:
    return request.app.state.workflow_service


def get_prompt_service(request: Request) -> PromptService:
    return request.app.state.prompt_service


def get_video_library(request: Request) -> VideoLibrary:
    return request.app.state.video_library


# ============================================================================
# Request/Response Models
# ============================================================================

class CreateWorkflowRequest(BaseModel):
    video_source: str = Field(description="Local path, YouTube URL or direct video URL")
    config: Optional[WorkflowConfig] = None
    enhance_prompt_id: Optional[str] = None
    blog_prompt_id: Optional[str] = None
    social_prompt_id: Optional[str] = None


class WorkflowListResponse(BaseModel):
    workflows: list[Workflow]
    total: int


class StepStatusResponse(BaseModel):
    step: int
    name: str
    description: str
    status: StepStatus
    can_execute: bool
    missing_prerequisites: list[int]
    output: Optional[dict[str, Any]] = None


class ExecuteStepRequest(BaseModel):
    force: bool = False


class ExecuteStepResponse(BaseModel):
    success: bool
    workflow: Workflow
    step_output: Optional[dict[str, Any]] = None


class StartWorkflowRequest(BaseModel):
    from_step: Optional[int] = None


class WorkflowLogsResponse(BaseModel):
    logs: list[WorkflowLog]


class CreatePromptRequest(BaseModel):
    name: str = Field(min_length=1)
    type: PromptType
    description: Optional[str] = None
    system_prompt: str
    user_prompt_template: str
    model: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, gt=0)
    is_default: bool = False
    is_active: bool = True


class PromptListResponse(BaseModel):
    prompts: list[Prompt]


class UpdatePromptRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    system_prompt: Optional[str] = None
    user_prompt_template: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class PreviewPromptRequest(BaseModel):
    sample_data: dict[str, Any]


class PromptPreviewResponse(BaseModel):
    system_prompt: str
    user_prompt: str


class VideoWorkflowSummary(BaseModel):
    id: str
    status: WorkflowStatus
    current_step: int
    created_at: datetime


class VideoResponse(BaseModel):
    path: str
    name: str
    size: int
    downloaded_at: datetime
    video_id: Optional[str] = None
    title: Optional[str] = None
    source_url: Optional[str] = None
    has_workflow: bool
    workflows: list[VideoWorkflowSummary]


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]


def _video_response(info: VideoInfo) -> VideoResponse:
    return VideoResponse(
        path=str(info.path),
        name=info.name,
        size=info.size,
        downloaded_at=info.downloaded_at,
        video_id=info.video_id,
        title=info.title,
        source_url=info.source_url,
        has_workflow=bool(info.workflows),
        workflows=[
            VideoWorkflowSummary(id=w.id, status=w.status, current_step=w.current_step, created_at=w.created_at)
            for w in info.workflows
        ],
    )


def _step_response(info: StepStatusInfo) -> StepStatusResponse:
    return StepStatusResponse(
        step=info.step,
        name=info.name,
        description=info.description,
        status=info.status,
        can_execute=info.executable,
        missing_prerequisites=info.missing,
        output=info.output.model_dump(mode="json") if info.output is not None else None,
    )


# ============================================================================
# Workflow Endpoints
# ============================================================================

@router.post("/workflows", status_code=201, response_model=Workflow)
async def create_workflow(
    request: CreateWorkflowRequest,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Create a workflow with all seven steps pending."""
    return await service.create(
        request.video_source,
        config=request.config,
        enhance_prompt_id=request.enhance_prompt_id,
        blog_prompt_id=request.blog_prompt_id,
        social_prompt_id=request.social_prompt_id,
    )


@router.get("/workflows", response_model=WorkflowListResponse)
async def list_workflows(
    status: Optional[WorkflowStatus] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: WorkflowService = Depends(get_workflow_service),
):
    workflows, total = await service.list(status=status, limit=limit, offset=offset)
    return WorkflowListResponse(workflows=workflows, total=total)


@router.get("/workflows/{workflow_id}", response_model=Workflow)
async def get_workflow(workflow_id: str, service: WorkflowService = Depends(get_workflow_service)):
    return await service.get(workflow_id)


@router.delete("/workflows/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: str,
    delete_assets: bool = False,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Delete a workflow and its logs, optionally with the downloaded video."""
    await service.delete(workflow_id, delete_assets=delete_assets)


@router.get("/workflows/{workflow_id}/steps", response_model=list[StepStatusResponse])
async def list_steps(workflow_id: str, service: WorkflowService = Depends(get_workflow_service)):
    return [_step_response(info) for info in await service.list_step_statuses(workflow_id)]


@router.get("/workflows/{workflow_id}/steps/{step}", response_model=StepStatusResponse)
async def get_step(workflow_id: str, step: int, service: WorkflowService = Depends(get_workflow_service)):
    """Step status, prerequisite check and output of one step."""
    return _step_response(await service.get_step_status(workflow_id, step))


@router.post("/workflows/{workflow_id}/steps/{step}/execute", response_model=ExecuteStepResponse)
async def execute_step(
    workflow_id: str,
    step: int,
    request: Optional[ExecuteStepRequest] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    """Run one step to completion.

    The request returns when the step has finished; progress is available
    meanwhile from the logs endpoint.
    """
    force = request.force if request is not None else False
    result = await service.execute_step(workflow_id, step, force=force)
    return ExecuteStepResponse(
        success=True,
        workflow=result.workflow,
        step_output=result.step_output.model_dump(mode="json") if result.step_output is not None else None,
    )


@router.post("/workflows/{workflow_id}/start", response_model=Workflow)
async def start_workflow(
    workflow_id: str,
    request: Optional[StartWorkflowRequest] = None,
    service: WorkflowService = Depends(get_workflow_service),
):
    from_step = request.from_step if request is not None else None
    return await service.start(workflow_id, from_step=from_step)


@router.post("/workflows/{workflow_id}/pause", response_model=Workflow)
async def pause_workflow(workflow_id: str, service: WorkflowService = Depends(get_workflow_service)):
    return await service.pause(workflow_id)


@router.get("/workflows/{workflow_id}/logs", response_model=WorkflowLogsResponse)
async def get_logs(
    workflow_id: str,
    step: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    service: WorkflowService = Depends(get_workflow_service),
):
    return WorkflowLogsResponse(logs=await service.logs(workflow_id, step=step, limit=limit))


# ============================================================================
# Prompt Endpoints
# ============================================================================

@router.get("/prompts", response_model=PromptListResponse)
async def list_prompts(
    type: Optional[PromptType] = None,
    active: Optional[bool] = None,
    prompts: PromptService = Depends(get_prompt_service),
):
    return PromptListResponse(prompts=await prompts.list(prompt_type=type, active=active))


@router.post("/prompts/initialize", response_model=PromptListResponse)
async def initialize_prompts(prompts: PromptService = Depends(get_prompt_service)):
    """Insert the built-in default prompt of every type that has none."""
    return PromptListResponse(prompts=await prompts.initialize_defaults())


@router.get("/prompts/{prompt_id}", response_model=Prompt)
async def get_prompt(prompt_id: str, prompts: PromptService = Depends(get_prompt_service)):
    prompt = await prompts.get(prompt_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt


@router.post("/prompts", status_code=201, response_model=Prompt)
async def create_prompt(request: CreatePromptRequest, prompts: PromptService = Depends(get_prompt_service)):
    data = request.model_dump()
    data["model"] = request.model or settings.llm.default_model
    prompt = await prompts.create(Prompt(**data))
    logger.info(f"Created {prompt.type.value} prompt {prompt.id}")
    return prompt


@router.patch("/prompts/{prompt_id}", response_model=Prompt)
async def update_prompt(
    prompt_id: str,
    request: UpdatePromptRequest,
    prompts: PromptService = Depends(get_prompt_service),
):
    """Change the fields present in the body. Type and default flag are not editable here."""
    try:
        return await prompts.update(prompt_id, request.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/prompts/{prompt_id}", status_code=204)
async def delete_prompt(prompt_id: str, prompts: PromptService = Depends(get_prompt_service)):
    await prompts.delete(prompt_id)


@router.post("/prompts/{prompt_id}/set-default", response_model=Prompt)
async def set_default_prompt(prompt_id: str, prompts: PromptService = Depends(get_prompt_service)):
    return await prompts.set_default(prompt_id)


@router.post("/prompts/{prompt_id}/preview", response_model=PromptPreviewResponse)
async def preview_prompt(
    prompt_id: str,
    request: PreviewPromptRequest,
    prompts: PromptService = Depends(get_prompt_service),
):
    """Render the prompt with sample variables, without calling the LLM."""
    try:
        preview = await prompts.preview(prompt_id, request.sample_data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return PromptPreviewResponse(system_prompt=preview.system_prompt, user_prompt=preview.user_prompt)


# ============================================================================
# Video Endpoints
# ============================================================================

@router.get("/videos", response_model=VideoListResponse)
async def list_videos(library: VideoLibrary = Depends(get_video_library)):
    """Downloaded videos, newest first, with the workflows that use them."""
    return VideoListResponse(videos=[_video_response(v) for v in await library.list()])


@router.get("/videos/{name}", response_model=VideoResponse)
async def get_video(name: str, library: VideoLibrary = Depends(get_video_library)):
    return _video_response(await library.get(name))


@router.delete("/videos/{name}", status_code=204)
async def delete_video(
    name: str,
    delete_workflows: bool = False,
    library: VideoLibrary = Depends(get_video_library),
):
    await library.delete(name, delete_workflows=delete_workflows)


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__
    }
