"""Workflow service: the operations exposed to the HTTP and CLI layers.

Composes the repository, progress log, lifecycle controller and step
executor behind one object so both front ends share identical semantics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel

from vidblog.orchestrator.errors import (
    InvalidStepError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from vidblog.orchestrator.executor import StepExecutor, StepResult
from vidblog.orchestrator.lifecycle import LifecycleController
from vidblog.orchestrator.locks import WorkflowLocks
from vidblog.orchestrator.progress_log import ProgressLog
from vidblog.orchestrator.repository import WorkflowRepository
from vidblog.orchestrator.steps import all_definitions, can_execute, get_definition, is_valid_step
from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import (
    StepStatus,
    Workflow,
    WorkflowConfig,
    WorkflowLog,
    WorkflowStatus,
)
from vidblog.services.file_manager import FileManager

logger = logging.getLogger(__name__)


@dataclass
class StepStatusInfo:
    step: int
    name: str
    description: str
    status: StepStatus
    executable: bool
    missing: list[int] = field(default_factory=list)
    output: Optional[BaseModel] = None


class WorkflowService:
    def __init__(
        self,
        repository: WorkflowRepository,
        handlers: dict[int, StepHandler],
        file_manager: Optional[FileManager] = None,
        locks: Optional[WorkflowLocks] = None,
    ) -> None:
        self.repository = repository
        self.locks = locks or WorkflowLocks()
        self.progress_log = ProgressLog(repository)
        self.lifecycle = LifecycleController(repository, self.locks)
        self.executor = StepExecutor(
            repository, handlers, self.progress_log, self.lifecycle, self.locks
        )
        self.file_manager = file_manager

    async def create(
        self,
        video_source: str,
        config: Optional[WorkflowConfig] = None,
        enhance_prompt_id: Optional[str] = None,
        blog_prompt_id: Optional[str] = None,
        social_prompt_id: Optional[str] = None,
    ) -> Workflow:
        """Create a workflow in ``created`` status with every step pending.

        Raises:
            WorkflowValidationError: If video_source is missing or blank
        """
        if not video_source or not video_source.strip():
            raise WorkflowValidationError("video_source is required")

        workflow = Workflow(
            video_source=video_source.strip(),
            config=config or WorkflowConfig(),
            enhance_prompt_id=enhance_prompt_id,
            blog_prompt_id=blog_prompt_id,
            social_prompt_id=social_prompt_id,
        )
        workflow = await self.repository.create(workflow)
        logger.info(f"Created workflow {workflow.id} for {workflow.video_source}")
        return workflow

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Workflow], int]:
        if limit < 1:
            raise WorkflowValidationError("limit must be positive")
        if offset < 0:
            raise WorkflowValidationError("offset must not be negative")
        return await self.repository.list(status=status, limit=limit, offset=offset)

    async def get(self, workflow_id: str) -> Workflow:
        workflow = await self.repository.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def delete(self, workflow_id: str, delete_assets: bool = False) -> None:
        """Delete a workflow and its log entries.

        Args:
            workflow_id: Workflow to delete
            delete_assets: Also remove the downloaded video (and its sidecar)
                when it lives in the managed video directory
        """
        async with self.locks.hold(workflow_id):
            workflow = await self.get(workflow_id)
            await self.repository.delete(workflow_id)
        self.locks.discard(workflow_id)

        if delete_assets and workflow.video_path and self.file_manager is not None:
            self.file_manager.remove_video(workflow.video_path)
        logger.info(f"Deleted workflow {workflow_id}")

    def _step_info(self, workflow: Workflow, step: int, with_output: bool) -> StepStatusInfo:
        definition = get_definition(step)
        check = can_execute(workflow, step)
        return StepStatusInfo(
            step=step,
            name=definition.name,
            description=definition.description,
            status=workflow.step_statuses[step],
            executable=check.executable,
            missing=check.missing,
            output=workflow.get_output(step) if with_output else None,
        )

    async def list_step_statuses(self, workflow_id: str) -> list[StepStatusInfo]:
        workflow = await self.get(workflow_id)
        return [self._step_info(workflow, d.step, with_output=False) for d in all_definitions()]

    async def get_step_status(self, workflow_id: str, step: int) -> StepStatusInfo:
        if not is_valid_step(step):
            raise InvalidStepError(step)
        workflow = await self.get(workflow_id)
        return self._step_info(workflow, step, with_output=True)

    async def execute_step(self, workflow_id: str, step: int, force: bool = False) -> StepResult:
        return await self.executor.execute_step(workflow_id, step, force=force)

    async def start(self, workflow_id: str, from_step: Optional[int] = None) -> Workflow:
        return await self.lifecycle.start(workflow_id, from_step=from_step)

    async def pause(self, workflow_id: str) -> Workflow:
        return await self.lifecycle.pause(workflow_id)

    async def logs(
        self, workflow_id: str, step: Optional[int] = None, limit: int = 100
    ) -> list[WorkflowLog]:
        if step is not None and not is_valid_step(step):
            raise InvalidStepError(step)
        await self.get(workflow_id)
        return await self.progress_log.list(workflow_id, step=step, limit=limit)
