"""Workflow-level status transitions: start, pause, complete and fail.

Each operation reloads the workflow under its lock, mutates it and saves it,
so it composes safely with step transitions running concurrently.
"""

import logging
from typing import Callable, Optional

from vidblog.orchestrator.errors import InvalidStepError, WorkflowNotFoundError
from vidblog.orchestrator.locks import WorkflowLocks
from vidblog.orchestrator.repository import WorkflowRepository
from vidblog.orchestrator.steps import STEP_NUMBERS, is_valid_step
from vidblog.schemas.workflow import StepStatus, Workflow, WorkflowStatus, utcnow

logger = logging.getLogger(__name__)


class LifecycleController:
    def __init__(self, repository: WorkflowRepository, locks: WorkflowLocks) -> None:
        self._repository = repository
        self._locks = locks

    async def _mutate(self, workflow_id: str, change: Callable[[Workflow], None]) -> Workflow:
        async with self._locks.hold(workflow_id):
            workflow = await self._repository.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            change(workflow)
            return await self._repository.save(workflow)

    async def start(self, workflow_id: str, from_step: Optional[int] = None) -> Workflow:
        """Mark a workflow in progress, optionally resetting it from a step onwards.

        Args:
            workflow_id: Workflow to start
            from_step: When given, steps from_step..7 are reset to pending and
                their outputs cleared. Earlier steps are left untouched.

        Raises:
            InvalidStepError: If from_step is outside 1..7
            WorkflowNotFoundError: If the workflow does not exist
        """
        if from_step is not None and not is_valid_step(from_step):
            raise InvalidStepError(from_step)

        def change(workflow: Workflow) -> None:
            workflow.status = WorkflowStatus.in_progress
            workflow.error_message = None
            if workflow.started_at is None:
                workflow.started_at = utcnow()
            if from_step is not None:
                for step in STEP_NUMBERS:
                    if step >= from_step:
                        workflow.step_statuses[step] = StepStatus.pending
                        workflow.set_output(step, None)
                workflow.current_step = from_step

        workflow = await self._mutate(workflow_id, change)
        logger.info(f"Workflow {workflow_id} started" + (f" from step {from_step}" if from_step else ""))
        return workflow

    async def pause(self, workflow_id: str) -> Workflow:
        """Mark a workflow paused. Advisory only: running steps are not interrupted."""

        def change(workflow: Workflow) -> None:
            workflow.status = WorkflowStatus.paused

        return await self._mutate(workflow_id, change)

    async def complete(self, workflow_id: str) -> Workflow:
        def change(workflow: Workflow) -> None:
            workflow.status = WorkflowStatus.completed
            if workflow.completed_at is None:
                workflow.completed_at = utcnow()

        workflow = await self._mutate(workflow_id, change)
        logger.info(f"Workflow {workflow_id} completed")
        return workflow

    async def fail(self, workflow_id: str, message: str) -> Workflow:
        def change(workflow: Workflow) -> None:
            workflow.status = WorkflowStatus.error
            workflow.error_message = message

        workflow = await self._mutate(workflow_id, change)
        logger.error(f"Workflow {workflow_id} failed: {message}")
        return workflow
