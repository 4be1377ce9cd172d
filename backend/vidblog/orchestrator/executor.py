"""Step executor: gated, persisted execution of a single pipeline step.

Coordinates one step run with:
- Prerequisite and already-completed checks (bypassed by force)
- Status transitions persisted under the per-workflow lock
- Dispatch to the handler registered for the step number
- Failure state persistence before the error is re-raised
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from vidblog.orchestrator.errors import (
    InvalidStepError,
    PrerequisiteError,
    StepAlreadyCompletedError,
    StepExecutionError,
    StepInProgressError,
    StepResetError,
    WorkflowNotFoundError,
)
from vidblog.orchestrator.lifecycle import LifecycleController
from vidblog.orchestrator.locks import WorkflowLocks
from vidblog.orchestrator.progress_log import ProgressLog
from vidblog.orchestrator.repository import WorkflowRepository
from vidblog.orchestrator.steps import can_execute, is_valid_step
from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import StepStatus, Workflow, WorkflowStatus

logger = logging.getLogger(__name__)


def _clear_recovered_error(workflow: Workflow) -> None:
    """Take a failed workflow out of error once none of its steps is in error."""
    if workflow.status != WorkflowStatus.error:
        return
    if any(status == StepStatus.error for status in workflow.step_statuses.values()):
        return
    workflow.status = WorkflowStatus.in_progress
    workflow.error_message = None


@dataclass
class StepResult:
    workflow: Workflow
    step_output: Optional[BaseModel]


class StepExecutor:
    """Runs pipeline steps through a table of registered handlers.

    No retries and no timeout are imposed here; a handler runs to
    completion or failure. The workflow lock is held only around the
    state transitions, never across the handler call.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        handlers: dict[int, StepHandler],
        progress_log: ProgressLog,
        lifecycle: LifecycleController,
        locks: WorkflowLocks,
    ) -> None:
        self._repository = repository
        self._handlers = handlers
        self._log = progress_log
        self._lifecycle = lifecycle
        self._locks = locks

    async def execute_step(self, workflow_id: str, step: int, force: bool = False) -> StepResult:
        """Execute one step of a workflow.

        Args:
            workflow_id: Workflow to run the step on
            step: Step number (1-7)
            force: Bypass the prerequisite and already-completed checks

        Returns:
            StepResult with the saved workflow and the step output

        Raises:
            InvalidStepError: Step outside 1..7 (raised before any store read)
            WorkflowNotFoundError: No such workflow
            PrerequisiteError: Prerequisites not completed and not forced
            StepAlreadyCompletedError: Step already completed and not forced
            StepInProgressError: Step already running and not forced. Force
                takes over a step left in progress by a crashed run
            StepResetError: The workflow was restarted at or before this step
                while the handler ran; the output is not saved
            StepExecutionError: The handler failed; the step and workflow are
                left in error state
        """
        if not is_valid_step(step):
            raise InvalidStepError(step)

        handler = self._handlers.get(step)

        async with self._locks.hold(workflow_id):
            workflow = await self._repository.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)

            if not force:
                check = can_execute(workflow, step)
                if not check.executable:
                    raise PrerequisiteError(step, check.missing)
                if workflow.step_statuses[step] == StepStatus.completed:
                    raise StepAlreadyCompletedError(step)
                if workflow.step_statuses[step] == StepStatus.in_progress:
                    raise StepInProgressError(step)

            if handler is None:
                raise StepExecutionError(step, f"No handler registered for step {step}")

            workflow.step_statuses[step] = StepStatus.in_progress
            workflow.current_step = step
            workflow.set_output(step, None)
            _clear_recovered_error(workflow)
            workflow = await self._repository.save(workflow)

        await self._log.record(workflow_id, step, StepStatus.in_progress.value, f"Starting step {step}")

        try:
            output = await handler.execute(workflow.model_copy(deep=True))
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Workflow {workflow_id} step {step} failed: {message}", exc_info=True)
            await self._record_failure(workflow_id, step, message)
            raise StepExecutionError(step, message) from e

        async with self._locks.hold(workflow_id):
            workflow = await self._repository.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            if workflow.step_statuses[step] != StepStatus.in_progress:
                # Restarted from this step or earlier while the handler ran
                logger.warning(f"Workflow {workflow_id} step {step} was reset while running; discarding output")
                raise StepResetError(step)
            workflow.set_output(step, output)
            handler.apply(workflow, output)
            workflow.step_statuses[step] = StepStatus.completed
            _clear_recovered_error(workflow)
            workflow = await self._repository.save(workflow)

        await self._log.record(workflow_id, step, StepStatus.completed.value, f"Step {step} completed")

        if workflow.all_steps_done():
            workflow = await self._lifecycle.complete(workflow_id)

        return StepResult(workflow=workflow, step_output=output)

    async def _record_failure(self, workflow_id: str, step: int, message: str) -> None:
        """Mark the step and the workflow as failed.

        Each write is attempted independently; a failure here is logged and
        never replaces the handler's error.
        """
        try:
            async with self._locks.hold(workflow_id):
                workflow = await self._repository.get(workflow_id)
                if workflow is not None:
                    workflow.step_statuses[step] = StepStatus.error
                    await self._repository.save(workflow)
        except Exception as e:
            logger.error(f"Could not mark step {step} of workflow {workflow_id} as error: {e}")

        await self._log.record(workflow_id, step, StepStatus.error.value, message)

        try:
            await self._lifecycle.fail(workflow_id, message)
        except Exception as e:
            logger.error(f"Could not mark workflow {workflow_id} as failed: {e}")
