"""Append-only progress log of step transitions.

Recording is best effort: a failure to persist an entry is logged and never
interrupts the step that produced it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from vidblog.orchestrator.repository import WorkflowRepository
from vidblog.schemas.workflow import WorkflowLog

logger = logging.getLogger(__name__)


class ProgressLog:
    def __init__(self, repository: WorkflowRepository) -> None:
        self._repository = repository

    async def record(
        self,
        workflow_id: str,
        step: int,
        status: str,
        message: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[WorkflowLog]:
        """Append an entry and echo it to the application log.

        Returns:
            The stored entry, or None if it could not be persisted
        """
        logger.info(f"[Workflow {workflow_id}] Step {step}: {message}")
        entry = WorkflowLog(
            workflow_id=workflow_id,
            step=step,
            status=status,
            message=message,
            metadata=metadata,
        )
        try:
            return await self._repository.append_log(entry)
        except Exception as e:
            logger.error(f"Failed to write progress log for workflow {workflow_id} step {step}: {e}")
            return None

    async def list(
        self, workflow_id: str, step: Optional[int] = None, limit: int = 100
    ) -> list[WorkflowLog]:
        """Entries for a workflow, newest first."""
        return await self._repository.list_logs(workflow_id, step=step, limit=limit)
