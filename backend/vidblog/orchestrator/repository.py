"""Workflow, progress log and prompt persistence.

Two backends implement the same protocols: an in-memory store for tests and
single-shot tools, and a SQLAlchemy store backed by the async engine in
``vidblog.db``. Both hand out copies, so mutating a loaded Workflow never
changes stored state until it is saved.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidblog.db.models import PromptRecord, WorkflowLogRecord, WorkflowRecord
from vidblog.orchestrator.errors import (
    ConcurrentUpdateError,
    PersistenceError,
    WorkflowNotFoundError,
)
from vidblog.schemas.prompt import Prompt, PromptType
from vidblog.schemas.workflow import (
    STEP_COUNT,
    Workflow,
    WorkflowLog,
    WorkflowStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

_JSON_FIELDS = ["step_statuses", "config"] + [f"step{n}_output" for n in range(1, STEP_COUNT + 1)]


class WorkflowRepository(Protocol):
    """Protocol for workflow state persistence backends."""

    async def create(self, workflow: Workflow) -> Workflow:
        """Persist a new workflow."""

    async def get(self, workflow_id: str) -> Optional[Workflow]:
        """Retrieve a workflow by id."""

    async def save(self, workflow: Workflow) -> Workflow:
        """Persist a modified workflow.

        Bumps ``version`` and ``updated_at`` on the passed instance. Raises
        ConcurrentUpdateError when the stored version differs from the
        instance's version, WorkflowNotFoundError when the record is gone.
        """

    async def delete(self, workflow_id: str) -> bool:
        """Remove a workflow and its log entries. Returns False if absent."""

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Workflow], int]:
        """Return a page of workflows, newest first, and the total match count."""

    async def append_log(self, entry: WorkflowLog) -> WorkflowLog:
        """Append a progress log entry."""

    async def list_logs(
        self, workflow_id: str, step: Optional[int] = None, limit: int = 100
    ) -> list[WorkflowLog]:
        """Return log entries for a workflow, newest first."""


class PromptRepository(Protocol):
    """Protocol for prompt storage."""

    async def create(self, prompt: Prompt) -> Prompt:
        """Persist a new prompt."""

    async def get(self, prompt_id: str) -> Optional[Prompt]:
        """Retrieve a prompt by id."""

    async def save(self, prompt: Prompt) -> Optional[Prompt]:
        """Overwrite a stored prompt. Returns None if it no longer exists."""

    async def delete(self, prompt_id: str) -> bool:
        """Remove a prompt. Returns False if it did not exist."""

    async def get_default(self, prompt_type: PromptType) -> Optional[Prompt]:
        """Return the active default prompt of a type."""

    async def list(
        self, prompt_type: Optional[PromptType] = None, active: Optional[bool] = None
    ) -> list[Prompt]:
        """Return prompts, optionally filtered by type and active flag."""

    async def unset_default(self, prompt_type: PromptType) -> None:
        """Clear the default flag on every prompt of a type."""


# ============================================================================
# In-memory backend
# ============================================================================

class InMemoryWorkflowRepository:
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, Workflow] = {}
        self._logs: list[WorkflowLog] = []
        self._log_id = 0

    async def create(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def get(self, workflow_id: str) -> Optional[Workflow]:
        stored = self._workflows.get(workflow_id)
        return stored.model_copy(deep=True) if stored else None

    async def save(self, workflow: Workflow) -> Workflow:
        stored = self._workflows.get(workflow.id)
        if stored is None:
            raise WorkflowNotFoundError(workflow.id)
        if stored.version != workflow.version:
            raise ConcurrentUpdateError(workflow.id, workflow.version)

        workflow.version += 1
        workflow.updated_at = utcnow()
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def delete(self, workflow_id: str) -> bool:
        if self._workflows.pop(workflow_id, None) is None:
            return False
        self._logs = [log for log in self._logs if log.workflow_id != workflow_id]
        return True

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Workflow], int]:
        # Reverse insertion order first so equal timestamps list newest first
        matches = [
            wf for wf in reversed(list(self._workflows.values()))
            if status is None or wf.status == status
        ]
        matches.sort(key=lambda wf: wf.created_at, reverse=True)
        page = matches[offset:offset + limit]
        return [wf.model_copy(deep=True) for wf in page], len(matches)

    async def append_log(self, entry: WorkflowLog) -> WorkflowLog:
        if entry.workflow_id not in self._workflows:
            raise WorkflowNotFoundError(entry.workflow_id)
        self._log_id += 1
        stored = entry.model_copy(update={"id": self._log_id})
        self._logs.append(stored)
        return stored

    async def list_logs(
        self, workflow_id: str, step: Optional[int] = None, limit: int = 100
    ) -> list[WorkflowLog]:
        matches = [
            log for log in reversed(self._logs)
            if log.workflow_id == workflow_id and (step is None or log.step == step)
        ]
        return matches[:limit]


class InMemoryPromptRepository:
    def __init__(self) -> None:
        self._prompts: dict[str, Prompt] = {}

    async def create(self, prompt: Prompt) -> Prompt:
        self._prompts[prompt.id] = prompt.model_copy(deep=True)
        return prompt

    async def get(self, prompt_id: str) -> Optional[Prompt]:
        stored = self._prompts.get(prompt_id)
        return stored.model_copy(deep=True) if stored else None

    async def save(self, prompt: Prompt) -> Optional[Prompt]:
        if prompt.id not in self._prompts:
            return None
        self._prompts[prompt.id] = prompt.model_copy(deep=True)
        return prompt

    async def delete(self, prompt_id: str) -> bool:
        return self._prompts.pop(prompt_id, None) is not None

    async def get_default(self, prompt_type: PromptType) -> Optional[Prompt]:
        for prompt in self._prompts.values():
            if prompt.type == prompt_type and prompt.is_default and prompt.is_active:
                return prompt.model_copy(deep=True)
        return None

    async def list(
        self, prompt_type: Optional[PromptType] = None, active: Optional[bool] = None
    ) -> list[Prompt]:
        return [
            p.model_copy(deep=True) for p in self._prompts.values()
            if (prompt_type is None or p.type == prompt_type)
            and (active is None or p.is_active == active)
        ]

    async def unset_default(self, prompt_type: PromptType) -> None:
        for prompt in self._prompts.values():
            if prompt.type == prompt_type:
                prompt.is_default = False


# ============================================================================
# SQLAlchemy backend
# ============================================================================

def _workflow_values(workflow: Workflow) -> dict:
    data = workflow.model_dump()
    json_data = workflow.model_dump(mode="json", include=set(_JSON_FIELDS))
    data.update(json_data)
    data["status"] = workflow.status.value
    return data


def _workflow_from_record(record: WorkflowRecord) -> Workflow:
    data = {column.key: getattr(record, column.key) for column in WorkflowRecord.__table__.columns}
    return Workflow.model_validate(data)


def _log_from_record(record: WorkflowLogRecord) -> WorkflowLog:
    return WorkflowLog(
        id=record.id,
        workflow_id=record.workflow_id,
        step=record.step,
        status=record.status,
        message=record.message,
        metadata=record.log_metadata,
        created_at=record.created_at,
    )


def _prompt_from_record(record: PromptRecord) -> Prompt:
    data = {column.key: getattr(record, column.key) for column in PromptRecord.__table__.columns}
    return Prompt.model_validate(data)


class SqlWorkflowRepository:
    """Persist workflow state with the async SQLAlchemy ORM.

    Saves are a compare-and-swap on the ``version`` column so a stale
    snapshot can never silently overwrite newer state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, workflow: Workflow) -> Workflow:
        try:
            async with self._session_factory() as session:
                session.add(WorkflowRecord(**_workflow_values(workflow)))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create workflow {workflow.id}: {e}") from e
        return workflow

    async def get(self, workflow_id: str) -> Optional[Workflow]:
        try:
            async with self._session_factory() as session:
                record = await session.get(WorkflowRecord, workflow_id)
                return _workflow_from_record(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load workflow {workflow_id}: {e}") from e

    async def save(self, workflow: Workflow) -> Workflow:
        expected = workflow.version
        values = _workflow_values(workflow)
        values.pop("id")
        values["version"] = expected + 1
        values["updated_at"] = utcnow()

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(WorkflowRecord)
                    .where(WorkflowRecord.id == workflow.id, WorkflowRecord.version == expected)
                    .values(**values)
                )
                if result.rowcount == 0:
                    exists = await session.scalar(
                        select(func.count()).select_from(WorkflowRecord).where(WorkflowRecord.id == workflow.id)
                    )
                    await session.rollback()
                    if not exists:
                        raise WorkflowNotFoundError(workflow.id)
                    raise ConcurrentUpdateError(workflow.id, expected)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save workflow {workflow.id}: {e}") from e

        workflow.version = values["version"]
        workflow.updated_at = values["updated_at"]
        return workflow

    async def delete(self, workflow_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(WorkflowLogRecord).where(WorkflowLogRecord.workflow_id == workflow_id)
                )
                result = await session.execute(
                    delete(WorkflowRecord).where(WorkflowRecord.id == workflow_id)
                )
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete workflow {workflow_id}: {e}") from e

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Workflow], int]:
        query = select(WorkflowRecord)
        count_query = select(func.count()).select_from(WorkflowRecord)
        if status is not None:
            query = query.where(WorkflowRecord.status == status.value)
            count_query = count_query.where(WorkflowRecord.status == status.value)
        query = query.order_by(WorkflowRecord.created_at.desc()).limit(limit).offset(offset)

        try:
            async with self._session_factory() as session:
                records = (await session.execute(query)).scalars().all()
                total = await session.scalar(count_query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list workflows: {e}") from e

        return [_workflow_from_record(r) for r in records], total or 0

    async def append_log(self, entry: WorkflowLog) -> WorkflowLog:
        record = WorkflowLogRecord(
            workflow_id=entry.workflow_id,
            step=entry.step,
            status=entry.status,
            message=entry.message,
            log_metadata=entry.metadata,
            created_at=entry.created_at,
        )
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to append log for workflow {entry.workflow_id}: {e}") from e
        return entry.model_copy(update={"id": record.id})

    async def list_logs(
        self, workflow_id: str, step: Optional[int] = None, limit: int = 100
    ) -> list[WorkflowLog]:
        query = select(WorkflowLogRecord).where(WorkflowLogRecord.workflow_id == workflow_id)
        if step is not None:
            query = query.where(WorkflowLogRecord.step == step)
        query = query.order_by(WorkflowLogRecord.id.desc()).limit(limit)

        try:
            async with self._session_factory() as session:
                records = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list logs for workflow {workflow_id}: {e}") from e
        return [_log_from_record(r) for r in records]


class SqlPromptRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, prompt: Prompt) -> Prompt:
        data = prompt.model_dump()
        data["type"] = prompt.type.value
        try:
            async with self._session_factory() as session:
                session.add(PromptRecord(**data))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create prompt {prompt.name}: {e}") from e
        return prompt

    async def get(self, prompt_id: str) -> Optional[Prompt]:
        try:
            async with self._session_factory() as session:
                record = await session.get(PromptRecord, prompt_id)
                return _prompt_from_record(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load prompt {prompt_id}: {e}") from e

    async def save(self, prompt: Prompt) -> Optional[Prompt]:
        data = prompt.model_dump(exclude={"id", "created_at"})
        data["type"] = prompt.type.value
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(PromptRecord).where(PromptRecord.id == prompt.id).values(**data)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save prompt {prompt.id}: {e}") from e
        return prompt if result.rowcount > 0 else None

    async def delete(self, prompt_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(delete(PromptRecord).where(PromptRecord.id == prompt_id))
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete prompt {prompt_id}: {e}") from e

    async def get_default(self, prompt_type: PromptType) -> Optional[Prompt]:
        query = (
            select(PromptRecord)
            .where(
                PromptRecord.type == prompt_type.value,
                PromptRecord.is_default.is_(True),
                PromptRecord.is_active.is_(True),
            )
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                record = (await session.execute(query)).scalar_one_or_none()
                return _prompt_from_record(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load default {prompt_type.value} prompt: {e}") from e

    async def list(
        self, prompt_type: Optional[PromptType] = None, active: Optional[bool] = None
    ) -> list[Prompt]:
        query = select(PromptRecord)
        if prompt_type is not None:
            query = query.where(PromptRecord.type == prompt_type.value)
        if active is not None:
            query = query.where(PromptRecord.is_active.is_(active))
        query = query.order_by(PromptRecord.type, PromptRecord.name)

        try:
            async with self._session_factory() as session:
                records = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list prompts: {e}") from e
        return [_prompt_from_record(r) for r in records]

    async def unset_default(self, prompt_type: PromptType) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    update(PromptRecord)
                    .where(PromptRecord.type == prompt_type.value, PromptRecord.is_default.is_(True))
                    .values(is_default=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to reset default {prompt_type.value} prompt: {e}") from e
