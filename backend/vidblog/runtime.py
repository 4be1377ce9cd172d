"""Production wiring of the workflow and prompt services."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidblog.db import async_session
from vidblog.orchestrator.repository import SqlPromptRepository, SqlWorkflowRepository
from vidblog.orchestrator.service import WorkflowService
from vidblog.pipeline import PipelineContext, build_default_handlers
from vidblog.services.file_manager import FileManager
from vidblog.services.prompts import PromptService


def build_prompt_service(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> PromptService:
    return PromptService(SqlPromptRepository(session_factory or async_session))


def build_workflow_service(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    prompt_service: Optional[PromptService] = None,
    file_manager: Optional[FileManager] = None,
) -> WorkflowService:
    """Workflow service backed by the SQL store with the default step handlers."""
    session_factory = session_factory or async_session
    file_manager = file_manager or FileManager()
    prompt_service = prompt_service or build_prompt_service(session_factory)

    context = PipelineContext(file_manager=file_manager, prompts=prompt_service)
    return WorkflowService(
        SqlWorkflowRepository(session_factory),
        build_default_handlers(context),
        file_manager=file_manager,
    )
