"""Step handler interface.

A handler binds one pipeline step to its external collaborators. The
executor owns every status transition; a handler only produces output.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from pydantic import BaseModel

from vidblog.config import Settings, settings
from vidblog.schemas.workflow import Workflow
from vidblog.services.file_manager import FileManager
from vidblog.services.llm import LLMAdapter, get_adapter
from vidblog.services.prompts import PromptService


@dataclass
class PipelineContext:
    """Collaborators shared by the step handlers."""
    file_manager: FileManager
    prompts: PromptService
    llm_factory: Callable[[], LLMAdapter] = get_adapter
    settings: Settings = field(default_factory=lambda: settings)


class StepHandler(ABC):
    """Produces the output of a single pipeline step."""

    step: int = 0

    def __init__(self, context: PipelineContext) -> None:
        self.context = context

    @abstractmethod
    async def execute(self, workflow: Workflow) -> BaseModel:
        """Run the step against a snapshot of the workflow.

        Args:
            workflow: Workflow as it was when the step was marked in progress.
                Prerequisite outputs are available on it. Mutations are
                discarded.

        Returns:
            The step's output model.

        Raises:
            Any exception. The executor records it as a step failure.
        """
        ...

    def apply(self, workflow: Workflow, output: BaseModel) -> None:
        """Project output fields onto the workflow record before it is saved."""
        return None
