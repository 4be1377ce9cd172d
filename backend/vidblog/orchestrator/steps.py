"""Step definition table and prerequisite checks for the workflow engine.

The pipeline is a fixed seven-node graph. Each step names the steps that
must be completed before it may run; a skipped prerequisite does not count.
"""

from dataclasses import dataclass, field
from typing import Optional

from vidblog.schemas.workflow import StepStatus, Workflow

STEP_NUMBERS = range(1, 8)


@dataclass(frozen=True)
class StepDefinition:
    step: int
    name: str
    description: str
    prerequisites: tuple[int, ...] = ()


STEP_DEFINITIONS: dict[int, StepDefinition] = {
    1: StepDefinition(1, "Download Video", "Download video from YouTube or URL"),
    2: StepDefinition(2, "Extract & Transcribe", "Extract audio and transcribe via Whisper", (1,)),
    3: StepDefinition(3, "Enhance Transcript", "AI-enhance transcript and identify key frames", (2,)),
    4: StepDefinition(4, "Capture Screenshots", "Capture screenshots at key timestamps", (3,)),
    5: StepDefinition(5, "Save Transcript", "Export transcript as markdown", (3,)),
    6: StepDefinition(6, "Generate Blog", "AI-generate blog post with screenshots", (3, 4)),
    7: StepDefinition(7, "Generate Social", "AI-generate social media posts", (3,)),
}


@dataclass
class PrerequisiteCheck:
    executable: bool
    missing: list[int] = field(default_factory=list)


def is_valid_step(step) -> bool:
    return isinstance(step, int) and not isinstance(step, bool) and step in STEP_NUMBERS


def get_definition(step: int) -> Optional[StepDefinition]:
    """Look up a step definition.

    Args:
        step: Step number

    Returns:
        The definition, or None when the step is outside 1..7
    """
    return STEP_DEFINITIONS.get(step)


def all_definitions() -> tuple[StepDefinition, ...]:
    """All step definitions in step order."""
    return tuple(STEP_DEFINITIONS[n] for n in STEP_NUMBERS)


def can_execute(workflow: Workflow, step: int) -> PrerequisiteCheck:
    """Check whether every prerequisite of a step is completed.

    Args:
        workflow: Workflow snapshot to inspect
        step: Step number to check

    Returns:
        PrerequisiteCheck with executable flag and the unmet prerequisite
        steps in ascending order. Unknown steps are never executable.
    """
    definition = get_definition(step)
    if definition is None:
        return PrerequisiteCheck(executable=False, missing=[])

    missing = sorted(
        prereq for prereq in definition.prerequisites
        if workflow.step_statuses.get(prereq) != StepStatus.completed
    )
    return PrerequisiteCheck(executable=not missing, missing=missing)
