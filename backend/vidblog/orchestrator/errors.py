"""Exception taxonomy for the workflow engine."""


class WorkflowError(Exception):
    """Base class for all workflow engine errors."""


class WorkflowValidationError(WorkflowError):
    """Raised when caller input is malformed."""


class InvalidStepError(WorkflowValidationError):
    """Raised when a step number is outside 1..7."""

    def __init__(self, step):
        self.step = step
        super().__init__(f"Invalid step number: {step}. Must be between 1 and 7")


class WorkflowNotFoundError(WorkflowError):
    """Raised when no workflow exists for an id."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class PrerequisiteError(WorkflowError):
    """Raised when a step is requested before its prerequisites are completed."""

    def __init__(self, step: int, missing: list[int]):
        self.step = step
        self.missing = list(missing)
        super().__init__(
            f"Cannot execute step {step}: prerequisites not met (missing steps: {', '.join(map(str, self.missing))})"
        )


class StepAlreadyCompletedError(WorkflowError):
    """Raised when a completed step is re-requested without force."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Step {step} is already completed. Use force to re-run")


class StepExecutionError(WorkflowError):
    """Raised when a step handler fails. The handler's exception is chained."""

    def __init__(self, step: int, message: str):
        self.step = step
        self.message = message
        super().__init__(f"Step {step} failed: {message}")


class PersistenceError(WorkflowError):
    """Raised when the workflow store cannot be read or written."""


class ConcurrentUpdateError(PersistenceError):
    """Raised when a save races another writer of the same workflow record."""

    def __init__(self, workflow_id: str, expected_version: int):
        self.workflow_id = workflow_id
        self.expected_version = expected_version
        super().__init__(
            f"Workflow {workflow_id} was modified concurrently (expected version {expected_version})"
        )


class StepInProgressError(WorkflowError):
    """Raised when a step that is already running is re-requested without force."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Step {step} is already in progress. Use force to run it again")


class StepResetError(WorkflowError):
    """Raised when a step was reset by a restart while its handler was running."""

    def __init__(self, step: int):
        self.step = step
        super().__init__(f"Step {step} was reset while running. Its output was discarded")
