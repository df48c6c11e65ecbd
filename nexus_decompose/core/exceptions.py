"""Exception hierarchy for the decomposition engine.

Build-time errors (everything under ``DecompositionError``) abort the whole
decomposition run. Lifecycle errors are raised to the caller for a single
task and leave the rest of the plan untouched.
"""


# =============================================================================
# BASE
# =============================================================================


class NexusError(Exception):
    """Base exception for decomposition engine errors."""

    pass


# =============================================================================
# BUILD-TIME (FATAL)
# =============================================================================


class DecompositionError(NexusError):
    """A decomposition run could not produce a valid task set or plan."""

    pass


class MalformedSpecError(DecompositionError):
    """The incoming requirement tree is structurally invalid."""

    def __init__(self, message: str, requirement_id: str | None = None) -> None:
        self.requirement_id = requirement_id
        super().__init__(message)


class ConfidenceOutOfRange(DecompositionError):
    """A requirement confidence lies outside [0, 100]."""

    def __init__(self, requirement_id: str, value: float) -> None:
        self.requirement_id = requirement_id
        self.value = value
        super().__init__(
            f"Confidence {value} for requirement {requirement_id} is outside [0, 100]"
        )


class TaskSizeViolation(DecompositionError):
    """A requirement's estimate maps to the illegal XL size category."""

    def __init__(self, requirement_id: str, estimated_minutes: int) -> None:
        self.requirement_id = requirement_id
        self.estimated_minutes = estimated_minutes
        super().__init__(
            f"Requirement {requirement_id} is estimated at {estimated_minutes} minutes "
            f"(XL); split it upstream before decomposing"
        )


class CycleDetectedError(DecompositionError):
    """The task dependency graph contains a cycle."""

    def __init__(self, path: list[str]) -> None:
        self.path = list(path)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.path)}")


class InvalidDependencyReference(DecompositionError):
    """A task depends on an id that is not part of the task set."""

    def __init__(self, task_id: str, missing_id: str) -> None:
        self.task_id = task_id
        self.missing_id = missing_id
        super().__init__(f"Task {task_id} depends on unknown id {missing_id}")


class TestFirstViolation(DecompositionError):
    """An implementation task is not gated by a test task of its requirement."""

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, task_id: str, requirement_id: str | None) -> None:
        self.task_id = task_id
        self.requirement_id = requirement_id
        super().__init__(
            f"Implementation task {task_id} does not depend on a test task "
            f"of requirement {requirement_id}"
        )


class DuplicateTaskError(DecompositionError):
    """Two tasks share the same id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Duplicate task id: {task_id}")


class ResourceConflictError(DecompositionError):
    """Two tasks scheduled in the same batch claim the same resource."""

    def __init__(self, task_a: str, task_b: str, resource: str) -> None:
        self.task_a = task_a
        self.task_b = task_b
        self.resource = resource
        super().__init__(
            f"Tasks {task_a} and {task_b} both own {resource} and cannot share a batch"
        )


# =============================================================================
# RUNTIME (RECOVERABLE)
# =============================================================================


class LifecycleError(NexusError):
    """A lifecycle operation on a single task was rejected."""

    pass


class InvalidStateTransition(LifecycleError):
    """The requested state change is not an edge of the task state machine."""

    def __init__(
        self,
        task_id: str,
        source: str,
        target: str | None,
        message: str | None = None,
    ) -> None:
        self.task_id = task_id
        self.source = source
        self.target = target
        super().__init__(message or f"Task {task_id} cannot move from {source} to {target}")


class UnknownTaskError(LifecycleError):
    """The lifecycle manager does not track the given task id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Unknown task: {task_id}")
