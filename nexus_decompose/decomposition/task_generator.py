"""Task generator - expands requirements into atomic tasks."""

from collections import defaultdict

from loguru import logger

from nexus_decompose.core.exceptions import TaskSizeViolation
from nexus_decompose.decomposition.models import (
    Complexity,
    Requirement,
    RiskLevel,
    SizeCategory,
    Task,
    TaskKind,
    task_id_key,
)

EXCLUSIVE_MARKER = "!"


class TaskGenerator:
    """
    Generate atomic tasks from normalized requirements.

    Ids are assigned in passes so that the output only depends on the
    requirement order: every test task first, then every implementation
    task, then integration tasks, then documentation tasks.

    Example:
        >>> generator = TaskGenerator()
        >>> tasks = generator.generate(requirements)
        >>> [t.id for t in tasks][:2]
        ['T001', 'T002']
    """

    def __init__(
        self,
        default_size: SizeCategory = SizeCategory.M,
        integration_size: SizeCategory = SizeCategory.M,
        doc_size: SizeCategory = SizeCategory.XS,
    ) -> None:
        """
        Initialize the task generator.

        Args:
            default_size: Size used when a requirement has no estimate.
            integration_size: Size of synthesized integration tasks.
            doc_size: Size of synthesized documentation tasks.
        """
        for size in (default_size, integration_size, doc_size):
            if size is SizeCategory.XL:
                raise ValueError("XL cannot be used as a configured task size")
        self.default_size = default_size
        self.integration_size = integration_size
        self.doc_size = doc_size
        self.warnings: list[str] = []
        self._counter = 0

    def generate(self, requirements: list[Requirement]) -> list[Task]:
        """
        Generate tasks for a list of requirements.

        Args:
            requirements: Requirements in source order.

        Returns:
            Tasks in id order.

        Raises:
            TaskSizeViolation: If any requirement estimate maps to XL.
        """
        logger.info(f"Synthesizing tasks for {len(requirements)} requirements")
        self.warnings = []
        self._counter = 0

        # Size every requirement before creating anything
        sizes = {req.id: self._size_for(req) for req in requirements}
        known_ids = {req.id for req in requirements}

        tasks: list[Task] = []
        test_tasks: dict[str, Task] = {}
        impl_tasks: dict[str, Task] = {}

        # First pass: test tasks
        for req in requirements:
            task = self._create_task(req, TaskKind.TEST, sizes[req.id])
            tasks.append(task)
            test_tasks[req.id] = task

        # Second pass: implementation tasks
        for req in requirements:
            task = self._create_task(req, TaskKind.IMPLEMENTATION, sizes[req.id])
            deps: set[str] = set()
            if not req.is_exempt:
                deps.add(test_tasks[req.id].id)
            impl_tasks[req.id] = task
            task.dependencies = sorted(deps, key=task_id_key)
            task.resources = sorted(r.rstrip(EXCLUSIVE_MARKER) for r in req.resources)
            task.parallel_eligible = not any(
                r.endswith(EXCLUSIVE_MARKER) for r in req.resources
            )
            tasks.append(task)

        # Cross-requirement references need every implementation id
        for req in requirements:
            task = impl_tasks[req.id]
            deps = set(task.dependencies)
            for ref in req.depends_on:
                # Unknown ids stay verbatim for the graph builder to report
                deps.add(impl_tasks[ref].id if ref in impl_tasks else ref)
            task.dependencies = sorted(deps, key=task_id_key)

            informs: set[str] = set()
            for ref in req.related_to:
                if ref in known_ids:
                    informs.add(impl_tasks[ref].id)
                else:
                    self.warnings.append(
                        f"Requirement {req.id} is related to unknown requirement {ref}"
                    )
            task.informs = sorted(informs - {task.id}, key=task_id_key)

        # Third pass: integration tasks
        by_story: dict[str | None, list[Requirement]] = defaultdict(list)
        for req in requirements:
            by_story[req.story_id].append(req)

        for req in requirements:
            if not req.cross_cutting:
                continue
            siblings = by_story[req.story_id]
            task = self._create_task(req, TaskKind.INTEGRATION, self.integration_size)
            task.dependencies = sorted(
                (impl_tasks[s.id].id for s in siblings), key=task_id_key
            )
            task.confidence = min(s.confidence for s in siblings)
            task.risk_level = assess_risk(task.confidence, task.complexity)
            tasks.append(task)

        # Fourth pass: documentation tasks
        for req in requirements:
            if not req.documented:
                continue
            task = self._create_task(req, TaskKind.DOC, self.doc_size)
            task.dependencies = [impl_tasks[req.id].id]
            tasks.append(task)

        for warning in self.warnings:
            logger.warning(warning)
        logger.info(f"Generated {len(tasks)} tasks for {len(requirements)} requirements")
        return tasks

    def _size_for(self, req: Requirement) -> SizeCategory:
        """Map a requirement estimate to a legal size category."""
        if req.estimated_minutes is None:
            return self.default_size
        size = SizeCategory.from_minutes(req.estimated_minutes)
        if size is SizeCategory.XL:
            logger.error(
                f"Requirement {req.id} estimate of {req.estimated_minutes} minutes is XL"
            )
            raise TaskSizeViolation(req.id, req.estimated_minutes)
        return size

    def _next_id(self) -> str:
        self._counter += 1
        return f"T{self._counter:03d}"

    def _create_task(self, req: Requirement, kind: TaskKind, size: SizeCategory) -> Task:
        """Create a task of the given kind for a requirement."""
        return Task(
            id=self._next_id(),
            title=self._title_for(req, kind),
            kind=kind,
            size_category=size,
            estimated_minutes=size.minutes,
            confidence=req.confidence,
            priority=req.priority,
            requirement_id=req.id,
            epic_id=req.epic_id,
            story_id=req.story_id,
            exempt=req.is_exempt,
            risk_level=assess_risk(req.confidence, size.complexity),
        )

    @staticmethod
    def _title_for(req: Requirement, kind: TaskKind) -> str:
        match kind:
            case TaskKind.TEST:
                return f"Write tests for {req.id}: {req.title}"
            case TaskKind.IMPLEMENTATION:
                return f"Implement {req.id}: {req.title}"
            case TaskKind.INTEGRATION:
                return f"Integrate story {req.story_id or req.id} ({req.id})"
            case TaskKind.DOC:
                return f"Document {req.id}: {req.title}"


def assess_risk(confidence: float, complexity: Complexity) -> RiskLevel:
    """Classify delivery risk from confidence and complexity."""
    if confidence >= 90 and complexity is Complexity.SIMPLE:
        return RiskLevel.LOW
    if confidence < 70 or complexity is Complexity.COMPLEX:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def generate_tasks(requirements: list[Requirement]) -> list[Task]:
    """Convenience function to generate tasks.

    Args:
        requirements: Normalized requirements.

    Returns:
        List of Task objects.
    """
    return TaskGenerator().generate(requirements)
