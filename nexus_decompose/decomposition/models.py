"""Pydantic models for task decomposition.

This module defines all the data structures used by the decomposition
engine: requirements, atomic tasks, the dependency graph, the execution
plan, and the analysis report.
"""

import re
from collections import deque
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NUMBERED_ID = re.compile(r"^(.*?)(\d+)$")


def task_id_key(task_id: str) -> tuple[str, int, str]:
    """Sort key that orders ids by their numeric suffix (T999 before T1000)."""
    match = _NUMBERED_ID.match(task_id)
    if match is None:
        return (task_id, -1, task_id)
    return (match.group(1), int(match.group(2)), task_id)


# =============================================================================
# ENUMS
# =============================================================================


class Priority(str, Enum):
    """MoSCoW priority of a requirement."""

    MUST = "must"
    SHOULD = "should"
    COULD = "could"

    @property
    def rank(self) -> int:
        """Scheduling rank (higher runs first)."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.MUST: 3, Priority.SHOULD: 2, Priority.COULD: 1}


class TaskKind(str, Enum):
    """Kind of atomic task synthesized from a requirement."""

    TEST = "test"
    IMPLEMENTATION = "implementation"
    INTEGRATION = "integration"
    DOC = "doc"


class Complexity(str, Enum):
    """Task complexity level."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"

    @property
    def multiplier(self) -> float:
        """Context-size multiplier for this complexity."""
        return _COMPLEXITY_MULTIPLIER[self]


_COMPLEXITY_MULTIPLIER = {
    Complexity.SIMPLE: 0.7,
    Complexity.MEDIUM: 1.0,
    Complexity.COMPLEX: 1.3,
}


class SizeCategory(str, Enum):
    """T-shirt size of a task. XL exists only to be rejected."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"

    @classmethod
    def from_minutes(cls, minutes: int) -> "SizeCategory":
        """Classify a duration estimate.

        Args:
            minutes: Estimated duration in minutes.

        Returns:
            The smallest category whose ceiling covers the estimate.
        """
        for category, ceiling in SIZE_CEILINGS_MINUTES.items():
            if minutes <= ceiling:
                return category
        return cls.XL

    @property
    def minutes(self) -> int:
        """Canonical duration of the category."""
        if self is SizeCategory.XL:
            raise ValueError("XL has no canonical duration")
        return SIZE_CEILINGS_MINUTES[self]

    @property
    def complexity(self) -> Complexity:
        """Complexity derived from the size."""
        match self:
            case SizeCategory.XS | SizeCategory.S:
                return Complexity.SIMPLE
            case SizeCategory.M:
                return Complexity.MEDIUM
            case SizeCategory.L:
                return Complexity.COMPLEX
            case SizeCategory.XL:
                raise ValueError("XL has no complexity")


SIZE_CEILINGS_MINUTES: dict[SizeCategory, int] = {
    SizeCategory.XS: 30,
    SizeCategory.S: 60,
    SizeCategory.M: 120,
    SizeCategory.L: 240,
}


class TaskState(str, Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"
    BLOCKED = "blocked"
    WRITING_TEST = "writing_test"
    TEST_FAILING = "test_failing"
    IMPLEMENTING = "implementing"
    TEST_PASSING = "test_passing"
    REVIEWING = "reviewing"
    NEEDS_REWORK = "needs_rework"
    REFACTORING = "refactoring"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    FAILED = "failed"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        """Terminal states have no outgoing transitions."""
        return self in (TaskState.DONE, TaskState.CANCELLED, TaskState.FAILED)


class EdgeKind(str, Enum):
    """Kind of dependency edge. Only BLOCKS edges are scheduled."""

    BLOCKS = "blocks"
    INFORMS = "informs"


class ExemptionKind(str, Enum):
    """Requirement kinds allowed to skip the test-first gate."""

    SPIKE = "spike"
    HOTFIX = "hotfix"
    POC = "poc"


class ContextMode(str, Enum):
    """Context sizing strategy."""

    ADAPTIVE = "adaptive"
    FULL = "full"
    MINIMAL = "minimal"


class RiskLevel(str, Enum):
    """Delivery risk of a task."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# REQUIREMENTS
# =============================================================================


class Requirement(BaseModel):
    """A single requirement flattened out of the epic/story tree.

    Example:
        >>> req = Requirement(
        ...     id="FR-001",
        ...     title="User login",
        ...     priority=Priority.MUST,
        ...     confidence=90,
        ...     epic_id="E1",
        ...     story_id="S1",
        ... )
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable requirement id")
    title: str = Field(..., description="Requirement title")
    description: str = Field(default="", description="Free-text description")
    priority: Priority = Field(default=Priority.SHOULD, description="MoSCoW priority")
    confidence: float = Field(..., description="Externally supplied confidence 0-100")
    epic_id: str | None = Field(default=None, description="Owning epic")
    story_id: str | None = Field(default=None, description="Owning story")
    estimated_minutes: int | None = Field(
        default=None,
        gt=0,
        description="Duration estimate from the requirement metadata",
    )
    depends_on: list[str] = Field(
        default_factory=list,
        description="Requirement ids whose implementation must land first",
    )
    related_to: list[str] = Field(
        default_factory=list,
        description="Requirement ids that inform this one without blocking it",
    )
    cross_cutting: bool = Field(
        default=False,
        description="Emit an integration task over the whole story",
    )
    documented: bool = Field(default=False, description="Emit a documentation task")
    exemption: ExemptionKind | None = Field(
        default=None,
        description="Spike/hotfix/PoC requirements skip the test-first gate",
    )
    resources: list[str] = Field(
        default_factory=list,
        description="Output paths owned by the implementation (suffix '!' = exclusive)",
    )

    @property
    def is_exempt(self) -> bool:
        """Check if the requirement may skip test-first."""
        return self.exemption is not None


# =============================================================================
# TASKS
# =============================================================================


class Task(BaseModel):
    """Atomic unit of work derived from a requirement.

    Example:
        >>> task = Task(
        ...     id="T001",
        ...     title="Write tests for FR-001",
        ...     kind=TaskKind.TEST,
        ...     size_category=SizeCategory.M,
        ...     estimated_minutes=120,
        ...     confidence=90,
        ...     requirement_id="FR-001",
        ... )
    """

    model_config = ConfigDict(frozen=False)

    id: str = Field(..., min_length=1, description="Unique task identifier")
    title: str = Field(..., min_length=1, description="Task title")
    kind: TaskKind = Field(..., description="Task kind")
    size_category: SizeCategory = Field(..., description="T-shirt size")
    estimated_minutes: int = Field(..., gt=0, description="Duration estimate")
    confidence: float = Field(..., ge=0, le=100, description="Confidence 0-100")
    context_size: int = Field(default=0, ge=0, description="Context budget in lines")
    dependencies: list[str] = Field(
        default_factory=list,
        description="Task ids that block this task",
    )
    informs: list[str] = Field(
        default_factory=list,
        description="Task ids whose output informs this task (not scheduled)",
    )
    parallel_eligible: bool = Field(
        default=True,
        description="False when the task must run alone in its batch",
    )
    priority: Priority = Field(default=Priority.SHOULD, description="Inherited priority")
    requirement_id: str | None = Field(default=None, description="Source requirement")
    epic_id: str | None = Field(default=None, description="Owning epic")
    story_id: str | None = Field(default=None, description="Owning story")
    exempt: bool = Field(default=False, description="Source requirement is exempt")
    resources: list[str] = Field(
        default_factory=list,
        description="Exclusive output-ownership set",
    )
    risk_level: RiskLevel = Field(default=RiskLevel.MEDIUM, description="Delivery risk")
    state: TaskState = Field(default=TaskState.PENDING, description="Lifecycle state")

    @field_validator("size_category")
    @classmethod
    def validate_size_category(cls, v: SizeCategory) -> SizeCategory:
        """XL tasks are never legal."""
        if v is SizeCategory.XL:
            raise ValueError("XL tasks are not allowed; split the requirement")
        return v

    @property
    def complexity(self) -> Complexity:
        """Complexity derived from the size category."""
        return self.size_category.complexity

    def is_ready(self, completed_tasks: set[str]) -> bool:
        """Check if all dependencies are satisfied.

        Args:
            completed_tasks: Set of completed task IDs.

        Returns:
            True if all dependencies are in completed_tasks.
        """
        return all(dep in completed_tasks for dep in self.dependencies)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")


# =============================================================================
# DEPENDENCY GRAPH
# =============================================================================


class DependencyEdge(BaseModel):
    """Directed edge from a dependency to the task that needs it."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Task that must come first")
    target: str = Field(description="Task that depends on source")
    kind: EdgeKind = Field(default=EdgeKind.BLOCKS, description="Edge kind")

    def to_dict(self) -> dict[str, str]:
        """Convert to the wire form ``{from, to, kind}``."""
        return {"from": self.source, "to": self.target, "kind": self.kind.value}


class TaskGraph(BaseModel):
    """Validated task set plus its dependency edges.

    The graph is built by ``DependencyResolver`` and is acyclic over
    ``blocks`` edges.

    Example:
        >>> graph = resolver.resolve(tasks)
        >>> graph.dependents("T001")
        ['T004']
    """

    model_config = ConfigDict(frozen=False)

    tasks: dict[str, Task] = Field(
        default_factory=dict,
        description="Task ID -> Task mapping, in synthesis order",
    )
    edges: list[DependencyEdge] = Field(
        default_factory=list,
        description="All edges, blocks and informs",
    )

    def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        return self.tasks.get(task_id)

    def get_all_tasks(self) -> list[Task]:
        """Get all tasks in synthesis order."""
        return list(self.tasks.values())

    def blocking_edges(self) -> list[DependencyEdge]:
        """Edges that participate in scheduling."""
        return [e for e in self.edges if e.kind is EdgeKind.BLOCKS]

    def predecessors(self, task_id: str) -> list[str]:
        """Get the tasks that block this task."""
        task = self.tasks.get(task_id)
        return list(task.dependencies) if task else []

    def dependents(self, task_id: str) -> list[str]:
        """Get tasks that are directly blocked by this task.

        Args:
            task_id: Task identifier.

        Returns:
            Sorted list of task IDs that depend on this task.
        """
        return sorted(
            (tid for tid, task in self.tasks.items() if task_id in task.dependencies),
            key=task_id_key,
        )

    def transitive_dependents(self, task_id: str) -> list[str]:
        """Get every task reachable from this one over blocks edges.

        Args:
            task_id: Task identifier.

        Returns:
            Sorted list of direct and indirect dependents.
        """
        children: dict[str, list[str]] = {tid: [] for tid in self.tasks}
        for edge in self.blocking_edges():
            children.setdefault(edge.source, []).append(edge.target)

        seen: set[str] = set()
        queue: deque[str] = deque(children.get(task_id, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(children.get(current, []))

        seen.discard(task_id)
        return sorted(seen, key=task_id_key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "nodes": list(self.tasks),
            "edges": [e.to_dict() for e in self.edges],
        }


# =============================================================================
# EXECUTION PLAN
# =============================================================================


class ExecutionPlan(BaseModel):
    """Ordered batches plus the critical path."""

    model_config = ConfigDict(frozen=False)

    batches: list[list[str]] = Field(
        default_factory=list,
        description="Execution batches (list of task ID lists)",
    )
    critical_path: list[str] = Field(
        default_factory=list,
        description="Longest duration-weighted path, first task first",
    )
    total_critical_duration_minutes: int = Field(
        default=0,
        ge=0,
        description="Summed duration of the critical path",
    )

    @property
    def total_batches(self) -> int:
        """Get total number of batches."""
        return len(self.batches)

    def batch_index(self, task_id: str) -> int | None:
        """Get the batch a task is scheduled in, if any."""
        for index, batch in enumerate(self.batches):
            if task_id in batch:
                return index
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "batches": [list(b) for b in self.batches],
            "critical_path": list(self.critical_path),
            "total_critical_duration_minutes": self.total_critical_duration_minutes,
        }


# =============================================================================
# ANALYSIS
# =============================================================================


class AnalysisReport(BaseModel):
    """Confidence bands, warnings and summary numbers for a decomposition."""

    model_config = ConfigDict(frozen=False)

    by_confidence_band: dict[str, int] = Field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0},
        description="Task counts per confidence band",
    )
    low_confidence_task_ids: list[str] = Field(
        default_factory=list,
        description="Tasks below the low-confidence threshold",
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Coverage and structure warnings",
    )
    total_tasks: int = Field(default=0, ge=0)
    average_context_size: int = Field(default=0, ge=0)
    average_confidence: int = Field(default=0, ge=0)
    critical_path_length: int = Field(default=0, ge=0)
    parallelizable_percentage: int = Field(default=0, ge=0, le=100)
    by_risk_level: dict[str, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0},
        description="Task counts per risk level",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")


# =============================================================================
# PIPELINE RESULTS
# =============================================================================


class StageCompleted(BaseModel):
    """Progress record returned for each pipeline stage."""

    model_config = ConfigDict(frozen=True)

    stage: str = Field(description="Stage name")
    item_count: int = Field(default=0, ge=0, description="Items the stage produced")
    detail: str = Field(default="", description="Human-readable summary")


class DecompositionResult(BaseModel):
    """Everything a decomposition run produces."""

    model_config = ConfigDict(frozen=False)

    requirements: list[Requirement] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    graph: TaskGraph = Field(default_factory=TaskGraph)
    plan: ExecutionPlan = Field(default_factory=ExecutionPlan)
    report: AnalysisReport = Field(default_factory=AnalysisReport)
    stages: list[StageCompleted] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert the four output structures to dictionaries."""
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "graph": self.graph.to_dict(),
            "plan": self.plan.to_dict(),
            "report": self.report.to_dict(),
        }


class TransitionRecord(BaseModel):
    """One accepted lifecycle transition."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=0, description="Position in the manager's history")
    task_id: str
    source: TaskState
    target: TaskState
    reason: str | None = None
