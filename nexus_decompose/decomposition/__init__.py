"""Task decomposition - turning requirement trees into scheduled tasks.

This module provides the complete planning pipeline:
- Normalization (epic/story tree -> requirements)
- Task synthesis (requirements -> atomic tasks)
- Dependency resolution (tasks -> validated DAG)
- Critical path analysis (DAG -> longest weighted path)
- Batch planning (DAG -> ordered parallel batches)
- Context allocation (confidence -> line budget)
- Lifecycle management (per-task state machine)
"""

from nexus_decompose.decomposition.analysis import AnalysisReporter
from nexus_decompose.decomposition.batch_planner import BatchPlanner, plan_batches
from nexus_decompose.decomposition.context_allocator import ContextAllocator
from nexus_decompose.decomposition.critical_path import (
    CriticalPath,
    CriticalPathAnalyzer,
    find_critical_path,
)
from nexus_decompose.decomposition.dependency_resolver import (
    DependencyResolver,
    resolve_to_graph,
)
from nexus_decompose.decomposition.lifecycle import TRANSITIONS, TaskLifecycleManager
from nexus_decompose.decomposition.models import (
    AnalysisReport,
    Complexity,
    ContextMode,
    DecompositionResult,
    DependencyEdge,
    EdgeKind,
    ExecutionPlan,
    ExemptionKind,
    Priority,
    Requirement,
    RiskLevel,
    SizeCategory,
    StageCompleted,
    Task,
    TaskGraph,
    TaskKind,
    TaskState,
    TransitionRecord,
    task_id_key,
)
from nexus_decompose.decomposition.normalizer import RequirementNormalizer, normalize_spec
from nexus_decompose.decomposition.task_generator import TaskGenerator, generate_tasks

__all__ = [
    # Models
    "AnalysisReport",
    "Complexity",
    "ContextMode",
    "DecompositionResult",
    "DependencyEdge",
    "EdgeKind",
    "ExecutionPlan",
    "ExemptionKind",
    "Priority",
    "Requirement",
    "RiskLevel",
    "SizeCategory",
    "StageCompleted",
    "Task",
    "TaskGraph",
    "TaskKind",
    "TaskState",
    "TransitionRecord",
    "task_id_key",
    # Normalization
    "RequirementNormalizer",
    "normalize_spec",
    # Task Generation
    "TaskGenerator",
    "generate_tasks",
    # Dependency Resolution
    "DependencyResolver",
    "resolve_to_graph",
    # Scheduling
    "CriticalPath",
    "CriticalPathAnalyzer",
    "find_critical_path",
    "BatchPlanner",
    "plan_batches",
    # Context
    "ContextAllocator",
    # Lifecycle
    "TRANSITIONS",
    "TaskLifecycleManager",
    # Analysis
    "AnalysisReporter",
]
