"""Critical path analysis over a validated task graph."""

from dataclasses import dataclass, field

from loguru import logger

from nexus_decompose.decomposition.dependency_resolver import DependencyResolver
from nexus_decompose.decomposition.models import TaskGraph, task_id_key


@dataclass(frozen=True)
class CriticalPath:
    """Longest duration-weighted chain through the graph."""

    path: list[str] = field(default_factory=list)
    total_minutes: int = 0

    def __len__(self) -> int:
        return len(self.path)


class CriticalPathAnalyzer:
    """
    Find the longest duration-weighted path through a task DAG.

    Node weights are ``Task.estimated_minutes``. Ties are always broken
    towards the smallest task id so the result is deterministic.

    Example:
        >>> analyzer = CriticalPathAnalyzer()
        >>> result = analyzer.analyze(graph)
        >>> result.path
        ['T001', 'T004', 'T007']
    """

    def analyze(self, graph: TaskGraph) -> CriticalPath:
        """
        Compute the critical path.

        Args:
            graph: Validated, acyclic task graph.

        Returns:
            CriticalPath with the ordered task ids and summed minutes.
        """
        if not graph.tasks:
            return CriticalPath()

        order = DependencyResolver.topological_order(graph)

        longest: dict[str, int] = {}
        previous: dict[str, str | None] = {}

        for task_id in order:
            task = graph.tasks[task_id]
            preds = task.dependencies
            if preds:
                best = min(preds, key=lambda d: (-longest[d], task_id_key(d)))
                longest[task_id] = task.estimated_minutes + longest[best]
                previous[task_id] = best
            else:
                longest[task_id] = task.estimated_minutes
                previous[task_id] = None

        end = min(longest, key=lambda t: (-longest[t], task_id_key(t)))

        path: list[str] = []
        current: str | None = end
        while current is not None:
            path.append(current)
            current = previous[current]
        path.reverse()

        logger.debug(f"Critical path: {' -> '.join(path)} ({longest[end]} minutes)")
        return CriticalPath(path=path, total_minutes=longest[end])


def find_critical_path(graph: TaskGraph) -> CriticalPath:
    """Convenience function to compute the critical path."""
    return CriticalPathAnalyzer().analyze(graph)
