"""Batch planner - partitions the task DAG into ordered parallel batches.

Batches use level scheduling: a task becomes ready once all of its
dependencies sit in earlier batches (or are already done). Each batch takes
at most ``max_batch_size`` ready tasks; the rest are deferred, never blocked.
"""

from collections import defaultdict
from collections.abc import Iterable

from loguru import logger

from nexus_decompose.core.exceptions import CycleDetectedError, ResourceConflictError
from nexus_decompose.decomposition.critical_path import CriticalPath
from nexus_decompose.decomposition.dependency_resolver import DependencyResolver
from nexus_decompose.decomposition.models import (
    ExecutionPlan,
    Task,
    TaskGraph,
    task_id_key,
)

DEFAULT_MAX_BATCH_SIZE = 7


class BatchPlanner:
    """
    Organize tasks into execution batches.

    Example:
        >>> planner = BatchPlanner(max_batch_size=7)
        >>> planner.plan(graph)
        [['T001', 'T002', 'T003'], ['T004', 'T005', 'T006'], ['T007']]
    """

    def __init__(self, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> None:
        """
        Initialize the planner.

        Args:
            max_batch_size: Upper bound on tasks per batch.
        """
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self.max_batch_size = max_batch_size

    def plan(
        self,
        graph: TaskGraph,
        completed: Iterable[str] = (),
        excluded: Iterable[str] = (),
    ) -> list[list[str]]:
        """
        Partition the graph into batches.

        Args:
            graph: Validated task graph.
            completed: Task ids already done; they satisfy dependencies
                and are not scheduled again.
            excluded: Task ids that must not run. Their transitive
                dependents are left out as well.

        Returns:
            Ordered batches of task ids (ascending within each batch).

        Raises:
            ResourceConflictError: If two co-batched tasks own the same resource.
        """
        done = set(completed)
        skipped: set[str] = set()
        for task_id in excluded:
            skipped.add(task_id)
            skipped.update(graph.transitive_dependents(task_id))

        pending = {
            tid: task for tid, task in graph.tasks.items()
            if tid not in done and tid not in skipped
        }
        assigned = set(done)
        batches: list[list[str]] = []

        logger.debug(
            f"Planning batches for {len(pending)} tasks "
            f"({len(done)} done, {len(skipped)} excluded)"
        )

        while pending:
            ready = [
                task for task in pending.values()
                if all(dep in assigned for dep in task.dependencies)
            ]
            if not ready:
                cycle = DependencyResolver.detect_cycle(
                    {tid: list(t.dependencies) for tid, t in pending.items()}
                )
                raise CycleDetectedError(cycle or sorted(pending, key=task_id_key))

            ready.sort(key=lambda t: (-t.priority.rank, task_id_key(t.id)))
            batch = self._select(ready)
            self._check_resources(batch)

            batch_ids = sorted((task.id for task in batch), key=task_id_key)
            batches.append(batch_ids)
            assigned.update(batch_ids)
            for task_id in batch_ids:
                del pending[task_id]

            deferred = len(ready) - len(batch_ids)
            logger.debug(
                f"Batch {len(batches) - 1}: {len(batch_ids)} tasks"
                + (f", {deferred} deferred" if deferred else "")
            )

        logger.info(f"Organized {len(assigned) - len(done)} tasks into {len(batches)} batches")
        return batches

    def build_plan(
        self,
        graph: TaskGraph,
        critical_path: CriticalPath,
        completed: Iterable[str] = (),
        excluded: Iterable[str] = (),
    ) -> ExecutionPlan:
        """
        Build the full execution plan.

        Args:
            graph: Validated task graph.
            critical_path: Result of the critical path analysis.
            completed: Task ids already done.
            excluded: Task ids that must not run.

        Returns:
            ExecutionPlan with batches and critical path.
        """
        return ExecutionPlan(
            batches=self.plan(graph, completed=completed, excluded=excluded),
            critical_path=list(critical_path.path),
            total_critical_duration_minutes=critical_path.total_minutes,
        )

    def _select(self, ready: list[Task]) -> list[Task]:
        """Pick the next batch from prioritized ready tasks."""
        head = ready[0]
        if not head.parallel_eligible:
            return [head]

        batch: list[Task] = []
        for task in ready:
            if len(batch) >= self.max_batch_size:
                break
            if task.parallel_eligible:
                batch.append(task)
        return batch

    @staticmethod
    def _check_resources(batch: list[Task]) -> None:
        """Reject a batch whose tasks share an owned resource."""
        owners: dict[str, str] = {}
        conflicts: dict[str, list[str]] = defaultdict(list)
        for task in sorted(batch, key=lambda t: task_id_key(t.id)):
            for resource in sorted(set(task.resources)):
                if resource in owners:
                    conflicts[resource].append(task.id)
                else:
                    owners[resource] = task.id

        if conflicts:
            resource = min(conflicts)
            logger.error(f"Resource conflict on {resource}")
            raise ResourceConflictError(owners[resource], conflicts[resource][0], resource)


def plan_batches(graph: TaskGraph, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> list[list[str]]:
    """Convenience function to plan batches.

    Args:
        graph: Validated task graph.
        max_batch_size: Upper bound on tasks per batch.

    Returns:
        Ordered batches of task ids.
    """
    return BatchPlanner(max_batch_size).plan(graph)
