"""Dependency resolver - validates tasks and builds the dependency graph.

This module turns a synthesized task set into a ``TaskGraph``. It detects
cycles with an iterative three-colour DFS, checks that every referenced id
exists, and enforces the test-first gate for implementation tasks.
"""

import heapq

from loguru import logger

from nexus_decompose.core.exceptions import (
    CycleDetectedError,
    DuplicateTaskError,
    InvalidDependencyReference,
    TestFirstViolation,
)
from nexus_decompose.decomposition.models import (
    DependencyEdge,
    EdgeKind,
    Task,
    TaskGraph,
    TaskKind,
    task_id_key,
)

WHITE, GRAY, BLACK = 0, 1, 2


class DependencyResolver:
    """
    Resolve task dependencies into a validated, acyclic graph.

    Example:
        >>> resolver = DependencyResolver()
        >>> graph = resolver.resolve(tasks)
        >>> graph.dependents("T001")
        ['T004']
    """

    def resolve(self, tasks: list[Task]) -> TaskGraph:
        """
        Build the dependency graph for a task set.

        Args:
            tasks: Tasks in synthesis order.

        Returns:
            TaskGraph with every blocks and informs edge.

        Raises:
            DuplicateTaskError: If two tasks share an id.
            CycleDetectedError: If the blocks edges form a cycle.
            InvalidDependencyReference: If a task references an unknown id.
            TestFirstViolation: If a non-exempt implementation task is not
                gated by a test task of its requirement.
        """
        logger.info(f"Resolving dependencies for {len(tasks)} tasks")

        task_map: dict[str, Task] = {}
        for task in tasks:
            if task.id in task_map:
                raise DuplicateTaskError(task.id)
            task_map[task.id] = task

        adjacency = self.build_adjacency(tasks)

        cycle = self.detect_cycle(adjacency)
        if cycle:
            logger.error(f"Circular dependency detected: {' -> '.join(cycle)}")
            raise CycleDetectedError(cycle)

        self._validate_references(tasks, task_map)
        self._validate_test_first(tasks, task_map)

        edges: list[DependencyEdge] = []
        for task in tasks:
            for dep in task.dependencies:
                edges.append(DependencyEdge(source=dep, target=task.id, kind=EdgeKind.BLOCKS))
            for ref in task.informs:
                edges.append(DependencyEdge(source=ref, target=task.id, kind=EdgeKind.INFORMS))

        graph = TaskGraph(tasks=task_map, edges=edges)
        logger.info(f"Resolved graph with {len(task_map)} nodes and {len(edges)} edges")
        return graph

    # =========================================================================
    # GRAPH BUILDING
    # =========================================================================

    @staticmethod
    def build_adjacency(tasks: list[Task]) -> dict[str, list[str]]:
        """
        Build the adjacency list (task id -> dependency ids).

        Args:
            tasks: Tasks with dependencies.

        Returns:
            Mapping of task id to its blocking dependencies.
        """
        return {task.id: list(task.dependencies) for task in tasks}

    # =========================================================================
    # CYCLE DETECTION
    # =========================================================================

    @staticmethod
    def detect_cycle(graph: dict[str, list[str]]) -> list[str] | None:
        """
        Detect a cycle using an iterative three-colour DFS.

        Dependencies on ids missing from ``graph`` are skipped here; they are
        reported by reference validation.

        Args:
            graph: Dependency graph (task_id -> [dependency_ids]).

        Returns:
            The cycle path closed by its first node, or None.

        Example:
            >>> DependencyResolver.detect_cycle({"a": ["b"], "b": ["a"]})
            ['a', 'b', 'a']
        """
        colors: dict[str, int] = {node: WHITE for node in graph}

        for root in graph:
            if colors[root] != WHITE:
                continue

            colors[root] = GRAY
            stack: list[str] = [root]
            iterators = [iter(graph[root])]

            while stack:
                advanced = False
                for neighbor in iterators[-1]:
                    if neighbor not in colors:
                        continue
                    if colors[neighbor] == GRAY:
                        start = stack.index(neighbor)
                        return stack[start:] + [neighbor]
                    if colors[neighbor] == WHITE:
                        colors[neighbor] = GRAY
                        stack.append(neighbor)
                        iterators.append(iter(graph[neighbor]))
                        advanced = True
                        break

                if not advanced:
                    colors[stack.pop()] = BLACK
                    iterators.pop()

        return None

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _validate_references(tasks: list[Task], task_map: dict[str, Task]) -> None:
        for task in tasks:
            for ref in [*task.dependencies, *task.informs]:
                if ref not in task_map:
                    logger.error(f"Task {task.id} references unknown id {ref}")
                    raise InvalidDependencyReference(task.id, ref)

    @staticmethod
    def _validate_test_first(tasks: list[Task], task_map: dict[str, Task]) -> None:
        for task in tasks:
            if task.kind is not TaskKind.IMPLEMENTATION or task.exempt:
                continue
            gated = any(
                task_map[dep].kind is TaskKind.TEST
                and task_map[dep].requirement_id == task.requirement_id
                for dep in task.dependencies
            )
            if not gated:
                raise TestFirstViolation(task.id, task.requirement_id)

    # =========================================================================
    # TOPOLOGICAL SORT
    # =========================================================================

    @staticmethod
    def topological_order(graph: TaskGraph) -> list[str]:
        """
        Stable Kahn topological sort over blocks edges.

        Ready tasks are released in ascending id order (numeric suffixes
        compare as numbers).

        Args:
            graph: Validated task graph.

        Returns:
            Task ids, every dependency before its dependents.

        Raises:
            CycleDetectedError: If the graph was mutated into a cycle.
        """
        in_degree = {tid: len(task.dependencies) for tid, task in graph.tasks.items()}
        children: dict[str, list[str]] = {tid: [] for tid in graph.tasks}
        for tid, task in graph.tasks.items():
            for dep in task.dependencies:
                children[dep].append(tid)

        heap = [
            (task_id_key(tid), tid) for tid, degree in in_degree.items() if degree == 0
        ]
        heapq.heapify(heap)

        order: list[str] = []
        while heap:
            _, node = heapq.heappop(heap)
            order.append(node)
            for child in children[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(heap, (task_id_key(child), child))

        if len(order) != len(graph.tasks):
            placed = set(order)
            remaining = {
                tid: list(task.dependencies)
                for tid, task in graph.tasks.items()
                if tid not in placed
            }
            cycle = DependencyResolver.detect_cycle(remaining)
            raise CycleDetectedError(cycle or sorted(remaining, key=task_id_key))

        return order


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def resolve_to_graph(tasks: list[Task]) -> TaskGraph:
    """
    Resolve tasks and return the TaskGraph model.

    Args:
        tasks: List of Task objects.

    Returns:
        Validated TaskGraph.
    """
    return DependencyResolver().resolve(tasks)
