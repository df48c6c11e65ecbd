"""Task lifecycle manager - the per-task state machine.

Executors report progress through this manager. Illegal transitions are
rejected with ``InvalidStateTransition`` and leave the task untouched. A task
that ends CANCELLED or FAILED blocks every task downstream of it straight
away.
"""

from collections import deque
from collections.abc import Mapping

from loguru import logger

from nexus_decompose.core.exceptions import (
    InvalidStateTransition,
    LifecycleError,
    UnknownTaskError,
)
from nexus_decompose.decomposition.batch_planner import DEFAULT_MAX_BATCH_SIZE, BatchPlanner
from nexus_decompose.decomposition.models import (
    Task,
    TaskGraph,
    TaskState,
    TransitionRecord,
    task_id_key,
)

# Edges specific to each state. PAUSED, CANCELLED and FAILED are reachable
# from every non-terminal state and are added in ``allowed_targets``.
TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.BLOCKED, TaskState.WRITING_TEST}),
    TaskState.BLOCKED: frozenset(),
    TaskState.WRITING_TEST: frozenset({TaskState.TEST_FAILING}),
    TaskState.TEST_FAILING: frozenset({TaskState.IMPLEMENTING}),
    TaskState.IMPLEMENTING: frozenset({TaskState.TEST_PASSING, TaskState.FAILED}),
    TaskState.TEST_PASSING: frozenset({TaskState.REVIEWING, TaskState.REFACTORING}),
    TaskState.REVIEWING: frozenset({TaskState.NEEDS_REWORK, TaskState.DONE}),
    TaskState.NEEDS_REWORK: frozenset({TaskState.IMPLEMENTING}),
    TaskState.REFACTORING: frozenset({TaskState.TEST_PASSING, TaskState.REVIEWING}),
    TaskState.PAUSED: frozenset(),
    TaskState.CANCELLED: frozenset(),
    TaskState.FAILED: frozenset(),
    TaskState.DONE: frozenset(),
}

_ALWAYS_ALLOWED = frozenset({TaskState.PAUSED, TaskState.CANCELLED, TaskState.FAILED})
_STOPPING = frozenset({TaskState.CANCELLED, TaskState.FAILED})


class TaskLifecycleManager:
    """
    Track and validate task states for one decomposition.

    Example:
        >>> manager = TaskLifecycleManager(result.graph)
        >>> manager.transition("T001", TaskState.WRITING_TEST)
        <TaskState.WRITING_TEST: 'writing_test'>
        >>> _ = manager.fail("T001")
        >>> manager.state_of("T004")
        <TaskState.BLOCKED: 'blocked'>
    """

    def __init__(
        self,
        graph: TaskGraph,
        paused_from: Mapping[str, TaskState] | None = None,
    ) -> None:
        """
        Initialize the manager from a graph.

        Args:
            graph: Validated task graph; each task's ``state`` seeds the machine.
            paused_from: State each PAUSED task was paused from, as returned
                by ``paused_states`` of the manager that took the snapshot.

        Raises:
            LifecycleError: If a PAUSED task has no usable prior state.
        """
        self._graph = graph
        self._states: dict[str, TaskState] = {
            tid: task.state for tid, task in graph.tasks.items()
        }
        self._paused_from: dict[str, TaskState] = {}
        self._history: list[TransitionRecord] = []

        paused_from = paused_from or {}
        for tid, state in self._states.items():
            if state is not TaskState.PAUSED:
                continue
            prior = paused_from.get(tid)
            if prior is None:
                raise LifecycleError(
                    f"Task {tid} is paused but its prior state is unknown; "
                    f"pass it in paused_from"
                )
            if prior is TaskState.PAUSED or prior.is_terminal:
                raise LifecycleError(f"Task {tid} cannot resume to {prior.value}")
            self._paused_from[tid] = prior

    # =========================================================================
    # QUERIES
    # =========================================================================

    def state_of(self, task_id: str) -> TaskState:
        """Get the current state of a task."""
        self._require(task_id)
        return self._states[task_id]

    def states(self) -> dict[str, TaskState]:
        """Get a copy of every task state."""
        return dict(self._states)

    def allowed_targets(self, task_id: str) -> frozenset[TaskState]:
        """Get the states a task may move to next."""
        state = self.state_of(task_id)
        if state.is_terminal:
            return frozenset()
        if state is TaskState.PAUSED:
            return frozenset({self._paused_from[task_id]}) | _STOPPING
        return TRANSITIONS[state] | _ALWAYS_ALLOWED

    def can_transition(self, task_id: str, target: TaskState) -> bool:
        """Check if a transition is legal without applying it."""
        return target in self.allowed_targets(task_id)

    def blocked_task_ids(self) -> list[str]:
        """Get tasks currently BLOCKED."""
        return sorted(
            (tid for tid, s in self._states.items() if s is TaskState.BLOCKED),
            key=task_id_key,
        )

    def paused_states(self) -> dict[str, TaskState]:
        """Get the prior state of every paused task."""
        return dict(self._paused_from)

    @property
    def history(self) -> list[TransitionRecord]:
        """Accepted transitions, oldest first."""
        return list(self._history)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def transition(
        self,
        task_id: str,
        target: TaskState,
        reason: str | None = None,
    ) -> TaskState:
        """
        Move a task to ``target``.

        Args:
            task_id: Task to move.
            target: Desired state.
            reason: Optional note stored in the history.

        Returns:
            The new state.

        Raises:
            UnknownTaskError: If the task is not tracked.
            InvalidStateTransition: If the edge is not in the state machine.
        """
        source = self.state_of(task_id)
        if not self.can_transition(task_id, target):
            logger.warning(f"Rejected transition of {task_id}: {source.value} -> {target.value}")
            raise InvalidStateTransition(task_id, source.value, target.value)

        if target is TaskState.PAUSED:
            self._paused_from[task_id] = source
        elif source is TaskState.PAUSED:
            del self._paused_from[task_id]

        self._apply(task_id, target, reason)

        if target in _STOPPING:
            self._propagate_block(task_id)
        return target

    def pause(self, task_id: str, reason: str | None = None) -> TaskState:
        """Pause a task, remembering where it was."""
        return self.transition(task_id, TaskState.PAUSED, reason)

    def resume(self, task_id: str, reason: str | None = None) -> TaskState:
        """Resume a paused task to its exact prior state."""
        source = self.state_of(task_id)
        if source is not TaskState.PAUSED:
            raise InvalidStateTransition(
                task_id,
                source.value,
                None,
                f"Task {task_id} is {source.value}; only paused tasks can be resumed",
            )
        return self.transition(task_id, self._paused_from[task_id], reason)

    def cancel(self, task_id: str, reason: str | None = None) -> TaskState:
        """Cancel a task and block its dependents."""
        return self.transition(task_id, TaskState.CANCELLED, reason)

    def fail(self, task_id: str, reason: str | None = None) -> TaskState:
        """Fail a task and block its dependents."""
        return self.transition(task_id, TaskState.FAILED, reason)

    def complete(self, task_id: str, reason: str | None = None) -> TaskState:
        """Mark a reviewed task DONE."""
        return self.transition(task_id, TaskState.DONE, reason)

    def unblock(self, task_id: str, reason: str | None = None) -> TaskState:
        """
        Manually resolve a BLOCKED task back to PENDING.

        Args:
            task_id: Blocked task.
            reason: Resolution note.

        Returns:
            TaskState.PENDING.

        Raises:
            InvalidStateTransition: If the task is not BLOCKED, or one of its
                upstream tasks is still CANCELLED or FAILED.
        """
        source = self.state_of(task_id)
        if source is not TaskState.BLOCKED:
            raise InvalidStateTransition(task_id, source.value, TaskState.PENDING.value)

        stopped = [a for a in self._ancestors(task_id) if self._states[a] in _STOPPING]
        if stopped:
            logger.warning(f"Cannot unblock {task_id}: upstream {stopped} stopped")
            raise InvalidStateTransition(task_id, source.value, TaskState.PENDING.value)

        self._apply(task_id, TaskState.PENDING, reason or "manually unblocked")
        return TaskState.PENDING

    # =========================================================================
    # PLANNING
    # =========================================================================

    def remaining_plan(self, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> list[list[str]]:
        """
        Re-plan the work that is not done yet.

        BLOCKED, CANCELLED and FAILED tasks (and anything downstream of them)
        are left out; DONE tasks count as satisfied dependencies.

        Args:
            max_batch_size: Upper bound on tasks per batch.

        Returns:
            Ordered batches of task ids.
        """
        completed = [tid for tid, s in self._states.items() if s is TaskState.DONE]
        excluded = [
            tid for tid, s in self._states.items()
            if s is TaskState.BLOCKED or s in _STOPPING
        ]
        return BatchPlanner(max_batch_size).plan(
            self._graph, completed=completed, excluded=excluded
        )

    def snapshot(self) -> list[Task]:
        """Get copies of every task carrying its current state."""
        return [
            task.model_copy(update={"state": self._states[tid]})
            for tid, task in self._graph.tasks.items()
        ]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require(self, task_id: str) -> None:
        if task_id not in self._states:
            raise UnknownTaskError(task_id)

    def _apply(self, task_id: str, target: TaskState, reason: str | None) -> None:
        source = self._states[task_id]
        self._states[task_id] = target
        self._history.append(
            TransitionRecord(
                sequence=len(self._history),
                task_id=task_id,
                source=source,
                target=target,
                reason=reason,
            )
        )
        logger.debug(f"Task {task_id}: {source.value} -> {target.value}")

    def _propagate_block(self, task_id: str) -> None:
        """Block every non-terminal task downstream of ``task_id``."""
        cause = self._states[task_id].value
        blocked: list[str] = []
        for dependent in self._graph.transitive_dependents(task_id):
            state = self._states[dependent]
            if state.is_terminal or state is TaskState.BLOCKED:
                continue
            self._paused_from.pop(dependent, None)
            self._apply(dependent, TaskState.BLOCKED, f"upstream {task_id} {cause}")
            blocked.append(dependent)

        if blocked:
            logger.info(f"Task {task_id} {cause}: blocked {len(blocked)} dependents")

    def _ancestors(self, task_id: str) -> set[str]:
        seen: set[str] = set()
        queue: deque[str] = deque(self._graph.predecessors(task_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._graph.predecessors(current))
        return seen
