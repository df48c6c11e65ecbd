"""Context allocator - sizes each task's embedded spec excerpt.

Lower confidence and higher complexity buy a larger line budget. The
allocation is a pure function of the task's confidence and size category.
"""

import math

from loguru import logger

from nexus_decompose.decomposition.models import ContextMode, Task

DEFAULT_MIN_LINES = 200
DEFAULT_MAX_LINES = 2000


class ContextAllocator:
    """
    Compute per-task context budgets.

    ``adaptive`` mode uses::

        min + (1 - confidence / 100) * (max - min) * complexity_multiplier

    rounded half-up and clamped to ``[min_lines, max_lines]``. ``full`` always
    hands out ``max_lines`` and ``minimal`` always ``min_lines``.

    Example:
        >>> allocator = ContextAllocator(min_lines=200, max_lines=2000)
        >>> allocator.size_for(confidence=60, multiplier=1.0)
        920
    """

    def __init__(
        self,
        min_lines: int = DEFAULT_MIN_LINES,
        max_lines: int = DEFAULT_MAX_LINES,
        mode: ContextMode = ContextMode.ADAPTIVE,
    ) -> None:
        if min_lines < 0:
            raise ValueError("min_lines must not be negative")
        if min_lines > max_lines:
            raise ValueError("min_lines must not exceed max_lines")
        self.min_lines = min_lines
        self.max_lines = max_lines
        self.mode = mode

    def size_for(self, confidence: float, multiplier: float) -> int:
        """Context budget for a confidence and complexity multiplier."""
        match self.mode:
            case ContextMode.FULL:
                return self.max_lines
            case ContextMode.MINIMAL:
                return self.min_lines
            case ContextMode.ADAPTIVE:
                span = self.max_lines - self.min_lines
                raw = self.min_lines + (1 - confidence / 100) * span * multiplier
                size = math.floor(raw + 0.5)
                return max(self.min_lines, min(self.max_lines, size))

    def allocate(self, task: Task) -> int:
        """
        Compute the context budget of a single task.

        Args:
            task: Task with confidence and size category.

        Returns:
            Budget in lines.
        """
        return self.size_for(task.confidence, task.complexity.multiplier)

    def allocate_all(self, tasks: list[Task]) -> list[Task]:
        """
        Return copies of ``tasks`` with ``context_size`` filled in.

        Args:
            tasks: Tasks to size.

        Returns:
            New Task objects in the same order.
        """
        sized = [
            task.model_copy(update={"context_size": self.allocate(task)}, deep=True)
            for task in tasks
        ]
        if sized:
            average = sum(t.context_size for t in sized) / len(sized)
            logger.info(
                f"Allocated context for {len(sized)} tasks "
                f"({self.mode.value}, avg {average:.0f} lines)"
            )
        return sized
