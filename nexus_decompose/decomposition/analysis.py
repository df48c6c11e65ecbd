"""Analysis report - confidence bands, warnings and summary numbers."""

import math

from loguru import logger

from nexus_decompose.decomposition.models import (
    AnalysisReport,
    ExecutionPlan,
    Priority,
    Requirement,
    RiskLevel,
    TaskGraph,
    task_id_key,
)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class AnalysisReporter:
    """
    Summarize a finished decomposition for reviewers.

    Example:
        >>> reporter = AnalysisReporter()
        >>> report = reporter.build(requirements, graph, plan)
        >>> report.by_confidence_band
        {'high': 4, 'medium': 0, 'low': 3}
    """

    def __init__(self, high_threshold: float = 85.0, low_threshold: float = 70.0) -> None:
        if low_threshold > high_threshold:
            raise ValueError("low_threshold must not exceed high_threshold")
        self.high_threshold = high_threshold
        self.low_threshold = low_threshold

    def band_for(self, confidence: float) -> str:
        """Confidence band name for a score."""
        if confidence >= self.high_threshold:
            return "high"
        if confidence >= self.low_threshold:
            return "medium"
        return "low"

    def build(
        self,
        requirements: list[Requirement],
        graph: TaskGraph,
        plan: ExecutionPlan,
        warnings: list[str] | None = None,
    ) -> AnalysisReport:
        """
        Build the analysis report.

        Args:
            requirements: Normalized requirements.
            graph: Graph whose tasks already carry context sizes.
            plan: Execution plan for the graph.
            warnings: Warnings collected by earlier stages.

        Returns:
            AnalysisReport.
        """
        tasks = graph.get_all_tasks()

        bands = {"high": 0, "medium": 0, "low": 0}
        risks = {level.value: 0 for level in RiskLevel}
        low_ids: list[str] = []
        for task in tasks:
            band = self.band_for(task.confidence)
            bands[band] += 1
            risks[task.risk_level.value] += 1
            if band == "low":
                low_ids.append(task.id)

        all_warnings = list(warnings or [])
        all_warnings.extend(self._exemption_warnings(requirements))
        all_warnings.extend(self._priority_inversions(graph))
        all_warnings.extend(self._critical_path_warnings(graph, plan))

        total = len(tasks)
        parallel = sum(len(batch) for batch in plan.batches if len(batch) > 1)

        report = AnalysisReport(
            by_confidence_band=bands,
            low_confidence_task_ids=sorted(low_ids, key=task_id_key),
            warnings=all_warnings,
            total_tasks=total,
            average_context_size=(
                _round_half_up(sum(t.context_size for t in tasks) / total) if total else 0
            ),
            average_confidence=(
                _round_half_up(sum(t.confidence for t in tasks) / total) if total else 0
            ),
            critical_path_length=len(plan.critical_path),
            parallelizable_percentage=_round_half_up(parallel / total * 100) if total else 0,
            by_risk_level=risks,
        )

        logger.info(
            f"Analysis: {bands['high']} high / {bands['medium']} medium / "
            f"{bands['low']} low confidence tasks, {len(all_warnings)} warnings"
        )
        return report

    # =========================================================================
    # WARNINGS
    # =========================================================================

    @staticmethod
    def _exemption_warnings(requirements: list[Requirement]) -> list[str]:
        return [
            f"Requirement {req.id} is a {req.exemption.value}; "
            f"its implementation is not gated by tests"
            for req in requirements
            if req.exemption is not None
        ]

    @staticmethod
    def _priority_inversions(graph: TaskGraph) -> list[str]:
        found: list[str] = []
        for edge in graph.blocking_edges():
            source = graph.tasks[edge.source]
            target = graph.tasks[edge.target]
            if target.priority is Priority.MUST and source.priority is Priority.COULD:
                found.append(
                    f"Task {target.id} (must) is blocked by lower-priority "
                    f"task {source.id} (could)"
                )
        return found

    def _critical_path_warnings(self, graph: TaskGraph, plan: ExecutionPlan) -> list[str]:
        found: list[str] = []
        for task_id in plan.critical_path:
            task = graph.tasks[task_id]
            if task.confidence < self.low_threshold:
                found.append(
                    f"Critical path task {task_id} has low confidence ({task.confidence:g})"
                )
        return found
