"""Decomposition engine - runs the full planning pipeline.

This module provides the primary interface of the package. It wires the
normalizer, task generator, dependency resolver, critical path analyzer,
batch planner, context allocator and analysis reporter together and
returns every stage's output in one ``DecompositionResult``.
"""

import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from nexus_decompose.core.config import Settings, get_settings
from nexus_decompose.core.exceptions import DecompositionError
from nexus_decompose.decomposition.analysis import AnalysisReporter
from nexus_decompose.decomposition.batch_planner import BatchPlanner
from nexus_decompose.decomposition.context_allocator import ContextAllocator
from nexus_decompose.decomposition.critical_path import CriticalPathAnalyzer
from nexus_decompose.decomposition.dependency_resolver import DependencyResolver
from nexus_decompose.decomposition.lifecycle import TaskLifecycleManager
from nexus_decompose.decomposition.models import (
    ContextMode,
    DecompositionResult,
    SizeCategory,
    StageCompleted,
    TaskGraph,
)
from nexus_decompose.decomposition.normalizer import RequirementNormalizer
from nexus_decompose.decomposition.task_generator import TaskGenerator


class DecompositionEngine:
    """
    Main decomposition engine.

    Runs the pipeline from a requirement tree to a validated plan:
    1. Normalize the epic/story/requirement tree
    2. Synthesize atomic tasks
    3. Build and validate the dependency graph
    4. Compute the critical path
    5. Plan bounded parallel batches
    6. Allocate context budgets
    7. Build the analysis report

    Any build-time error aborts the run; nothing partial is returned.

    Example:
        >>> engine = DecompositionEngine()
        >>> result = engine.decompose(spec)
        >>> result.plan.batches
        [['T001', 'T002', 'T003'], ['T004', 'T005', 'T006'], ['T007']]
    """

    def __init__(
        self,
        settings: Settings | None = None,
        configure_logging: bool = False,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Optional settings override. Uses default if not provided.
            configure_logging: Install the loguru sinks described by settings.
        """
        self.settings = settings or get_settings()
        self.log_handler_ids: list[int] = []
        if configure_logging:
            self._configure_logging()

    def _configure_logging(self) -> None:
        """Configure loguru based on settings."""
        logger.remove()  # Remove default handler

        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
        level = "DEBUG" if self.settings.nexus_debug else self.settings.nexus_log_level

        if self.settings.nexus_log_dir:
            logs_dir = Path(self.settings.nexus_log_dir)
            logs_dir.mkdir(parents=True, exist_ok=True)
            handler_id = logger.add(
                str(logs_dir / "nexus_{time:YYYY-MM-DD}.log"),
                rotation="1 day",
                retention="7 days",
                level=self.settings.nexus_log_level,
                format=log_format,
            )
            self.log_handler_ids.append(handler_id)

        self.log_handler_ids.append(
            logger.add(sys.stderr, level=level, format=log_format, colorize=True)
        )

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def decompose(self, spec: Mapping[str, Any] | list[Any]) -> DecompositionResult:
        """
        Run a complete decomposition.

        Args:
            spec: Hierarchical requirement document (epics -> stories ->
                requirements), already loaded into dicts and lists.

        Returns:
            DecompositionResult with tasks, graph, plan, report and stages.

        Raises:
            DecompositionError: Any build-time failure (malformed spec, XL
                task, cycle, unknown reference, resource conflict, ...).
        """
        settings = self.settings
        stages: list[StageCompleted] = []

        try:
            normalizer = RequirementNormalizer()
            requirements = normalizer.normalize(spec)
            stages.append(StageCompleted(
                stage="normalize",
                item_count=len(requirements),
                detail=f"{len(requirements)} requirements",
            ))

            generator = TaskGenerator(
                default_size=SizeCategory(settings.nexus_default_size_category),
                integration_size=SizeCategory(settings.nexus_integration_size_category),
                doc_size=SizeCategory(settings.nexus_doc_size_category),
            )
            tasks = generator.generate(requirements)
            stages.append(StageCompleted(
                stage="synthesize",
                item_count=len(tasks),
                detail=f"{len(tasks)} tasks",
            ))

            graph = DependencyResolver().resolve(tasks)
            stages.append(StageCompleted(
                stage="resolve",
                item_count=len(graph.edges),
                detail=f"{len(graph.edges)} edges",
            ))

            critical = CriticalPathAnalyzer().analyze(graph)
            stages.append(StageCompleted(
                stage="critical_path",
                item_count=len(critical),
                detail=f"{critical.total_minutes} minutes",
            ))

            plan = BatchPlanner(settings.nexus_max_batch_size).build_plan(graph, critical)
            stages.append(StageCompleted(
                stage="plan",
                item_count=plan.total_batches,
                detail=f"{plan.total_batches} batches",
            ))

            allocator = ContextAllocator(
                min_lines=settings.nexus_min_context_lines,
                max_lines=settings.nexus_max_context_lines,
                mode=ContextMode(settings.nexus_context_mode),
            )
            sized = allocator.allocate_all(tasks)
            graph = TaskGraph(tasks={t.id: t for t in sized}, edges=list(graph.edges))
            stages.append(StageCompleted(
                stage="allocate_context",
                item_count=len(sized),
                detail=f"{allocator.mode.value} context",
            ))

            report = AnalysisReporter(
                high_threshold=settings.nexus_high_confidence_threshold,
                low_threshold=settings.nexus_low_confidence_threshold,
            ).build(
                requirements,
                graph,
                plan,
                warnings=[*normalizer.warnings, *generator.warnings],
            )
            stages.append(StageCompleted(
                stage="analyze",
                item_count=len(report.warnings),
                detail=f"{len(report.low_confidence_task_ids)} low-confidence tasks",
            ))
        except DecompositionError as e:
            logger.error(f"Decomposition failed: {e}")
            raise

        logger.info(
            f"Decomposition complete: {len(sized)} tasks in {plan.total_batches} batches, "
            f"critical path {plan.total_critical_duration_minutes} minutes"
        )

        return DecompositionResult(
            requirements=requirements,
            tasks=sized,
            graph=graph,
            plan=plan,
            report=report,
            stages=stages,
        )

    @staticmethod
    def lifecycle(result: DecompositionResult) -> TaskLifecycleManager:
        """
        Create a lifecycle manager for a finished decomposition.

        Args:
            result: Output of ``decompose``.

        Returns:
            TaskLifecycleManager over the result's graph.
        """
        return TaskLifecycleManager(result.graph)


def decompose(
    spec: Mapping[str, Any] | list[Any],
    settings: Settings | None = None,
) -> DecompositionResult:
    """
    Convenience function to run a decomposition.

    Args:
        spec: Hierarchical requirement document.
        settings: Optional settings override.

    Returns:
        DecompositionResult.
    """
    return DecompositionEngine(settings=settings).decompose(spec)
