"""Unit tests for the analysis reporter."""

from collections.abc import Callable
from typing import Any

import pytest

from nexus_decompose.decomposition.analysis import AnalysisReporter
from nexus_decompose.decomposition.batch_planner import BatchPlanner
from nexus_decompose.decomposition.critical_path import find_critical_path
from nexus_decompose.decomposition.models import ExemptionKind, Priority, RiskLevel


def _report(graph: Any, requirements: list | None = None, **kwargs: Any) -> Any:
    plan = BatchPlanner().build_plan(graph, find_critical_path(graph))
    return AnalysisReporter(**kwargs).build(requirements or [], graph, plan)


class TestAnalysisReporter:
    """Tests for AnalysisReporter."""

    @pytest.mark.parametrize(
        ("confidence", "band"),
        [(100, "high"), (85, "high"), (84.9, "medium"), (70, "medium"), (69.9, "low"), (0, "low")],
    )
    def test_band_boundaries(self, confidence: float, band: str) -> None:
        """Test band thresholds are inclusive on the lower edge."""
        assert AnalysisReporter().band_for(confidence) == band

    def test_counts_and_low_ids(self, make_graph: Callable[..., Any]) -> None:
        """Test band counts and the sorted low-confidence id list."""
        graph = make_graph(
            {"T001": [], "T002": [], "T003": ["T001"], "T004": ["T002"]},
            overrides={
                "T002": {"confidence": 40},
                "T003": {"confidence": 75},
                "T004": {"confidence": 65},
            },
        )

        report = _report(graph)

        assert report.by_confidence_band == {"high": 1, "medium": 1, "low": 2}
        assert report.low_confidence_task_ids == ["T002", "T004"]
        assert report.total_tasks == 4
        assert report.average_confidence == 68

    def test_critical_path_warning(self, make_graph: Callable[..., Any]) -> None:
        """Test low-confidence tasks on the critical path are called out."""
        graph = make_graph(
            {"T001": [], "T002": ["T001"], "T003": []},
            overrides={"T002": {"confidence": 55}, "T003": {"confidence": 10}},
        )

        report = _report(graph)

        assert report.warnings == ["Critical path task T002 has low confidence (55)"]
        assert report.critical_path_length == 2

    def test_priority_inversion_warning(self, make_graph: Callable[..., Any]) -> None:
        """Test a must task blocked by a could task is reported."""
        graph = make_graph(
            {"T001": [], "T002": ["T001"]},
            overrides={
                "T001": {"priority": Priority.COULD},
                "T002": {"priority": Priority.MUST},
            },
        )

        report = _report(graph)

        assert report.warnings == [
            "Task T002 (must) is blocked by lower-priority task T001 (could)"
        ]

    def test_exemption_warning(
        self,
        make_graph: Callable[..., Any],
        make_requirement: Callable[..., Any],
    ) -> None:
        """Test exempt requirements are surfaced."""
        graph = make_graph({"T001": []})
        reqs = [make_requirement("FR-001", exemption=ExemptionKind.HOTFIX)]

        report = _report(graph, reqs)

        assert report.warnings == [
            "Requirement FR-001 is a hotfix; its implementation is not gated by tests"
        ]

    def test_incoming_warnings_first(self, make_graph: Callable[..., Any]) -> None:
        """Test earlier-stage warnings keep their place at the front."""
        graph = make_graph({"T001": []}, overrides={"T001": {"confidence": 10}})
        plan = BatchPlanner().build_plan(graph, find_critical_path(graph))

        report = AnalysisReporter().build([], graph, plan, warnings=["Epic E2 has no requirements"])

        assert report.warnings[0] == "Epic E2 has no requirements"
        assert len(report.warnings) == 2

    def test_parallelizable_percentage(self, make_graph: Callable[..., Any]) -> None:
        """Test the share of tasks that run alongside others."""
        graph = make_graph({"T001": [], "T002": [], "T003": ["T001", "T002"]})

        report = _report(graph)

        # [[T001, T002], [T003]] -> 2 of 3
        assert report.parallelizable_percentage == 67

    def test_risk_counts(self, make_graph: Callable[..., Any]) -> None:
        """Test tasks are counted per risk level."""
        graph = make_graph(
            {"T001": [], "T002": []},
            overrides={"T002": {"risk_level": RiskLevel.HIGH}},
        )

        report = _report(graph)

        assert report.by_risk_level == {"low": 0, "medium": 1, "high": 1}

    def test_empty_graph(self, make_graph: Callable[..., Any]) -> None:
        """Test an empty decomposition yields zeroed numbers."""
        report = _report(make_graph({}))

        assert report.total_tasks == 0
        assert report.parallelizable_percentage == 0
        assert report.average_context_size == 0

    def test_custom_thresholds(self, make_graph: Callable[..., Any]) -> None:
        """Test thresholds are configurable."""
        graph = make_graph({"T001": []}, overrides={"T001": {"confidence": 80}})

        report = _report(graph, high_threshold=95, low_threshold=90)

        assert report.low_confidence_task_ids == ["T001"]

    def test_inverted_thresholds(self) -> None:
        """Test low threshold must not exceed high threshold."""
        with pytest.raises(ValueError):
            AnalysisReporter(high_threshold=60, low_threshold=80)
