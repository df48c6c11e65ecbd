"""Unit tests for the dependency resolver."""

import random
from collections.abc import Callable
from typing import Any

import pytest

from nexus_decompose.core.exceptions import (
    CycleDetectedError,
    DuplicateTaskError,
    InvalidDependencyReference,
    TestFirstViolation,
)
from nexus_decompose.decomposition.dependency_resolver import DependencyResolver
from nexus_decompose.decomposition.models import EdgeKind, TaskKind


class TestCycleDetection:
    """Tests for cycle detection."""

    def test_no_cycle(self) -> None:
        """Test acyclic graph returns None."""
        graph = {"a": [], "b": ["a"], "c": ["a", "b"]}

        assert DependencyResolver.detect_cycle(graph) is None

    def test_self_loop(self) -> None:
        """Test a task depending on itself."""
        assert DependencyResolver.detect_cycle({"a": ["a"]}) == ["a", "a"]

    def test_two_node_cycle(self) -> None:
        """Test the returned path is closed by its first node."""
        assert DependencyResolver.detect_cycle({"a": ["b"], "b": ["a"]}) == ["a", "b", "a"]

    def test_cycle_behind_tail(self) -> None:
        """Test only the cycle itself is reported, not the entry tail."""
        graph = {"a": ["b"], "b": ["c"], "c": ["d"], "d": ["b"]}

        assert DependencyResolver.detect_cycle(graph) == ["b", "c", "d", "b"]

    def test_unknown_ids_are_skipped(self) -> None:
        """Test dangling references do not count as cycles."""
        assert DependencyResolver.detect_cycle({"a": ["missing"]}) is None

    def test_deep_chain(self) -> None:
        """Test long chains do not hit the recursion limit."""
        graph = {f"n{i}": [f"n{i - 1}"] if i else [] for i in range(5000)}

        assert DependencyResolver.detect_cycle(graph) is None


class TestDependencyResolver:
    """Tests for DependencyResolver.resolve."""

    def test_edges(self, make_graph: Callable[..., Any]) -> None:
        """Test one blocks edge per dependency."""
        graph = make_graph({"T001": [], "T002": ["T001"], "T003": ["T001", "T002"]})

        pairs = [(e.source, e.target) for e in graph.edges]
        assert pairs == [("T001", "T002"), ("T001", "T003"), ("T002", "T003")]
        assert all(e.kind is EdgeKind.BLOCKS for e in graph.edges)
        assert graph.dependents("T001") == ["T002", "T003"]

    def test_informs_edges(self, make_task: Callable[..., Any]) -> None:
        """Test informs links become non-blocking edges."""
        tasks = [make_task("T001"), make_task("T002", informs=["T001"])]

        graph = DependencyResolver().resolve(tasks)

        assert [(e.source, e.target, e.kind) for e in graph.edges] == [
            ("T001", "T002", EdgeKind.INFORMS)
        ]
        assert graph.blocking_edges() == []

    def test_cycle_rejected(self, make_task: Callable[..., Any]) -> None:
        """Test a cycle aborts resolution with its path."""
        tasks = [
            make_task("T001", ["T003"]),
            make_task("T002", ["T001"]),
            make_task("T003", ["T002"]),
        ]

        with pytest.raises(CycleDetectedError) as exc_info:
            DependencyResolver().resolve(tasks)

        assert exc_info.value.path == ["T001", "T003", "T002", "T001"]
        assert "T001 -> T003" in str(exc_info.value)

    def test_unknown_reference(self, make_task: Callable[..., Any]) -> None:
        """Test dependencies must name tasks in the set."""
        tasks = [make_task("T001"), make_task("T002", ["T999"])]

        with pytest.raises(InvalidDependencyReference) as exc_info:
            DependencyResolver().resolve(tasks)

        assert exc_info.value.task_id == "T002"
        assert exc_info.value.missing_id == "T999"

    def test_unknown_informs_reference(self, make_task: Callable[..., Any]) -> None:
        """Test informs links are validated too."""
        tasks = [make_task("T001", informs=["T404"])]

        with pytest.raises(InvalidDependencyReference):
            DependencyResolver().resolve(tasks)

    def test_duplicate_ids(self, make_task: Callable[..., Any]) -> None:
        """Test duplicate task ids are rejected."""
        with pytest.raises(DuplicateTaskError):
            DependencyResolver().resolve([make_task("T001"), make_task("T001")])

    def test_test_first_enforced(self, make_task: Callable[..., Any]) -> None:
        """Test implementation tasks must depend on their requirement's test."""
        tasks = [
            make_task("T001", requirement_id="FR-1"),
            make_task("T002", requirement_id="FR-2"),
            make_task("T003", ["T002"], kind=TaskKind.IMPLEMENTATION, requirement_id="FR-1"),
        ]

        with pytest.raises(TestFirstViolation) as exc_info:
            DependencyResolver().resolve(tasks)

        assert exc_info.value.task_id == "T003"
        assert exc_info.value.requirement_id == "FR-1"

    def test_exempt_implementation_allowed(self, make_task: Callable[..., Any]) -> None:
        """Test exempt implementation tasks skip the gate."""
        tasks = [make_task("T001", kind=TaskKind.IMPLEMENTATION, exempt=True)]

        graph = DependencyResolver().resolve(tasks)

        assert list(graph.tasks) == ["T001"]


class TestTopologicalOrder:
    """Tests for the stable topological sort."""

    def test_ties_break_by_id(self, make_graph: Callable[..., Any]) -> None:
        """Test ready tasks are released in ascending id order."""
        graph = make_graph({"T003": [], "T001": ["T003"], "T002": []})

        assert DependencyResolver.topological_order(graph) == ["T002", "T003", "T001"]

    def test_wide_ids_order_numerically(self, make_graph: Callable[..., Any]) -> None:
        """Test T999 is released before T1000."""
        graph = make_graph({"T1000": [], "T999": []})

        assert DependencyResolver.topological_order(graph) == ["T999", "T1000"]

    @pytest.mark.parametrize("seed", range(20))
    def test_random_dags_stay_acyclic(self, seed: int, make_graph: Callable[..., Any]) -> None:
        """Test every dependency precedes its dependent in random DAGs."""
        rng = random.Random(seed)
        ids = [f"T{i:03d}" for i in range(1, rng.randint(2, 30))]
        edges = {
            tid: rng.sample(ids[:index], k=rng.randint(0, min(index, 3)))
            for index, tid in enumerate(ids)
        }

        graph = make_graph(edges)
        order = DependencyResolver.topological_order(graph)
        position = {tid: i for i, tid in enumerate(order)}

        assert sorted(order) == sorted(ids)
        for edge in graph.blocking_edges():
            assert position[edge.source] < position[edge.target]


def _kahn_places_all(edges: dict[str, set[str]]) -> bool:
    """Independent acyclicity check: Kahn's algorithm over task -> dependencies."""
    waiting = {tid: len(deps) for tid, deps in edges.items()}
    ready = [tid for tid, count in waiting.items() if count == 0]
    placed = 0
    while ready:
        done = ready.pop()
        placed += 1
        for tid, deps in edges.items():
            if done in deps:
                waiting[tid] -= 1
                if waiting[tid] == 0:
                    ready.append(tid)
    return placed == len(edges)


class TestArbitraryGraphs:
    """Tests for resolution over graphs with edges between any two tasks."""

    @pytest.mark.parametrize("seed", range(40))
    def test_cycle_or_faithful_graph(self, seed: int, make_task: Callable[..., Any]) -> None:
        """Test resolve either reports a real cycle or keeps every edge of an acyclic input."""
        rng = random.Random(seed)
        ids = [f"T{i:03d}" for i in range(1, rng.randint(2, 12))]
        density = rng.choice([0.05, 0.1, 0.2])
        edges = {
            tid: {dep for dep in ids if rng.random() < density and (dep != tid or seed % 10 == 0)}
            for tid in ids
        }
        tasks = [make_task(tid, list(deps)) for tid, deps in edges.items()]

        try:
            graph = DependencyResolver().resolve(tasks)
        except CycleDetectedError as exc:
            path = exc.path
            assert len(path) >= 2
            assert path[0] == path[-1]
            assert len(set(path[:-1])) == len(path) - 1
            for task_id, dep in zip(path, path[1:]):
                assert dep in edges[task_id]
            assert not _kahn_places_all(edges)
        else:
            assert {(e.source, e.target) for e in graph.blocking_edges()} == {
                (dep, tid) for tid, deps in edges.items() for dep in deps
            }
            assert _kahn_places_all(edges)
