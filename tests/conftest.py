"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest

# Set test environment
os.environ.setdefault("NEXUS_LOG_LEVEL", "DEBUG")
os.environ.setdefault("NEXUS_DEBUG", "false")


@pytest.fixture
def mock_settings() -> Generator:
    """Reset cached settings around a test."""
    from nexus_decompose.core.config import clear_settings_cache

    # Clear any cached settings
    clear_settings_cache()

    yield

    # Clear again after test
    clear_settings_cache()


@pytest.fixture
def scenario_spec() -> dict[str, Any]:
    """Three requirements in one story; FR-003 is cross-cutting."""
    return {
        "epics": [
            {
                "id": "E1",
                "title": "Accounts",
                "stories": [
                    {
                        "id": "S1",
                        "title": "Sign in",
                        "requirements": [
                            {
                                "id": "FR-001",
                                "title": "Password login",
                                "priority": "must",
                                "confidence": 90,
                            },
                            {
                                "id": "FR-002",
                                "title": "Social login",
                                "priority": "must",
                                "confidence": 60,
                            },
                            {
                                "id": "FR-003",
                                "title": "Session handling",
                                "priority": "must",
                                "confidence": 95,
                                "crossCutting": True,
                            },
                        ],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def make_requirement() -> Callable[..., Any]:
    """Factory for Requirement records with sensible defaults."""
    from nexus_decompose.decomposition.models import Requirement

    def _make(req_id: str, confidence: float = 90, **kwargs: Any) -> Requirement:
        kwargs.setdefault("title", f"Requirement {req_id}")
        kwargs.setdefault("epic_id", "E1")
        kwargs.setdefault("story_id", "S1")
        return Requirement(id=req_id, confidence=confidence, **kwargs)

    return _make


@pytest.fixture
def make_task() -> Callable[..., Any]:
    """Factory for Task records with sensible defaults."""
    from nexus_decompose.decomposition.models import SizeCategory, Task, TaskKind

    def _make(
        task_id: str,
        dependencies: list[str] | None = None,
        minutes: int = 60,
        **kwargs: Any,
    ) -> Task:
        kwargs.setdefault("title", f"Task {task_id}")
        kwargs.setdefault("kind", TaskKind.TEST)
        kwargs.setdefault("size_category", SizeCategory.S)
        kwargs.setdefault("confidence", 90)
        return Task(
            id=task_id,
            dependencies=sorted(dependencies or []),
            estimated_minutes=minutes,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_graph(make_task: Callable[..., Any]) -> Callable[..., Any]:
    """Build a TaskGraph from ``{task_id: [dependency ids]}``."""
    from nexus_decompose.decomposition.dependency_resolver import DependencyResolver

    def _make(
        edges: dict[str, list[str]],
        minutes: dict[str, int] | None = None,
        overrides: dict[str, dict[str, Any]] | None = None,
    ) -> Any:
        minutes = minutes or {}
        overrides = overrides or {}
        tasks = [
            make_task(tid, deps, minutes=minutes.get(tid, 60), **overrides.get(tid, {}))
            for tid, deps in edges.items()
        ]
        return DependencyResolver().resolve(tasks)

    return _make


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
