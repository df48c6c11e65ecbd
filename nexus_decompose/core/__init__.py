"""Core module - configuration, exceptions and the pipeline engine.

The engine lives in ``nexus_decompose.core.engine`` and is re-exported from
the top-level package; it is not imported here so the decomposition modules
can depend on ``core.exceptions`` without a cycle.
"""

from nexus_decompose.core.config import Settings, clear_settings_cache, get_settings
from nexus_decompose.core.exceptions import (
    ConfidenceOutOfRange,
    CycleDetectedError,
    DecompositionError,
    DuplicateTaskError,
    InvalidDependencyReference,
    InvalidStateTransition,
    LifecycleError,
    MalformedSpecError,
    NexusError,
    ResourceConflictError,
    TaskSizeViolation,
    TestFirstViolation,
    UnknownTaskError,
)

__all__ = [
    "Settings",
    "clear_settings_cache",
    "get_settings",
    # Exceptions
    "NexusError",
    "DecompositionError",
    "MalformedSpecError",
    "ConfidenceOutOfRange",
    "TaskSizeViolation",
    "CycleDetectedError",
    "InvalidDependencyReference",
    "TestFirstViolation",
    "DuplicateTaskError",
    "ResourceConflictError",
    "LifecycleError",
    "InvalidStateTransition",
    "UnknownTaskError",
]
